"""
Component Registry: Catalog of known component kinds.

Registries are plain instances passed explicitly to whoever needs them, so
independent render sessions in one process can use different catalogs.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


ComponentCategory = Literal["layout", "content", "input", "media", "misc"]


class ComponentDefinition(BaseModel):
    """Definition of one component kind."""
    type: str = Field(..., description="Component type identifier")
    display_name: Optional[str] = None
    description: Optional[str] = None
    property_schema: Optional[Dict[str, Any]] = Field(None, description="JSON Schema of properties")
    default_props: Dict[str, Any] = Field(default_factory=dict)
    category: Optional[ComponentCategory] = None
    tags: List[str] = Field(default_factory=list)


# (type, display name, description, category, tags, default props)
STANDARD_COMPONENTS = [
    ("card", "Card", "Container with optional title, subtitle, and styling", "layout",
     ["container", "layout"], {"padding": 16, "backgroundColor": "#ffffff", "borderRadius": 8, "shadow": True}),
    ("row", "Row", "Horizontal layout container", "layout",
     ["container", "layout", "flex"], {"gap": 8, "align": "start", "justify": "start"}),
    ("column", "Column", "Vertical layout container", "layout",
     ["container", "layout", "flex"], {"gap": 8, "align": "start"}),
    ("modal", "Modal", "Overlay dialog container", "layout",
     ["container", "overlay", "dialog"], {"open": False}),
    ("tabs", "Tabs", "Tabbed content container", "layout",
     ["container", "navigation"], {"tabs": []}),
    ("text", "Text", "Text content display", "content",
     ["text", "typography"], {"value": "", "fontSize": 14, "fontWeight": "normal", "align": "left"}),
    ("button", "Button", "Clickable button", "input",
     ["button", "action", "interactive"], {"label": "Button", "variant": "primary", "size": "md", "disabled": False}),
    ("list", "List", "Repeating item list", "content",
     ["list", "repeater"], {"items": [], "emptyMessage": "No items"}),
    ("divider", "Divider", "Visual separator", "content",
     ["separator"], {"orientation": "horizontal"}),
    ("textField", "Text Field", "Single or multi-line text input", "input",
     ["input", "form", "text"], {"value": "", "placeholder": "", "multiline": False}),
    ("checkBox", "Checkbox", "Boolean toggle input", "input",
     ["input", "form", "toggle"], {"checked": False}),
    ("slider", "Slider", "Numeric range input", "input",
     ["input", "form", "range"], {"min": 0, "max": 100, "step": 1, "value": 0}),
    ("choicePicker", "Choice Picker", "Single or multiple choice selection", "input",
     ["input", "form", "select"], {"options": [], "multiple": False}),
    ("dateTimeInput", "Date/Time Input", "Date and time picker", "input",
     ["input", "form", "date"], {"mode": "date"}),
    ("image", "Image", "Image display", "media",
     ["media", "image"], {"fit": "cover"}),
    ("video", "Video", "Video player", "media",
     ["media", "video"], {"controls": True, "autoplay": False}),
    ("audioPlayer", "Audio Player", "Audio playback control", "media",
     ["media", "audio"], {"controls": True}),
    ("icon", "Icon", "Icon glyph", "content",
     ["icon"], {"size": 24}),
]


class ComponentRegistry:
    """
    Manages component type definitions.

    Example:
        >>> registry = ComponentRegistry.standard()
        >>> registry.has("card")
        True
        >>> [d.type for d in registry.get_by_category("media")]
        ['image', 'video', 'audioPlayer']
    """

    def __init__(self):
        self._definitions: Dict[str, ComponentDefinition] = {}

    def register(self, type: str, definition: Optional[ComponentDefinition] = None) -> None:
        """Register a component type; the definition's type is forced to match."""
        definition = definition or ComponentDefinition(type=type)
        self._definitions[type] = definition.model_copy(update={"type": type})

    def get(self, type: str) -> Optional[ComponentDefinition]:
        return self._definitions.get(type)

    def has(self, type: str) -> bool:
        return type in self._definitions

    def unregister(self, type: str) -> bool:
        return self._definitions.pop(type, None) is not None

    def get_all(self) -> List[ComponentDefinition]:
        return list(self._definitions.values())

    def get_by_category(self, category: ComponentCategory) -> List[ComponentDefinition]:
        return [d for d in self._definitions.values() if d.category == category]

    def search_by_tag(self, tag: str) -> List[ComponentDefinition]:
        return [d for d in self._definitions.values() if tag in d.tags]

    def clear(self) -> None:
        self._definitions.clear()

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, type: object) -> bool:
        return type in self._definitions

    @classmethod
    def standard(cls) -> "ComponentRegistry":
        """Create a registry pre-loaded with the standard component kinds."""
        registry = cls()
        for type_, display_name, description, category, tags, defaults in STANDARD_COMPONENTS:
            registry.register(type_, ComponentDefinition(
                type=type_,
                display_name=display_name,
                description=description,
                category=category,
                tags=tags,
                default_props=defaults,
            ))
        return registry
