"""
Protocol Messages: Tagged A2UI messages exchanged around progressive rendering.

Each message is a Pydantic model discriminated on its ``type`` field, so a
decoded payload is always exactly one variant. Wire names are camelCase.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from .component_schema import A2UIComponent


class BaseMessage(BaseModel):
    """Fields shared by every message."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[str] = Field(None, description="Optional message ID for tracking")
    timestamp: Optional[float] = None


# =============================================================================
# Surface Messages (Agent -> UI)
# =============================================================================

class CreateSurfaceMessage(BaseMessage):
    """Initializes a new surface with components and a data model."""
    type: Literal["createSurface"] = "createSurface"
    surface_id: str
    components: List[A2UIComponent] = Field(default_factory=list)
    data_model: Optional[Dict[str, Any]] = None


class ComponentUpdate(BaseModel):
    id: str
    operation: Literal["add", "update", "remove"]
    component: Optional[A2UIComponent] = None


class UpdateComponentsMessage(BaseMessage):
    """Updates existing components or adds new ones."""
    type: Literal["updateComponents"] = "updateComponents"
    surface_id: str
    updates: List[ComponentUpdate] = Field(default_factory=list)


class DeleteSurfaceMessage(BaseMessage):
    type: Literal["deleteSurface"] = "deleteSurface"
    surface_id: str


# =============================================================================
# Progressive Render Messages
# =============================================================================

class ProgressiveRenderStartMessage(BaseMessage):
    """Signals the start of a progressive rendering stream."""
    type: Literal["progressiveRenderStart"] = "progressiveRenderStart"
    surface_id: str
    stream_id: str
    expected_size: Optional[int] = Field(None, description="Expected total size in bytes")
    estimated_components: Optional[int] = None


class ProgressiveRenderChunkMessage(BaseMessage):
    """Carries one chunk of streamed JSON and the value parsed so far."""
    type: Literal["progressiveRenderChunk"] = "progressiveRenderChunk"
    stream_id: str
    chunk: str = Field(..., description="JSON chunk (may be incomplete)")
    partial: Dict[str, Any] = Field(default_factory=dict, description="Value parsed so far")
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    sequence: int
    bytes_received: int


class ProgressiveRenderCompleteMessage(BaseMessage):
    type: Literal["progressiveRenderComplete"] = "progressiveRenderComplete"
    stream_id: str
    final: Dict[str, Any]
    total_chunks: int
    total_bytes: int
    duration: float = Field(..., description="Duration in milliseconds")


class ProgressiveRenderErrorMessage(BaseMessage):
    type: Literal["progressiveRenderError"] = "progressiveRenderError"
    stream_id: str
    error_code: str
    error: str
    recovered: Optional[Dict[str, Any]] = Field(None, description="Recovered partial data")
    recovery_attempted: bool = False
    failed_at_sequence: Optional[int] = None


class ProgressiveRenderProgressMessage(BaseMessage):
    """Rendering progress feedback (UI -> Agent)."""
    type: Literal["progressiveRenderProgress"] = "progressiveRenderProgress"
    stream_id: str
    components_rendered: int
    components_pending: int
    avg_render_time: float = Field(..., description="Average render time per component (ms)")
    backpressure: Optional[Literal["slow", "normal", "fast"]] = None


ProgressiveRenderMessage = Union[
    ProgressiveRenderStartMessage,
    ProgressiveRenderChunkMessage,
    ProgressiveRenderCompleteMessage,
    ProgressiveRenderErrorMessage,
    ProgressiveRenderProgressMessage,
]

A2UIMessage = Annotated[
    Union[
        CreateSurfaceMessage,
        UpdateComponentsMessage,
        DeleteSurfaceMessage,
        ProgressiveRenderStartMessage,
        ProgressiveRenderChunkMessage,
        ProgressiveRenderCompleteMessage,
        ProgressiveRenderErrorMessage,
        ProgressiveRenderProgressMessage,
    ],
    Field(discriminator="type")
]

_MESSAGE_ADAPTER = TypeAdapter(A2UIMessage)

PROGRESSIVE_MESSAGE_TYPES = {
    "progressiveRenderStart",
    "progressiveRenderChunk",
    "progressiveRenderComplete",
    "progressiveRenderError",
    "progressiveRenderProgress",
}


def parse_message(data: Union[str, Dict[str, Any]]) -> Optional[BaseMessage]:
    """
    Validate a decoded payload (or JSON text) into its message variant.

    Args:
        data: JSON text or decoded mapping

    Returns:
        The message model, or None when the payload is not a known message

    Example:
        >>> message = parse_message({"type": "deleteSurface", "surfaceId": "main"})
        >>> message.surface_id
        'main'
    """
    try:
        if isinstance(data, str):
            return _MESSAGE_ADAPTER.validate_json(data)
        return _MESSAGE_ADAPTER.validate_python(data)
    except ValidationError:
        return None


def is_progressive_render_message(message: Any) -> bool:
    return getattr(message, "type", None) in PROGRESSIVE_MESSAGE_TYPES


def message_to_wire(message: BaseMessage) -> Dict[str, Any]:
    """Serialise a message with camelCase names, omitting unset optionals."""
    return message.model_dump(mode="json", by_alias=True, exclude_none=True)
