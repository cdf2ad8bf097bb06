"""
Component Schema: Component shape and progressive lifecycle models.

This module provides the Pydantic models shared by the renderer and the
pipeline: the component shape the agent streams, the per-component
lifecycle state tracked while it streams, and the aggregate render metrics.

Key Features:
- Forward-compatible component model (unknown fields are kept)
- Forward-only lifecycle status ordering
- Metrics serialised with camelCase wire names
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# Component Shape
# =============================================================================

class A2UIComponent(BaseModel):
    """
    A component in a surface's component tree.

    Components reference each other only by id through ``children``.

    Example:
        >>> component = A2UIComponent(id="t1", type="text", properties={"text": "Hi"})
        >>> component.model_dump(exclude_none=True)
        {'id': 't1', 'type': 'text', 'properties': {'text': 'Hi'}}
    """
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Unique component identifier")
    type: str = Field(..., description="Component kind, e.g. 'text' or 'card'")
    properties: Optional[Dict[str, Any]] = Field(None, description="Kind-specific properties")
    children: Optional[List[str]] = Field(None, description="Child component ids")


ComponentLike = Union[A2UIComponent, Dict[str, Any]]


def component_to_dict(component: ComponentLike) -> Dict[str, Any]:
    """Return a plain dict copy of a component model or mapping."""
    if isinstance(component, BaseModel):
        return component.model_dump(exclude_none=True)
    return dict(component)


# =============================================================================
# Lifecycle
# =============================================================================

class ComponentStatus(str, Enum):
    PENDING = "pending"
    RENDERING = "rendering"
    UPDATING = "updating"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ComponentStatus.COMPLETE, ComponentStatus.ERROR)

    @property
    def is_in_progress(self) -> bool:
        return self in (ComponentStatus.RENDERING, ComponentStatus.UPDATING)


class ComponentState(BaseModel):
    """Lifecycle state of one component during a render session."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    status: ComponentStatus = ComponentStatus.PENDING
    partial: Dict[str, Any] = Field(default_factory=dict, description="Value merged so far")
    final: Optional[Dict[str, Any]] = Field(None, description="Finalized value, set once")
    update_count: int = 0
    first_seen: float = Field(..., description="Epoch seconds of first sighting")
    last_updated: float
    finalized_at: Optional[float] = None
    errors: List[Exception] = Field(default_factory=list)


# =============================================================================
# Metrics
# =============================================================================

class RenderMetrics(BaseModel):
    """
    Aggregate counters for the current render session.

    ``avg_time_to_completion`` is in milliseconds and averages only the
    components that reached ``complete``.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_components: int = 0
    completed_components: int = 0
    rendering_components: int = 0
    failed_components: int = 0
    total_updates: int = 0
    avg_time_to_completion: float = 0.0
