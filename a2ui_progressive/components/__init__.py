"""Component shape, lifecycle models, protocol messages and registry."""

from .component_schema import (
    A2UIComponent,
    ComponentLike,
    ComponentState,
    ComponentStatus,
    RenderMetrics,
    component_to_dict,
)
from .messages import (
    BaseMessage,
    CreateSurfaceMessage,
    ComponentUpdate,
    UpdateComponentsMessage,
    DeleteSurfaceMessage,
    ProgressiveRenderStartMessage,
    ProgressiveRenderChunkMessage,
    ProgressiveRenderCompleteMessage,
    ProgressiveRenderErrorMessage,
    ProgressiveRenderProgressMessage,
    ProgressiveRenderMessage,
    A2UIMessage,
    parse_message,
    is_progressive_render_message,
    message_to_wire,
)
from .registry import ComponentDefinition, ComponentRegistry

__all__ = [
    "A2UIComponent",
    "ComponentLike",
    "ComponentState",
    "ComponentStatus",
    "RenderMetrics",
    "component_to_dict",
    "BaseMessage",
    "CreateSurfaceMessage",
    "ComponentUpdate",
    "UpdateComponentsMessage",
    "DeleteSurfaceMessage",
    "ProgressiveRenderStartMessage",
    "ProgressiveRenderChunkMessage",
    "ProgressiveRenderCompleteMessage",
    "ProgressiveRenderErrorMessage",
    "ProgressiveRenderProgressMessage",
    "ProgressiveRenderMessage",
    "A2UIMessage",
    "parse_message",
    "is_progressive_render_message",
    "message_to_wire",
    "ComponentDefinition",
    "ComponentRegistry",
]
