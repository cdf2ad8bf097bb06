"""
Progressive rendering core for the A2UI agent-to-interface protocol.

Streams an agent's JSON interface description through a fault-tolerant
parser and tracks every component from first partial sighting to its
finalized state.
"""

from .components import (
    A2UIComponent,
    ComponentRegistry,
    ComponentState,
    ComponentStatus,
    RenderMetrics,
    parse_message,
)
from .rendering import (
    IncrementalRenderer,
    ProgressiveRenderPipeline,
    RendererOptions,
)
from .streaming import (
    ParseState,
    RecoveryResult,
    StreamingHandler,
    StreamingJSONParser,
    fix_llm_json,
    get_recovery_stats,
    recover_json,
)

__version__ = "0.1.0"

__all__ = [
    "A2UIComponent",
    "ComponentRegistry",
    "ComponentState",
    "ComponentStatus",
    "RenderMetrics",
    "parse_message",
    "IncrementalRenderer",
    "ProgressiveRenderPipeline",
    "RendererOptions",
    "ParseState",
    "RecoveryResult",
    "StreamingHandler",
    "StreamingJSONParser",
    "fix_llm_json",
    "get_recovery_stats",
    "recover_json",
]
