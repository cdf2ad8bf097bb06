"""Incremental component rendering and the parser-to-renderer pipeline."""

from .incremental_renderer import (
    IncrementalRenderer,
    RendererOptions,
    ComponentRenderError,
    ComponentTimeoutError,
    DEFAULT_COMPONENT_TIMEOUT,
)
from .pipeline import (
    ProgressiveRenderPipeline,
    UnknownComponentTypeError,
    extract_components,
)

__all__ = [
    "IncrementalRenderer",
    "RendererOptions",
    "ComponentRenderError",
    "ComponentTimeoutError",
    "DEFAULT_COMPONENT_TIMEOUT",
    "ProgressiveRenderPipeline",
    "UnknownComponentTypeError",
    "extract_components",
]
