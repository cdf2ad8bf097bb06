"""
Incremental Renderer: Tracks components from first partial sighting to final state.

This module provides the IncrementalRenderer class that keeps one lifecycle
state per component id and notifies the UI layer as components are first
seen, updated, finalized or fail.

Key Features:
- Forward-only lifecycle (rendering → updating → complete | error)
- Finalized values are immutable; later updates are ignored
- Out-of-order updates create the component implicitly
- Session completion detection (fires exactly once)
- Optional timeout-driven auto-finalize of stalled components
- Render metrics (counts, updates, average time to completion)
"""

import copy
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..components.component_schema import (
    ComponentLike,
    ComponentState,
    ComponentStatus,
    RenderMetrics,
    component_to_dict,
)

logger = logging.getLogger(__name__)


DEFAULT_COMPONENT_TIMEOUT = 30.0  # seconds


class ComponentRenderError(Exception):
    """Error recorded against a single component."""


class ComponentTimeoutError(ComponentRenderError):
    """A stalled component did not carry enough data to be finalized."""


class RendererOptions(BaseModel):
    """
    Renderer configuration: callback slots and lifecycle policy.

    Every callback is optional.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    on_render_start: Optional[Callable[[str], Any]] = None
    on_partial_render: Optional[Callable[[Dict[str, Any]], Any]] = None
    on_component_update: Optional[Callable[[str, Dict[str, Any]], Any]] = None
    on_finalize: Optional[Callable[[str, Dict[str, Any]], Any]] = None
    on_error: Optional[Callable[[str, Exception], Any]] = None
    on_render_complete: Optional[Callable[[str], Any]] = None

    timeout: Optional[float] = Field(
        DEFAULT_COMPONENT_TIMEOUT, gt=0,
        description="Seconds without an update before a component is auto-finalized"
    )
    auto_finalize: bool = Field(True, description="Force stalled components to a terminal state")
    debug: bool = Field(False, description="Log lifecycle events at INFO instead of DEBUG")


class IncrementalRenderer:
    """
    Manages progressive rendering of components as they stream in.

    Example:
        >>> finalized = []
        >>> renderer = IncrementalRenderer(on_finalize=lambda id, c: finalized.append(id))
        >>> renderer.start_rendering("main")
        >>> renderer.render_partial({"id": "t1", "type": "text"})
        >>> renderer.update_component("t1", {"properties": {"text": "Hi"}})
        >>> renderer.finalize_component("t1", {"id": "t1", "type": "text", "properties": {"text": "Hi"}})
        >>> renderer.get_component_state("t1").update_count, finalized
        (2, ['t1'])
    """

    def __init__(
        self,
        options: Optional[RendererOptions] = None,
        clock: Callable[[], float] = time.time,
        **kwargs: Any
    ):
        """
        Initialize the renderer.

        Args:
            options: Renderer options; built from ``kwargs`` when omitted
            clock: Source of epoch-second timestamps
            **kwargs: RendererOptions fields (callbacks, timeout, auto_finalize, debug)
        """
        self.options = options or RendererOptions(**kwargs)
        self.clock = clock
        self.components: Dict[str, ComponentState] = {}
        self.surface_id: Optional[str] = None
        self.render_start_time: Optional[float] = None
        self._render_complete_emitted = False
        self._log_level = logging.INFO if self.options.debug else logging.DEBUG

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    def start_rendering(self, surface_id: str) -> None:
        """Open a render session for a surface."""
        self.surface_id = surface_id
        self.render_start_time = self.clock()
        self._render_complete_emitted = False
        self._emit("on_render_start", surface_id)
        self._log("Started rendering surface: %s", surface_id)

    def complete_rendering(self) -> None:
        """
        Close the session at end of stream.

        With ``auto_finalize`` enabled every component still rendering or
        updating is forced to a terminal state first. The render-complete
        notification fires once every component is terminal.
        """
        if self.surface_id is None:
            return

        in_progress = [s.id for s in self.components.values() if s.status.is_in_progress]
        if self.options.auto_finalize:
            for component_id in in_progress:
                self._log("Auto-finalizing pending component: %s", component_id)
                self._auto_finalize(component_id)
        elif in_progress:
            self._log(
                "Completing surface %s with %d components still in progress",
                self.surface_id, len(in_progress),
            )

        if all(s.status.is_terminal for s in self.components.values()):
            self._emit_render_complete()

    def reset(self) -> None:
        self.components.clear()
        self.surface_id = None
        self.render_start_time = None
        self._render_complete_emitted = False
        self._log("Renderer reset")

    # -------------------------------------------------------------------------
    # Component lifecycle
    # -------------------------------------------------------------------------

    def render_partial(self, partial: ComponentLike) -> None:
        """
        Render a component on first sighting.

        A partial without a string ``id`` is ignored. A partial for an id
        that is already tracked is applied as an update.

        Args:
            partial: Partial component data
        """
        data = component_to_dict(partial)
        component_id = data.get("id")
        if not isinstance(component_id, str) or not component_id:
            logger.warning("Cannot render partial without component ID")
            return

        if component_id in self.components:
            self.update_component(component_id, data)
            return

        now = self.clock()
        self.components[component_id] = ComponentState(
            id=component_id,
            status=ComponentStatus.RENDERING,
            partial=copy.deepcopy(data),
            update_count=1,
            first_seen=now,
            last_updated=now,
        )
        self._emit("on_partial_render", copy.deepcopy(data))
        self._log("Rendering partial component: %s", component_id)

    def update_component(self, component_id: str, patch: ComponentLike) -> None:
        """
        Shallow-merge a patch into a component's partial value.

        Updates for an unknown id create the component, since a patch may
        arrive before the initial partial. Updates after finalize are ignored.

        Args:
            component_id: Component ID
            patch: Partial updates
        """
        patch_data = component_to_dict(patch)
        state = self.components.get(component_id)

        if state is None:
            self.render_partial({**patch_data, "id": component_id})
            return

        if state.status is ComponentStatus.COMPLETE:
            logger.debug("Ignoring update for completed component: %s", component_id)
            return

        state.partial = {**state.partial, **copy.deepcopy(patch_data)}
        state.update_count += 1
        state.last_updated = self.clock()
        if state.status is not ComponentStatus.ERROR:
            state.status = ComponentStatus.UPDATING

        self._emit("on_component_update", component_id, copy.deepcopy(patch_data))
        self._log("Updated component: %s (update #%d)", component_id, state.update_count)

    def finalize_component(self, component_id: str, component: ComponentLike) -> None:
        """
        Mark a component complete with its whole value.

        Unknown ids and components already complete are ignored.

        Args:
            component_id: Component ID
            component: Complete component
        """
        state = self.components.get(component_id)
        if state is None:
            logger.debug("Cannot finalize unknown component: %s", component_id)
            return
        if state.status is ComponentStatus.COMPLETE:
            logger.debug("Component %s already finalized, skipping", component_id)
            return

        now = self.clock()
        final = copy.deepcopy(component_to_dict(component))
        state.partial = copy.deepcopy(final)
        state.final = final
        state.status = ComponentStatus.COMPLETE
        state.finalized_at = now
        state.last_updated = now

        self._emit("on_finalize", component_id, copy.deepcopy(final))
        self._log(
            "Finalized component: %s (%d updates, %.0fms)",
            component_id, state.update_count, (now - state.first_seen) * 1000,
        )

        if all(s.status is ComponentStatus.COMPLETE for s in self.components.values()):
            self._emit_render_complete()

    def handle_error(self, component_id: str, error: Union[Exception, str]) -> None:
        """
        Record an error against a component.

        The component may still be finalized later. Errors never complete
        the session on their own.

        Args:
            component_id: Component ID
            error: Error that occurred
        """
        state = self.components.get(component_id)
        if state is None:
            logger.debug("Error for unknown component %s: %s", component_id, error)
            return

        if not isinstance(error, Exception):
            error = ComponentRenderError(str(error))

        state.errors.append(error)
        if state.status is not ComponentStatus.COMPLETE:
            state.status = ComponentStatus.ERROR

        self._emit("on_error", component_id, error)
        logger.warning("Error rendering component %s: %s", component_id, error)

    def check_timeouts(self, now: Optional[float] = None) -> List[str]:
        """
        Auto-finalize components with no update within the timeout window.

        Args:
            now: Current time in epoch seconds; defaults to the renderer clock

        Returns:
            Ids of the components forced to a terminal state
        """
        timeout = self.options.timeout
        if not self.options.auto_finalize or timeout is None:
            return []

        now = self.clock() if now is None else now
        expired = [
            s.id for s in self.components.values()
            if s.status.is_in_progress and now - s.last_updated > timeout
        ]
        for component_id in expired:
            self._log("Component %s timed out, auto-finalizing", component_id)
            self._auto_finalize(component_id)
        return expired

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_component_state(self, component_id: str) -> Optional[ComponentState]:
        """Return a copy of a component's state, or None if unknown."""
        state = self.components.get(component_id)
        return state.model_copy(deep=True) if state else None

    def get_all_states(self) -> Dict[str, ComponentState]:
        return {cid: s.model_copy(deep=True) for cid, s in self.components.items()}

    def get_metrics(self) -> RenderMetrics:
        """
        Compute rendering metrics for the current session.

        Returns:
            RenderMetrics with counts and average time to completion (ms)
        """
        states = list(self.components.values())
        completed = [s for s in states if s.status is ComponentStatus.COMPLETE]

        avg_time_to_completion = 0.0
        if completed:
            avg_time_to_completion = sum(
                (s.finalized_at - s.first_seen) * 1000 for s in completed
            ) / len(completed)

        return RenderMetrics(
            total_components=len(states),
            completed_components=len(completed),
            rendering_components=sum(1 for s in states if s.status.is_in_progress),
            failed_components=sum(1 for s in states if s.status is ComponentStatus.ERROR),
            total_updates=sum(s.update_count for s in states),
            avg_time_to_completion=avg_time_to_completion,
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _auto_finalize(self, component_id: str) -> None:
        """Finalize with the partial value if it is a usable component."""
        state = self.components[component_id]
        if state.partial.get("type") and state.partial.get("id"):
            self.finalize_component(component_id, state.partial)
        else:
            self.handle_error(
                component_id, ComponentTimeoutError("Component timeout: insufficient data")
            )

    def _emit_render_complete(self) -> None:
        if self._render_complete_emitted or self.surface_id is None:
            return
        self._render_complete_emitted = True
        self._emit("on_render_complete", self.surface_id)

        metrics = self.get_metrics()
        self._log(
            "Completed rendering surface: %s (total=%d completed=%d failed=%d "
            "updates=%d avgTimeToCompletion=%.2fms)",
            self.surface_id,
            metrics.total_components,
            metrics.completed_components,
            metrics.failed_components,
            metrics.total_updates,
            metrics.avg_time_to_completion,
        )

    def _emit(self, name: str, *args: Any) -> None:
        callback = getattr(self.options, name)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Renderer callback %s failed", name)

    def _log(self, message: str, *args: Any) -> None:
        logger.log(self._log_level, message, *args)
