"""
Progressive Render Pipeline: Drives the renderer from a raw text stream.

Each chunk goes through the streaming parser; whatever value it yields is
mapped onto renderer calls. Tentative (recovered) values only ever render
or update components, a complete value finalizes them.
"""

import json
import logging
import re
import time
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from ..components.component_schema import ComponentStatus
from ..components.messages import (
    ProgressiveRenderChunkMessage,
    ProgressiveRenderCompleteMessage,
    ProgressiveRenderErrorMessage,
    ProgressiveRenderProgressMessage,
)
from ..components.registry import ComponentRegistry
from ..streaming.streaming_handler import StreamTimeoutError
from ..streaming.streaming_parser import (
    CompleteParse,
    FailedParse,
    ParseResult,
    RecoveredParse,
    StreamingJSONParser,
)
from .incremental_renderer import ComponentRenderError, IncrementalRenderer

logger = logging.getLogger(__name__)


class UnknownComponentTypeError(ComponentRenderError):
    """The component's type is not in the registry."""


FinishMessage = Union[ProgressiveRenderCompleteMessage, ProgressiveRenderErrorMessage]


class ProgressiveRenderPipeline:
    """
    Feeds streamed A2UI messages into an IncrementalRenderer.

    Example:
        >>> renderer = IncrementalRenderer()
        >>> pipeline = ProgressiveRenderPipeline(renderer)
        >>> _ = pipeline.feed('{"type": "createSurface", "surfaceId": "main", ')
        >>> _ = pipeline.feed('"components": [{"id": "t1", "type": "text"}')
        >>> renderer.get_component_state("t1").status.value
        'rendering'
        >>> _ = pipeline.feed(']}')
        >>> renderer.get_component_state("t1").status.value
        'complete'
    """

    def __init__(
        self,
        renderer: IncrementalRenderer,
        parser: Optional[StreamingJSONParser] = None,
        registry: Optional[ComponentRegistry] = None,
        stream_id: Optional[str] = None
    ):
        """
        Initialize the pipeline.

        Args:
            renderer: Renderer receiving lifecycle calls
            parser: Streaming parser; a default one is created when omitted
            registry: When given, finalized components of unregistered
                types are recorded as errors instead
            stream_id: Identifier reported in protocol messages
        """
        self.renderer = renderer
        self.parser = parser or StreamingJSONParser()
        self.registry = registry
        self.stream_id = stream_id or f"stream-{uuid.uuid4().hex[:8]}"
        self.sequence = 0
        self.bytes_received = 0
        self.started_at: Optional[float] = None
        self.last_value: Optional[Dict[str, Any]] = None

    def feed(self, chunk: str) -> ProgressiveRenderChunkMessage:
        """
        Ingest one chunk and update the renderer.

        Args:
            chunk: Raw text chunk from the transport

        Returns:
            Chunk message carrying the value parsed so far
        """
        if self.started_at is None:
            self.started_at = time.time()
        self.sequence += 1
        self.bytes_received += len(chunk.encode("utf-8"))

        result = self.parser.ingest(chunk)
        self._apply(result, final=isinstance(result, CompleteParse))
        self.renderer.check_timeouts()

        return ProgressiveRenderChunkMessage(
            stream_id=self.stream_id,
            chunk=chunk,
            partial=self.last_value or {},
            confidence=result.confidence,
            sequence=self.sequence,
            bytes_received=self.bytes_received,
        )

    def finish(self) -> FinishMessage:
        """
        Signal end of stream: flush the parser and close the render session.

        A value recovered at end of stream is final, since no more data can
        obsolete it.

        Returns:
            Complete message, or an error message when nothing usable arrived
        """
        result = self.parser.finish()
        self._apply(result, final=True)
        # Values that arrived back to back in the last chunk
        while isinstance(result, CompleteParse) and self.parser.buffer:
            result = self.parser.finish()
            self._apply(result, final=True)
        self.renderer.complete_rendering()

        if isinstance(result, FailedParse):
            return ProgressiveRenderErrorMessage(
                stream_id=self.stream_id,
                error_code="PARSE_ERROR",
                error=result.error.message,
                recovered=self.last_value,
                recovery_attempted=True,
                failed_at_sequence=self.sequence,
            )

        if self.last_value is None:
            return ProgressiveRenderErrorMessage(
                stream_id=self.stream_id,
                error_code="EMPTY_STREAM",
                error="Stream ended without any JSON value",
                failed_at_sequence=self.sequence,
            )

        return ProgressiveRenderCompleteMessage(
            stream_id=self.stream_id,
            final=self.last_value,
            total_chunks=self.sequence,
            total_bytes=self.bytes_received,
            duration=self._elapsed_ms(),
        )

    async def run(self, chunks: AsyncIterator[str]) -> FinishMessage:
        """
        Consume an async stream of text chunks to completion.

        Args:
            chunks: Text chunks, e.g. from StreamingHandler.process_stream

        Returns:
            The message produced by finish(), or an error message if the
            transport timed out
        """
        try:
            async for chunk in chunks:
                self.feed(chunk)
        except StreamTimeoutError as e:
            logger.warning("Stream %s timed out: %s", self.stream_id, e)
            return ProgressiveRenderErrorMessage(
                stream_id=self.stream_id,
                error_code="STREAM_TIMEOUT",
                error=str(e),
                recovered=self.last_value,
                recovery_attempted=False,
                failed_at_sequence=self.sequence,
            )
        return self.finish()

    def progress(self) -> ProgressiveRenderProgressMessage:
        """Report rendering progress from the renderer's metrics."""
        metrics = self.renderer.get_metrics()
        return ProgressiveRenderProgressMessage(
            stream_id=self.stream_id,
            components_rendered=metrics.completed_components,
            components_pending=metrics.rendering_components,
            avg_render_time=metrics.avg_time_to_completion,
        )

    def reset(self) -> None:
        self.parser.reset()
        self.renderer.reset()
        self.sequence = 0
        self.bytes_received = 0
        self.started_at = None
        self.last_value = None

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _apply(self, result: ParseResult, final: bool) -> None:
        if not isinstance(result, (CompleteParse, RecoveredParse)):
            return
        if not isinstance(result.value, dict):
            logger.debug("Ignoring non-object value of type %s", type(result.value).__name__)
            return

        value = result.value
        self.last_value = value
        # The buffer is consumed once a value is final
        raw = "" if final else self.parser.buffer

        surface_id = value.get("surfaceId")
        if isinstance(surface_id, str) and surface_id and (final or _has_complete_string(raw, "surfaceId", surface_id)):
            if self.renderer.surface_id != surface_id:
                self.renderer.start_rendering(surface_id)

        components = [
            c for c in extract_components(value)
            # A recovered id may still be growing ("t" before "t1")
            if final or _has_complete_string(raw, "id", c["id"])
        ]
        # Track every component before finalizing any, so completion is
        # only detected once the whole message is accounted for
        for component in components:
            self._sync_component(component["id"], component)
        if final:
            for component in components:
                self._finalize_component(component["id"], component)

    def _sync_component(self, component_id: str, component: Dict[str, Any]) -> None:
        state = self.renderer.components.get(component_id)
        if state is None:
            self.renderer.render_partial(component)
            return
        if state.status is ComponentStatus.COMPLETE:
            return
        patch = {k: v for k, v in component.items() if state.partial.get(k) != v}
        if patch:
            self.renderer.update_component(component_id, patch)

    def _finalize_component(self, component_id: str, component: Dict[str, Any]) -> None:
        component_type = component.get("type")
        if self.registry is not None and not (
            isinstance(component_type, str) and self.registry.has(component_type)
        ):
            state = self.renderer.components.get(component_id)
            if state is not None and state.status is not ComponentStatus.COMPLETE:
                self.renderer.handle_error(
                    component_id,
                    UnknownComponentTypeError(f"Unknown component type: {component_type!r}"),
                )
            return
        self.renderer.finalize_component(component_id, component)

    def _elapsed_ms(self) -> float:
        if self.started_at is None:
            return 0.0
        return (time.time() - self.started_at) * 1000


def extract_components(message: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Collect the components carried by a createSurface/updateComponents message.

    Components without a string ``id`` are skipped, as are ``remove``
    operations.

    Args:
        message: Decoded (possibly partial) message

    Returns:
        Component dicts in message order
    """
    components = []

    listed = message.get("components")
    if isinstance(listed, list):
        components.extend(c for c in listed if isinstance(c, dict))

    updates = message.get("updates")
    if message.get("type") == "updateComponents" and isinstance(updates, list):
        for update in updates:
            if not isinstance(update, dict) or update.get("operation") == "remove":
                continue
            component = update.get("component")
            if isinstance(component, dict):
                components.append({"id": update.get("id"), **component})

    return [c for c in components if isinstance(c.get("id"), str) and c["id"]]


def _has_complete_string(raw: str, key: str, value: str) -> bool:
    """
    Check that ``"key": "value"`` appears in raw text with its closing quote.

    String tokens are decoded before comparing, so escaped spellings such as
    ``"caf\\u00e9"`` match their decoded value.
    """
    pattern = rf'"{re.escape(key)}"\s*:\s*("(?:[^"\\]|\\.)*")'
    for match in re.finditer(pattern, raw):
        try:
            if json.loads(match.group(1)) == value:
                return True
        except ValueError:
            continue
    return False
