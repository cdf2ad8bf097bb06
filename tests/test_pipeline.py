"""
End-to-end tests: raw text chunks through the parser into the renderer.
"""
import asyncio
import json

from a2ui_progressive.components import (
    ComponentRegistry,
    ComponentStatus,
    ProgressiveRenderChunkMessage,
    ProgressiveRenderCompleteMessage,
    ProgressiveRenderErrorMessage,
)
from a2ui_progressive.rendering import (
    IncrementalRenderer,
    ProgressiveRenderPipeline,
    UnknownComponentTypeError,
    extract_components,
)
from a2ui_progressive.streaming import StreamTimeoutError

CREATE_SURFACE = {
    "type": "createSurface",
    "surfaceId": "main",
    "components": [
        {"id": "t1", "type": "text", "properties": {"text": "Hello"}},
        {"id": "c1", "type": "card", "children": ["t1"]},
    ],
}


def make_pipeline(recorder, **kwargs):
    renderer = IncrementalRenderer(**recorder.callbacks())
    return renderer, ProgressiveRenderPipeline(renderer, stream_id="s1", **kwargs)


def test_character_by_character_stream_converges(recorder):
    renderer, pipeline = make_pipeline(recorder)
    for char in json.dumps(CREATE_SURFACE):
        pipeline.feed(char)

    assert recorder.named("render_start") == [("render_start", "main")]
    assert set(renderer.get_all_states()) == {"t1", "c1"}
    for state in renderer.get_all_states().values():
        assert state.status is ComponentStatus.COMPLETE
    assert renderer.get_component_state("t1").final == CREATE_SURFACE["components"][0]
    assert renderer.get_component_state("t1").update_count > 1
    assert len(recorder.named("finalize")) == 2
    assert recorder.named("render_complete") == [("render_complete", "main")]


def test_components_render_before_stream_completes(recorder):
    renderer, pipeline = make_pipeline(recorder)
    pipeline.feed('{"type": "createSurface", "surfaceId": "main", "components": [')
    pipeline.feed('{"id": "t1", "type": "text", "properties": {"text": "Hel')

    state = renderer.get_component_state("t1")
    assert state.status is ComponentStatus.RENDERING
    assert state.partial["properties"] == {"text": "Hel"}

    pipeline.feed('lo"}}')
    state = renderer.get_component_state("t1")
    assert state.status is ComponentStatus.UPDATING
    assert state.partial["properties"] == {"text": "Hello"}
    assert recorder.named("finalize") == []


def test_chunk_messages_report_progress(recorder):
    _, pipeline = make_pipeline(recorder)
    first = pipeline.feed('{"type": "createSurface", "surfaceId": "main"')
    second = pipeline.feed("}")

    assert isinstance(first, ProgressiveRenderChunkMessage)
    assert first.sequence == 1
    assert first.stream_id == "s1"
    assert first.confidence == 0.5
    assert first.partial == {"type": "createSurface", "surfaceId": "main"}
    assert second.sequence == 2
    assert second.confidence == 1.0
    assert second.bytes_received == len('{"type": "createSurface", "surfaceId": "main"}')


def test_finish_finalizes_truncated_stream(recorder):
    renderer, pipeline = make_pipeline(recorder)
    pipeline.feed('{"type": "createSurface", "surfaceId": "main", ')
    pipeline.feed('"components": [{"id": "t1", "type": "text"}, {"id": "b1", "type": "but')

    message = pipeline.finish()
    assert isinstance(message, ProgressiveRenderCompleteMessage)
    assert message.total_chunks == 2
    assert message.final["components"][1] == {"id": "b1", "type": "but"}
    assert renderer.get_component_state("t1").status is ComponentStatus.COMPLETE
    assert renderer.get_component_state("b1").final == {"id": "b1", "type": "but"}
    assert recorder.named("render_complete") == [("render_complete", "main")]


def test_registry_flags_unknown_component_types(recorder):
    renderer, pipeline = make_pipeline(recorder, registry=ComponentRegistry.standard())
    message = {
        "type": "createSurface",
        "surfaceId": "main",
        "components": [
            {"id": "t1", "type": "text"},
            {"id": "x1", "type": "sparkles"},
        ],
    }
    pipeline.feed(json.dumps(message))

    assert renderer.get_component_state("t1").status is ComponentStatus.COMPLETE
    state = renderer.get_component_state("x1")
    assert state.status is ComponentStatus.ERROR
    assert isinstance(state.errors[0], UnknownComponentTypeError)
    assert recorder.named("render_complete") == []

    result = pipeline.finish()
    assert isinstance(result, ProgressiveRenderCompleteMessage)
    assert recorder.named("render_complete") == [("render_complete", "main")]


def test_update_components_message(recorder):
    renderer, pipeline = make_pipeline(recorder)
    pipeline.feed(json.dumps(CREATE_SURFACE))
    pipeline.feed(json.dumps({
        "type": "updateComponents",
        "surfaceId": "main",
        "updates": [
            {"id": "t1", "operation": "update", "component": {"id": "t1", "type": "text"}},
            {"id": "b1", "operation": "add", "component": {"type": "button"}},
            {"id": "c1", "operation": "remove"},
        ],
    }))

    # Finalized components are immutable
    assert renderer.get_component_state("t1").final == CREATE_SURFACE["components"][0]
    assert renderer.get_component_state("b1").final == {"id": "b1", "type": "button"}
    assert renderer.get_component_state("c1").status is ComponentStatus.COMPLETE
    assert len(recorder.named("render_start")) == 1
    assert len(recorder.named("render_complete")) == 1


def test_finish_with_unrecoverable_buffer(recorder):
    _, pipeline = make_pipeline(recorder)
    pipeline.feed('{"ke')
    message = pipeline.finish()
    assert isinstance(message, ProgressiveRenderErrorMessage)
    assert message.error_code == "PARSE_ERROR"
    assert message.recovery_attempted
    assert message.failed_at_sequence == 1


def test_finish_with_empty_stream(recorder):
    _, pipeline = make_pipeline(recorder)
    message = pipeline.finish()
    assert isinstance(message, ProgressiveRenderErrorMessage)
    assert message.error_code == "EMPTY_STREAM"


def test_progress_message(recorder):
    _, pipeline = make_pipeline(recorder)
    pipeline.feed('{"type": "createSurface", "surfaceId": "main", "components": [{"id": "t1", "type": "text"}')
    progress = pipeline.progress()
    assert progress.components_rendered == 0
    assert progress.components_pending == 1


def test_run_consumes_async_stream(recorder):
    renderer, pipeline = make_pipeline(recorder)
    text = json.dumps(CREATE_SURFACE)

    async def chunks():
        for i in range(0, len(text), 7):
            yield text[i:i + 7]

    message = asyncio.run(pipeline.run(chunks()))
    assert isinstance(message, ProgressiveRenderCompleteMessage)
    assert message.final == CREATE_SURFACE
    assert renderer.get_metrics().completed_components == 2


def test_run_reports_transport_timeout(recorder):
    _, pipeline = make_pipeline(recorder)

    async def chunks():
        yield '{"type": "createSurface", "surfaceId": "main"'
        raise StreamTimeoutError("No chunk received", "chunk", 5.0)

    message = asyncio.run(pipeline.run(chunks()))
    assert isinstance(message, ProgressiveRenderErrorMessage)
    assert message.error_code == "STREAM_TIMEOUT"
    assert message.recovered == {"type": "createSurface", "surfaceId": "main"}


def test_reset_starts_a_fresh_pass(recorder):
    renderer, pipeline = make_pipeline(recorder)
    pipeline.feed('{"type": "createSurface", "surfaceId": "main"')
    pipeline.reset()
    assert pipeline.sequence == 0
    assert pipeline.parser.buffer == ""
    assert renderer.surface_id is None


def test_extract_components_skips_invalid_entries():
    message = {
        "components": [{"id": "a"}, {"type": "text"}, "junk", {"id": ""}],
        "type": "updateComponents",
        "updates": [
            {"id": "b", "operation": "add", "component": {"type": "text"}},
            {"id": "c", "operation": "remove", "component": {"type": "text"}},
            {"id": "d", "operation": "update"},
        ],
    }
    assert extract_components(message) == [{"id": "a"}, {"id": "b", "type": "text"}]


def test_render_complete_waits_for_every_component_in_message(recorder):
    _, pipeline = make_pipeline(recorder)
    pipeline.feed(json.dumps(CREATE_SURFACE))
    assert [e[0] for e in recorder.events] == [
        "render_start", "partial", "partial", "finalize", "finalize", "render_complete"
    ]


def test_back_to_back_messages_in_one_chunk(recorder):
    renderer, pipeline = make_pipeline(recorder)
    update = {
        "type": "updateComponents",
        "surfaceId": "main",
        "updates": [{"id": "b1", "operation": "add", "component": {"type": "button"}}],
    }
    text = json.dumps(CREATE_SURFACE) + "\n" + json.dumps(update)
    for i in range(0, len(text), 7):
        pipeline.feed(text[i:i + 7])

    assert renderer.get_component_state("t1").status is ComponentStatus.COMPLETE
    assert renderer.get_component_state("b1").status is ComponentStatus.COMPLETE
    assert pipeline.parser.buffer == ""

    message = pipeline.finish()
    assert isinstance(message, ProgressiveRenderCompleteMessage)
    assert message.final == update


def test_finish_applies_every_buffered_message(recorder):
    renderer, pipeline = make_pipeline(recorder)
    second = {"type": "createSurface", "surfaceId": "main", "components": [{"id": "b1", "type": "button"}]}
    pipeline.feed(json.dumps(CREATE_SURFACE) + json.dumps(second))
    assert renderer.get_component_state("b1") is None

    message = pipeline.finish()
    assert message.final == second
    assert renderer.get_component_state("b1").status is ComponentStatus.COMPLETE


def test_escaped_ids_render_progressively(recorder):
    renderer, pipeline = make_pipeline(recorder)
    pipeline.feed('{"type": "createSurface", "surfaceId": "main", "components": [')
    pipeline.feed('{"id": "caf\\u00e9", "type": "text", "properties": {"text": "Hel')
    pipeline.feed('lo"}}, {"id": "a\\/b", "type": "divider"')

    state = renderer.get_component_state("café")
    assert state.status is ComponentStatus.UPDATING
    assert state.partial["properties"] == {"text": "Hello"}
    assert renderer.get_component_state("a/b").status is ComponentStatus.RENDERING
