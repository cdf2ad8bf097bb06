"""
Tests for SSE delta extraction, using httpx's mock transport.
"""
import asyncio
import json

import httpx
import pytest

from a2ui_progressive.rendering import IncrementalRenderer, ProgressiveRenderPipeline
from a2ui_progressive.components import ProgressiveRenderCompleteMessage
from a2ui_progressive.streaming import StreamingHandler, StreamTimeoutError


def sse_body(*contents, finish_reason=None, done=True):
    lines = [": keep-alive\n\n", "event: message\n"]
    for content in contents:
        payload = {"choices": [{"delta": {"content": content}, "finish_reason": None}]}
        lines.append(f"data: {json.dumps(payload)}\n\n")
    if finish_reason:
        payload = {"choices": [{"delta": {}, "finish_reason": finish_reason}]}
        lines.append(f"data: {json.dumps(payload)}\n\n")
    if done:
        lines.append("data: [DONE]\n\n")
    lines.append(f"data: {json.dumps({'choices': [{'delta': {'content': 'after end'}}]})}\n\n")
    return "".join(lines)


def mock_client(response_factory):
    transport = httpx.MockTransport(lambda request: response_factory())
    return httpx.AsyncClient(transport=transport)


async def collect(handler, response_factory):
    async with mock_client(response_factory) as client:
        async with client.stream("POST", "https://llm.test/v1/chat/completions") as response:
            return [delta async for delta in handler.process_stream(response)]


def test_yields_content_deltas_until_done():
    body = sse_body('{"type": ', '"deleteSurface"', ', "surfaceId": "main"}')
    deltas = asyncio.run(collect(StreamingHandler(), lambda: httpx.Response(200, text=body)))
    assert deltas == ['{"type": ', '"deleteSurface"', ', "surfaceId": "main"}']


def test_stops_at_finish_reason():
    body = sse_body("a", "b", finish_reason="stop", done=False)
    deltas = asyncio.run(collect(StreamingHandler(), lambda: httpx.Response(200, text=body)))
    assert deltas == ["a", "b"]


def test_skips_undecodable_lines():
    body = "data: {not json\n\n" + sse_body("ok")
    deltas = asyncio.run(collect(StreamingHandler(), lambda: httpx.Response(200, text=body)))
    assert deltas == ["ok"]


def test_first_chunk_timeout_raises():
    class StalledStream(httpx.AsyncByteStream):
        async def __aiter__(self):
            await asyncio.sleep(5)
            yield b""

    handler = StreamingHandler(stream_timeout=0.01)
    with pytest.raises(StreamTimeoutError) as exc_info:
        asyncio.run(collect(handler, lambda: httpx.Response(200, stream=StalledStream())))
    assert exc_info.value.timeout_type == "first_chunk"


def test_handler_feeds_pipeline():
    message = {
        "type": "createSurface",
        "surfaceId": "main",
        "components": [{"id": "t1", "type": "text", "properties": {"text": "Hi"}}],
    }
    text = json.dumps(message)
    body = sse_body(*[text[i:i + 5] for i in range(0, len(text), 5)])
    renderer = IncrementalRenderer()
    pipeline = ProgressiveRenderPipeline(renderer)

    async def run():
        async with mock_client(lambda: httpx.Response(200, text=body)) as client:
            async with client.stream("POST", "https://llm.test/v1/chat/completions") as response:
                return await pipeline.run(StreamingHandler().process_stream(response))

    result = asyncio.run(run())
    assert isinstance(result, ProgressiveRenderCompleteMessage)
    assert result.final == message
    assert renderer.get_metrics().completed_components == 1
