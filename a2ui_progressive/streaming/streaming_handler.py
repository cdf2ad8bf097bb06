"""
Streaming Handler: Extracts text deltas from Server-Sent Events (SSE) streams.

This module reads the streaming response of an LLM API and yields the raw
content deltas that make up the agent's JSON interface description. Those
deltas feed the streaming parser unchanged.

Key Features:
- SSE format parsing (OpenAI-style ``choices[0].delta.content``)
- Timeout management (first chunk, between chunks, total duration)
- Timeouts surface as StreamTimeoutError, never as text in the JSON stream
"""

import asyncio
import json
import logging
import time
from typing import AsyncIterator

import httpx

logger = logging.getLogger(__name__)


DEFAULT_STREAM_TIMEOUT = 30.0
DEFAULT_CHUNK_TIMEOUT = 5.0
DEFAULT_MAX_DURATION = 120.0


class StreamTimeoutError(TimeoutError):
    """Raised when the upstream stream stalls or runs too long."""

    def __init__(self, message: str, timeout_type: str, elapsed: float):
        super().__init__(message)
        self.timeout_type = timeout_type
        self.elapsed = elapsed


class StreamingHandler:
    """
    Handles streaming responses from an LLM service (SSE format).

    Example:
        >>> handler = StreamingHandler(chunk_timeout=5.0)
        >>> async for delta in handler.process_stream(response):
        ...     pipeline.feed(delta)
    """

    def __init__(
        self,
        stream_timeout: float = DEFAULT_STREAM_TIMEOUT,
        chunk_timeout: float = DEFAULT_CHUNK_TIMEOUT,
        max_duration: float = DEFAULT_MAX_DURATION
    ):
        """
        Initialize streaming handler.

        Args:
            stream_timeout: Timeout for first chunk in seconds
            chunk_timeout: Timeout between chunks in seconds
            max_duration: Maximum total stream duration in seconds
        """
        self.stream_timeout = stream_timeout
        self.chunk_timeout = chunk_timeout
        self.max_duration = max_duration

    async def process_stream(
        self,
        response: httpx.Response
    ) -> AsyncIterator[str]:
        """
        Yield content deltas from an SSE response.

        Args:
            response: httpx.Response opened with streaming

        Yields:
            Content text deltas as they arrive

        Raises:
            StreamTimeoutError: If the stream times out
        """
        stream_start_time = time.time()
        buffer = ""
        received_content = False

        async for chunk in self._stream_with_timeout(response, stream_start_time):
            if not chunk:
                continue
            buffer += chunk
            # Process complete lines (SSE format: "data: {...}\n\n")
            while "\n" in buffer:
                line, buffer = buffer.split("\n", 1)
                line = line.strip()

                # Skip empty lines and comments
                if not line or line.startswith(":"):
                    continue
                if not line.startswith("data:"):
                    continue

                data_str = line[5:].strip()
                if data_str == "[DONE]":
                    return

                try:
                    data = json.loads(data_str)
                except json.JSONDecodeError:
                    logger.debug("Skipping undecodable SSE line: %.80s", data_str)
                    continue

                if not isinstance(data, dict):
                    continue
                choices = data.get("choices") or []
                if not choices:
                    continue
                delta = choices[0].get("delta") or {}
                content = delta.get("content")
                finish_reason = choices[0].get("finish_reason")

                # Always yield content first
                if content:
                    received_content = True
                    yield content

                if finish_reason:
                    logger.debug("Stream finished: %s", finish_reason)
                    return

        if not received_content:
            logger.warning("LLM stream ended without sending any content")

    async def _stream_with_timeout(
        self,
        response: httpx.Response,
        stream_start_time: float
    ) -> AsyncIterator[str]:
        """
        Stream chunks with timeout protection.

        Args:
            response: httpx.Response with stream=True
            stream_start_time: Start time of the stream

        Yields:
            Text chunks from the stream

        Raises:
            StreamTimeoutError: If stream times out
        """
        chunk_iter = response.aiter_text()

        # Get first chunk with timeout
        try:
            first_chunk = await asyncio.wait_for(
                chunk_iter.__anext__(),
                timeout=self.stream_timeout
            )
        except asyncio.TimeoutError:
            raise self._timeout_error("first_chunk", time.time() - stream_start_time)
        except StopAsyncIteration:
            return
        last_chunk_time = time.time()
        yield first_chunk

        while True:
            current_time = time.time()
            total_elapsed = current_time - stream_start_time
            if total_elapsed > self.max_duration:
                raise self._timeout_error("max_duration", total_elapsed)
            if current_time - last_chunk_time > self.chunk_timeout:
                raise self._timeout_error("chunk", total_elapsed)

            try:
                chunk = await asyncio.wait_for(
                    chunk_iter.__anext__(),
                    timeout=self.chunk_timeout
                )
            except asyncio.TimeoutError:
                raise self._timeout_error("chunk", time.time() - stream_start_time)
            except StopAsyncIteration:
                # Stream ended normally
                return
            last_chunk_time = time.time()
            yield chunk

    def _timeout_error(self, timeout_type: str, elapsed: float) -> StreamTimeoutError:
        """Build a timeout error with a message for the timeout type."""
        if timeout_type == "chunk":
            message = (
                f"No chunk received for {self.chunk_timeout}s. "
                f"The LLM service may have stopped responding. "
                f"Total elapsed: {elapsed:.1f}s"
            )
        elif timeout_type == "max_duration":
            message = (
                f"Stream exceeded maximum duration of {self.max_duration}s. "
                f"Total elapsed: {elapsed:.1f}s"
            )
        else:
            message = (
                f"The request to the LLM service timed out after {elapsed:.1f} seconds."
            )
        logger.warning(message)
        return StreamTimeoutError(message, timeout_type, elapsed)
