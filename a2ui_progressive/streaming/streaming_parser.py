"""
Streaming JSON Parser: Produces the best obtainable value after every chunk.

This module handles JSON arriving token by token from an LLM stream. After
each chunk the leading value of the buffer is strictly decoded; when that
fails the recovery strategies are applied and the value they produce is
returned as a tentative result. Nothing here raises on malformed input: failures are
returned as data so the ingestion loop never has to special-case them.

Key Features:
- Strict validity always wins over recovered interpretations
- Tentative results keep the buffer so later chunks can obsolete them
- Text after a complete value stays buffered as the start of the next one
- Markdown fence stripping (LLMs wrap JSON in ```json fences)
- Confidence estimate for tentative A2UI messages
"""

import logging
import re
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field

from .json_recovery import (
    DECODE_ERRORS,
    STRICT_DECODER,
    RecoveryResult,
    fix_llm_json,
    recover_json,
)

logger = logging.getLogger(__name__)


# Buffer size after which a warning is logged once per value
SALVAGE_BUFFER_THRESHOLD = 10_000  # 10KB

# Number of trailing buffer characters kept in a ParseError
RAW_CONTEXT_CHARS = 80

RECOVERY_MODES = {
    "full": recover_json,
    "fast": fix_llm_json,
}

# Top-level properties a complete message of each type carries
EXPECTED_PROPERTIES = {
    "createSurface": 4,      # type, surfaceId, components, dataModel
    "updateComponents": 3,   # type, surfaceId, updates
    "updateDataModel": 3,    # type, surfaceId, updates
    "deleteSurface": 2,      # type, surfaceId
    "userAction": 5,         # type, surfaceId, action, componentId, context
    "error": 3,              # type, code, message
}
DEFAULT_EXPECTED_PROPERTIES = 2


class ParseState(str, Enum):
    IDLE = "idle"
    PARSING = "parsing"
    RECOVERING = "recovering"
    COMPLETE = "complete"
    FAILED = "failed"


# =============================================================================
# Parse Results
# =============================================================================

class ParseError(BaseModel):
    """Structured description of input that could not be decoded."""
    message: str = Field(..., description="Decoder or recovery error message")
    raw: str = Field(..., description="Trailing slice of the buffer")
    strategy: Optional[str] = Field(None, description="Recovery entry point attempted")


class CompleteParse(BaseModel):
    """The buffer decoded as strict JSON."""
    kind: Literal["complete"] = "complete"
    value: Any
    confidence: float = 1.0


class RecoveredParse(BaseModel):
    """A tentative value produced by a recovery strategy."""
    kind: Literal["recovered"] = "recovered"
    value: Any
    strategy: str
    confidence: float = 0.0


class PendingParse(BaseModel):
    """Not enough data yet. This is the steady state for most chunks."""
    kind: Literal["pending"] = "pending"
    error: Optional[ParseError] = None
    confidence: float = 0.0


class FailedParse(BaseModel):
    """End of stream reached and nothing could be recovered."""
    kind: Literal["failed"] = "failed"
    error: ParseError
    confidence: float = 0.0


ParseResult = Annotated[
    Union[CompleteParse, RecoveredParse, PendingParse, FailedParse],
    Field(discriminator="kind")
]


# =============================================================================
# Parser
# =============================================================================

class StreamingJSONParser:
    """
    Parses a sequence of JSON values that arrive in arbitrary chunks.

    Example:
        >>> parser = StreamingJSONParser()
        >>> parser.ingest('{"type": "createSurface", "surfaceId": "ma').kind
        'recovered'
        >>> result = parser.ingest('in"}')
        >>> result.kind, result.value
        ('complete', {'type': 'createSurface', 'surfaceId': 'main'})
    """

    def __init__(
        self,
        recovery: str = "full",
        strip_fences: bool = True,
        salvage_threshold: int = SALVAGE_BUFFER_THRESHOLD
    ):
        """
        Initialize the parser.

        Args:
            recovery: 'full' tries every strategy, 'fast' only the ones LLM
                output usually needs
            strip_fences: Remove markdown code fences before decoding
            salvage_threshold: Buffer size that triggers a warning
        """
        if recovery not in RECOVERY_MODES:
            raise ValueError(
                f"Unknown recovery mode {recovery!r}, expected one of {sorted(RECOVERY_MODES)}"
            )
        self.recovery = recovery
        self.strip_fences = strip_fences
        self.salvage_threshold = salvage_threshold
        self.buffer = ""
        self.state = ParseState.IDLE
        self._warned_oversize = False

    def ingest(self, chunk: str) -> ParseResult:
        """
        Append a chunk and return the best value obtainable so far.

        Args:
            chunk: Raw text chunk from the stream

        Returns:
            CompleteParse, RecoveredParse or PendingParse
        """
        if not chunk:
            return PendingParse()

        self.buffer += chunk
        self.state = ParseState.PARSING
        text = self._decodable_text()

        decoded = decode_leading_value(text)
        if decoded is not None:
            value, rest = decoded
            self._consume(rest)
            return CompleteParse(value=value)

        if self.needs_salvage() and not self._warned_oversize:
            logger.warning(
                "Streaming buffer exceeded %d chars without a complete value",
                self.salvage_threshold,
            )
            self._warned_oversize = True

        result = self._recover(text)
        if result.success:
            self.state = ParseState.RECOVERING
            return RecoveredParse(
                value=result.parsed,
                strategy=result.strategy,
                confidence=estimate_confidence(result.parsed),
            )

        self.state = ParseState.PARSING
        return PendingParse(error=self._error(result.error or "Incomplete JSON", text))

    def finish(self) -> ParseResult:
        """
        Signal end of stream and return the final interpretation of the buffer.

        When text remains after a complete value it stays buffered and the
        parser keeps the PARSING state; call finish() again to drain it.

        Returns:
            CompleteParse or RecoveredParse when a value was obtained,
            FailedParse when the buffer is unrecoverable, PendingParse
            when the buffer is empty
        """
        text = self._decodable_text()
        if not text.strip():
            self.buffer = ""
            self.state = ParseState.IDLE
            return PendingParse()

        decoded = decode_leading_value(text)
        if decoded is not None:
            value, rest = decoded
            self._consume(rest)
            if not rest:
                self.state = ParseState.COMPLETE
            return CompleteParse(value=value)

        result = self._recover(text)
        if result.success:
            self._consume()
            self.state = ParseState.COMPLETE
            return RecoveredParse(
                value=result.parsed,
                strategy=result.strategy,
                confidence=estimate_confidence(result.parsed),
            )

        self.state = ParseState.FAILED
        logger.warning("Unable to recover JSON at end of stream: %s", result.error)
        return FailedParse(error=self._error(result.error or "Unrecoverable JSON", text))

    def current_value(self) -> Any:
        """Best-effort snapshot of the buffer without ingesting anything."""
        text = self._decodable_text()
        if not text.strip():
            return None
        decoded = decode_leading_value(text)
        if decoded is not None:
            return decoded[0]
        return self._recover(text).parsed

    def needs_salvage(self) -> bool:
        """Check if buffer has grown too large without valid JSON."""
        return len(self.buffer) > self.salvage_threshold

    def reset(self) -> None:
        self.buffer = ""
        self.state = ParseState.IDLE
        self._warned_oversize = False

    def _decodable_text(self) -> str:
        if self.strip_fences:
            return strip_markdown_fences(self.buffer)
        return self.buffer

    def _recover(self, text: str) -> RecoveryResult:
        return RECOVERY_MODES[self.recovery](text)

    def _consume(self, rest: str = "") -> None:
        self.buffer = rest
        self.state = ParseState.PARSING if rest else ParseState.IDLE
        self._warned_oversize = False

    def _error(self, message: str, text: str) -> ParseError:
        return ParseError(
            message=message,
            raw=text[-RAW_CONTEXT_CHARS:],
            strategy=RECOVERY_MODES[self.recovery].__name__,
        )


def decode_leading_value(text: str) -> Optional[Tuple[Any, str]]:
    """
    Strictly decode the first JSON value in text.

    Example:
        >>> decode_leading_value('{"a": 1}\\n{"b"')
        ({'a': 1}, '{"b"')

    Returns:
        Tuple of (value, remaining text), or None when text does not start
        with a complete value
    """
    stripped = text.lstrip()
    try:
        value, end = STRICT_DECODER.raw_decode(stripped)
    except DECODE_ERRORS:
        return None
    return value, stripped[end:].lstrip()


def strip_markdown_fences(text: str) -> str:
    """
    Remove markdown code fences from text.

    Example:
        >>> strip_markdown_fences('```json\\n{"key":"value"}\\n```')
        '{"key":"value"}\\n'
    """
    text = re.sub(r'```json\s*', '', text, flags=re.IGNORECASE)
    text = re.sub(r'```\s*', '', text)
    return text


def estimate_confidence(value: Any) -> float:
    """
    Estimate how complete a tentative value is.

    The ratio of top-level properties present to those a complete message of
    the same ``type`` carries, capped below 1.0 since the value is tentative.

    Args:
        value: Recovered value

    Returns:
        Confidence between 0.0 and 0.99
    """
    if not isinstance(value, dict) or not value:
        return 0.0
    message_type = value.get("type")
    expected = DEFAULT_EXPECTED_PROPERTIES
    if isinstance(message_type, str):
        expected = EXPECTED_PROPERTIES.get(message_type, DEFAULT_EXPECTED_PROPERTIES)
    return min(len(value) / expected, 0.99)
