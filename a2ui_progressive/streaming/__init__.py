"""Streaming JSON parsing, recovery and SSE delta extraction."""

from .json_recovery import (
    RecoveryResult,
    RecoveryStats,
    recover_json,
    fix_llm_json,
    recover_missing_braces,
    recover_truncated_string,
    recover_invalid_syntax,
    recover_missing_quotes,
    recover_trailing_comma,
    recover_incomplete_array,
    extract_partial_json,
    get_recovery_stats,
)
from .streaming_parser import (
    ParseState,
    ParseError,
    ParseResult,
    CompleteParse,
    RecoveredParse,
    PendingParse,
    FailedParse,
    StreamingJSONParser,
    decode_leading_value,
    strip_markdown_fences,
    estimate_confidence,
)
from .streaming_handler import StreamingHandler, StreamTimeoutError

__all__ = [
    "RecoveryResult",
    "RecoveryStats",
    "recover_json",
    "fix_llm_json",
    "recover_missing_braces",
    "recover_truncated_string",
    "recover_invalid_syntax",
    "recover_missing_quotes",
    "recover_trailing_comma",
    "recover_incomplete_array",
    "extract_partial_json",
    "get_recovery_stats",
    "ParseState",
    "ParseError",
    "ParseResult",
    "CompleteParse",
    "RecoveredParse",
    "PendingParse",
    "FailedParse",
    "StreamingJSONParser",
    "decode_leading_value",
    "strip_markdown_fences",
    "estimate_confidence",
    "StreamingHandler",
    "StreamTimeoutError",
]
