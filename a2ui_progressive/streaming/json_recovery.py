"""
JSON Recovery: Repair strategies for malformed JSON from LLM streams.

This module turns partial or malformed JSON text into something a strict
decoder accepts. Every strategy is a pure function (text in, RecoveryResult
out) and strategies are tried in a fixed priority order, stopping at the
first success.

Key Features:
- Closing of truncated strings, arrays and objects
- Repair of common LLM syntax mistakes (unquoted keys, single quotes)
- Trailing comma removal
- Last-resort key/value salvage from arbitrary text
- Diagnostic statistics by diffing delimiter counts
"""

import json
import logging
import re
from typing import Any, Callable, List, Optional, Tuple

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# =============================================================================
# Patterns
# =============================================================================

TRAILING_COMMA_END = re.compile(r",\s*$")
COMMA_BEFORE_CLOSER = re.compile(r",(\s*[}\]])")
UNQUOTED_KEY = re.compile(r"([{,]\s*)([a-zA-Z_$][a-zA-Z0-9_$]*)\s*:")
UNQUOTED_VALUE = re.compile(r":\s*([a-zA-Z][a-zA-Z0-9_]*)\s*([,}])")
KEY_VALUE_PAIR = re.compile(
    r'"([^"]+)"\s*:\s*'
    r'("(?:[^"\\]|\\.)*"|true|false|null|-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)'
)

JSON_LITERALS = {"true", "false", "null"}
CLOSERS = {"{": "}", "[": "]"}

# Errors a strict decode can raise: malformed text, oversized integer
# literals (ValueError) and pathological nesting (RecursionError)
DECODE_ERRORS = (ValueError, RecursionError)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Invalid JSON constant: {name}")


# Strict JSON: NaN and Infinity are not part of the grammar
STRICT_DECODER = json.JSONDecoder(parse_constant=_reject_constant)


# =============================================================================
# Result Models
# =============================================================================

class RecoveryResult(BaseModel):
    """Outcome of a single recovery attempt."""
    success: bool = Field(..., description="Whether the text was recovered")
    recovered: Optional[str] = Field(None, description="Recovered JSON text")
    parsed: Any = Field(None, description="Decoded value of the recovered text")
    strategy: Optional[str] = Field(None, description="Strategy that produced the result")
    error: Optional[str] = Field(None, description="Reason the recovery failed")


class RecoveryStats(BaseModel):
    """Delimiter differences between original and recovered text."""
    braces_added: int = 0
    brackets_added: int = 0
    quotes_added: int = 0
    commas_removed: int = 0


# =============================================================================
# Helpers
# =============================================================================

def _strict_parse(text: str) -> Tuple[bool, Any, Optional[str]]:
    try:
        return True, STRICT_DECODER.decode(text), None
    except DECODE_ERRORS as e:
        return False, None, str(e)


def _already_valid(text: str, strategy: str) -> Optional[RecoveryResult]:
    """Return a successful result when text is strict JSON as-is."""
    ok, value, _ = _strict_parse(text)
    if ok:
        return RecoveryResult(success=True, recovered=text, parsed=value, strategy=strategy)
    return None


def _attempt(recovered: str, strategy: str) -> RecoveryResult:
    ok, value, error = _strict_parse(recovered)
    if ok:
        return RecoveryResult(success=True, recovered=recovered, parsed=value, strategy=strategy)
    return RecoveryResult(success=False, error=error)


def _count_unescaped_quotes(text: str) -> int:
    count = 0
    escaped = False
    for char in text:
        if char == "\\" and not escaped:
            escaped = True
            continue
        if char == '"' and not escaped:
            count += 1
        escaped = False
    return count


def _unclosed_delimiters(text: str) -> List[str]:
    """
    Scan text outside string literals and return the openers left unclosed.

    The list is ordered outermost first. Stray closers with no matching
    opener are ignored.
    """
    stack: List[str] = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in CLOSERS:
            stack.append(char)
        elif char in ("}", "]") and stack and CLOSERS[stack[-1]] == char:
            stack.pop()
    return stack


def _close_structures(text: str) -> Tuple[str, int, int, int]:
    """
    Close an unterminated string and every unclosed array/object.

    Returns:
        Tuple of (closed text, braces added, brackets added, quotes added)
    """
    recovered = text.strip()

    quotes_added = 0
    if _count_unescaped_quotes(recovered) % 2 != 0:
        recovered += '"'
        quotes_added = 1

    recovered = TRAILING_COMMA_END.sub("", recovered, count=1)

    # Innermost structures were truncated last, so they are closed first.
    unclosed = _unclosed_delimiters(recovered)
    recovered += "".join(CLOSERS[opener] for opener in reversed(unclosed))

    braces_added = unclosed.count("{")
    brackets_added = unclosed.count("[")
    return recovered, braces_added, brackets_added, quotes_added


# =============================================================================
# Strategies
# =============================================================================

def recover_missing_braces(text: str) -> RecoveryResult:
    """
    Recover missing closing quotes, brackets and braces.

    Example:
        >>> result = recover_missing_braces('{"a": 1, "b": [1, 2')
        >>> result.recovered
        '{"a": 1, "b": [1, 2]}'
        >>> result.strategy
        'missing_braces (added 1 }, 1 ], 0 ")'
    """
    valid = _already_valid(text, "missing_braces")
    if valid:
        return valid

    recovered, braces, brackets, quotes = _close_structures(text)
    return _attempt(
        recovered,
        f'missing_braces (added {braces} }}, {brackets} ], {quotes} ")',
    )


def recover_truncated_string(text: str) -> RecoveryResult:
    """Close a string value that was cut off mid-stream, then outer structures."""
    valid = _already_valid(text, "truncated_string")
    if valid:
        return valid

    recovered = text.strip()
    last_quote = recovered.rfind('"')
    if last_quote == -1:
        return RecoveryResult(success=False, error="No quotes found")

    # The quote opens a value when a colon follows the innermost open brace
    before_quote = recovered[:last_quote]
    if before_quote.rfind(":") > before_quote.rfind("{"):
        result = recover_missing_braces(recovered + '"')
        if result.success:
            return result.model_copy(update={"strategy": "truncated_string"})

    return RecoveryResult(success=False, error="Not a truncated string")


def recover_invalid_syntax(text: str) -> RecoveryResult:
    """
    Repair JavaScript-style object literals.

    Quotes bare identifier keys, converts single quotes to double quotes and
    drops commas that precede a closing brace or bracket.

    Example:
        >>> recover_invalid_syntax("{name: 'John', age: 30,}").recovered
        '{"name": "John", "age": 30}'
    """
    valid = _already_valid(text, "invalid_syntax")
    if valid:
        return valid

    recovered = text.strip()
    fixes_applied = []

    if UNQUOTED_KEY.search(recovered):
        recovered = UNQUOTED_KEY.sub(r'\1"\2":', recovered)
        fixes_applied.append("quoted_keys")

    if "'" in recovered:
        recovered = recovered.replace("'", '"')
        fixes_applied.append("single_quotes")

    without_commas = COMMA_BEFORE_CLOSER.sub(r"\1", recovered)
    if without_commas != recovered:
        recovered = without_commas
        fixes_applied.append("trailing_commas")

    return _attempt(recovered, f"invalid_syntax ({', '.join(fixes_applied)})")


def recover_missing_quotes(text: str) -> RecoveryResult:
    """Quote bare word values such as ``{"status": active}``."""
    valid = _already_valid(text, "missing_quotes")
    if valid:
        return valid

    def quote_value(match: "re.Match[str]") -> str:
        word = match.group(1)
        if word in JSON_LITERALS:
            return match.group(0)
        return f': "{word}"{match.group(2)}'

    recovered = UNQUOTED_VALUE.sub(quote_value, text.strip())
    return _attempt(recovered, "missing_quotes")


def recover_trailing_comma(text: str) -> RecoveryResult:
    valid = _already_valid(text, "trailing_comma")
    if valid:
        return valid

    recovered = COMMA_BEFORE_CLOSER.sub(r"\1", text.strip())
    recovered = TRAILING_COMMA_END.sub("", recovered)
    return _attempt(recovered, "trailing_comma")


def recover_incomplete_array(text: str) -> RecoveryResult:
    """Close an object left open inside an array (``[{"a": 1}, {"b": 2``)."""
    valid = _already_valid(text, "incomplete_array")
    if valid:
        return valid

    recovered = text.strip()
    if recovered.rfind("{") > recovered.rfind("}"):
        recovered = _close_structures(recovered)[0]

    recovered = TRAILING_COMMA_END.sub("", recovered)
    return _attempt(recovered, "incomplete_array")


def extract_partial_json(text: str) -> RecoveryResult:
    """
    Salvage every ``"key": <scalar>`` pair found anywhere in the text.

    This is the last resort: the result is a flat mapping that ignores the
    document structure entirely. Values that fail to decode are skipped.

    Args:
        text: Malformed JSON text

    Returns:
        RecoveryResult whose ``parsed`` is the salvaged mapping
    """
    valid = _already_valid(text, "partial_extraction")
    if valid:
        return valid

    partial = {}
    for match in KEY_VALUE_PAIR.finditer(text):
        key, raw_value = match.group(1), match.group(2)
        try:
            partial[key] = STRICT_DECODER.decode(raw_value)
        except DECODE_ERRORS:
            continue

    if partial:
        return RecoveryResult(
            success=True,
            recovered=json.dumps(partial),
            parsed=partial,
            strategy=f"partial_extraction ({len(partial)} properties)",
        )

    return RecoveryResult(success=False, error="No valid JSON fragments found")


# =============================================================================
# Entry Points
# =============================================================================

Strategy = Callable[[str], RecoveryResult]

# Strict priority order used by recover_json
RECOVERY_STRATEGIES: List[Strategy] = [
    recover_missing_braces,
    recover_truncated_string,
    recover_invalid_syntax,
    recover_missing_quotes,
    recover_trailing_comma,
    recover_incomplete_array,
]

# Most likely LLM failure modes first: truncation, trailing commas, quoting
LLM_STRATEGIES: List[Strategy] = [
    recover_missing_braces,
    recover_trailing_comma,
    recover_invalid_syntax,
    recover_truncated_string,
]


def _run_strategies(text: str, strategies: List[Strategy]) -> RecoveryResult:
    for strategy in strategies:
        result = strategy(text)
        if result.success:
            return result

    result = extract_partial_json(text)
    if result.success:
        return result

    logger.debug("All recovery strategies failed for %d chars of input", len(text))
    return RecoveryResult(success=False, error="All recovery strategies failed")


def recover_json(text: str) -> RecoveryResult:
    """
    Try every structural strategy in priority order, then salvage pairs.

    Example:
        >>> recover_json('[{"a": 1}, {"b": 2').parsed
        [{'a': 1}, {'b': 2}]
    """
    return _run_strategies(text, RECOVERY_STRATEGIES)


def fix_llm_json(text: str) -> RecoveryResult:
    """
    Cheaper recovery tuned for LLM output.

    Tries missing braces, trailing commas, invalid syntax and truncated
    strings before falling back to pair salvage.
    """
    return _run_strategies(text, LLM_STRATEGIES)


def get_recovery_stats(original: str, recovered: str) -> RecoveryStats:
    """
    Compute diagnostic statistics by diffing delimiter counts.

    Args:
        original: Text before recovery
        recovered: Text after recovery

    Returns:
        RecoveryStats with added closers/quotes and removed commas
    """
    return RecoveryStats(
        braces_added=recovered.count("}") - original.count("}"),
        brackets_added=recovered.count("]") - original.count("]"),
        quotes_added=recovered.count('"') - original.count('"'),
        commas_removed=original.count(",") - recovered.count(","),
    )
