"""
Best-effort JSON recovery from model output.

Completion providers do not guarantee "JSON only" output and commonly wrap
it in prose or markdown fences. This module is a deliberately heuristic,
ordered chain of pure strategies:

1. fenced_block - strip a ```json / ``` fence if present, then parse
2. object_span  - parse the outermost {...} span (greedy)
3. array_span   - parse the outermost [...] span (greedy)

Each strategy returns a tagged ExtractionResult instead of raising; the
first success wins.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from .errors import ParseError


_FENCED_BLOCK = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```")
_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")
_ARRAY_SPAN = re.compile(r"\[[\s\S]*\]")

_BOM = "\ufeff"


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of a JSON extraction attempt."""
    ok: bool
    value: Any = None
    strategy: Optional[str] = None
    error: Optional[str] = None

    def unwrap(self) -> Any:
        """Return the parsed value or raise ParseError."""
        if not self.ok:
            raise ParseError(
                f"Failed to parse JSON: {self.error}",
                details={"reason": self.error},
            )
        return self.value


def _success(value: Any, strategy: str) -> ExtractionResult:
    return ExtractionResult(ok=True, value=value, strategy=strategy)


def _failure(reason: str, strategy: str) -> ExtractionResult:
    return ExtractionResult(ok=False, strategy=strategy, error=reason)


def strip_code_fence(text: str) -> str:
    """Return the body of the first fenced code block, or the trimmed text."""
    match = _FENCED_BLOCK.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def _clean(candidate: str) -> str:
    cleaned = candidate.strip()
    if cleaned.startswith(_BOM):
        cleaned = cleaned[1:]
    return cleaned


def from_fenced_block(text: str) -> ExtractionResult:
    try:
        return _success(json.loads(_clean(strip_code_fence(text))), "fenced_block")
    except (json.JSONDecodeError, RecursionError) as e:
        return _failure(str(e), "fenced_block")


def _from_span(pattern, text: str, strategy: str) -> ExtractionResult:
    match = pattern.search(text)
    if not match:
        return _failure("no match", strategy)
    try:
        return _success(json.loads(match.group(0)), strategy)
    except (json.JSONDecodeError, RecursionError) as e:
        return _failure(str(e), strategy)


def from_object_span(text: str) -> ExtractionResult:
    return _from_span(_OBJECT_SPAN, text, "object_span")


def from_array_span(text: str) -> ExtractionResult:
    return _from_span(_ARRAY_SPAN, text, "array_span")


STRATEGIES: List[Callable[[str], ExtractionResult]] = [
    from_fenced_block,
    from_object_span,
    from_array_span,
]


def extract_json(text: str) -> ExtractionResult:
    """Run the strategy chain left to right and return the first success.

    Args:
        text: Raw model output

    Returns:
        ExtractionResult; on total failure it carries the first strategy's
        parse error, which is the most informative one.
    """
    if not isinstance(text, str):
        return _failure(f"expected text, got {type(text).__name__}", "input")

    first_failure: Optional[ExtractionResult] = None
    for strategy in STRATEGIES:
        result = strategy(text)
        if result.ok:
            return result
        if first_failure is None:
            first_failure = result
    return first_failure
