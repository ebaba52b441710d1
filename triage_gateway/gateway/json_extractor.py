"""Lenient JSON extraction from noisy agent output.

Agents regularly wrap their JSON in markdown code fences, add a sentence of
explanation before or after it, or leave trailing garbage. ``extract_json``
recovers the payload where it can and returns None where it cannot.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"```(?:json|JSON)?\s*")
_FENCE_CLOSE = re.compile(r"```\s*$")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")

# "did not parse" marker; None is itself a valid JSON value
_MISSING = object()


def extract_json(text: str | None) -> Any | None:
    """Return the best-effort parsed value of ``text``, or None.

    ``NaN`` and ``Infinity`` constants parse as None so the result always
    serializes as strict JSON. Never raises.
    """
    if not text or not text.strip():
        return None

    # Clean JSON is returned untouched, fences inside string values included
    parsed = _loads(text.strip())
    if parsed is not _MISSING:
        return parsed

    cleaned = _FENCE_OPEN.sub("", text).strip()
    cleaned = _FENCE_CLOSE.sub("", cleaned).strip()

    parsed = _loads(cleaned)
    if parsed is not _MISSING:
        return parsed

    # Try the outermost object, then the outermost array
    for opener, closer in (("{", "}"), ("[", "]")):
        candidate = _outermost(cleaned, opener, closer)
        if candidate is None:
            continue
        parsed = _loads(candidate)
        if parsed is not _MISSING:
            return parsed
        # Handle trailing commas: {"a": 1,}
        parsed = _loads(_TRAILING_COMMA.sub(r"\1", candidate))
        if parsed is not _MISSING:
            return parsed

    logger.debug("Could not extract JSON from %d chars of text", len(text))
    return None


def _finite_float(literal: str) -> float | None:
    value = float(literal)
    return value if math.isfinite(value) else None


def _loads(text: str) -> Any:
    try:
        return json.loads(text, parse_float=_finite_float, parse_constant=lambda _: None)
    except (json.JSONDecodeError, ValueError):
        return _MISSING


def _outermost(text: str, opener: str, closer: str) -> str | None:
    """Slice from the first balanced ``opener`` to its matching ``closer``.

    Brackets inside JSON strings are skipped. Falls back to the last
    ``closer`` in the text when the brackets never balance.
    """
    start = text.find(opener)
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    end = text.rfind(closer)
    if end > start:
        return text[start : end + 1]
    return None
