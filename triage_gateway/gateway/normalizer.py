"""Response Normalizer: maps any agent JSON shape onto one envelope.

Agents and agent versions answer with several incompatible shapes. Instead
of validating against one schema, the normalizer classifies the parsed
payload into a closed set of recognized shapes (first match wins) and
builds a NormalizedAgentResponse from it. It never rejects a payload:
unrecognized objects become the result as-is.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any

from triage_gateway.gateway.types import AgentStatus, NormalizedAgentResponse

logger = logging.getLogger(__name__)

EMPTY_RESPONSE_MESSAGE = "Empty response from agent"

# How many nested {"response": ...} wrappers are unwrapped
MAX_UNWRAP_DEPTH = 2

# Keys that describe the envelope rather than the result payload
_ENVELOPE_KEYS = ("status", "message", "metadata")


class ResponseShape(str, Enum):
    """Recognized payload shapes, in dispatch order."""

    EMPTY = "empty"
    TEXT = "text"
    SCALAR = "scalar"
    STATUS_AND_RESULT = "status_and_result"
    STATUS_ONLY = "status_only"
    RESULT_ONLY = "result_only"
    MESSAGE_ONLY = "message_only"
    WRAPPED = "wrapped"
    OPAQUE = "opaque"


def _is_empty(parsed: Any) -> bool:
    # JSON falsy scalars; an empty object or list is still a payload
    if parsed is None or parsed is False or parsed == "":
        return True
    return isinstance(parsed, (int, float)) and not isinstance(parsed, bool) and parsed == 0


def classify(parsed: Any, depth: int = 0) -> ResponseShape:
    """Classify a parsed payload. ``depth`` counts unwrapped ``response`` levels."""
    if _is_empty(parsed):
        return ResponseShape.EMPTY
    if isinstance(parsed, str):
        return ResponseShape.TEXT
    if not isinstance(parsed, dict):
        return ResponseShape.SCALAR
    if "status" in parsed and "result" in parsed:
        return ResponseShape.STATUS_AND_RESULT
    if "status" in parsed:
        return ResponseShape.STATUS_ONLY
    if "result" in parsed:
        return ResponseShape.RESULT_ONLY
    if isinstance(parsed.get("message"), str):
        return ResponseShape.MESSAGE_ONLY
    if "response" in parsed and depth < MAX_UNWRAP_DEPTH:
        return ResponseShape.WRAPPED
    return ResponseShape.OPAQUE


def _coerce_status(value: Any) -> AgentStatus:
    return AgentStatus.ERROR if value == "error" else AgentStatus.SUCCESS


def _stringify(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)


def normalize(parsed: Any, depth: int = 0) -> NormalizedAgentResponse:
    """Normalize a parsed agent payload. Total: never raises."""
    shape = classify(parsed, depth)

    if shape == ResponseShape.EMPTY:
        return NormalizedAgentResponse.error(EMPTY_RESPONSE_MESSAGE)

    if shape == ResponseShape.TEXT:
        return NormalizedAgentResponse(result={"text": parsed}, message=parsed)

    if shape == ResponseShape.SCALAR:
        return NormalizedAgentResponse(result={"value": parsed}, message=_stringify(parsed))

    if shape == ResponseShape.STATUS_AND_RESULT:
        return NormalizedAgentResponse(
            status=_coerce_status(parsed["status"]),
            result=parsed["result"] or {},
            message=parsed.get("message"),
            metadata=parsed.get("metadata"),
        )

    if shape == ResponseShape.STATUS_ONLY:
        rest = {k: v for k, v in parsed.items() if k not in _ENVELOPE_KEYS}
        return NormalizedAgentResponse(
            status=_coerce_status(parsed["status"]),
            result=rest,
            message=parsed.get("message"),
            metadata=parsed.get("metadata"),
        )

    if shape == ResponseShape.RESULT_ONLY:
        return NormalizedAgentResponse(
            result=parsed["result"],
            message=parsed.get("message"),
            metadata=parsed.get("metadata"),
        )

    if shape == ResponseShape.MESSAGE_ONLY:
        return NormalizedAgentResponse(result={"text": parsed["message"]}, message=parsed["message"])

    if shape == ResponseShape.WRAPPED:
        return normalize(parsed["response"], depth + 1)

    if "response" in parsed:
        logger.debug("Stopped unwrapping nested response at depth %d", depth)
    return NormalizedAgentResponse(result=parsed)
