"""Agent Gateway: orchestrator for one inbound chat request.

Main entry point for proxying a chat request to the upstream agent:
  1. Validates the inbound body (message and agent_id are required)
  2. Checks the upstream API key is configured
  3. Resolves the user/session correlation identifiers
  4. Waits on the shared RequestSpacingLimiter (once per request)
  5. Dispatches through RetryingAgentClient (backoff on 429 / network errors)
  6. Extracts and normalizes the agent's answer

Every path, including unexpected faults, ends in a GatewayResult.

Usage:
    gateway = AgentGateway()
    result = await gateway.handle({"message": "...", "agent_id": "..."})
    return JSONResponse(status_code=result.http_status, content=result.to_dict())
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

import pydantic

from triage_gateway.core.config import get_lyzr_api_key, settings
from triage_gateway.core.metrics import AGENT_RESULTS
from triage_gateway.gateway.client import RetryingAgentClient, UpstreamAgentClient
from triage_gateway.gateway.errors import (
    ConfigurationError,
    GatewayError,
    UpstreamApplicationError,
    ValidationError,
)
from triage_gateway.gateway.json_extractor import extract_json
from triage_gateway.gateway.normalizer import normalize
from triage_gateway.gateway.rate_limiter import RequestSpacingLimiter
from triage_gateway.gateway.types import (
    Delivered,
    GatewayResult,
    NormalizedAgentResponse,
    RetryPolicy,
    utc_timestamp,
)
from triage_gateway.schemas.agent import AgentChatRequest

logger = logging.getLogger(__name__)

REQUIRED_FIELDS_MESSAGE = "message and agent_id are required"

# Keys checked, in order, for an error message in a failed upstream body
_ERROR_MESSAGE_KEYS = ("error", "message", "detail")


def generate_user_id() -> str:
    return f"user-{uuid.uuid4()}"


def generate_session_id(agent_id: str) -> str:
    return f"{agent_id}-{uuid.uuid4().hex[:12]}"


def build_payload(request: AgentChatRequest, user_id: str, session_id: str) -> dict[str, Any]:
    """Assemble the outbound body; ``assets`` is only sent when non-empty."""
    payload: dict[str, Any] = {
        "message": request.message,
        "agent_id": request.agent_id,
        "user_id": user_id,
        "session_id": session_id,
    }
    if request.assets:
        payload["assets"] = request.assets
    return payload


def extract_error_message(body: str, status_code: int) -> str:
    """Best-effort error text from a non-2xx upstream body."""
    data = extract_json(body)
    if isinstance(data, dict):
        for key in _ERROR_MESSAGE_KEYS:
            value = data.get(key)
            if value:
                return value if isinstance(value, str) else str(value)
    return f"API returned status {status_code}"


class AgentGateway:
    """Main gateway orchestrator.

    One instance is shared by every inbound request in the process so that
    all of them queue on the same RequestSpacingLimiter.
    """

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        rate_limiter: RequestSpacingLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            api_url: Upstream inference endpoint (defaults to settings)
            api_key: Fixed API key; when None it is read from the environment per request
            rate_limiter: Shared limiter; a fresh one is created when omitted
            retry_policy: Backoff schedule; the fixed default when omitted
            timeout: Per-attempt transport timeout in seconds
            sleep: Backoff sleep, replaceable in tests
        """
        self.api_url = api_url or settings.lyzr_api_url
        self._api_key = api_key
        self.rate_limiter = rate_limiter or RequestSpacingLimiter()
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout if timeout is not None else settings.upstream_timeout_seconds
        self._sleep = sleep

    def _resolve_api_key(self) -> str:
        api_key = self._api_key if self._api_key is not None else get_lyzr_api_key()
        if not api_key:
            raise ConfigurationError(
                "LYZR_API_KEY not configured on server",
                user_message="LYZR_API_KEY not configured",
            )
        return api_key

    def _build_client(self, api_key: str) -> RetryingAgentClient:
        upstream = UpstreamAgentClient(self.api_url, api_key, timeout=self.timeout)
        return RetryingAgentClient(upstream, policy=self.retry_policy, sleep=self._sleep)

    @staticmethod
    def validate(body: Any) -> AgentChatRequest:
        """Reject a request before any network call is made."""
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        if not body.get("message") or not body.get("agent_id"):
            raise ValidationError(REQUIRED_FIELDS_MESSAGE)
        try:
            return AgentChatRequest.model_validate(body)
        except pydantic.ValidationError as e:
            raise ValidationError("Invalid request body", details=str(e)) from e

    async def handle(self, body: Any) -> GatewayResult:
        """Proxy one chat request. Never raises."""
        context: dict[str, str] = {}
        try:
            result = await self._handle(body, context)
        except GatewayError as e:
            log = logger.info if isinstance(e, ValidationError) else logger.warning
            log("Agent request failed (%s, HTTP %d): %s", type(e).__name__, e.status_code, e.message)
            result = self._failure(e, context)
        except Exception as e:
            logger.exception("Unexpected error while handling agent request")
            result = GatewayResult(
                success=False,
                response=NormalizedAgentResponse.error(str(e) or "Server error"),
                http_status=500,
                error=str(e) or "Server error",
                timestamp=utc_timestamp(),
                **context,
            )

        AGENT_RESULTS.labels(status=result.http_status, success=result.success).inc()
        return result

    async def _handle(self, body: Any, context: dict[str, str]) -> GatewayResult:
        request = self.validate(body)
        api_key = self._resolve_api_key()

        user_id = request.user_id or generate_user_id()
        session_id = request.session_id or generate_session_id(request.agent_id)
        context.update(agent_id=request.agent_id, user_id=user_id, session_id=session_id)

        payload = build_payload(request, user_id, session_id)

        # Once per inbound request; retries rely on their own backoff
        await self.rate_limiter.acquire()
        delivered = await self._build_client(api_key).send(payload)

        if not delivered.ok:
            raise UpstreamApplicationError(
                extract_error_message(delivered.body, delivered.status_code),
                status_code=delivered.status_code,
                raw_body=delivered.body,
            )

        return self._success(delivered, context)

    def _success(self, delivered: Delivered, context: dict[str, str]) -> GatewayResult:
        parsed = extract_json(delivered.body)

        # A 2xx transport answer can still carry an application-level failure
        if isinstance(parsed, dict) and parsed.get("success") is False and parsed.get("error"):
            error = parsed["error"]
            raise UpstreamApplicationError(
                error if isinstance(error, str) else str(error),
                status_code=200,
                raw_body=delivered.body,
            )

        normalized = normalize(parsed)
        logger.info(
            "Agent %s answered with status=%s",
            context["agent_id"],
            normalized.status.value,
            extra={"agent_id": context["agent_id"], "session_id": context["session_id"]},
        )
        return GatewayResult(
            success=True,
            response=normalized,
            timestamp=utc_timestamp(),
            raw_response=delivered.body,
            **context,
        )

    @staticmethod
    def _failure(error: GatewayError, context: dict[str, str]) -> GatewayResult:
        return GatewayResult(
            success=False,
            response=NormalizedAgentResponse.error(error.user_message),
            http_status=error.status_code,
            timestamp=utc_timestamp(),
            raw_response=error.raw_body,
            error=error.message,
            details=error.details,
            **context,
        )

    def get_status(self) -> dict:
        """Get gateway status for the status endpoint."""
        return {
            "upstream_url": self.api_url,
            "api_key_configured": bool(self._api_key if self._api_key is not None else get_lyzr_api_key()),
            "rate_limiter": self.rate_limiter.get_stats(),
            "retry_policy": self.retry_policy.to_dict(),
        }
