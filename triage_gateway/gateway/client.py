"""Upstream agent client: one HTTP call per attempt, plus the retry loop.

``UpstreamAgentClient.call`` never raises for transport problems: it turns
every attempt into an UpstreamOutcome. ``RetryingAgentClient`` loops over
those outcomes:

  - any non-429 status ends the loop (2xx and other errors alike)
  - 429 or a network failure sleeps the current backoff delay and retries
  - when attempts run out, 429 raises ThrottlingExhausted and a network
    failure raises NetworkFailureExhausted
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx

from triage_gateway.core.metrics import UPSTREAM_ATTEMPTS
from triage_gateway.gateway.errors import NetworkFailureExhausted, ThrottlingExhausted
from triage_gateway.gateway.types import (
    Delivered,
    NetworkFailure,
    RetryPolicy,
    Throttled,
    UpstreamOutcome,
)

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"


class UpstreamAgentClient:
    """Single-attempt client for the agent inference endpoint."""

    def __init__(self, api_url: str, api_key: str, timeout: float = 120.0):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout

    async def call(self, payload: dict) -> UpstreamOutcome:
        """POST the payload once and classify what came back."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    self.api_url,
                    json=payload,
                    headers={
                        "Content-Type": "application/json",
                        API_KEY_HEADER: self.api_key,
                    },
                )
        except httpx.TransportError as e:
            UPSTREAM_ATTEMPTS.labels(outcome="network_error").inc()
            return NetworkFailure(cause=e)

        # The body is needed for both success parsing and error messages
        body = resp.text

        if resp.status_code == 429:
            UPSTREAM_ATTEMPTS.labels(outcome="throttled").inc()
            return Throttled(body=body)

        UPSTREAM_ATTEMPTS.labels(outcome="delivered").inc()
        return Delivered(status_code=resp.status_code, body=body)


class RetryingAgentClient:
    """Bounded retry loop with exponential backoff around UpstreamAgentClient.

    Usage:
        client = RetryingAgentClient(UpstreamAgentClient(url, key))
        delivered = await client.send(payload)  # may raise ThrottlingExhausted
    """

    def __init__(
        self,
        upstream: UpstreamAgentClient,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.upstream = upstream
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def send(self, payload: dict) -> Delivered:
        """Run attempts until the upstream delivers a non-429 status."""
        policy = self.policy
        delay = policy.initial_delay
        attempt = 0

        while True:
            outcome = await self.upstream.call(payload)

            if isinstance(outcome, Delivered):
                if attempt:
                    logger.info("Upstream answered %d after %d retries", outcome.status_code, attempt)
                return outcome

            if attempt >= policy.max_retries:
                break

            if isinstance(outcome, Throttled):
                logger.info(
                    "Rate limited (429), retrying in %dms... (attempt %d/%d)",
                    int(delay * 1000),
                    attempt + 1,
                    policy.max_retries,
                )
            else:
                logger.warning(
                    "Network error during attempt %d (%s), retrying in %dms...",
                    attempt + 1,
                    outcome.cause,
                    int(delay * 1000),
                )

            await self._sleep(delay)
            delay = policy.next_delay(delay)
            attempt += 1

        if isinstance(outcome, Throttled):
            logger.warning("Rate limit persisted through %d attempts", policy.max_attempts)
            raise ThrottlingExhausted(
                "Rate limit exceeded after multiple retries",
                raw_body=outcome.body,
                details=policy.exhausted_details(),
                user_message=policy.exhausted_message(),
            )

        logger.error("Network failure persisted through %d attempts: %s", policy.max_attempts, outcome.cause)
        raise NetworkFailureExhausted(str(outcome.cause) or type(outcome.cause).__name__) from outcome.cause
