"""Core types and DTOs for the agent gateway."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Schedule constants
# ---------------------------------------------------------------------------

MIN_REQUEST_INTERVAL = 1.5  # Seconds between the starts of two outbound calls

DEFAULT_MAX_RETRIES = 8  # Retries after the initial attempt
DEFAULT_INITIAL_DELAY = 3.0  # Seconds before the first retry
DEFAULT_BACKOFF_FACTOR = 1.5
DEFAULT_MAX_DELAY = 45.0  # Cap on a single backoff sleep


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class AgentStatus(str, Enum):
    """Status reported inside the normalized agent envelope."""

    SUCCESS = "success"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed exponential backoff schedule for throttling and network failures.

    With the defaults the sleeps between attempts are
    3, 4.5, 6.75, 10.125, 15.19, 22.78, 34.17 and 45 seconds.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    initial_delay: float = DEFAULT_INITIAL_DELAY
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR
    max_delay: float = DEFAULT_MAX_DELAY

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def next_delay(self, delay: float) -> float:
        return min(delay * self.backoff_factor, self.max_delay)

    def delays(self) -> list[float]:
        """Every backoff sleep the loop can take, in order."""
        schedule: list[float] = []
        delay = self.initial_delay
        for _ in range(self.max_retries):
            schedule.append(delay)
            delay = self.next_delay(delay)
        return schedule

    @property
    def total_backoff_seconds(self) -> float:
        return sum(self.delays())

    def describe_total_backoff(self) -> str:
        """Human phrase for the whole schedule, e.g. "2+ minutes"."""
        total = self.total_backoff_seconds
        if total >= 60:
            minutes = int(total // 60)
            return f"{minutes}+ minute" if minutes == 1 else f"{minutes}+ minutes"
        return f"{int(total)}+ seconds"

    def exhausted_message(self) -> str:
        return (
            "Service is experiencing very high demand. "
            f"The system tried {self.max_attempts} times over {self.describe_total_backoff()}. "
            "Please wait and try again."
        )

    def exhausted_details(self) -> str:
        return (
            f"Attempted {self.max_attempts} times with extended delays. "
            "The API may be temporarily overloaded."
        )

    def to_dict(self) -> dict:
        return {
            "max_attempts": self.max_attempts,
            "initial_delay": self.initial_delay,
            "backoff_factor": self.backoff_factor,
            "max_delay": self.max_delay,
            "delays": self.delays(),
        }


# ---------------------------------------------------------------------------
# Upstream outcome: one per attempt
# ---------------------------------------------------------------------------


@dataclass
class Delivered:
    """The upstream answered with a non-429 status (2xx or any other error)."""

    status_code: int
    body: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass
class Throttled:
    """The upstream rejected the call with HTTP 429."""

    body: str = ""
    status_code: int = 429


@dataclass
class NetworkFailure:
    """The transport raised before any HTTP status was received."""

    cause: Exception


UpstreamOutcome = Delivered | Throttled | NetworkFailure


# ---------------------------------------------------------------------------
# Normalized agent response: the only shape callers see
# ---------------------------------------------------------------------------


@dataclass
class NormalizedAgentResponse:
    """Canonical envelope for whatever JSON shape the agent returned."""

    status: AgentStatus = AgentStatus.SUCCESS
    result: Any = field(default_factory=dict)
    message: str | None = None
    metadata: dict[str, Any] | None = None

    @classmethod
    def error(cls, message: str) -> NormalizedAgentResponse:
        return cls(status=AgentStatus.ERROR, result={}, message=message)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"status": self.status.value, "result": self.result}
        if self.message is not None:
            data["message"] = self.message
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data


# ---------------------------------------------------------------------------
# Gateway result: outer envelope returned to the HTTP caller
# ---------------------------------------------------------------------------


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class GatewayResult:
    """What the endpoint answers with, plus the HTTP status to use.

    ``success`` is False only for transport-level or request-level failures;
    an agent that itself reports ``status: "error"`` still yields
    ``success=True``.
    """

    success: bool
    response: NormalizedAgentResponse
    http_status: int = 200
    agent_id: str | None = None
    user_id: str | None = None
    session_id: str | None = None
    timestamp: str | None = None
    raw_response: str | None = None
    error: str | None = None
    details: str | None = None

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dict, omitting unknown fields."""
        data: dict[str, Any] = {
            "success": self.success,
            "response": self.response.to_dict(),
        }
        optional = {
            "agent_id": self.agent_id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "timestamp": self.timestamp,
            "raw_response": self.raw_response,
            "error": self.error,
            "details": self.details,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data
