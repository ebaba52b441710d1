from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from triage_gateway.core.config import settings

# Override settings for tests
settings.app_env = "development"
settings.lyzr_api_url = "https://agent.test/v3/inference/chat/"

from triage_gateway.core.dependencies import get_agent_gateway  # noqa: E402
from triage_gateway.gateway.gateway import AgentGateway  # noqa: E402
from triage_gateway.gateway.rate_limiter import RequestSpacingLimiter  # noqa: E402
from triage_gateway.main import app  # noqa: E402


class FakeClock:
    """Monotonic clock whose sleeps advance time instantly and are recorded."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backoff_clock() -> FakeClock:
    """Separate clock for retry backoff sleeps, so they are not mixed with limiter waits."""
    return FakeClock()


@pytest.fixture
def gateway(fake_clock: FakeClock, backoff_clock: FakeClock) -> AgentGateway:
    limiter = RequestSpacingLimiter(clock=fake_clock, sleep=fake_clock.sleep)
    return AgentGateway(
        api_url=settings.lyzr_api_url,
        api_key="test-key",
        rate_limiter=limiter,
        sleep=backoff_clock.sleep,
    )


@pytest.fixture
async def client(gateway: AgentGateway) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_agent_gateway] = lambda: gateway
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.pop(get_agent_gateway, None)
