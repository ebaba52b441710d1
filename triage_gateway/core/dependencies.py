from functools import lru_cache

from triage_gateway.gateway.gateway import AgentGateway


@lru_cache
def get_agent_gateway() -> AgentGateway:
    """Process-wide gateway, so every request shares one rate limiter."""
    return AgentGateway()
