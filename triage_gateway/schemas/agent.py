"""Pydantic models for the agent gateway endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class AgentChatRequest(BaseModel):
    """Inbound chat request forwarded to the upstream agent."""

    message: str = Field(..., min_length=1)
    agent_id: str = Field(..., min_length=1)
    user_id: str | None = None
    session_id: str | None = None
    assets: list[Any] | None = Field(None, description="Opaque attachment descriptors passed through as-is")


class NormalizedAgentResponseSchema(BaseModel):
    """Documentation model for the normalized agent envelope."""

    status: str
    result: Any = None
    message: str | None = None
    metadata: dict[str, Any] | None = None


class AgentChatResponse(BaseModel):
    """Documentation model for every answer of the agent endpoint."""

    success: bool
    response: NormalizedAgentResponseSchema
    agent_id: str | None = None
    user_id: str | None = None
    session_id: str | None = None
    timestamp: str | None = None
    raw_response: str | None = None
    error: str | None = None
    details: str | None = None
