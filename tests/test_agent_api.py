"""Tests for the agent HTTP endpoints."""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from triage_gateway.gateway.client import UpstreamAgentClient
from triage_gateway.gateway.types import Delivered, Throttled

AGENT_URL = "/api/v1/agent"


@pytest.mark.asyncio
async def test_send_message_success(client: AsyncClient):
    body = '{"response": {"status": "success", "result": {"triage_level": "urgent"}}}'

    with patch.object(UpstreamAgentClient, "call", new=AsyncMock(return_value=Delivered(200, body))):
        resp = await client.post(AGENT_URL, json={"message": "chest pain since morning", "agent_id": "triage"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["response"] == {"status": "success", "result": {"triage_level": "urgent"}}
    assert data["agent_id"] == "triage"
    assert data["user_id"].startswith("user-")
    assert data["session_id"].startswith("triage-")
    assert data["raw_response"] == body
    assert "timestamp" in data


@pytest.mark.asyncio
async def test_send_message_missing_fields(client: AsyncClient):
    with patch.object(UpstreamAgentClient, "call", new=AsyncMock()) as mock_call:
        resp = await client.post(AGENT_URL, json={"message": "hello"})

    assert resp.status_code == 400
    data = resp.json()
    assert data["success"] is False
    assert data["error"] == "message and agent_id are required"
    assert data["response"]["status"] == "error"
    mock_call.assert_not_called()


@pytest.mark.asyncio
async def test_send_message_malformed_json(client: AsyncClient):
    resp = await client.post(AGENT_URL, content=b"{not json", headers={"Content-Type": "application/json"})

    assert resp.status_code == 400
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_send_message_throttled(client: AsyncClient):
    with patch.object(UpstreamAgentClient, "call", new=AsyncMock(return_value=Throttled(body="busy"))):
        resp = await client.post(AGENT_URL, json={"message": "hi", "agent_id": "triage"})

    assert resp.status_code == 429
    data = resp.json()
    assert data["success"] is False
    assert data["error"] == "Rate limit exceeded after multiple retries"
    assert "9 times" in data["response"]["message"]


@pytest.mark.asyncio
async def test_send_message_upstream_error_status(client: AsyncClient):
    upstream = Delivered(503, '{"error": "Model temporarily unavailable"}')

    with patch.object(UpstreamAgentClient, "call", new=AsyncMock(return_value=upstream)):
        resp = await client.post(AGENT_URL, json={"message": "hi", "agent_id": "triage"})

    assert resp.status_code == 503
    data = resp.json()
    assert data["error"] == "Model temporarily unavailable"
    assert data["raw_response"] == upstream.body


@pytest.mark.asyncio
async def test_send_message_bare_string_answer(client: AsyncClient):
    with patch.object(UpstreamAgentClient, "call", new=AsyncMock(return_value=Delivered(200, '"ok"'))):
        resp = await client.post(AGENT_URL, json={"message": "hi", "agent_id": "triage"})

    assert resp.status_code == 200
    assert resp.json()["response"]["result"] == {"text": "ok"}


@pytest.mark.asyncio
async def test_gateway_status(client: AsyncClient):
    resp = await client.get(f"{AGENT_URL}/status")

    assert resp.status_code == 200
    data = resp.json()
    assert data["retry_policy"]["max_attempts"] == 9
    assert data["rate_limiter"]["min_interval_seconds"] == 1.5
    assert data["api_key_configured"] is True


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_metrics(client: AsyncClient):
    resp = await client.get("/metrics")
    assert resp.status_code == 200
    assert "agent_gateway_results_total" in resp.text


@pytest.mark.asyncio
async def test_request_id_header(client: AsyncClient):
    resp = await client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
    assert resp.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_send_message_non_finite_numbers(client: AsyncClient):
    body = '{"result": {"score": NaN, "confidence": 0.9}}'

    with patch.object(UpstreamAgentClient, "call", new=AsyncMock(return_value=Delivered(200, body))):
        resp = await client.post(AGENT_URL, json={"message": "hi", "agent_id": "triage"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["response"]["result"] == {"score": None, "confidence": 0.9}
    assert data["raw_response"] == body


@pytest.mark.asyncio
async def test_metrics_label_route_templates(client: AsyncClient):
    await client.get(f"{AGENT_URL}/status")
    await client.get("/api/v1/no-such-page-7f3a")

    text = (await client.get("/metrics")).text
    assert 'path="/api/v1/agent/status"' in text
    assert 'path="unmatched"' in text
    assert "no-such-page-7f3a" not in text
