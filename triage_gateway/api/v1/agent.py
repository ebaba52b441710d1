"""Agent API: proxies triage chat messages to the upstream inference agent."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from triage_gateway.core.dependencies import get_agent_gateway
from triage_gateway.gateway.gateway import AgentGateway
from triage_gateway.schemas.agent import AgentChatRequest, AgentChatResponse

router = APIRouter(prefix="/agent", tags=["agent"])

_RESPONSES = {
    400: {"model": AgentChatResponse, "description": "message or agent_id missing"},
    429: {"model": AgentChatResponse, "description": "Upstream still rate limiting after every retry"},
    500: {"model": AgentChatResponse, "description": "Server misconfigured or unexpected failure"},
}


@router.post(
    "",
    response_model=AgentChatResponse,
    responses=_RESPONSES,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": AgentChatRequest.model_json_schema()}},
        }
    },
)
async def send_agent_message(request: Request, gateway: AgentGateway = Depends(get_agent_gateway)):
    """Forward one chat message to the agent and return the normalized answer.

    The body is read by hand rather than through a pydantic parameter so that
    malformed requests get the same envelope as every other failure instead
    of FastAPI's 422.
    """
    try:
        body = await request.json()
    except ValueError:
        body = None

    result = await gateway.handle(body)
    return JSONResponse(status_code=result.http_status, content=result.to_dict())


@router.get("/status")
async def agent_gateway_status(gateway: AgentGateway = Depends(get_agent_gateway)):
    """Rate limiter state, retry schedule and whether the upstream key is set."""
    return gateway.get_status()
