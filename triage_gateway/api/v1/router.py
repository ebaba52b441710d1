from fastapi import APIRouter

from triage_gateway.api.v1.agent import router as agent_router

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(agent_router)
