import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from triage_gateway.api.v1.router import api_v1_router
from triage_gateway.core.config import get_lyzr_api_key, settings, validate_settings_for_production
from triage_gateway.core.logging import setup_logging
from triage_gateway.core.metrics import PrometheusMiddleware, metrics_response
from triage_gateway.core.middleware import RequestLoggingMiddleware
from triage_gateway.core.sentry import init_sentry

# Configure logging before anything else
setup_logging()
init_sentry()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    validate_settings_for_production()
    logger.info("Starting Triage Agent Gateway...")

    # Checked again on every request; this only makes a bad deploy visible early
    if not get_lyzr_api_key():
        logger.warning("LYZR_API_KEY is not set, agent requests will fail until it is configured")

    yield

    logger.info("Triage Agent Gateway shut down")


app = FastAPI(
    title="Triage Agent Gateway",
    description="Proxy between the healthcare triage front end and the upstream inference agent",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
)


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"detail": f"{type(exc).__name__}: {exc}"})


# Request logging + metrics middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(PrometheusMiddleware)

# CORS: parse allowed_origins from settings (comma-separated)
_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(api_v1_router)


@app.get("/api/v1/health")
async def health():
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run(
        "triage_gateway.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_debug and settings.app_env == "development",
        log_config=None,  # keep setup_logging() handlers
    )
