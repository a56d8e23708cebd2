# backend/skillswap/main.py
"""
SkillSwap booking API.

Mounts the v1 routers under /api/v1 and exposes /health and /metrics.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from .core.config import settings
from .core.exceptions import DomainException
from .database import init_db
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.v1 import offers as offers_v1
from .routes.v1 import requests as requests_v1
from .routes.v1 import sessions as sessions_v1

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info("SkillSwap API starting up...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Booking lock backend: {settings.booking_lock_backend}")
    init_db()
    yield
    logger.info("SkillSwap API shutting down...")


app = FastAPI(
    title="SkillSwap API",
    description="Peer tutoring offers, slot requests and confirmed sessions",
    version="0.1.0",
    lifespan=app_lifespan,
)


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Render domain errors that escaped a route's own conversion."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(offers_v1.router, prefix="/offers")
api_v1.include_router(requests_v1.router, prefix="/requests")
api_v1.include_router(sessions_v1.router, prefix="/sessions")
app.include_router(api_v1)


@app.get("/health")
def health_check() -> dict:
    return {"status": "healthy", "service": "skillswap", "environment": settings.environment}


@app.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    return Response(content=prometheus_metrics.get_metrics(), media_type=prometheus_metrics.CONTENT_TYPE)
