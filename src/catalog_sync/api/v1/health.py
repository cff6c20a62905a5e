"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync import __version__
from catalog_sync.config import get_settings
from catalog_sync.infrastructure.database.connection import get_session
from catalog_sync.infrastructure.redis import get_redis_client, redis_health_check

logger = structlog.get_logger()

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str
    timestamp: str
    dependencies: dict[str, Any]


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    ready: bool
    checks: dict[str, bool]


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns the service status and version information.
    """
    settings = get_settings()

    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc).isoformat(),
        dependencies={
            "postgres": "configured",
            "redis": "configured",
            "vendor_api": settings.vendor_api_base_url,
        },
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(
    session: AsyncSession = Depends(get_session),
) -> ReadinessResponse:
    """
    Readiness check endpoint.

    PostgreSQL must answer for the service to be ready. Redis is reported but
    optional: without it run state stays in-process.
    """
    checks: dict[str, bool] = {}

    try:
        await session.execute(text("SELECT 1"))
        checks["postgres"] = True
    except Exception as e:
        logger.warning("Readiness check failed", dependency="postgres", error=str(e))
        checks["postgres"] = False

    checks["redis"] = await redis_health_check(await get_redis_client())

    return ReadinessResponse(
        ready=checks["postgres"],
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Liveness check endpoint.

    Simple endpoint that returns 200 if the service is running.
    """
    return {"status": "alive"}
