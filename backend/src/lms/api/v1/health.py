"""Health check endpoints for liveness and readiness probes."""
from datetime import datetime

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from redis import asyncio as aioredis
from sqlalchemy import text

from lms.config import settings
from lms.database import engine

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health", status_code=status.HTTP_200_OK, tags=["Health"])
async def health_check() -> dict[str, str]:
    """
    Liveness probe.

    Does not check external dependencies.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": "0.1.0",
    }


@router.get("/health/ready", tags=["Health"])
async def readiness_check() -> JSONResponse:
    """
    Readiness probe.

    Returns 200 only if the database is reachable. Redis is reported but
    not required, since plan reads fall back to the database.
    """
    checks = {"database": "unknown", "redis": "unknown"}
    ready = True

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "connected"
    except Exception as exc:
        logger.error("database_health_check_failed", error=str(exc))
        checks["database"] = "disconnected"
        ready = False

    if settings.cache_enabled:
        try:
            redis_client = aioredis.from_url(str(settings.redis_url), encoding="utf-8", decode_responses=True)
            await redis_client.ping()
            checks["redis"] = "connected"
            await redis_client.aclose()
        except Exception as exc:
            logger.warning("redis_health_check_failed", error=str(exc))
            checks["redis"] = "disconnected"
    else:
        checks["redis"] = "disabled"

    status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content={
            "ready": ready,
            "checks": checks,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
