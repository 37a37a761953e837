"""Health check endpoints."""

from fastapi import APIRouter, Response, status

from coursepath.config import get_settings
from coursepath.core.database import AsyncCassandraConnection
from coursepath.core.redis import redis_available


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness check: the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(response: Response) -> dict[str, str | bool]:
    """Readiness check: Cassandra is required, Redis is optional."""
    settings = get_settings()
    cassandra_ok = AsyncCassandraConnection.is_connected()
    redis_ok = await redis_available()

    if not cassandra_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "ready" if cassandra_ok else "not_ready",
        "environment": settings.environment,
        "cassandra": cassandra_ok,
        "redis": redis_ok,
    }


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
