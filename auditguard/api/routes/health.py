"""Health check endpoints."""

import time
from fastapi import APIRouter, Depends

from ... import __version__
from ..container import Container
from ..dependencies import get_container_dep
from ..infrastructure.rate_limiter import RedisRateLimiter
from ..schemas import HealthResponse

router = APIRouter(tags=["Health"])

# Track startup time
_startup_time = time.time()


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness: the process is up."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        uptime_seconds=time.time() - _startup_time,
    )


@router.get("/health/ready")
async def readiness_check(container: Container = Depends(get_container_dep)) -> dict:
    """
    Readiness check.

    The service is ready when the database answers. Redis being down is
    reported but only blocks readiness in production, where the rate limiter
    fails closed.
    """
    try:
        await container.check_database()
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {e.__class__.__name__}"

    limiter = container.rate_limiter
    if isinstance(limiter, RedisRateLimiter):
        if limiter.client is None:
            counter_status = "not_configured"
        else:
            counter_status = "connected" if await limiter.ping() else "disconnected"
    else:
        counter_status = "connected"

    ready = db_status == "connected"
    if container.config.is_production and counter_status != "connected":
        ready = False

    return {
        "status": "ready" if ready else "not_ready",
        "components": {
            "database": db_status,
            "counter_store": counter_status,
        },
    }
