"""
FishLog Backend — Health Check Route
======================================

What:  GET /health for container health checks and load balancers.
How:   SELECT 1 against the database; reads (never calls) the weather
       provider's circuit breaker.

Status levels:
    healthy     database reachable, weather provider usable
    degraded    database reachable, weather provider unconfigured or circuit open
    unhealthy   database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Response
from sqlalchemy import text

from fishlog import __version__
from fishlog.database import engine
from fishlog.routes.deps import get_weather_provider
from fishlog.schemas.common import HealthResponse
from fishlog.services.weather_provider import CircuitBreaker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check(response: Response) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    provider = get_weather_provider()
    if not provider.configured:
        weather_status = "not_configured"
    elif provider.circuit_breaker.state == CircuitBreaker.OPEN:
        weather_status = "circuit_open"
    else:
        weather_status = "available"
    if weather_status != "available" and overall == "healthy":
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        weather_provider=weather_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
