"""
BoardScan Backend — Health Check Route
========================================

What:  GET /health for container probes and load balancers.

Status levels:
    healthy    database reachable, vision service reachable     → 200
    degraded   database reachable, vision service down or open  → 200
    unhealthy  database unreachable                             → 503

Scans need the vision service, but every other endpoint (lots, listings,
dashboards, activity) keeps working without it, so a vision outage only
degrades the instance.
"""

import logging
import time

from fastapi import APIRouter, Response
from sqlalchemy import text

from boardscan import __version__
from boardscan.database import engine
from boardscan.schemas.common import HealthResponse
from boardscan.services.gemini_service import CircuitBreaker, gemini_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


async def _probe_database() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Health check: database unreachable: %s", str(e))
        return "disconnected"
    return "connected"


async def _probe_vision() -> str:
    if gemini_service.circuit_breaker.state == CircuitBreaker.OPEN:
        return "circuit_open"
    if await gemini_service.health_check():
        return "available"
    return "unavailable"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(response: Response) -> HealthResponse:
    database = await _probe_database()
    vision = await _probe_vision()

    if database != "connected":
        overall = "unhealthy"
        response.status_code = 503
    elif vision != "available":
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=database,
        vision=vision,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
