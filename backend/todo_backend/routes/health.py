"""
Todo Backend — Health Check Routes
===================================

What:  Liveness and readiness probes.

    GET /api/health  → {"status": "ok"}; never touches the database
    GET /health      → version, uptime and database reachability (SELECT 1)

Who:   Docker health checks, load balancers and the frontend dev proxy.
"""

import logging
import time

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from todo_backend import __version__
from todo_backend.database import engine
from todo_backend.schemas.common import HealthResponse, StatusResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/api/health", response_model=StatusResponse, summary="Liveness probe")
async def liveness() -> StatusResponse:
    return StatusResponse()


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check() -> HealthResponse:
    """
    Check that the database answers a trivial query.

    Always answers 200; `status` is "unhealthy" when the database is down so
    the probe itself never fails on a transient outage.
    """
    db_status = "connected"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", e)

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
