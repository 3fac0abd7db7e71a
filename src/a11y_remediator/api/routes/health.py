"""
Health and readiness endpoints.

  GET /health       -- Liveness probe (always returns 200 if process is alive)
  GET /health/ready -- Readiness probe (pings configured collaborators)
"""

import logging
import time

from fastapi import APIRouter, Request

from ... import __version__
from ..models.responses import HealthResponse, ReadinessResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def liveness(request: Request) -> HealthResponse:
    """Liveness probe -- returns 200 if the process is running."""
    handler = request.app.state.action_handler
    start_time = getattr(request.app.state, "start_time", time.time())
    return HealthResponse(
        status="healthy",
        version=__version__,
        uptime_seconds=round(time.time() - start_time, 1),
        scanner_configured=handler.has_scanner,
        executor_configured=handler.has_executor,
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> ReadinessResponse:
    """Readiness probe -- every configured collaborator must answer /health."""
    handler = request.app.state.action_handler
    checks = await handler.collaborator_health()
    if not all(checks.values()):
        logger.warning(f"[Health] Collaborators not ready: {checks}")
    return ReadinessResponse(ready=all(checks.values()), checks=checks)
