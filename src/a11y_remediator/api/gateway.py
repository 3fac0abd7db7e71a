"""
API Gateway -- FastAPI application factory for the remediation actions.

    uvicorn a11y_remediator.api.gateway:create_app --factory --host 0.0.0.0 --port 8000

Or for development:

    a11y-remediator serve --reload

Every request carries the session attribute map; the gateway holds no
workflow state of its own beyond the handler's per-process caches.

Security:
  - CORS restricted to configured origins (default: localhost only)
  - Production auth check on startup
  - Per-client rate limit on action invocations
"""

import logging
import os
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import EngineConfig
from ..orchestration.action_handler import ActionHandler, build_action_handler
from .middleware.auth import check_production_auth
from .middleware.rate_limit import SlidingWindowLimiter, rate_limit_from_env
from .routes import actions, health

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8000",
]


def _get_cors_origins() -> list[str]:
    """CORS origins from A11Y_CORS_ORIGINS (comma separated) or localhost defaults."""
    origins_env = os.environ.get("A11Y_CORS_ORIGINS", "")
    if origins_env.strip():
        return [o.strip() for o in origins_env.split(",") if o.strip()]
    return DEFAULT_CORS_ORIGINS


def create_app(
    handler: ActionHandler | None = None,
    config: EngineConfig | None = None,
    rate_limiter: SlidingWindowLimiter | None = None,
) -> FastAPI:
    """
    Application factory.

    Args:
        handler: Pre-built action handler (built from config if None).
        config: Engine configuration (loaded from the environment if None).
        rate_limiter: Limiter for action routes (A11Y_RATE_LIMIT_PER_MINUTE if None).
    """
    check_production_auth()

    if handler is None:
        handler = build_action_handler(config or EngineConfig.from_env())

    application = FastAPI(
        title="a11y-remediator API",
        description="Scan, fix, verify and escalate accessibility violations",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=_get_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Content-Type"],
    )

    application.state.action_handler = handler
    application.state.rate_limiter = rate_limiter or SlidingWindowLimiter(rate_limit_from_env())
    application.state.start_time = time.time()

    application.include_router(health.router, tags=["Health"])
    application.include_router(actions.router, prefix="/api/v1", tags=["Actions"])

    logger.info(
        f"[Gateway] Ready with {len(handler.actions)} actions "
        f"(scanner={'yes' if handler.has_scanner else 'no'}, "
        f"executor={'yes' if handler.has_executor else 'no'})"
    )
    return application
