"""
Per-client rate limiting for action invocations.

Sliding one-minute window kept in process memory, keyed by client IP.
Each gateway replica limits independently.

    A11Y_RATE_LIMIT_PER_MINUTE=120  (default)
"""

import logging
import os
import time
from collections import defaultdict, deque

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT = 120
WINDOW_SECONDS = 60.0


def rate_limit_from_env() -> int:
    raw = os.environ.get("A11Y_RATE_LIMIT_PER_MINUTE", "").strip()
    if not raw:
        return DEFAULT_RATE_LIMIT
    try:
        return max(1, int(raw))
    except ValueError:
        logger.warning(f"[RateLimit] Ignoring invalid A11Y_RATE_LIMIT_PER_MINUTE='{raw}'")
        return DEFAULT_RATE_LIMIT


class SlidingWindowLimiter:
    """
    Counts requests per client over the last WINDOW_SECONDS.

    Usage:
        limiter = SlidingWindowLimiter(limit=60)
        if not limiter.allow("10.0.0.1"):
            ...  # reject
    """

    def __init__(self, limit: int = DEFAULT_RATE_LIMIT, window_seconds: float = WINDOW_SECONDS):
        self.limit = limit
        self.window_seconds = window_seconds
        self._hits: dict[str, deque[float]] = defaultdict(deque)

    def allow(self, client_id: str, now: float | None = None) -> bool:
        now = time.monotonic() if now is None else now
        hits = self._hits[client_id]
        while hits and hits[0] <= now - self.window_seconds:
            hits.popleft()
        if len(hits) >= self.limit:
            return False
        hits.append(now)
        return True

    def reset(self) -> None:
        self._hits.clear()


async def check_rate_limit(request: Request) -> None:
    """FastAPI dependency: 429 once the client exceeds the app's limiter."""
    limiter: SlidingWindowLimiter = request.app.state.rate_limiter
    client_ip = request.client.host if request.client else "unknown"
    if not limiter.allow(client_ip):
        logger.warning(f"[RateLimit] {client_ip} exceeded {limiter.limit}/min")
        raise HTTPException(
            status_code=429,
            detail=f"Rate limit exceeded ({limiter.limit} requests per minute)",
            headers={"Retry-After": str(int(limiter.window_seconds))},
        )
