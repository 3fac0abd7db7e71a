"""
Bearer key authentication for the action gateway.

The agent runtime that drives remediation sessions is the only intended
caller, so a single shared key is enough:

    A11Y_API_KEY=your-secret-key          (server)
    Authorization: Bearer your-secret-key (caller)

Rules:
    - A11Y_ENV=production (or staging) refuses to start without a key,
      unless A11Y_AUTH_DISABLED=true is set explicitly.
    - Without a key in development, every request is accepted as "anon".
    - Keys are compared with hmac.compare_digest.
"""

import hashlib
import hmac
import logging
import os
from dataclasses import dataclass

from fastapi import HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

PRODUCTION_ENVS = ("production", "prod", "staging")


@dataclass
class AuthContext:
    """Who is calling. caller_id is a short key fingerprint, never the key itself."""

    caller_id: str = "anon"
    authenticated: bool = False

    @property
    def user_id(self) -> str:
        return self.caller_id


def configured_api_key() -> str | None:
    return os.environ.get("A11Y_API_KEY", "").strip() or None


def _is_production() -> bool:
    return os.environ.get("A11Y_ENV", "development").strip().lower() in PRODUCTION_ENVS


def _auth_disabled() -> bool:
    return os.environ.get("A11Y_AUTH_DISABLED", "").strip().lower() in ("true", "1", "yes")


def _fingerprint(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:12]


def check_production_auth() -> None:
    """
    Startup guard. Raises RuntimeError in production when no key is set and
    auth was not explicitly disabled.
    """
    if configured_api_key() is not None:
        return
    if not _is_production():
        logger.info("[Auth] A11Y_API_KEY not set (development). Action endpoints are open.")
        return
    if _auth_disabled():
        logger.warning(
            "[Auth] A11Y_AUTH_DISABLED=true in production. Action endpoints are unauthenticated."
        )
        return
    raise RuntimeError(
        "A11Y_API_KEY is required when A11Y_ENV is production or staging. "
        "Set A11Y_AUTH_DISABLED=true to run without authentication."
    )


async def verify_api_key(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
) -> AuthContext:
    """FastAPI dependency: 401 without credentials, 403 on a wrong key."""
    expected = configured_api_key()
    if expected is None:
        return AuthContext()

    client_host = request.client.host if request.client else "unknown"
    if credentials is None:
        logger.warning(f"[Auth] Missing bearer key from {client_host}")
        raise HTTPException(status_code=401, detail="Missing API key")

    if not hmac.compare_digest(credentials.credentials, expected):
        logger.warning(f"[Auth] Rejected bearer key from {client_host}")
        raise HTTPException(status_code=403, detail="Invalid API key")

    return AuthContext(caller_id=_fingerprint(credentials.credentials), authenticated=True)
