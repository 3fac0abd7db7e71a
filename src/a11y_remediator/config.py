"""
Engine configuration -- environment-driven settings for collaborators and audit.

All values come from environment variables with safe defaults, so the
gateway, the CLI and tests build the same EngineConfig:

    config = EngineConfig.from_env()
    handler = build_action_handler(config)

The three-strike limit is a protocol constant (see harness/session_state.py),
not a setting.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .security.validators import ValidationError, validate_in_choices, validate_positive_number

logger = logging.getLogger(__name__)

DEFAULT_COLLABORATOR_TIMEOUT = 60.0
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("true", "1", "yes")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number (got '{raw}')")
    return validate_positive_number(value, name)


@dataclass
class EngineConfig:
    """Settings for the remediation engine and its collaborators.

    Attributes:
        scanner_url: Base URL of the remote scanner service ("" = none).
        executor_url: Base URL of the remote DOM executor ("" = none).
        collaborator_api_key: Bearer token sent to both collaborators.
        collaborator_timeout: Per-request timeout in seconds.
        audit_dir: Directory for JSONL audit trails (None = memory only).
        allow_private_urls: Permit scanning localhost/private hosts (dev only).
        log_level: Default level for CLI logging setup.
    """

    scanner_url: str = ""
    executor_url: str = ""
    collaborator_api_key: str = ""
    collaborator_timeout: float = DEFAULT_COLLABORATOR_TIMEOUT
    audit_dir: Path | None = None
    allow_private_urls: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load configuration from A11Y_* environment variables."""
        audit_dir = os.environ.get("A11Y_AUDIT_DIR", "").strip()
        log_level = os.environ.get("A11Y_LOG_LEVEL", "INFO").strip().upper() or "INFO"
        config = cls(
            scanner_url=os.environ.get("A11Y_SCANNER_URL", "").strip(),
            executor_url=os.environ.get("A11Y_EXECUTOR_URL", "").strip(),
            collaborator_api_key=os.environ.get("A11Y_COLLABORATOR_API_KEY", "").strip(),
            collaborator_timeout=_env_float(
                "A11Y_COLLABORATOR_TIMEOUT", DEFAULT_COLLABORATOR_TIMEOUT
            ),
            audit_dir=Path(audit_dir) if audit_dir else None,
            allow_private_urls=_env_flag("A11Y_ALLOW_PRIVATE_URLS"),
            log_level=validate_in_choices(log_level, LOG_LEVELS, "A11Y_LOG_LEVEL"),
        )
        logger.debug(
            f"[EngineConfig] scanner={'yes' if config.scanner_url else 'no'}, "
            f"executor={'yes' if config.executor_url else 'no'}, "
            f"audit_dir={config.audit_dir}"
        )
        return config
