"""
Input Validators -- boundary checks for action parameters and scan targets.

The agent runtime hands every action parameter over as a string. Parse it
here, once, into a typed value; nothing past the action handler should see
raw parameter strings or unvalidated URLs.
"""

import ipaddress
import json
import logging
from typing import Any
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

ALLOWED_URL_SCHEMES = {"http", "https"}
BLOCKED_HOSTNAMES = {"localhost", "metadata.google.internal"}
MAX_PARAM_BYTES = 2_000_000
TRUE_STRINGS = {"true", "1", "yes"}
FALSE_STRINGS = {"false", "0", "no"}


class ValidationError(ValueError):
    """Bad caller input. The message is safe to return to the caller."""


def validate_not_empty(value: str, field_name: str = "input") -> str:
    """Strip and require at least one non-whitespace character."""
    stripped = (value or "").strip()
    if not stripped:
        raise ValidationError(f"{field_name} is required")
    return stripped


def validate_length(value: str, field_name: str = "input", max_length: int = MAX_PARAM_BYTES) -> str:
    """Reject oversized values before they are decoded or stored."""
    if len(value) > max_length:
        raise ValidationError(f"{field_name} exceeds {max_length} characters (got {len(value)})")
    return value


def validate_in_choices(value: str, choices: list[str], field_name: str = "value") -> str:
    if value not in choices:
        raise ValidationError(f"{field_name} '{value}' is not one of {', '.join(choices)}")
    return value


def validate_positive_number(value: float | int, field_name: str = "number") -> float:
    if value <= 0:
        raise ValidationError(f"{field_name} must be greater than zero (got {value})")
    return float(value)


def validate_list_size(items: list, field_name: str = "list", max_items: int = 1000) -> list:
    """Cap list parameters such as a scan's violations."""
    if len(items) > max_items:
        raise ValidationError(f"{field_name} holds {len(items)} items; the limit is {max_items}")
    return items


def _blocked_address(hostname: str) -> bool:
    """True for private, loopback and link-local IP literals."""
    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return address.is_private or address.is_loopback or address.is_link_local


def validate_url(
    url: str,
    field_name: str = "url",
    allow_private: bool = False,
) -> str:
    """
    Validate a page URL before handing it to the scanner (anti-SSRF).

    Blocks non-http(s) schemes, private and link-local addresses, and known
    internal hostnames. allow_private=True lifts the address and hostname
    checks so local development sites can be scanned.

    Raises:
        ValidationError: If the URL is unsafe.
    """
    if not url or not url.strip():
        raise ValidationError(f"{field_name} is required")

    parsed = urlparse(url.strip())

    if parsed.scheme not in ALLOWED_URL_SCHEMES:
        raise ValidationError(
            f"{field_name} must use http or https (got '{parsed.scheme}')"
        )

    hostname = parsed.hostname
    if not hostname:
        raise ValidationError(f"{field_name} must include a hostname")

    if not allow_private:
        hostname_lower = hostname.lower()
        if hostname_lower in BLOCKED_HOSTNAMES:
            raise ValidationError(f"{field_name} cannot point to {hostname_lower}")
        if _blocked_address(hostname):
            raise ValidationError(f"{field_name} cannot point to private/internal addresses")
        if hostname_lower.endswith(".internal"):
            raise ValidationError(f"{field_name} cannot point to internal hostnames")

    logger.debug(f"[Validators] URL validated: {parsed.scheme}://{hostname}")
    return url.strip()


def parse_json_param(
    raw: str,
    field_name: str,
    expected_type: type = dict,
    max_size_bytes: int = MAX_PARAM_BYTES,
) -> Any:
    """Decode a JSON-encoded action parameter and check its top-level type."""
    validate_length(raw, field_name, max_length=max_size_bytes)
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(f"{field_name} must be valid JSON ({e.msg})")
    if not isinstance(value, expected_type):
        raise ValidationError(f"{field_name} must be a JSON {expected_type.__name__}")
    return value


def parse_bool_param(raw: str, field_name: str) -> bool:
    """Decode a "true"/"false" action parameter."""
    lowered = raw.strip().lower()
    if lowered in TRUE_STRINGS:
        return True
    if lowered in FALSE_STRINGS:
        return False
    raise ValidationError(f"{field_name} must be true or false (got '{raw}')")
