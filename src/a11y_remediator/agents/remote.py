"""
Remote collaborators -- the scanner and DOM executor behind HTTP.

The engine never drives a browser itself. Two external services do:

  POST {scanner_url}/scan     {url}               -> {violations: [...]}
  POST {scanner_url}/verify   {selector, ruleId}  -> {status, violations?, score?}
  POST {executor_url}/apply   {instruction}       -> {success, selector, beforeHtml, afterHtml}
                                                     or {success: false, error: {...}}
  GET  {base_url}/health

The orchestration layer depends only on the Scanner and DomExecutor
protocols, so tests (or an in-process Playwright driver) can stand in for
these adapters.

Security:
  - Response size is capped to prevent memory exhaustion
  - Every response is parsed through a pydantic schema before use
"""

import logging
from typing import Any, Protocol, runtime_checkable

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..errors import InjectorError, InjectorErrorCode, ScannerError, ScannerErrorCode
from ..models import FixInstruction, FixResult, VerificationResult, Violation
from ..schemas import ApplyResponseSchema, ScanResponseSchema, VerifyResponseSchema, format_errors

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60
MAX_RETRIES = 2
MAX_RESPONSE_BYTES = 5_000_000


# =============================================================================
# PROTOCOLS
# =============================================================================


@runtime_checkable
class Scanner(Protocol):
    """Finds violations on a page and re-checks a single element."""

    async def scan(self, url: str) -> list[Violation]: ...

    async def verify(self, selector: str, rule_id: str) -> VerificationResult: ...


@runtime_checkable
class DomExecutor(Protocol):
    """Applies one fix instruction to the live page. Raises InjectorError on failure."""

    async def apply_fix(self, instruction: FixInstruction) -> FixResult: ...


# =============================================================================
# HTTP TRANSPORT
# =============================================================================


class CollaboratorUnavailable(Exception):
    """Transport-level failure talking to a collaborator."""

    def __init__(self, message: str, status_code: int | None = None, timed_out: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.timed_out = timed_out


class _HttpCollaborator:
    """Shared POST/GET plumbing: auth header, retries on timeout, size limit."""

    component = "Collaborator"

    def __init__(self, base_url: str, api_key: str = "", timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._request_count = 0

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def request_count(self) -> int:
        return self._request_count

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _post(self, endpoint: str, payload: dict) -> dict:
        """Send POST request with retries, size limits, and structured error handling."""
        url = f"{self._base_url}/{endpoint.lstrip('/')}"
        last_error: Exception | None = None

        for attempt in range(MAX_RETRIES + 1):
            try:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, json=payload, headers=self._headers())
                    if len(response.content) > MAX_RESPONSE_BYTES:
                        raise CollaboratorUnavailable(
                            f"Response from {url} exceeds {MAX_RESPONSE_BYTES} byte limit"
                        )
                    response.raise_for_status()
                    self._request_count += 1
                    return response.json()
            except httpx.TimeoutException as e:
                last_error = e
                logger.warning(
                    f"[{self.component}] Timeout on {endpoint} "
                    f"(attempt {attempt + 1}/{MAX_RETRIES + 1})"
                )
            except httpx.HTTPStatusError as e:
                logger.error(
                    f"[{self.component}] HTTP {e.response.status_code} "
                    f"from {url}: {e.response.text[:200]}"
                )
                raise CollaboratorUnavailable(
                    f"HTTP {e.response.status_code} from {url}",
                    status_code=e.response.status_code,
                ) from e
            except httpx.RequestError as e:
                logger.error(f"[{self.component}] Connection failed to {url}: {e}")
                raise CollaboratorUnavailable(f"Connection failed to {url}: {e}") from e
            except ValueError as e:
                raise CollaboratorUnavailable(f"Invalid JSON from {url}: {e}") from e

        raise CollaboratorUnavailable(
            f"{self.component} failed on {endpoint} after {MAX_RETRIES + 1} attempts: {last_error}",
            timed_out=True,
        )

    async def health_check(self) -> bool:
        """Check if the collaborator is reachable."""
        try:
            async with httpx.AsyncClient(timeout=10) as client:
                response = await client.get(f"{self._base_url}/health", headers=self._headers())
                return response.status_code == 200
        except httpx.HTTPError as e:
            logger.debug(f"[{self.component}] Health check failed: {e}")
            return False


# =============================================================================
# ADAPTERS
# =============================================================================


class RemoteScanner(_HttpCollaborator):
    """
    Scanner protocol over HTTP.

    Usage:
        scanner = RemoteScanner("http://localhost:4000", api_key="secret")
        violations = await scanner.scan("https://example.com")
        result = await scanner.verify("img.hero", "image-alt")
    """

    component = "RemoteScanner"

    async def scan(self, url: str) -> list[Violation]:
        data = await self._call("scan", {"url": url})
        try:
            parsed = ScanResponseSchema.model_validate(data)
        except PydanticValidationError as e:
            raise ScannerError(
                ScannerErrorCode.SCANNER_UNAVAILABLE,
                "Scanner returned a malformed scan response",
                {"errors": format_errors(e)},
            ) from e

        violations = [
            Violation(
                id=v.id,
                rule_id=v.rule_id,
                selector=v.selector,
                description=v.description,
                impact=v.impact,
                html=v.html,
                help=v.help or "",
            )
            for v in parsed.violations
        ]
        logger.info(f"[RemoteScanner] {len(violations)} violations on {url}")
        return violations

    async def verify(self, selector: str, rule_id: str) -> VerificationResult:
        data = await self._call("verify", {"selector": selector, "ruleId": rule_id})
        try:
            parsed = VerifyResponseSchema.model_validate(data)
        except PydanticValidationError as e:
            raise ScannerError(
                ScannerErrorCode.SCANNER_UNAVAILABLE,
                "Scanner returned a malformed verify response",
                {"errors": format_errors(e)},
            ) from e
        return VerificationResult(
            status=parsed.status, violations=parsed.violations, score=parsed.score
        )

    async def _call(self, endpoint: str, payload: dict) -> Any:
        try:
            return await self._post(endpoint, payload)
        except CollaboratorUnavailable as e:
            if e.timed_out:
                code = ScannerErrorCode.TIMEOUT
            elif e.status_code == 404:
                code = ScannerErrorCode.ELEMENT_NOT_FOUND
            elif e.status_code == 403:
                code = ScannerErrorCode.AUTOMATION_BLOCKED
            else:
                code = ScannerErrorCode.SCANNER_UNAVAILABLE
            raise ScannerError(code, str(e), {"endpoint": endpoint}) from e


class RemoteExecutor(_HttpCollaborator):
    """
    DomExecutor protocol over HTTP.

    Usage:
        executor = RemoteExecutor("http://localhost:4001")
        result = await executor.apply_fix(instruction)   # raises InjectorError
    """

    component = "RemoteExecutor"

    async def apply_fix(self, instruction: FixInstruction) -> FixResult:
        try:
            data = await self._post("apply", {"instruction": instruction.to_dict()})
        except CollaboratorUnavailable as e:
            code = (
                InjectorErrorCode.SELECTOR_NOT_FOUND
                if e.status_code == 404
                else InjectorErrorCode.VALIDATION_FAILED
            )
            raise InjectorError(code, str(e), selector=instruction.selector) from e

        try:
            parsed = ApplyResponseSchema.model_validate(data)
        except PydanticValidationError as e:
            raise InjectorError(
                InjectorErrorCode.VALIDATION_FAILED,
                "Executor returned a malformed apply response",
                selector=instruction.selector,
                details={"errors": format_errors(e)},
            ) from e

        if not parsed.success:
            error = dict(parsed.error or {})
            error.setdefault("selector", parsed.selector or instruction.selector)
            raise InjectorError.from_dict(error)

        return FixResult(
            success=True,
            selector=parsed.selector or instruction.selector,
            before_html=parsed.before_html,
            after_html=parsed.after_html,
        )
