"""
Error taxonomy for the remediation engine.

  StateInvalidError      -- attribute map cannot be rehydrated
  InvalidTransitionError -- workflow method called from a disallowed state
  NotFoundError          -- missing snapshot, element, or violation details
  InjectorError          -- typed failure from the DOM executor
  ScannerError           -- typed failure from the scanner
  CollaboratorNotConfiguredError -- action needs a collaborator that is absent

The action handler turns every RemediationError into an error payload via
to_dict(); nothing here is swallowed inside the engine.
"""

from typing import Any


class RemediationError(Exception):
    """Base class for all engine errors."""

    code = "REMEDIATION_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class StateInvalidError(RemediationError, ValueError):
    """Raised when a session attribute map is malformed or inconsistent."""

    code = "STATE_INVALID"


class InvalidTransitionError(RemediationError):
    """Raised when a workflow transition is attempted from the wrong state."""

    code = "INVALID_TRANSITION"

    def __init__(self, current_state: str, attempted_action: str, message: str = ""):
        super().__init__(
            message or f"Cannot {attempted_action} while in state {current_state}",
            {"currentState": current_state, "attemptedAction": attempted_action},
        )
        self.current_state = current_state
        self.attempted_action = attempted_action


class NotFoundError(RemediationError, LookupError):
    """Raised when a snapshot, live element, or violation cannot be found."""

    code = "NOT_FOUND"


class InjectorErrorCode:
    SELECTOR_NOT_FOUND = "SELECTOR_NOT_FOUND"
    CONTENT_CHANGED = "CONTENT_CHANGED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    DESTRUCTIVE_CHANGE = "DESTRUCTIVE_CHANGE"
    STYLE_CONFLICT = "STYLE_CONFLICT"

    ALL = (
        SELECTOR_NOT_FOUND,
        CONTENT_CHANGED,
        VALIDATION_FAILED,
        DESTRUCTIVE_CHANGE,
        STYLE_CONFLICT,
    )


class InjectorError(RemediationError):
    """Typed failure returned by the DOM executor."""

    def __init__(
        self,
        code: str,
        message: str,
        selector: str = "",
        details: dict[str, Any] | None = None,
    ):
        if code not in InjectorErrorCode.ALL:
            raise ValueError(f"Unknown injector error code: {code}")
        super().__init__(message, details)
        self.code = code
        self.selector = selector

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["selector"] = self.selector
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InjectorError":
        code = data.get("code", InjectorErrorCode.VALIDATION_FAILED)
        if code not in InjectorErrorCode.ALL:
            code = InjectorErrorCode.VALIDATION_FAILED
        return cls(
            code=code,
            message=str(data.get("message") or "Executor reported a failure"),
            selector=str(data.get("selector") or ""),
            details=data.get("details") or {},
        )


class ScannerErrorCode:
    ELEMENT_NOT_FOUND = "ELEMENT_NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    AUTOMATION_BLOCKED = "AUTOMATION_BLOCKED"
    SCANNER_UNAVAILABLE = "SCANNER_UNAVAILABLE"


class ScannerError(RemediationError):
    """Typed failure returned by the scanner."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.code = code


class CollaboratorNotConfiguredError(RemediationError):
    """Raised when an action needs a scanner, executor or page that was not configured."""

    code = "NOT_CONFIGURED"
