"""
Session State Manager -- workflow progress as a flat string attribute map.

The hosting agent runtime only persists string-valued session attributes
between calls, so the whole remediation session is encoded as:

  current_url           plain string
  pending_violations    JSON list of violation ids, priority order
  current_violation_id  violation id, "" when none
  retry_attempts        decimal integer, scoped to current_violation_id
  human_handoff_reason  latest escalation reason, "" when none
  fixed_violations      JSON list of violation ids
  skipped_violations    JSON list of violation ids

Every call rehydrates a manager with from_attributes(), mutates it, and
hands to_attributes() back to the caller. The retry tracker is a
process-local cache rebuilt from retry_attempts for the current violation,
so nothing here depends on memory surviving between calls.

Invariants enforced on rehydration:
  - the three lists are pairwise disjoint and free of duplicates
  - current_violation_id, when set, is pending
  - retry_attempts is 0 when no violation is current
"""

import copy
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from ..errors import StateInvalidError

logger = logging.getLogger(__name__)

MAX_RETRY_ATTEMPTS = 3

SESSION_ATTRIBUTE_KEYS = (
    "current_url",
    "pending_violations",
    "current_violation_id",
    "retry_attempts",
    "human_handoff_reason",
    "fixed_violations",
    "skipped_violations",
)

_DECIMAL = re.compile(r"^\d+$")


# =============================================================================
# STATE PRIMITIVES
# =============================================================================


@dataclass
class SessionState:
    """Logical view of the persisted attribute map."""

    current_url: str = ""
    pending_violations: list[str] = field(default_factory=list)
    fixed_violations: list[str] = field(default_factory=list)
    skipped_violations: list[str] = field(default_factory=list)
    current_violation_id: str | None = None
    retry_attempts: int = 0
    human_handoff_reason: str | None = None


@dataclass
class RetryRecord:
    """Process-local retry bookkeeping for one violation."""

    attempts: int = 0
    last_failure_reason: str | None = None


def _parse_id_list(attributes: dict[str, Any], key: str) -> list[str]:
    raw = attributes.get(key, "")
    if raw == "":
        return []
    try:
        value = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise StateInvalidError(f"{key} is not a JSON list: {e}", {"key": key})
    if not isinstance(value, list) or not all(isinstance(v, str) and v for v in value):
        raise StateInvalidError(f"{key} must be a JSON list of non-empty strings", {"key": key})
    if len(set(value)) != len(value):
        raise StateInvalidError(f"{key} contains duplicate violation ids", {"key": key})
    return value


def _check_disjoint(state: SessionState) -> None:
    lists = {
        "pending_violations": set(state.pending_violations),
        "fixed_violations": set(state.fixed_violations),
        "skipped_violations": set(state.skipped_violations),
    }
    names = list(lists)
    for i, first in enumerate(names):
        for second in names[i + 1:]:
            overlap = lists[first] & lists[second]
            if overlap:
                raise StateInvalidError(
                    f"{first} and {second} overlap: {sorted(overlap)}",
                    {"overlap": sorted(overlap)},
                )


# =============================================================================
# MANAGER
# =============================================================================


class SessionStateManager:
    """
    Owns one session's SessionState and its retry tracker.

    Usage:
        manager = SessionStateManager.from_attributes(event_attributes)
        manager.set_current_violation("v1")
        manager.increment_retry("v1", "Scanner still reports image-alt")
        return manager.to_attributes()
    """

    def __init__(self, state: SessionState | None = None):
        self._state = state or SessionState()
        self._retry_tracker: dict[str, RetryRecord] = {}
        self._rebuild_retry_tracker()

    # -------------------------------------------------------------------------
    # (De)serialization
    # -------------------------------------------------------------------------

    @classmethod
    def from_attributes(cls, attributes: dict[str, Any] | None) -> "SessionStateManager":
        """
        Rehydrate from a session attribute map.

        Missing keys take their empty defaults; present keys must be strings.

        Raises:
            StateInvalidError: If any value is malformed or the lists overlap.
        """
        if attributes is None:
            attributes = {}
        if not isinstance(attributes, dict):
            raise StateInvalidError("Session attributes must be a mapping")

        for key in SESSION_ATTRIBUTE_KEYS:
            if key in attributes and not isinstance(attributes[key], str):
                raise StateInvalidError(f"{key} must be a string", {"key": key})

        raw_retry = attributes.get("retry_attempts", "") or "0"
        if not _DECIMAL.match(raw_retry):
            raise StateInvalidError(
                f"retry_attempts must be a non-negative decimal integer (got '{raw_retry}')",
                {"key": "retry_attempts"},
            )

        state = SessionState(
            current_url=attributes.get("current_url", ""),
            pending_violations=_parse_id_list(attributes, "pending_violations"),
            fixed_violations=_parse_id_list(attributes, "fixed_violations"),
            skipped_violations=_parse_id_list(attributes, "skipped_violations"),
            current_violation_id=attributes.get("current_violation_id") or None,
            retry_attempts=int(raw_retry),
            human_handoff_reason=attributes.get("human_handoff_reason") or None,
        )
        _check_disjoint(state)

        if state.current_violation_id and state.current_violation_id not in state.pending_violations:
            raise StateInvalidError(
                f"current_violation_id '{state.current_violation_id}' is not pending",
                {"key": "current_violation_id"},
            )
        if state.current_violation_id is None and state.retry_attempts:
            raise StateInvalidError(
                "retry_attempts must be 0 when no violation is current",
                {"key": "retry_attempts"},
            )

        return cls(state)

    def to_attributes(self) -> dict[str, str]:
        """Flat string map for the hosting runtime. Null values become ""."""
        s = self._state
        return {
            "current_url": s.current_url,
            "pending_violations": json.dumps(s.pending_violations),
            "current_violation_id": s.current_violation_id or "",
            "retry_attempts": str(s.retry_attempts),
            "human_handoff_reason": s.human_handoff_reason or "",
            "fixed_violations": json.dumps(s.fixed_violations),
            "skipped_violations": json.dumps(s.skipped_violations),
        }

    def serialize(self) -> str:
        return json.dumps({"sessionAttributes": self.to_attributes()}, sort_keys=True)

    @classmethod
    def deserialize(cls, raw: str) -> "SessionStateManager":
        try:
            payload = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as e:
            raise StateInvalidError(f"Serialized session is not valid JSON: {e}")
        if not isinstance(payload, dict) or not isinstance(payload.get("sessionAttributes"), dict):
            raise StateInvalidError("Serialized session must contain a sessionAttributes object")
        return cls.from_attributes(payload["sessionAttributes"])

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        """A copy of the current state (mutate through the manager only)."""
        return copy.deepcopy(self._state)

    @property
    def current_url(self) -> str:
        return self._state.current_url

    @property
    def pending_violations(self) -> list[str]:
        return list(self._state.pending_violations)

    @property
    def fixed_violations(self) -> list[str]:
        return list(self._state.fixed_violations)

    @property
    def skipped_violations(self) -> list[str]:
        return list(self._state.skipped_violations)

    @property
    def current_violation_id(self) -> str | None:
        return self._state.current_violation_id

    @property
    def retry_attempts(self) -> int:
        return self._state.retry_attempts

    @property
    def human_handoff_reason(self) -> str | None:
        return self._state.human_handoff_reason

    def all_violation_ids(self) -> list[str]:
        s = self._state
        return s.pending_violations + s.fixed_violations + s.skipped_violations

    def get_next_pending_violation(self) -> str | None:
        return self._state.pending_violations[0] if self._state.pending_violations else None

    def is_complete(self) -> bool:
        return not self._state.pending_violations

    def get_summary(self) -> dict[str, int]:
        s = self._state
        return {
            "totalProcessed": len(s.fixed_violations) + len(s.skipped_violations),
            "fixedCount": len(s.fixed_violations),
            "skippedCount": len(s.skipped_violations),
            "pendingCount": len(s.pending_violations),
        }

    # -------------------------------------------------------------------------
    # Mutators
    # -------------------------------------------------------------------------

    def set_current_url(self, url: str) -> None:
        self._state.current_url = url

    def set_pending_violations(self, violation_ids: list[str]) -> None:
        """Replace the pending list (priority order is the caller's job)."""
        if len(set(violation_ids)) != len(violation_ids):
            raise StateInvalidError("pending_violations contains duplicate violation ids")
        done = set(self._state.fixed_violations) | set(self._state.skipped_violations)
        overlap = done & set(violation_ids)
        if overlap:
            raise StateInvalidError(
                f"Violations already fixed or skipped cannot be pending: {sorted(overlap)}",
                {"overlap": sorted(overlap)},
            )
        self._state.pending_violations = list(violation_ids)
        if self._state.current_violation_id not in self._state.pending_violations:
            self.set_current_violation(None)

    def set_current_violation(self, violation_id: str | None) -> None:
        """
        Select the violation being worked on.

        The persisted retry_attempts always mirrors the tracked attempts of the
        current violation, which is 0 for a violation that has not failed yet.
        """
        if violation_id is not None and violation_id not in self._state.pending_violations:
            raise StateInvalidError(
                f"Cannot make '{violation_id}' current: it is not pending",
                {"violationId": violation_id},
            )
        if violation_id == self._state.current_violation_id:
            return
        self._state.current_violation_id = violation_id
        record = self._retry_tracker.get(violation_id) if violation_id else None
        self._state.retry_attempts = record.attempts if record else 0

    def mark_violation_fixed(self, violation_id: str) -> bool:
        """Move a pending violation to fixed. False (no-op) if it is not pending."""
        if not self._move_out_of_pending(violation_id, self._state.fixed_violations):
            return False
        logger.info(f"[SessionState] Violation {violation_id} fixed")
        return True

    def skip_violation(self, violation_id: str, reason: str) -> bool:
        """Move a pending violation to skipped with a handoff reason. False if not pending."""
        if not self._move_out_of_pending(violation_id, self._state.skipped_violations):
            return False
        self._state.human_handoff_reason = reason
        logger.warning(f"[SessionState] Violation {violation_id} skipped: {reason}")
        return True

    def increment_retry(self, violation_id: str, reason: str | None = None) -> int:
        """
        Count one more failed attempt for a violation.

        Counts are tracked per violation id, whether or not it is current. Only
        the current violation's count is persisted (as retry_attempts).
        """
        record = self._retry_tracker.setdefault(violation_id, RetryRecord())
        record.attempts += 1
        if reason:
            record.last_failure_reason = reason
        if violation_id == self._state.current_violation_id:
            self._state.retry_attempts = record.attempts
        else:
            logger.debug(
                f"[SessionState] Retry for non-current violation {violation_id} "
                f"tracked in process only"
            )
        return record.attempts

    def get_retry_attempts_for_violation(self, violation_id: str) -> int:
        record = self._retry_tracker.get(violation_id)
        return record.attempts if record else 0

    def get_last_failure_reason(self, violation_id: str) -> str | None:
        record = self._retry_tracker.get(violation_id)
        return record.last_failure_reason if record else None

    def has_reached_three_strike_limit(self, violation_id: str) -> bool:
        return self.get_retry_attempts_for_violation(violation_id) >= MAX_RETRY_ATTEMPTS

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _move_out_of_pending(self, violation_id: str, destination: list[str]) -> bool:
        if violation_id not in self._state.pending_violations:
            return False
        self._state.pending_violations.remove(violation_id)
        if violation_id not in destination:
            destination.append(violation_id)
        if self._state.current_violation_id == violation_id:
            self._state.current_violation_id = None
            self._state.retry_attempts = 0
        self._retry_tracker.pop(violation_id, None)
        return True

    def _rebuild_retry_tracker(self) -> None:
        self._retry_tracker.clear()
        current = self._state.current_violation_id
        if current:
            self._retry_tracker[current] = RetryRecord(attempts=self._state.retry_attempts)
