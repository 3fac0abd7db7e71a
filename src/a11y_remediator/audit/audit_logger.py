"""
AuditLogger -- append-only history of fix attempts.

One entry per terminal outcome of an attempt: "applied" when verification
passed, "rejected" when the safety validator refused the instruction or the
three-strike rule escalated the violation, "rolled_back" when a fix was
reverted. Timestamps are assigned here, never by the caller.

The summary is always computed from the stored entries, so
get_summary(s)["total"] == len(get_by_session_id(s)) and each sub-count
equals the matching get_by_result() length.

With an audit_dir, every entry is also appended to
<audit_dir>/<session_id>.jsonl for an on-disk trail.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any

from ..models import AuditLogEntry, AuditResult, FixInstruction, utc_now_iso
from ..security.validators import ValidationError, validate_in_choices, validate_not_empty

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9_.-]")


class AuditLogger:
    """
    In-memory audit trail, optionally mirrored to JSONL files.

    Usage:
        audit = AuditLogger(audit_dir=Path("audit"))
        audit.log("session-1", "v1", instruction, before, after, AuditResult.APPLIED)
        audit.get_summary("session-1")  # {"total": 1, "applied": 1, ...}
    """

    def __init__(self, audit_dir: Path | None = None):
        self._entries: list[AuditLogEntry] = []
        self._audit_dir = audit_dir

    def log(
        self,
        session_id: str,
        violation_id: str,
        instruction: FixInstruction | dict[str, Any] | None,
        before_html: str,
        after_html: str,
        result: str,
    ) -> AuditLogEntry:
        """Create, store and return an entry.

        Raises:
            ValidationError: On empty ids or an unknown result value.
        """
        validate_not_empty(session_id, "session_id")
        validate_not_empty(violation_id, "violation_id")
        validate_in_choices(result, list(AuditResult.ALL), "result")

        if isinstance(instruction, FixInstruction):
            instruction_data = instruction.to_dict()
        elif isinstance(instruction, dict):
            instruction_data = dict(instruction)
        elif instruction is None:
            instruction_data = {}
        else:
            raise ValidationError("instruction must be a FixInstruction or a dict")

        entry = AuditLogEntry(
            timestamp=utc_now_iso(),
            session_id=session_id,
            violation_id=violation_id,
            instruction=instruction_data,
            before_html=before_html,
            after_html=after_html,
            result=result,
        )
        self._entries.append(entry)
        logger.info(f"[AuditLogger] {session_id}/{violation_id}: {result}")
        self._persist(entry)
        return entry

    # -------------------------------------------------------------------------
    # Queries (pure filters)
    # -------------------------------------------------------------------------

    def get_by_session_id(self, session_id: str) -> list[AuditLogEntry]:
        return [e for e in self._entries if e.session_id == session_id]

    def get_by_violation_id(self, session_id: str, violation_id: str) -> list[AuditLogEntry]:
        return [
            e for e in self._entries
            if e.session_id == session_id and e.violation_id == violation_id
        ]

    def get_by_result(self, session_id: str, result: str) -> list[AuditLogEntry]:
        return [e for e in self._entries if e.session_id == session_id and e.result == result]

    def get_summary(self, session_id: str) -> dict[str, int]:
        entries = self.get_by_session_id(session_id)
        applied = sum(1 for e in entries if e.result == AuditResult.APPLIED)
        rejected = sum(1 for e in entries if e.result == AuditResult.REJECTED)
        rolled_back = sum(1 for e in entries if e.result == AuditResult.ROLLED_BACK)
        return {
            "total": len(entries),
            "applied": applied,
            "rejected": rejected,
            "rolledBack": rolled_back,
        }

    def get_count(self) -> int:
        return len(self._entries)

    def get_session_ids(self) -> list[str]:
        return list(dict.fromkeys(e.session_id for e in self._entries))

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def clear_session(self, session_id: str) -> None:
        self._entries = [e for e in self._entries if e.session_id != session_id]

    def clear_all(self) -> None:
        self._entries.clear()

    def _persist(self, entry: AuditLogEntry) -> None:
        """Append the entry to the session's JSONL file when an audit_dir is set."""
        if self._audit_dir is None:
            return
        path = self._audit_dir / f"{_UNSAFE_FILENAME.sub('_', entry.session_id)}.jsonl"
        try:
            self._audit_dir.mkdir(parents=True, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry.to_dict(), default=str) + "\n")
        except OSError as e:
            logger.warning(f"[AuditLogger] Audit file write failed: {e}")
