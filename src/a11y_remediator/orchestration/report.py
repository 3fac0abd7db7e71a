"""
ReportGenerator -- the final account of a remediation session.

Built from three sources, none of which needs process memory:
  - the session attribute map (fixed / skipped / pending ids)
  - the audit log ("applied" entries become fixes)
  - violation metadata (rule id, selector) registered by the caller

Applied fixes whose planner would still ask for human review (for
example dragging alternatives) are listed under humanHandoff as well as
under fixes, because the static fix alone does not satisfy the rule.
"""

import logging

from ..audit.audit_logger import AuditLogger
from ..harness.session_state import MAX_RETRY_ATTEMPTS, SessionStateManager
from ..models import (
    AppliedFix,
    AuditResult,
    HumanHandoffItem,
    RemediationReport,
    SkippedViolation,
    Violation,
    utc_now_iso,
)
from .specialist_router import SpecialistRouter

logger = logging.getLogger(__name__)

DEFAULT_SKIP_REASON = "Maximum retry attempts exceeded"
DEFAULT_HANDOFF_ACTION = (
    "Manual review required - automated remediation failed after multiple attempts"
)
UNKNOWN = "unknown"


class ReportGenerator:
    """
    Collects fixes, skips and handoffs for one session.

    Usage:
        generator = ReportGenerator(session_id, url)
        generator.register_violations(violations)
        generator.populate_from_session(manager, audit_logger)
        report = generator.generate()
    """

    def __init__(self, session_id: str, url: str, router: SpecialistRouter | None = None):
        self._session_id = session_id
        self._url = url
        self._router = router or SpecialistRouter()
        self._violations: dict[str, Violation] = {}
        self._fixes: list[AppliedFix] = []
        self._skipped: list[SkippedViolation] = []
        self._human_handoff: list[HumanHandoffItem] = []
        self._pending_count = 0

    def register_violations(self, violations: list[Violation]) -> None:
        for violation in violations:
            self._violations[violation.id] = violation

    def add_fix(self, fix: AppliedFix) -> None:
        self._fixes.append(fix)

    def add_skipped(self, skipped: SkippedViolation) -> None:
        self._skipped.append(skipped)

    def add_human_handoff(self, item: HumanHandoffItem) -> None:
        self._human_handoff.append(item)

    def set_pending_count(self, count: int) -> None:
        self._pending_count = count

    def populate_from_session(
        self,
        manager: SessionStateManager,
        audit_logger: AuditLogger,
        skip_reasons: dict[str, str] | None = None,
    ) -> None:
        """Fill the report from session state and the session's audit trail."""
        skip_reasons = skip_reasons or {}

        for violation_id in manager.fixed_violations:
            entries = audit_logger.get_by_violation_id(self._session_id, violation_id)
            applied = [e for e in entries if e.result == AuditResult.APPLIED]
            if not applied:
                logger.warning(
                    f"[ReportGenerator] Fixed violation {violation_id} has no applied audit entry"
                )
                continue
            entry = applied[-1]
            violation = self._violations.get(violation_id)
            self.add_fix(
                AppliedFix(
                    violation_id=violation_id,
                    rule_id=violation.rule_id if violation else UNKNOWN,
                    selector=entry.instruction.get("selector", UNKNOWN),
                    fix_type=entry.instruction.get("type", UNKNOWN),
                    before_html=entry.before_html,
                    after_html=entry.after_html,
                    reasoning=entry.instruction.get("reasoning", ""),
                )
            )
            if violation:
                self._handoff_if_review_required(violation)

        skipped_ids = manager.skipped_violations
        for violation_id in skipped_ids:
            violation = self._violations.get(violation_id)
            reason = skip_reasons.get(violation_id)
            if not reason and violation_id == skipped_ids[-1]:
                reason = manager.human_handoff_reason
            reason = reason or DEFAULT_SKIP_REASON
            rule_id = violation.rule_id if violation else UNKNOWN
            selector = violation.selector if violation else UNKNOWN

            self.add_skipped(
                SkippedViolation(
                    violation_id=violation_id,
                    rule_id=rule_id,
                    selector=selector,
                    reason=reason,
                    attempts=MAX_RETRY_ATTEMPTS,
                )
            )
            self.add_human_handoff(
                HumanHandoffItem(
                    violation_id=violation_id,
                    rule_id=rule_id,
                    selector=selector,
                    reason=reason,
                    suggested_action=DEFAULT_HANDOFF_ACTION,
                )
            )

        self.set_pending_count(len(manager.pending_violations))

    def calculate_summary(self) -> dict[str, int]:
        return {
            "totalViolations": len(self._fixes) + len(self._skipped) + self._pending_count,
            "fixedCount": len(self._fixes),
            "skippedCount": len(self._skipped),
            "pendingCount": self._pending_count,
        }

    def generate(self) -> RemediationReport:
        report = RemediationReport(
            session_id=self._session_id,
            url=self._url,
            timestamp=utc_now_iso(),
            summary=self.calculate_summary(),
            fixes=list(self._fixes),
            skipped=list(self._skipped),
            human_handoff=list(self._human_handoff),
        )
        logger.info(
            f"[ReportGenerator] Session {self._session_id}: "
            f"{len(report.fixes)} fixed, {len(report.skipped)} skipped, "
            f"{len(report.human_handoff)} for human review"
        )
        return report

    def is_complete(self) -> bool:
        return self._pending_count == 0

    def _handoff_if_review_required(self, violation: Violation) -> None:
        specialist = self._router.route(violation)
        confidence = specialist.calculate_confidence(violation)
        if not confidence.requires_human_review:
            return

        create_handoff = getattr(specialist, "create_human_handoff", None)
        if create_handoff is not None:
            self.add_human_handoff(create_handoff(violation))
            return

        self.add_human_handoff(
            HumanHandoffItem(
                violation_id=violation.id,
                rule_id=violation.rule_id,
                selector=violation.selector,
                reason=f"Low confidence fix ({confidence.value}%): {'; '.join(confidence.factors)}",
                suggested_action="Review the applied fix before publishing",
            )
        )
