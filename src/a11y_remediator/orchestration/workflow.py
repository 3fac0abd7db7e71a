"""
WorkflowOrchestrator -- the stateless remediation state machine.

    IDLE -> SCANNING -> PLANNING -> EXECUTING -> VERIFYING -> PLANNING | COMPLETE

Each external invocation rebuilds an orchestrator from the session
attribute map (from_attributes), performs one or more transitions, and
hands the updated map back (to_attributes). Besides the seven
SessionState keys, two orchestrator keys ride along in the same map:

  workflow_state   one of WorkflowState.ALL
  current_fix      JSON: violation, planned instruction, confidence,
                   execution result, snapshot id and the cycle flags

Every violation goes through the same cycle, and each transition checks
it is allowed from the current state, so a fix can never skip
verification:

    PLAN_COMPLETE -> START_EXECUTION -> EXECUTION_COMPLETE
                  -> START_VERIFICATION -> VERIFICATION_PASS | VERIFICATION_FAIL

Failed verifications count against the three-strike rule; the third
failure skips the violation for human review and processing moves on.

Audit trail written here:
  applied      verification passed
  rejected     safety validation refused the instruction, or three strikes
  rolled_back  rollback_current_fix() restored the snapshot
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..audit.audit_logger import AuditLogger
from ..audit.rollback import PageHandle, RollbackManager
from ..errors import InvalidTransitionError, NotFoundError, StateInvalidError
from ..harness.session_state import MAX_RETRY_ATTEMPTS, SessionStateManager
from ..models import (
    AuditResult,
    ConfidenceScore,
    DOMSnapshot,
    FixInstruction,
    FixResult,
    PageContext,
    RemediationReport,
    Violation,
    sort_by_impact,
    utc_now_iso,
)
from ..schemas import PARAMS_SCHEMAS, CurrentFixSchema, format_errors
from ..security.safety_validator import SafetyValidator, ValidationResult
from .report import ReportGenerator
from .specialist_router import PlannedFix, SpecialistRouter

logger = logging.getLogger(__name__)

WORKFLOW_STATE_KEY = "workflow_state"
CURRENT_FIX_KEY = "current_fix"


# =============================================================================
# STATES + ACTIONS
# =============================================================================


class WorkflowState:
    IDLE = "IDLE"
    SCANNING = "SCANNING"
    PLANNING = "PLANNING"
    EXECUTING = "EXECUTING"
    VERIFYING = "VERIFYING"
    COMPLETE = "COMPLETE"

    ALL = (IDLE, SCANNING, PLANNING, EXECUTING, VERIFYING, COMPLETE)


class WorkflowAction:
    START_SCAN = "START_SCAN"
    SCAN_COMPLETE = "SCAN_COMPLETE"
    START_PLANNING = "START_PLANNING"
    PLAN_COMPLETE = "PLAN_COMPLETE"
    START_EXECUTION = "START_EXECUTION"
    EXECUTION_COMPLETE = "EXECUTION_COMPLETE"
    START_VERIFICATION = "START_VERIFICATION"
    VERIFICATION_PASS = "VERIFICATION_PASS"
    VERIFICATION_FAIL = "VERIFICATION_FAIL"
    ALL_VIOLATIONS_PROCESSED = "ALL_VIOLATIONS_PROCESSED"
    RESET = "RESET"


FIX_VERIFY_CYCLE = (
    WorkflowAction.PLAN_COMPLETE,
    WorkflowAction.START_EXECUTION,
    WorkflowAction.EXECUTION_COMPLETE,
    WorkflowAction.START_VERIFICATION,
)
VERIFICATION_OUTCOMES = (WorkflowAction.VERIFICATION_PASS, WorkflowAction.VERIFICATION_FAIL)


@dataclass
class WorkflowEvent:
    type: str
    timestamp: str
    violation_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class CurrentFix:
    """The fix cycle in progress, persisted as the current_fix attribute."""

    violation: Violation | None = None
    instruction: FixInstruction | None = None
    confidence: ConfidenceScore | None = None
    specialist: str = ""
    execution_started: bool = False
    result: FixResult | None = None
    snapshot_id: str | None = None
    verification_started: bool = False
    rejected: bool = False

    def is_empty(self) -> bool:
        return self.violation is None and self.instruction is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "violation": self.violation.to_dict() if self.violation else None,
            "instruction": self.instruction.to_dict() if self.instruction else None,
            "confidence": self.confidence.to_dict() if self.confidence else None,
            "specialist": self.specialist,
            "executionStarted": self.execution_started,
            "result": self.result.to_dict() if self.result else None,
            "snapshotId": self.snapshot_id,
            "verificationStarted": self.verification_started,
            "rejected": self.rejected,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CurrentFix":
        violation = data.get("violation")
        instruction = data.get("instruction")
        confidence = data.get("confidence")
        result = data.get("result")
        return cls(
            violation=Violation.from_dict(violation) if violation else None,
            instruction=FixInstruction.from_dict(instruction) if instruction else None,
            confidence=ConfidenceScore.from_dict(confidence) if confidence else None,
            specialist=data.get("specialist") or "",
            execution_started=data.get("executionStarted") is True,
            result=FixResult.from_dict(result) if result else None,
            snapshot_id=data.get("snapshotId"),
            verification_started=data.get("verificationStarted") is True,
            rejected=data.get("rejected") is True,
        )


def _parse_current_fix(raw: Any) -> CurrentFix:
    if raw in (None, ""):
        return CurrentFix()
    if not isinstance(raw, str):
        raise StateInvalidError(f"{CURRENT_FIX_KEY} must be a string", {"key": CURRENT_FIX_KEY})
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise StateInvalidError(
            f"{CURRENT_FIX_KEY} is not valid JSON: {e}", {"key": CURRENT_FIX_KEY}
        ) from e
    if not isinstance(data, dict):
        raise StateInvalidError(f"{CURRENT_FIX_KEY} must be a JSON object", {"key": CURRENT_FIX_KEY})
    try:
        parsed = CurrentFixSchema.model_validate(data)
        if parsed.instruction is not None:
            PARAMS_SCHEMAS[parsed.instruction.type].model_validate(parsed.instruction.params)
    except PydanticValidationError as e:
        raise StateInvalidError(
            f"{CURRENT_FIX_KEY} is malformed: {'; '.join(format_errors(e))}",
            {"key": CURRENT_FIX_KEY},
        ) from e
    try:
        return CurrentFix.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise StateInvalidError(
            f"{CURRENT_FIX_KEY} is malformed: {e}", {"key": CURRENT_FIX_KEY}
        ) from e


def _derive_state(manager: SessionStateManager) -> str:
    if manager.pending_violations:
        return WorkflowState.PLANNING
    if manager.fixed_violations or manager.skipped_violations:
        return WorkflowState.COMPLETE
    return WorkflowState.IDLE


# =============================================================================
# ORCHESTRATOR
# =============================================================================


class WorkflowOrchestrator:
    """
    Drives one session through the fix-verify cycle.

    Usage:
        orchestrator = WorkflowOrchestrator.from_attributes(session_id, attrs,
                                                           audit_logger=audit)
        orchestrator.start_planning(violation)
        planned = orchestrator.complete_planning(PageContext(url=url))
        validation = orchestrator.start_execution()
        ...
        return orchestrator.to_attributes()
    """

    def __init__(
        self,
        session_id: str,
        state_manager: SessionStateManager | None = None,
        router: SpecialistRouter | None = None,
        safety_validator: SafetyValidator | None = None,
        rollback_manager: RollbackManager | None = None,
        audit_logger: AuditLogger | None = None,
        workflow_state: str = WorkflowState.IDLE,
        current_fix: CurrentFix | None = None,
    ):
        self._session_id = session_id
        self._manager = state_manager or SessionStateManager()
        self._router = router or SpecialistRouter()
        self._validator = safety_validator or SafetyValidator()
        self._rollback = rollback_manager or RollbackManager()
        self._audit = audit_logger or AuditLogger()
        self._state = workflow_state
        self._fix = current_fix or CurrentFix()
        self._violations: dict[str, Violation] = {}
        self._processing_order: list[str] = []
        self._skip_reasons: dict[str, str] = {}
        self._events: list[WorkflowEvent] = []

        if self._fix.violation:
            self._violations[self._fix.violation.id] = self._fix.violation

    # -------------------------------------------------------------------------
    # Attribute map
    # -------------------------------------------------------------------------

    @classmethod
    def from_attributes(
        cls,
        session_id: str,
        attributes: dict[str, Any] | None,
        **components: Any,
    ) -> "WorkflowOrchestrator":
        """
        Rehydrate from a session attribute map.

        Raises:
            StateInvalidError: If the map is malformed or the workflow
                position contradicts the session state.
        """
        attributes = attributes or {}
        manager = SessionStateManager.from_attributes(attributes)
        current_fix = _parse_current_fix(attributes.get(CURRENT_FIX_KEY))

        raw_state = attributes.get(WORKFLOW_STATE_KEY) or ""
        if raw_state and raw_state not in WorkflowState.ALL:
            raise StateInvalidError(
                f"Unknown {WORKFLOW_STATE_KEY} '{raw_state}'", {"key": WORKFLOW_STATE_KEY}
            )
        state = raw_state or _derive_state(manager)

        current_id = manager.current_violation_id
        if current_fix.violation and current_id and current_fix.violation.id != current_id:
            raise StateInvalidError(
                f"{CURRENT_FIX_KEY} is for '{current_fix.violation.id}' "
                f"but the current violation is '{current_id}'",
                {"key": CURRENT_FIX_KEY},
            )
        if state in (WorkflowState.EXECUTING, WorkflowState.VERIFYING):
            if not current_id or current_fix.violation is None or current_fix.instruction is None:
                raise StateInvalidError(
                    f"{state} requires a current violation with a planned instruction",
                    {"key": WORKFLOW_STATE_KEY},
                )
        if state == WorkflowState.VERIFYING and current_fix.result is None:
            raise StateInvalidError(
                "VERIFYING requires a recorded execution result", {"key": CURRENT_FIX_KEY}
            )
        if state == WorkflowState.COMPLETE and manager.pending_violations:
            raise StateInvalidError(
                "COMPLETE with pending violations", {"key": WORKFLOW_STATE_KEY}
            )

        return cls(
            session_id,
            state_manager=manager,
            workflow_state=state,
            current_fix=current_fix,
            **components,
        )

    def to_attributes(self) -> dict[str, str]:
        attributes = self._manager.to_attributes()
        attributes[WORKFLOW_STATE_KEY] = self._state
        attributes[CURRENT_FIX_KEY] = "" if self._fix.is_empty() else json.dumps(self._fix.to_dict())
        return attributes

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def state(self) -> str:
        return self._state

    @property
    def session(self) -> SessionStateManager:
        return self._manager

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    @property
    def rollback_manager(self) -> RollbackManager:
        return self._rollback

    @property
    def current_fix(self) -> CurrentFix:
        return self._fix

    @property
    def current_violation(self) -> Violation | None:
        return self._fix.violation

    @property
    def current_instruction(self) -> FixInstruction | None:
        return self._fix.instruction

    @property
    def scan_completed(self) -> bool:
        return self._state not in (WorkflowState.IDLE, WorkflowState.SCANNING)

    @property
    def events(self) -> list[WorkflowEvent]:
        return list(self._events)

    def get_violation(self, violation_id: str) -> Violation | None:
        return self._violations.get(violation_id)

    def register_violations(self, violations: list[Violation]) -> None:
        """Make violation details known to this orchestrator (they are not persisted)."""
        for violation in violations:
            self._violations[violation.id] = violation

    def known_violations(self) -> list[Violation]:
        return list(self._violations.values())

    # -------------------------------------------------------------------------
    # Scan
    # -------------------------------------------------------------------------

    def start_scan(self) -> None:
        self._require(WorkflowAction.START_SCAN, WorkflowState.IDLE)
        self._record(WorkflowAction.START_SCAN)
        self._transition(WorkflowState.SCANNING)

    def complete_scan(self, violations: list[Violation], url: str) -> list[Violation]:
        """Seed the pending list in impact order. Returns the ordered violations."""
        self._require(WorkflowAction.SCAN_COMPLETE, WorkflowState.SCANNING)

        ordered = sort_by_impact(violations)
        self.register_violations(ordered)
        self._processing_order = [v.id for v in ordered]
        self._manager.set_current_url(url)
        self._manager.set_pending_violations(self._processing_order)

        self._record(WorkflowAction.SCAN_COMPLETE, data={"url": url, "count": len(ordered)})
        logger.info(
            f"[WorkflowOrchestrator] Scan of {url} complete: {len(ordered)} violations"
        )
        if ordered:
            self._transition(WorkflowState.PLANNING)
        else:
            self._transition(WorkflowState.COMPLETE)
        return ordered

    def require_scan_complete(self) -> None:
        """Raise unless a scan has completed (no page mutation before an audit)."""
        if not self.scan_completed:
            raise InvalidTransitionError(
                self._state,
                WorkflowAction.START_EXECUTION,
                "Cannot execute fixes before a scan has completed",
            )

    # -------------------------------------------------------------------------
    # Plan
    # -------------------------------------------------------------------------

    def start_planning(self, violation: Violation | None = None) -> Violation | None:
        """
        Select the violation to work on: the current one (a retry), else the
        next pending. Re-entering from PLANNING is allowed.

        Returns the selected violation, or None if nothing is left (the
        workflow moves to COMPLETE).

        Raises:
            NotFoundError: If the selected violation's details are unknown.
        """
        self._require(WorkflowAction.START_PLANNING, WorkflowState.PLANNING)
        if violation is not None:
            self.register_violations([violation])

        violation_id = self._manager.current_violation_id or self._manager.get_next_pending_violation()
        if violation_id is None:
            self._record(WorkflowAction.ALL_VIOLATIONS_PROCESSED)
            self._transition(WorkflowState.COMPLETE)
            return None

        selected = self._violations.get(violation_id)
        if selected is None:
            raise NotFoundError(
                f"Details for violation '{violation_id}' are not known; pass the violation",
                {"violationId": violation_id},
            )

        self._manager.set_current_violation(violation_id)
        if self._fix.violation is None or self._fix.violation.id != violation_id:
            self._fix = CurrentFix(violation=selected)
        self._record(WorkflowAction.START_PLANNING, violation_id)
        return selected

    def complete_planning(
        self,
        page_context: PageContext | None = None,
        instruction: FixInstruction | None = None,
    ) -> PlannedFix:
        """
        Plan the current violation's fix and move to EXECUTING.

        A caller-supplied instruction (e.g. a recovered selector) replaces
        the specialist's plan; confidence still comes from the specialist.
        """
        violation = self._fix.violation
        if self._state != WorkflowState.PLANNING or violation is None:
            raise InvalidTransitionError(
                self._state,
                WorkflowAction.PLAN_COMPLETE,
                f"Cannot complete planning from state {self._state} without a current violation",
            )

        context = page_context or PageContext(url=self._manager.current_url)
        planned = self._router.plan_fix(violation, context)
        if instruction is not None:
            if instruction.violation_id != violation.id:
                raise InvalidTransitionError(
                    self._state,
                    WorkflowAction.PLAN_COMPLETE,
                    f"Instruction is for '{instruction.violation_id}', "
                    f"current violation is '{violation.id}'",
                )
            planned = PlannedFix(
                instruction=instruction,
                confidence=planned.confidence,
                specialist=planned.specialist,
            )

        self._fix = CurrentFix(
            violation=violation,
            instruction=planned.instruction,
            confidence=planned.confidence,
            specialist=planned.specialist,
        )
        self._record(
            WorkflowAction.PLAN_COMPLETE,
            violation.id,
            {"specialist": planned.specialist, "fixType": planned.instruction.type},
        )
        self._transition(WorkflowState.EXECUTING)
        return planned

    # -------------------------------------------------------------------------
    # Execute
    # -------------------------------------------------------------------------

    def start_execution(self) -> ValidationResult:
        """
        Safety-validate the planned instruction before it may reach the page.

        A rejected instruction is logged as "rejected"; the caller must then
        call reject_instruction() so the failure counts as an attempt.
        """
        self._require(WorkflowAction.START_EXECUTION, WorkflowState.EXECUTING)
        self.require_scan_complete()
        instruction = self._require_instruction(WorkflowAction.START_EXECUTION)

        validation = self._validator.validate(instruction)
        if self._fix.execution_started:
            return validation

        self._fix.execution_started = True
        self._record(WorkflowAction.START_EXECUTION, instruction.violation_id)

        if not validation.valid:
            self._fix.rejected = True
            self._audit.log(
                self._session_id,
                instruction.violation_id,
                instruction,
                self._violation_html(),
                "",
                AuditResult.REJECTED,
            )
            logger.warning(
                f"[WorkflowOrchestrator] Instruction for {instruction.violation_id} rejected: "
                f"{'; '.join(validation.errors)}"
            )
        return validation

    def reject_instruction(self, validation: ValidationResult) -> None:
        """Run a refused instruction through a failed execution and verification."""
        if not self._fix.rejected:
            raise InvalidTransitionError(
                self._state,
                WorkflowAction.EXECUTION_COMPLETE,
                "Only an instruction refused by safety validation can be rejected",
            )
        instruction = self._require_instruction(WorkflowAction.EXECUTION_COMPLETE)
        error = self._validator.create_validation_error(instruction, validation)
        self.complete_execution(
            FixResult(
                success=False,
                selector=instruction.selector,
                before_html=self._violation_html(),
                error=error.to_dict(),
            )
        )
        self.start_verification()
        self.handle_verification_result(False, error.message)

    def complete_execution(self, result: FixResult) -> str | None:
        """Record the executor's outcome. Returns the snapshot id for a successful fix."""
        self._require(WorkflowAction.EXECUTION_COMPLETE, WorkflowState.EXECUTING)
        instruction = self._require_instruction(WorkflowAction.EXECUTION_COMPLETE)
        if not self._fix.execution_started:
            raise InvalidTransitionError(
                self._state,
                WorkflowAction.EXECUTION_COMPLETE,
                "Execution was never started for the current instruction",
            )
        if self._fix.rejected and result.success:
            raise InvalidTransitionError(
                self._state,
                WorkflowAction.EXECUTION_COMPLETE,
                "A rejected instruction cannot complete successfully",
            )

        self._fix.result = result
        if result.success:
            self._fix.snapshot_id = self._rollback.save_snapshot(
                self._session_id, result.selector or instruction.selector, result.before_html
            )
        else:
            logger.warning(
                f"[WorkflowOrchestrator] Execution failed for {instruction.violation_id}: "
                f"{result.error_message}"
            )

        self._record(
            WorkflowAction.EXECUTION_COMPLETE,
            instruction.violation_id,
            {"success": result.success},
        )
        self._transition(WorkflowState.VERIFYING)
        return self._fix.snapshot_id

    # -------------------------------------------------------------------------
    # Verify
    # -------------------------------------------------------------------------

    def start_verification(self) -> None:
        self._require(WorkflowAction.START_VERIFICATION, WorkflowState.VERIFYING)
        if self._fix.verification_started:
            return
        self._fix.verification_started = True
        self._record(WorkflowAction.START_VERIFICATION, self._current_id())

    def handle_verification_result(self, passed: bool, reason: str | None = None) -> str:
        """
        Close the cycle for the current violation. Returns the new state.

        Pass: fixed and logged "applied". Fail: one more strike; the third
        strike skips the violation (logged "rejected") for human review.
        """
        action = WorkflowAction.VERIFICATION_PASS if passed else WorkflowAction.VERIFICATION_FAIL
        self._require(action, WorkflowState.VERIFYING)
        if not self._fix.verification_started:
            raise InvalidTransitionError(
                self._state, action, "Verification was never started for the current fix"
            )

        violation_id = self._current_id()
        instruction = self._fix.instruction
        result = self._fix.result
        before_html = result.before_html if result else ""
        after_html = result.after_html if result else ""

        if passed:
            self._manager.mark_violation_fixed(violation_id)
            self._audit.log(
                self._session_id, violation_id, instruction, before_html, after_html,
                AuditResult.APPLIED,
            )
            self._record(action, violation_id)
            self._fix = CurrentFix()
        else:
            reason = reason or "Verification failed"
            attempts = self._manager.increment_retry(violation_id, reason)
            if self._manager.has_reached_three_strike_limit(violation_id):
                handoff_reason = (
                    f"Failed after {MAX_RETRY_ATTEMPTS} attempts: {reason}"
                )
                self._manager.skip_violation(violation_id, handoff_reason)
                self._skip_reasons[violation_id] = handoff_reason
                if not self._fix.rejected:
                    self._audit.log(
                        self._session_id, violation_id, instruction, before_html, after_html,
                        AuditResult.REJECTED,
                    )
                self._fix = CurrentFix()
                logger.warning(
                    f"[WorkflowOrchestrator] {violation_id} escalated to human review "
                    f"after {attempts} attempts"
                )
            else:
                self._fix = CurrentFix(violation=self._fix.violation)
                logger.info(
                    f"[WorkflowOrchestrator] {violation_id} failed verification "
                    f"(retry {attempts}/{MAX_RETRY_ATTEMPTS}): {reason}"
                )
            self._record(action, violation_id, {"reason": reason, "attempts": attempts})

        if self._manager.is_complete():
            self._record(WorkflowAction.ALL_VIOLATIONS_PROCESSED)
            self._transition(WorkflowState.COMPLETE)
            logger.info(f"[WorkflowOrchestrator] Session {self._session_id} complete")
        else:
            self._transition(WorkflowState.PLANNING)
        return self._state

    # -------------------------------------------------------------------------
    # Rollback + reset
    # -------------------------------------------------------------------------

    async def rollback_current_fix(self, page: PageHandle) -> DOMSnapshot:
        """
        Restore the current fix's before-snapshot on the live page.

        Allowed while verifying an applied fix; logs "rolled_back". The cycle
        itself still has to be closed with handle_verification_result().

        Raises:
            InvalidTransitionError: Outside VERIFYING.
            NotFoundError: No snapshot for the current fix, or element missing.
        """
        if self._state != WorkflowState.VERIFYING:
            raise InvalidTransitionError(
                self._state, "ROLLBACK", "Rollback is only possible while verifying a fix"
            )
        if not self._fix.snapshot_id:
            raise NotFoundError(
                "No snapshot recorded for the current fix",
                {"violationId": self._current_id()},
            )

        snapshot = await self._rollback.rollback(page, self._fix.snapshot_id)
        after_html = self._fix.result.after_html if self._fix.result else ""
        self._audit.log(
            self._session_id,
            self._current_id(),
            self._fix.instruction,
            after_html,
            snapshot.html,
            AuditResult.ROLLED_BACK,
        )
        self._fix.snapshot_id = None
        return snapshot

    def reset(self) -> None:
        """Back to IDLE with an empty session (the event log is kept)."""
        self._record(WorkflowAction.RESET)
        self._state = WorkflowState.IDLE
        self._manager = SessionStateManager()
        self._fix = CurrentFix()
        self._violations.clear()
        self._processing_order = []
        self._skip_reasons.clear()

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def get_action_sequence(self) -> list[str]:
        return [e.type for e in self._events]

    def validate_fix_verify_cycle(self, violation_id: str | None = None) -> bool:
        """
        True if every PLAN_COMPLETE (for violation_id, when given) is followed
        by START_EXECUTION, EXECUTION_COMPLETE, START_VERIFICATION and a
        verification outcome, in that order and for the same violation.
        """
        cycle_events = [
            e for e in self._events
            if e.type in FIX_VERIFY_CYCLE or e.type in VERIFICATION_OUTCOMES
        ]
        for i, event in enumerate(cycle_events):
            if event.type != WorkflowAction.PLAN_COMPLETE:
                continue
            if violation_id is not None and event.violation_id != violation_id:
                continue
            following = cycle_events[i + 1:i + 5]
            if len(following) < 4:
                return False
            expected = list(FIX_VERIFY_CYCLE[1:])
            if [e.type for e in following[:3]] != expected:
                return False
            if following[3].type not in VERIFICATION_OUTCOMES:
                return False
            if any(e.violation_id != event.violation_id for e in following):
                return False
        return True

    def get_processing_order(self) -> list[str]:
        """Violation ids in the order they are (or were) worked on."""
        return list(self._processing_order) or self._manager.all_violation_ids()

    def is_complete(self) -> bool:
        return self._state == WorkflowState.COMPLETE

    def detect_completion(self) -> bool:
        return self.is_complete() and self._manager.is_complete()

    def get_summary(self) -> dict[str, Any]:
        summary = self._manager.get_summary()
        return {
            "state": self._state,
            "scanCompleted": self.scan_completed,
            "totalViolations": len(self._manager.all_violation_ids()),
            "processedCount": summary["totalProcessed"],
            "fixedCount": summary["fixedCount"],
            "skippedCount": summary["skippedCount"],
            "pendingCount": summary["pendingCount"],
            "currentViolationId": self._manager.current_violation_id,
            "retryAttempts": self._manager.retry_attempts,
        }

    def generate_report(self, violations: list[Violation] | None = None) -> RemediationReport:
        """Session report from state, audit log and known violation details."""
        generator = ReportGenerator(self._session_id, self._manager.current_url, self._router)
        generator.register_violations(list(self._violations.values()))
        if violations:
            generator.register_violations(violations)
        generator.populate_from_session(self._manager, self._audit, self._skip_reasons)
        return generator.generate()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require(self, action: str, *allowed: str) -> None:
        if self._state not in allowed:
            raise InvalidTransitionError(
                self._state,
                action,
                f"Cannot {action} from state {self._state}; must be in {' or '.join(allowed)}",
            )

    def _require_instruction(self, action: str) -> FixInstruction:
        if self._fix.instruction is None:
            raise InvalidTransitionError(self._state, action, "No planned instruction")
        return self._fix.instruction

    def _current_id(self) -> str:
        if self._fix.violation is not None:
            return self._fix.violation.id
        current = self._manager.current_violation_id
        if current is None:
            raise StateInvalidError("No current violation")
        return current

    def _violation_html(self) -> str:
        return self._fix.violation.html if self._fix.violation else ""

    def _record(self, action: str, violation_id: str | None = None, data: dict | None = None) -> None:
        self._events.append(
            WorkflowEvent(type=action, timestamp=utc_now_iso(), violation_id=violation_id, data=data or {})
        )

    def _transition(self, new_state: str) -> None:
        logger.debug(f"[WorkflowOrchestrator] {self._state} -> {new_state}")
        self._state = new_state
