"""
ActionHandler -- the per-step invocation contract.

The hosting agent runtime calls one named action at a time with a flat
parameter list and the session attribute map it persisted last time:

    ActionRequest(action="PlanFix", parameters=[...], session_id="s-1",
                  session_attributes={...})

and gets back a JSON-serializable body plus the updated attribute map:

    {"success": true,  "data": {...}}
    {"success": false, "error": {"code": ..., "message": ..., "details": ...}}

Actions:
  StartScan, CompleteScan, PlanFix, ApplyFix, RecordExecution, VerifyFix,
  RecordVerification, RollbackFix, GetSessionState, GetReport, ResetSession

Errors (bad parameters, invalid transitions, unreadable state, scanner
outages during StartScan) leave the inbound attribute map untouched, so
a failed invocation never moves the workflow. Failed executions and
verifications are not errors: they commit the map because they advance
the three-strike counter.

Violation details are not part of the persisted map. They are cached
per session in this process and can always be supplied again through
the "violation" parameter of PlanFix.
"""

import json
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from pydantic import ValidationError as PydanticValidationError

from ..agents.remote import DomExecutor, RemoteExecutor, RemoteScanner, Scanner
from ..audit.audit_logger import AuditLogger
from ..audit.rollback import PageHandle, RollbackManager
from ..config import EngineConfig
from ..errors import (
    CollaboratorNotConfiguredError,
    InjectorError,
    NotFoundError,
    RemediationError,
    ScannerError,
)
from ..harness.session_state import MAX_RETRY_ATTEMPTS
from ..models import FixInstruction, FixResult, PageContext, Violation
from ..recovery.error_recovery import ErrorRecoveryService, PageStructure, RecoveryAction
from ..schemas import PageStructureSchema, ViolationSchema, format_errors
from ..security.safety_validator import SafetyValidator
from ..security.validators import (
    ValidationError,
    parse_bool_param,
    parse_json_param,
    validate_length,
    validate_list_size,
    validate_not_empty,
    validate_url,
)
from .specialist_router import SpecialistRouter
from .workflow import WorkflowOrchestrator, WorkflowState

logger = logging.getLogger(__name__)

MAX_SESSION_ID_LENGTH = 200
MAX_COMPLETED_SESSIONS = 100
UNKNOWN_ACTION = "UNKNOWN_ACTION"
VALIDATION_ERROR = "VALIDATION_ERROR"


# =============================================================================
# REQUEST / RESPONSE
# =============================================================================


@dataclass
class ActionParameter:
    name: str
    value: str
    type: str = "string"


@dataclass
class ActionRequest:
    """One invocation from the agent runtime."""

    action: str
    parameters: list[ActionParameter] = field(default_factory=list)
    session_id: str = ""
    session_attributes: dict[str, str] = field(default_factory=dict)

    def get(self, name: str) -> str | None:
        for param in self.parameters:
            if param.name == name:
                return param.value
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActionRequest":
        """
        Accepts parameters either as [{name, type, value}] or as a
        {name: value} mapping; non-string values are JSON-encoded.
        """
        raw_params = data.get("parameters") or []
        if isinstance(raw_params, dict):
            raw_params = [{"name": k, "value": v} for k, v in raw_params.items()]

        parameters = []
        for raw in raw_params:
            value = raw.get("value")
            if not isinstance(value, str):
                value = json.dumps(value)
            parameters.append(
                ActionParameter(name=str(raw.get("name", "")), value=value, type=raw.get("type", "string"))
            )
        return cls(
            action=str(data.get("action", "")),
            parameters=parameters,
            session_id=str(data.get("sessionId", data.get("session_id", ""))),
            session_attributes=dict(data.get("sessionAttributes") or {}),
        )


@dataclass
class ActionResponse:
    success: bool
    data: dict[str, Any] | None = None
    error: dict[str, Any] | None = None
    session_attributes: dict[str, str] = field(default_factory=dict)

    @property
    def body(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data or {}}
        return {"success": False, "error": self.error or {}}

    def to_dict(self) -> dict[str, Any]:
        return {**self.body, "sessionAttributes": dict(self.session_attributes)}


ActionFn = Callable[[WorkflowOrchestrator, ActionRequest], Awaitable[dict[str, Any]]]


# =============================================================================
# HANDLER
# =============================================================================


class ActionHandler:
    """
    Dispatches actions to a freshly rehydrated WorkflowOrchestrator.

    Usage:
        handler = build_action_handler(EngineConfig.from_env())
        response = await handler.handle(ActionRequest.from_dict(event))
        return response.to_dict()

    The rollback manager and audit logger are shared by every session the
    process serves; all their lookups are keyed by session id.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        scanner: Scanner | None = None,
        executor: DomExecutor | None = None,
        page: PageHandle | None = None,
        router: SpecialistRouter | None = None,
        safety_validator: SafetyValidator | None = None,
        rollback_manager: RollbackManager | None = None,
        audit_logger: AuditLogger | None = None,
        recovery: ErrorRecoveryService | None = None,
    ):
        self._config = config or EngineConfig()
        self._scanner = scanner
        self._executor = executor
        self._page = page
        self._router = router or SpecialistRouter()
        self._validator = safety_validator or SafetyValidator()
        self._rollback = rollback_manager or RollbackManager()
        self._audit = audit_logger or AuditLogger(self._config.audit_dir)
        self._recovery = recovery or ErrorRecoveryService()
        self._violation_cache: dict[str, dict[str, Violation]] = {}
        # Finished sessions keep violation details for reports; snapshots are released.
        self._completed_violations: OrderedDict[str, dict[str, Violation]] = OrderedDict()
        self._actions: dict[str, ActionFn] = {
            "StartScan": self._start_scan,
            "CompleteScan": self._complete_scan,
            "PlanFix": self._plan_fix,
            "ApplyFix": self._apply_fix,
            "RecordExecution": self._record_execution,
            "VerifyFix": self._verify_fix,
            "RecordVerification": self._record_verification,
            "RollbackFix": self._rollback_fix,
            "GetSessionState": self._get_session_state,
            "GetReport": self._get_report,
            "ResetSession": self._reset_session,
        }

    @property
    def actions(self) -> list[str]:
        return list(self._actions)

    @property
    def active_session_ids(self) -> list[str]:
        """Sessions whose violation details are held while the workflow is in progress."""
        return list(self._violation_cache)

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    @property
    def rollback_manager(self) -> RollbackManager:
        return self._rollback

    @property
    def has_scanner(self) -> bool:
        return self._scanner is not None

    @property
    def has_executor(self) -> bool:
        return self._executor is not None

    async def collaborator_health(self) -> dict[str, bool]:
        """Reachability of each configured collaborator that exposes health_check()."""
        checks: dict[str, bool] = {}
        for name, collaborator in (("scanner", self._scanner), ("executor", self._executor)):
            health_check = getattr(collaborator, "health_check", None)
            if health_check is not None:
                checks[name] = await health_check()
        return checks

    async def handle(self, request: ActionRequest) -> ActionResponse:
        inbound = dict(request.session_attributes)
        action = self._actions.get(request.action)
        if action is None:
            return ActionResponse(
                success=False,
                error={
                    "code": UNKNOWN_ACTION,
                    "message": f"Unknown action '{request.action}'",
                    "details": {"availableActions": self.actions},
                },
                session_attributes=inbound,
            )

        try:
            validate_not_empty(request.session_id, "sessionId")
            validate_length(request.session_id, "sessionId", max_length=MAX_SESSION_ID_LENGTH)
            orchestrator = WorkflowOrchestrator.from_attributes(
                request.session_id,
                inbound,
                router=self._router,
                safety_validator=self._validator,
                rollback_manager=self._rollback,
                audit_logger=self._audit,
            )
            orchestrator.register_violations(self._cached_violations(request.session_id))
            data = await action(orchestrator, request)
        except RemediationError as e:
            logger.warning(f"[ActionHandler] {request.action} failed: {e.code}: {e.message}")
            return ActionResponse(success=False, error=e.to_dict(), session_attributes=inbound)
        except ValidationError as e:
            logger.warning(f"[ActionHandler] {request.action} rejected input: {e}")
            return ActionResponse(
                success=False,
                error={"code": VALIDATION_ERROR, "message": str(e), "details": {}},
                session_attributes=inbound,
            )

        if request.action != "ResetSession":
            self._update_cache(orchestrator)

        logger.debug(
            f"[ActionHandler] {request.action} for {request.session_id} -> {orchestrator.state}"
        )
        return ActionResponse(
            success=True, data=data, session_attributes=orchestrator.to_attributes()
        )

    # -------------------------------------------------------------------------
    # Scan
    # -------------------------------------------------------------------------

    async def _start_scan(self, orchestrator: WorkflowOrchestrator, request: ActionRequest) -> dict:
        url = self._validated_url(request)
        if self._scanner is None:
            raise CollaboratorNotConfiguredError("No scanner configured; use CompleteScan")

        orchestrator.start_scan()
        violations = await self._scanner.scan(url)
        ordered = orchestrator.complete_scan(violations, url)
        return self._scan_data(orchestrator, url, ordered)

    async def _complete_scan(self, orchestrator: WorkflowOrchestrator, request: ActionRequest) -> dict:
        url = self._validated_url(request)
        violations = self._parse_violations(self._required(request, "violations"))
        if orchestrator.state == WorkflowState.IDLE:
            orchestrator.start_scan()
        ordered = orchestrator.complete_scan(violations, url)
        return self._scan_data(orchestrator, url, ordered)

    # -------------------------------------------------------------------------
    # Plan
    # -------------------------------------------------------------------------

    async def _plan_fix(self, orchestrator: WorkflowOrchestrator, request: ActionRequest) -> dict:
        violation = None
        raw_violation = request.get("violation")
        if raw_violation:
            violation = self._parse_violation(parse_json_param(raw_violation, "violation"))

        context = None
        raw_context = request.get("pageContext")
        if raw_context:
            context = PageContext.from_dict(parse_json_param(raw_context, "pageContext"))

        instruction = None
        raw_instruction = request.get("instruction")
        if raw_instruction:
            instruction = self._parse_instruction(parse_json_param(raw_instruction, "instruction"))

        selected = orchestrator.start_planning(violation)
        if selected is None:
            return {"complete": True, "state": orchestrator.state}

        planned = orchestrator.complete_planning(context, instruction)
        return {
            "complete": False,
            "violationId": selected.id,
            "specialist": planned.specialist,
            "instruction": planned.instruction.to_dict(),
            "confidence": planned.confidence.to_dict(),
            "requiresHumanReview": planned.confidence.requires_human_review,
            "retryAttempts": orchestrator.session.retry_attempts,
            "state": orchestrator.state,
        }

    # -------------------------------------------------------------------------
    # Execute
    # -------------------------------------------------------------------------

    async def _apply_fix(self, orchestrator: WorkflowOrchestrator, request: ActionRequest) -> dict:
        structure = self._parse_page_structure(request.get("pageStructure"))
        validation = orchestrator.start_execution()
        instruction = orchestrator.current_instruction
        violation_id = instruction.violation_id

        if not validation.valid:
            orchestrator.reject_instruction(validation)
            return self._outcome(
                orchestrator, violation_id, applied=False, rejected=True, errors=validation.errors
            )

        if self._executor is None:
            return {
                "applied": False,
                "awaitingExecution": True,
                "violationId": violation_id,
                "instruction": instruction.to_dict(),
                "warnings": validation.warnings,
                "state": orchestrator.state,
            }

        try:
            result = await self._executor.apply_fix(instruction)
        except InjectorError as e:
            recovery = self._recovery.recover_from_injector_error(e, instruction, structure)
            self._fail_execution(orchestrator, instruction, e.to_dict(), e.message)
            return self._outcome(
                orchestrator, violation_id, applied=False, error=e.to_dict(),
                recovery=recovery.to_dict(),
            )

        snapshot_id = orchestrator.complete_execution(result)
        return {
            "applied": True,
            "violationId": violation_id,
            "result": result.to_dict(),
            "snapshotId": snapshot_id,
            "warnings": validation.warnings,
            "state": orchestrator.state,
        }

    async def _record_execution(
        self, orchestrator: WorkflowOrchestrator, request: ActionRequest
    ) -> dict:
        success = parse_bool_param(self._required(request, "success"), "success")
        if not orchestrator.current_fix.execution_started:
            validation = orchestrator.start_execution()
            if not validation.valid:
                violation_id = orchestrator.current_instruction.violation_id
                orchestrator.reject_instruction(validation)
                return self._outcome(
                    orchestrator, violation_id, applied=False, rejected=True,
                    errors=validation.errors,
                )

        instruction = orchestrator.current_instruction
        error = None
        raw_error = request.get("error")
        if raw_error:
            error = parse_json_param(raw_error, "error")

        if not success:
            message = str((error or {}).get("message") or "Executor reported a failure")
            self._fail_execution(orchestrator, instruction, error or {"message": message}, message)
            return self._outcome(orchestrator, instruction.violation_id, applied=False, error=error)

        result = FixResult(
            success=True,
            selector=request.get("selector") or instruction.selector,
            before_html=request.get("beforeHtml") or "",
            after_html=request.get("afterHtml") or "",
        )
        snapshot_id = orchestrator.complete_execution(result)
        return {
            "applied": True,
            "violationId": instruction.violation_id,
            "snapshotId": snapshot_id,
            "state": orchestrator.state,
        }

    # -------------------------------------------------------------------------
    # Verify
    # -------------------------------------------------------------------------

    async def _verify_fix(self, orchestrator: WorkflowOrchestrator, request: ActionRequest) -> dict:
        if self._scanner is None:
            raise CollaboratorNotConfiguredError("No scanner configured; use RecordVerification")

        orchestrator.start_verification()
        fix = orchestrator.current_fix
        violation = fix.violation
        instruction = fix.instruction
        selector = (fix.result.selector if fix.result else "") or instruction.selector

        try:
            verification = await self._scanner.verify(selector, violation.rule_id)
            passed = verification.passed
            reason = None if passed else _failure_reason(verification.violations, violation.rule_id)
        except ScannerError as e:
            passed = False
            reason = f"{e.code}: {e.message}"

        if passed:
            orchestrator.handle_verification_result(True)
            return self._outcome(orchestrator, violation.id, passed=True)

        recovery = self._recovery.recover_from_verification_failure(reason, instruction)
        rolled_back = False
        if recovery.action == RecoveryAction.ROLLBACK and self._page is not None and fix.snapshot_id:
            try:
                await orchestrator.rollback_current_fix(self._page)
                rolled_back = True
            except NotFoundError as e:
                logger.warning(f"[ActionHandler] Automatic rollback failed: {e.message}")

        orchestrator.handle_verification_result(False, reason)
        return self._outcome(
            orchestrator, violation.id, passed=False, reason=reason,
            recovery=recovery.to_dict(), rolledBack=rolled_back,
        )

    async def _record_verification(
        self, orchestrator: WorkflowOrchestrator, request: ActionRequest
    ) -> dict:
        passed = parse_bool_param(self._required(request, "passed"), "passed")
        reason = request.get("reason") or None
        orchestrator.start_verification()
        violation_id = orchestrator.current_fix.violation.id
        orchestrator.handle_verification_result(passed, reason)
        return self._outcome(orchestrator, violation_id, passed=passed, reason=reason)

    async def _rollback_fix(self, orchestrator: WorkflowOrchestrator, request: ActionRequest) -> dict:
        if self._page is None:
            raise CollaboratorNotConfiguredError("No page handle configured for rollback")
        snapshot = await orchestrator.rollback_current_fix(self._page)
        return {
            "snapshotId": snapshot.id,
            "selector": snapshot.selector,
            "restoredHtml": snapshot.html,
            "state": orchestrator.state,
        }

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    async def _get_session_state(
        self, orchestrator: WorkflowOrchestrator, request: ActionRequest
    ) -> dict:
        fix = orchestrator.current_fix
        return {
            "summary": orchestrator.get_summary(),
            "currentFix": None if fix.is_empty() else fix.to_dict(),
            "auditSummary": self._audit.get_summary(orchestrator.session_id),
            "pendingViolations": orchestrator.session.pending_violations,
            "fixedViolations": orchestrator.session.fixed_violations,
            "skippedViolations": orchestrator.session.skipped_violations,
            "humanHandoffReason": orchestrator.session.human_handoff_reason,
        }

    async def _get_report(self, orchestrator: WorkflowOrchestrator, request: ActionRequest) -> dict:
        violations = None
        raw = request.get("violations")
        if raw:
            violations = self._parse_violations(raw)
        return orchestrator.generate_report(violations).to_dict()

    async def _reset_session(self, orchestrator: WorkflowOrchestrator, request: ActionRequest) -> dict:
        orchestrator.reset()
        self._rollback.clear_session(orchestrator.session_id)
        self._violation_cache.pop(orchestrator.session_id, None)
        self._completed_violations.pop(orchestrator.session_id, None)
        return {"state": orchestrator.state}

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _cached_violations(self, session_id: str) -> list[Violation]:
        cached = self._violation_cache.get(session_id)
        if cached is None:
            cached = self._completed_violations.get(session_id, {})
        return list(cached.values())

    def _update_cache(self, orchestrator: WorkflowOrchestrator) -> None:
        session_id = orchestrator.session_id
        known = {v.id: v for v in orchestrator.known_violations()}
        if orchestrator.state != WorkflowState.COMPLETE:
            self._completed_violations.pop(session_id, None)
            self._violation_cache.setdefault(session_id, {}).update(known)
            return

        if session_id in self._violation_cache or session_id not in self._completed_violations:
            retired = self._violation_cache.pop(session_id, {})
            retired.update(known)
            self._completed_violations[session_id] = retired
            self._rollback.clear_session(session_id)
            logger.info(f"[ActionHandler] Session {session_id} complete; released its snapshots")
        self._completed_violations.move_to_end(session_id)
        while len(self._completed_violations) > MAX_COMPLETED_SESSIONS:
            evicted, _ = self._completed_violations.popitem(last=False)
            logger.debug(f"[ActionHandler] Dropped cached violations for {evicted}")

    def _fail_execution(
        self,
        orchestrator: WorkflowOrchestrator,
        instruction: FixInstruction,
        error: dict[str, Any],
        reason: str,
    ) -> None:
        """A failed execution is a failed attempt: close the cycle straight away."""
        violation = orchestrator.current_violation
        orchestrator.complete_execution(
            FixResult(
                success=False,
                selector=instruction.selector,
                before_html=violation.html if violation else "",
                error=error,
            )
        )
        orchestrator.start_verification()
        orchestrator.handle_verification_result(False, reason)

    def _outcome(self, orchestrator: WorkflowOrchestrator, violation_id: str, **data: Any) -> dict:
        session = orchestrator.session
        return {
            "violationId": violation_id,
            **data,
            "fixed": violation_id in session.fixed_violations,
            "skipped": violation_id in session.skipped_violations,
            "retryAttempts": (
                MAX_RETRY_ATTEMPTS
                if violation_id in session.skipped_violations
                else session.get_retry_attempts_for_violation(violation_id)
            ),
            "humanHandoffReason": session.human_handoff_reason,
            "state": orchestrator.state,
        }

    def _scan_data(self, orchestrator: WorkflowOrchestrator, url: str, ordered: list[Violation]) -> dict:
        return {
            "url": url,
            "violationCount": len(ordered),
            "violations": [v.to_dict() for v in ordered],
            "pendingViolations": orchestrator.session.pending_violations,
            "state": orchestrator.state,
        }

    def _validated_url(self, request: ActionRequest) -> str:
        return validate_url(
            self._required(request, "url"), allow_private=self._config.allow_private_urls
        )

    def _required(self, request: ActionRequest, name: str) -> str:
        value = request.get(name)
        if value is None or value == "":
            raise ValidationError(f"Missing required parameter '{name}'")
        return value

    def _parse_violation(self, data: Any) -> Violation:
        if not isinstance(data, dict):
            raise ValidationError("violation must be a JSON object")
        try:
            parsed = ViolationSchema.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid violation: {'; '.join(format_errors(e))}") from e
        return Violation(
            id=parsed.id,
            rule_id=parsed.rule_id,
            selector=parsed.selector,
            description=parsed.description,
            impact=parsed.impact,
            html=parsed.html,
            help=parsed.help or "",
        )

    def _parse_page_structure(self, raw: str | None) -> PageStructure | None:
        if not raw:
            return None
        data = parse_json_param(raw, "pageStructure")
        try:
            PageStructureSchema.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid pageStructure: {'; '.join(format_errors(e))}") from e
        return PageStructure.from_dict(data)

    def _parse_violations(self, raw: str) -> list[Violation]:
        items = validate_list_size(parse_json_param(raw, "violations", expected_type=list), "violations")
        violations = [self._parse_violation(item) for item in items]
        ids = [v.id for v in violations]
        if len(set(ids)) != len(ids):
            raise ValidationError("violations contains duplicate ids")
        return violations

    def _parse_instruction(self, data: dict[str, Any]) -> FixInstruction:
        result = self._validator.validate_schema(data)
        if not result.valid:
            raise ValidationError(f"Invalid instruction: {'; '.join(result.errors)}")
        return FixInstruction.from_dict(data)


def _failure_reason(violations: list[dict[str, Any]], rule_id: str) -> str:
    for item in violations:
        for key in ("failureSummary", "message", "description", "help"):
            value = item.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return f"Violation {rule_id} still present after fix"


def build_action_handler(config: EngineConfig, page: PageHandle | None = None) -> ActionHandler:
    """ActionHandler wired to the remote collaborators named in config."""
    scanner = None
    executor = None
    if config.scanner_url:
        scanner = RemoteScanner(
            config.scanner_url, config.collaborator_api_key, config.collaborator_timeout
        )
    if config.executor_url:
        executor = RemoteExecutor(
            config.executor_url, config.collaborator_api_key, config.collaborator_timeout
        )
    return ActionHandler(config=config, scanner=scanner, executor=executor, page=page)
