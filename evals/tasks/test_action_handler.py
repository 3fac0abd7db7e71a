"""
Action handler evals -- one stateless invocation per step, driven end to end.

Each call hands the previous response's sessionAttributes back in, exactly
as the hosting agent runtime does.
"""

import json

import pytest

from a11y_remediator.errors import InjectorError, InjectorErrorCode
from a11y_remediator.models import AuditResult, FixResult, VerificationResult
from a11y_remediator.orchestration.action_handler import (
    UNKNOWN_ACTION,
    VALIDATION_ERROR,
    ActionHandler,
    ActionRequest,
)
from a11y_remediator.orchestration.workflow import WorkflowState

SESSION = "session-actions"
URL = "https://example.com"


async def invoke(handler, action, attrs=None, session_id=SESSION, **params):
    request = ActionRequest.from_dict(
        {
            "action": action,
            "sessionId": session_id,
            "parameters": params,
            "sessionAttributes": attrs or {},
        }
    )
    return await handler.handle(request)


async def _run_to_completion(handler, session_id=SESSION):
    """Scan, then fix and verify every violation; returns the final attribute map."""
    response = await invoke(handler, "StartScan", session_id=session_id, url=URL)
    while response.session_attributes["workflow_state"] != WorkflowState.COMPLETE:
        attrs = response.session_attributes
        plan = await invoke(handler, "PlanFix", attrs, session_id=session_id)
        apply = await invoke(handler, "ApplyFix", plan.session_attributes, session_id=session_id)
        response = await invoke(handler, "VerifyFix", apply.session_attributes, session_id=session_id)
    return response.session_attributes


@pytest.fixture
def handler(mock_scanner, mock_executor, audit_logger, rollback_manager):
    return ActionHandler(
        scanner=mock_scanner,
        executor=mock_executor,
        audit_logger=audit_logger,
        rollback_manager=rollback_manager,
    )


@pytest.fixture
def manual_handler(audit_logger, rollback_manager):
    """No collaborators: the runtime reports execution and verification itself."""
    return ActionHandler(audit_logger=audit_logger, rollback_manager=rollback_manager)


@pytest.fixture
def wire_violations(sample_violations):
    return [v.to_dict() for v in sample_violations]


class TestRequestParsing:
    def test_parameter_list_and_mapping(self):
        listed = ActionRequest.from_dict(
            {"action": "StartScan", "parameters": [{"name": "url", "type": "string", "value": URL}]}
        )
        mapped = ActionRequest.from_dict({"action": "StartScan", "parameters": {"url": URL}})
        assert listed.get("url") == mapped.get("url") == URL
        assert listed.get("missing") is None

    def test_non_string_values_are_json_encoded(self):
        request = ActionRequest.from_dict({"action": "X", "parameters": {"passed": False, "n": [1]}})
        assert request.get("passed") == "false"
        assert request.get("n") == "[1]"


class TestFullSession:
    """Scan, fix and verify every violation, then report."""

    @pytest.mark.asyncio
    async def test_happy_path(self, handler, mock_executor, audit_logger):
        response = await invoke(handler, "StartScan", url=URL)
        assert response.success
        assert [v["id"] for v in response.data["violations"]] == ["v1", "v2"]
        attrs = response.session_attributes

        for expected_id in ("v1", "v2"):
            plan = await invoke(handler, "PlanFix", attrs)
            assert plan.data["violationId"] == expected_id
            assert plan.data["state"] == WorkflowState.EXECUTING

            apply = await invoke(handler, "ApplyFix", plan.session_attributes)
            assert apply.data["applied"] is True
            assert apply.data["snapshotId"]

            verify = await invoke(handler, "VerifyFix", apply.session_attributes)
            assert verify.data["fixed"] is True
            attrs = verify.session_attributes

        assert verify.data["state"] == WorkflowState.COMPLETE
        assert attrs["workflow_state"] == WorkflowState.COMPLETE

        report = await invoke(handler, "GetReport", attrs)
        assert report.data["summary"]["fixedCount"] == 2
        assert [f["violationId"] for f in report.data["fixes"]] == ["v1", "v2"]
        assert mock_executor.apply_fix.await_count == 2
        assert audit_logger.get_summary(SESSION)["applied"] == 2

    @pytest.mark.asyncio
    async def test_response_dict_carries_attributes(self, handler):
        response = await invoke(handler, "StartScan", url=URL)
        body = response.to_dict()
        assert body["success"] is True
        assert json.loads(body["sessionAttributes"]["pending_violations"]) == ["v1", "v2"]


class TestManualCollaboration:
    """Without an executor or scanner the runtime records outcomes itself."""

    @pytest.mark.asyncio
    async def test_three_failed_verifications_skip(self, manual_handler, wire_violations):
        response = await invoke(manual_handler, "CompleteScan", url=URL, violations=wire_violations)
        attrs = response.session_attributes

        for attempt in range(1, 4):
            plan = await invoke(manual_handler, "PlanFix", attrs)
            assert plan.data["violationId"] == "v1"
            assert plan.data["retryAttempts"] == attempt - 1

            apply = await invoke(manual_handler, "ApplyFix", plan.session_attributes)
            assert apply.data["awaitingExecution"] is True

            recorded = await invoke(
                manual_handler, "RecordExecution", apply.session_attributes,
                success=True, beforeHtml="<img>", afterHtml='<img alt="x">',
            )
            assert recorded.data["state"] == WorkflowState.VERIFYING

            verified = await invoke(
                manual_handler, "RecordVerification", recorded.session_attributes,
                passed=False, reason="alt text too vague",
            )
            attrs = verified.session_attributes

        assert verified.data["skipped"] is True
        assert verified.data["retryAttempts"] == 3
        assert verified.data["humanHandoffReason"] == "Failed after 3 attempts: alt text too vague"
        assert json.loads(attrs["skipped_violations"]) == ["v1"]

        plan = await invoke(manual_handler, "PlanFix", attrs)
        assert plan.data["violationId"] == "v2"

    @pytest.mark.asyncio
    async def test_failed_execution_counts_as_attempt(self, manual_handler, wire_violations):
        scan = await invoke(manual_handler, "CompleteScan", url=URL, violations=wire_violations)
        plan = await invoke(manual_handler, "PlanFix", scan.session_attributes)
        failed = await invoke(
            manual_handler, "RecordExecution", plan.session_attributes,
            success=False, error={"code": "SELECTOR_NOT_FOUND", "message": "gone"},
        )
        assert failed.success
        assert failed.data["applied"] is False
        assert failed.data["retryAttempts"] == 1
        assert failed.data["state"] == WorkflowState.PLANNING

    @pytest.mark.asyncio
    async def test_verify_fix_needs_scanner(self, manual_handler, wire_violations):
        scan = await invoke(manual_handler, "CompleteScan", url=URL, violations=wire_violations)
        response = await invoke(manual_handler, "VerifyFix", scan.session_attributes)
        assert response.error["code"] == "NOT_CONFIGURED"


class TestSafetyRejection:
    @pytest.mark.asyncio
    async def test_destructive_instruction_never_executes(
        self, handler, mock_executor, audit_logger, violation_factory
    ):
        link = violation_factory(
            "v9", "link-name", "critical", selector="a.nav", html='<a class="nav" href="/">Home</a>'
        )
        scan = await invoke(handler, "CompleteScan", url=URL, violations=[link.to_dict()])
        destructive = {
            "type": "attribute",
            "selector": "a.nav",
            "violationId": "v9",
            "reasoning": "Remove link",
            "params": {"selector": "a.nav", "attribute": "href", "value": "", "reasoning": "Remove link"},
        }
        plan = await invoke(handler, "PlanFix", scan.session_attributes, instruction=destructive)
        apply = await invoke(handler, "ApplyFix", plan.session_attributes)

        assert apply.success
        assert apply.data["rejected"] is True
        assert apply.data["applied"] is False
        assert apply.data["retryAttempts"] == 1
        mock_executor.apply_fix.assert_not_awaited()
        assert len(audit_logger.get_by_result(SESSION, AuditResult.REJECTED)) == 1


class TestExecutorRecovery:
    @pytest.mark.asyncio
    async def test_selector_not_found_suggests_correction(self, handler, mock_executor):
        mock_executor.apply_fix.side_effect = [
            InjectorError(InjectorErrorCode.SELECTOR_NOT_FOUND, "No element", "img.hero"),
            FixResult(success=True, selector="img.hero-image", before_html="<img>", after_html="<img alt>"),
        ]
        scan = await invoke(handler, "StartScan", url=URL)
        plan = await invoke(handler, "PlanFix", scan.session_attributes)
        failed = await invoke(
            handler, "ApplyFix", plan.session_attributes,
            pageStructure={"interactiveElements": [{"selector": "img.hero-image", "tagName": "img"}]},
        )

        assert failed.data["error"]["code"] == InjectorErrorCode.SELECTOR_NOT_FOUND
        assert failed.data["recovery"]["action"] == "selector_corrected"
        assert failed.data["retryAttempts"] == 1
        corrected = failed.data["recovery"]["correctedInstruction"]
        assert corrected["selector"] == "img.hero-image"

        replan = await invoke(handler, "PlanFix", failed.session_attributes, instruction=corrected)
        assert replan.data["instruction"]["selector"] == "img.hero-image"
        applied = await invoke(handler, "ApplyFix", replan.session_attributes)
        assert applied.data["applied"] is True

    @pytest.mark.parametrize("structure", [[1, 2], {"landmarks": 5}, "{oops"])
    @pytest.mark.asyncio
    async def test_bad_page_structure_rejected_before_execution(
        self, handler, mock_executor, audit_logger, structure
    ):
        mock_executor.apply_fix.side_effect = InjectorError(
            InjectorErrorCode.SELECTOR_NOT_FOUND, "No element", "img.hero"
        )
        scan = await invoke(handler, "StartScan", url=URL)
        plan = await invoke(handler, "PlanFix", scan.session_attributes)
        logged = len(audit_logger.get_by_session_id(SESSION))

        response = await invoke(handler, "ApplyFix", plan.session_attributes, pageStructure=structure)

        assert response.error["code"] == VALIDATION_ERROR
        assert "pageStructure" in response.error["message"]
        assert response.session_attributes == plan.session_attributes
        assert json.loads(response.session_attributes["current_fix"])["executionStarted"] is False
        mock_executor.apply_fix.assert_not_awaited()
        assert len(audit_logger.get_by_session_id(SESSION)) == logged


class TestVerificationFailure:
    @pytest.mark.asyncio
    async def test_new_violation_rolls_back(
        self, mock_scanner, mock_executor, audit_logger, rollback_manager, page_factory
    ):
        FakePage, FakeElement = page_factory
        element = FakeElement("<after>")
        handler = ActionHandler(
            scanner=mock_scanner,
            executor=mock_executor,
            page=FakePage({"img.hero": element}),
            audit_logger=audit_logger,
            rollback_manager=rollback_manager,
        )
        mock_scanner.verify.return_value = VerificationResult(
            status="fail", violations=[{"failureSummary": "Fix introduced a new violation"}]
        )

        scan = await invoke(handler, "StartScan", url=URL)
        plan = await invoke(handler, "PlanFix", scan.session_attributes)
        apply = await invoke(handler, "ApplyFix", plan.session_attributes)
        verify = await invoke(handler, "VerifyFix", apply.session_attributes)

        assert verify.data["passed"] is False
        assert verify.data["reason"] == "Fix introduced a new violation"
        assert verify.data["recovery"]["action"] == "rollback"
        assert verify.data["rolledBack"] is True
        assert element.html == "<before>"
        assert verify.data["retryAttempts"] == 1
        assert len(audit_logger.get_by_result(SESSION, AuditResult.ROLLED_BACK)) == 1

    @pytest.mark.asyncio
    async def test_rollback_action_requires_page(self, handler):
        scan = await invoke(handler, "StartScan", url=URL)
        plan = await invoke(handler, "PlanFix", scan.session_attributes)
        apply = await invoke(handler, "ApplyFix", plan.session_attributes)
        response = await invoke(handler, "RollbackFix", apply.session_attributes)
        assert response.error["code"] == "NOT_CONFIGURED"
        assert response.session_attributes == apply.session_attributes


class TestErrors:
    """Failed invocations leave the attribute map exactly as it came in."""

    @pytest.mark.asyncio
    async def test_unknown_action(self, handler):
        attrs = {"current_url": URL}
        response = await invoke(handler, "DeleteEverything", attrs)
        assert response.error["code"] == UNKNOWN_ACTION
        assert "PlanFix" in response.error["details"]["availableActions"]
        assert response.session_attributes == attrs

    @pytest.mark.asyncio
    async def test_missing_session_id(self, handler):
        response = await invoke(handler, "GetSessionState", session_id="")
        assert response.error["code"] == VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_private_url_rejected(self, handler, mock_scanner):
        response = await invoke(handler, "StartScan", url="http://127.0.0.1/admin")
        assert response.error["code"] == VALIDATION_ERROR
        mock_scanner.scan.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_start_scan_needs_scanner(self, manual_handler):
        response = await invoke(manual_handler, "StartScan", url=URL)
        assert response.error["code"] == "NOT_CONFIGURED"

    @pytest.mark.asyncio
    async def test_invalid_transition(self, handler):
        response = await invoke(handler, "ApplyFix", {})
        assert response.error["code"] == "INVALID_TRANSITION"
        assert response.session_attributes == {}

    @pytest.mark.asyncio
    async def test_corrupt_state(self, handler):
        attrs = {"pending_violations": "{broken"}
        response = await invoke(handler, "GetSessionState", attrs)
        assert response.error["code"] == "STATE_INVALID"
        assert response.session_attributes == attrs

    @pytest.mark.asyncio
    async def test_corrupt_current_fix(self, handler, mock_executor):
        scan = await invoke(handler, "StartScan", url=URL)
        plan = await invoke(handler, "PlanFix", scan.session_attributes)
        attrs = dict(plan.session_attributes)
        fix = json.loads(attrs["current_fix"])
        fix["executionStarted"] = "false"
        attrs["current_fix"] = json.dumps(fix)

        response = await invoke(handler, "ApplyFix", attrs)

        assert response.error["code"] == "STATE_INVALID"
        assert "executionStarted" in response.error["message"]
        assert response.session_attributes == attrs
        mock_executor.apply_fix.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_duplicate_violation_ids(self, manual_handler, wire_violations):
        response = await invoke(
            manual_handler, "CompleteScan", url=URL, violations=wire_violations + wire_violations[:1]
        )
        assert response.error["code"] == VALIDATION_ERROR


class TestViolationCache:
    """Violation details live in process; a fresh process can be handed them again."""

    @pytest.mark.asyncio
    async def test_fresh_process_needs_violation(self, handler, audit_logger, rollback_manager, v1_alt):
        scan = await invoke(handler, "StartScan", url=URL)
        fresh = ActionHandler(audit_logger=audit_logger, rollback_manager=rollback_manager)

        missing = await invoke(fresh, "PlanFix", scan.session_attributes)
        assert missing.error["code"] == "NOT_FOUND"

        supplied = await invoke(fresh, "PlanFix", scan.session_attributes, violation=v1_alt.to_dict())
        assert supplied.data["violationId"] == "v1"

    @pytest.mark.asyncio
    async def test_completed_session_released(self, handler, rollback_manager):
        attrs = await _run_to_completion(handler)
        assert attrs["workflow_state"] == WorkflowState.COMPLETE

        assert SESSION not in handler.active_session_ids
        assert rollback_manager.get_session_snapshot_count(SESSION) == 0

        report = await invoke(handler, "GetReport", attrs)
        assert [f["ruleId"] for f in report.data["fixes"]] == ["image-alt", "color-contrast"]
        assert SESSION not in handler.active_session_ids

    @pytest.mark.asyncio
    async def test_in_progress_session_keeps_snapshots(self, handler, rollback_manager):
        scan = await invoke(handler, "StartScan", url=URL)
        plan = await invoke(handler, "PlanFix", scan.session_attributes)
        await invoke(handler, "ApplyFix", plan.session_attributes)

        assert SESSION in handler.active_session_ids
        assert rollback_manager.get_session_snapshot_count(SESSION) == 1

    @pytest.mark.asyncio
    async def test_completed_sessions_are_bounded(self, handler, monkeypatch):
        monkeypatch.setattr("a11y_remediator.orchestration.action_handler.MAX_COMPLETED_SESSIONS", 1)
        first = await _run_to_completion(handler, "session-first")
        second = await _run_to_completion(handler, "session-second")

        kept = await invoke(handler, "GetReport", second, session_id="session-second")
        dropped = await invoke(handler, "GetReport", first, session_id="session-first")

        assert kept.data["fixes"][0]["ruleId"] == "image-alt"
        assert dropped.data["summary"]["fixedCount"] == 2
        assert {f["ruleId"] for f in dropped.data["fixes"]} == {"unknown"}


class TestSessionActions:
    @pytest.mark.asyncio
    async def test_get_session_state(self, handler):
        scan = await invoke(handler, "StartScan", url=URL)
        plan = await invoke(handler, "PlanFix", scan.session_attributes)
        state = await invoke(handler, "GetSessionState", plan.session_attributes)

        assert state.data["summary"]["state"] == WorkflowState.EXECUTING
        assert state.data["summary"]["currentViolationId"] == "v1"
        assert state.data["currentFix"]["specialist"] == "AltTextSpecialist"
        assert state.data["pendingViolations"] == ["v1", "v2"]

    @pytest.mark.asyncio
    async def test_reset_session(self, handler, rollback_manager):
        scan = await invoke(handler, "StartScan", url=URL)
        plan = await invoke(handler, "PlanFix", scan.session_attributes)
        apply = await invoke(handler, "ApplyFix", plan.session_attributes)
        assert rollback_manager.get_session_snapshot_count(SESSION) == 1

        reset = await invoke(handler, "ResetSession", apply.session_attributes)
        assert reset.data["state"] == WorkflowState.IDLE
        assert reset.session_attributes["pending_violations"] == "[]"
        assert rollback_manager.get_session_snapshot_count(SESSION) == 0

        rescan = await invoke(handler, "StartScan", reset.session_attributes, url=URL)
        assert rescan.success
