"""
Audit and rollback evals -- the trail is append-only and snapshots are immutable.
"""

import dataclasses
import json

import pytest

from a11y_remediator.audit.audit_logger import AuditLogger
from a11y_remediator.audit.rollback import RESTORE_SCRIPT, RollbackManager
from a11y_remediator.errors import NotFoundError
from a11y_remediator.models import AuditResult
from a11y_remediator.security.validators import ValidationError

INSTRUCTION = {"type": "attribute", "selector": "img.hero", "violationId": "v1"}


class TestAuditLogger:
    def test_log_assigns_timestamp(self, audit_logger):
        entry = audit_logger.log("s1", "v1", INSTRUCTION, "<img>", '<img alt="x">', AuditResult.APPLIED)
        assert entry.timestamp
        assert entry.instruction == INSTRUCTION
        assert audit_logger.get_count() == 1

    def test_summary_matches_entries(self, audit_logger):
        audit_logger.log("s1", "v1", INSTRUCTION, "", "", AuditResult.APPLIED)
        audit_logger.log("s1", "v2", INSTRUCTION, "", "", AuditResult.REJECTED)
        audit_logger.log("s1", "v2", INSTRUCTION, "", "", AuditResult.ROLLED_BACK)
        audit_logger.log("s2", "v1", None, "", "", AuditResult.APPLIED)

        summary = audit_logger.get_summary("s1")
        assert summary == {"total": 3, "applied": 1, "rejected": 1, "rolledBack": 1}
        assert summary["total"] == len(audit_logger.get_by_session_id("s1"))
        assert len(audit_logger.get_by_violation_id("s1", "v2")) == 2
        assert audit_logger.get_session_ids() == ["s1", "s2"]

    @pytest.mark.parametrize(
        "session_id, violation_id, result",
        [("", "v1", AuditResult.APPLIED), ("s1", "", AuditResult.APPLIED), ("s1", "v1", "deleted")],
    )
    def test_rejects_bad_entries(self, audit_logger, session_id, violation_id, result):
        with pytest.raises(ValidationError):
            audit_logger.log(session_id, violation_id, INSTRUCTION, "", "", result)
        assert audit_logger.get_count() == 0

    def test_clear_session(self, audit_logger):
        audit_logger.log("s1", "v1", INSTRUCTION, "", "", AuditResult.APPLIED)
        audit_logger.log("s2", "v1", INSTRUCTION, "", "", AuditResult.APPLIED)
        audit_logger.clear_session("s1")
        assert audit_logger.get_session_ids() == ["s2"]

    def test_jsonl_mirror(self, tmp_path):
        audit = AuditLogger(audit_dir=tmp_path / "audit")
        audit.log("team/s1", "v1", INSTRUCTION, "<a>", "<b>", AuditResult.APPLIED)
        path = tmp_path / "audit" / "team_s1.jsonl"
        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["result"] == AuditResult.APPLIED


class TestRollbackManager:
    def test_snapshot_ids_are_unique(self, rollback_manager):
        first = rollback_manager.save_snapshot("s1", "img.hero", "<img>")
        second = rollback_manager.save_snapshot("s1", "img.hero", "<img>")
        assert first != second
        assert rollback_manager.get_session_snapshot_count("s1") == 2

    def test_snapshot_is_frozen(self, rollback_manager):
        snapshot_id = rollback_manager.save_snapshot("s1", "img.hero", "<img>")
        snapshot = rollback_manager.get_snapshot(snapshot_id)
        with pytest.raises(dataclasses.FrozenInstanceError):
            snapshot.html = "<tampered>"

    @pytest.mark.asyncio
    async def test_rollback_writes_outer_html(self, rollback_manager, page_factory):
        FakePage, FakeElement = page_factory
        element = FakeElement('<img alt="x">')
        page = FakePage({"img.hero": element})
        snapshot_id = rollback_manager.save_snapshot("s1", "img.hero", "<img>")

        snapshot = await rollback_manager.rollback(page, snapshot_id)

        assert element.evaluations == [(RESTORE_SCRIPT, "<img>")]
        assert snapshot.html == "<img>"
        assert rollback_manager.get_rollback_html(snapshot_id) == "<img>"

    @pytest.mark.asyncio
    async def test_rollback_unknown_snapshot(self, rollback_manager, fake_page):
        with pytest.raises(NotFoundError):
            await rollback_manager.rollback(fake_page, "snapshot-missing")

    @pytest.mark.asyncio
    async def test_rollback_missing_element(self, rollback_manager, fake_page):
        snapshot_id = rollback_manager.save_snapshot("s1", "img.gone", "<img>")
        with pytest.raises(NotFoundError):
            await rollback_manager.rollback(fake_page, snapshot_id)

    def test_delete_and_clear(self, rollback_manager):
        keep = rollback_manager.save_snapshot("s1", "a", "<a>")
        drop = rollback_manager.save_snapshot("s1", "b", "<b>")
        rollback_manager.save_snapshot("s2", "c", "<c>")

        assert rollback_manager.delete_snapshot(drop)
        assert not rollback_manager.delete_snapshot(drop)
        assert [s.id for s in rollback_manager.get_session_snapshots("s1")] == [keep]

        rollback_manager.clear_session("s1")
        assert rollback_manager.count == 1
        rollback_manager.clear_all()
        assert rollback_manager.count == 0
