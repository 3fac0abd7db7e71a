"""
RollbackManager -- before-state snapshots and their restoration.

A snapshot is taken from the executor's beforeHtml as soon as a fix has
been applied. Snapshots are frozen dataclasses: rollback() writes the
stored markup back onto the live page but never touches the snapshot.

The page handle is anything shaped like a Playwright Page:

    element = await page.query_selector(selector)
    await element.evaluate("(el, html) => { el.outerHTML = html; }", html)
"""

import logging
import uuid
from typing import Any, Protocol, runtime_checkable

from ..errors import NotFoundError
from ..models import DOMSnapshot, utc_now_iso

logger = logging.getLogger(__name__)

RESTORE_SCRIPT = "(el, html) => { el.outerHTML = html; }"


@runtime_checkable
class PageHandle(Protocol):
    """Minimal live-page surface needed for rollback (Playwright compatible)."""

    async def query_selector(self, selector: str) -> Any: ...


class RollbackManager:
    """
    Stores snapshots per session and restores them on demand.

    One instance is shared by every session in the process; all lookups are
    keyed by snapshot id or session id.
    """

    def __init__(self):
        self._snapshots: dict[str, DOMSnapshot] = {}
        self._by_session: dict[str, list[str]] = {}

    @property
    def count(self) -> int:
        return len(self._snapshots)

    def save_snapshot(self, session_id: str, selector: str, html: str) -> str:
        """Store a snapshot and return its unique id."""
        snapshot = DOMSnapshot(
            id=f"snapshot-{uuid.uuid4()}",
            session_id=session_id,
            selector=selector,
            html=html,
            timestamp=utc_now_iso(),
        )
        self._snapshots[snapshot.id] = snapshot
        self._by_session.setdefault(session_id, []).append(snapshot.id)
        logger.debug(f"[RollbackManager] Saved {snapshot.id} for {selector} ({session_id})")
        return snapshot.id

    def get_snapshot(self, snapshot_id: str) -> DOMSnapshot | None:
        return self._snapshots.get(snapshot_id)

    def get_session_snapshots(self, session_id: str) -> list[DOMSnapshot]:
        """Snapshots for a session in creation order."""
        return [
            self._snapshots[sid]
            for sid in self._by_session.get(session_id, [])
            if sid in self._snapshots
        ]

    def get_session_snapshot_count(self, session_id: str) -> int:
        return len(self._by_session.get(session_id, []))

    def get_rollback_html(self, snapshot_id: str) -> str:
        return self._require(snapshot_id).html

    async def rollback(self, page: PageHandle, snapshot_id: str) -> DOMSnapshot:
        """
        Restore the element at the snapshot's selector to the stored markup.

        Raises:
            NotFoundError: If the snapshot id is unknown or the element is gone.
        """
        snapshot = self._require(snapshot_id)
        element = await page.query_selector(snapshot.selector)
        if element is None:
            raise NotFoundError(
                f"Element not found for rollback: {snapshot.selector}",
                {"snapshotId": snapshot_id, "selector": snapshot.selector},
            )
        await element.evaluate(RESTORE_SCRIPT, snapshot.html)
        logger.info(f"[RollbackManager] Rolled back {snapshot.selector} to {snapshot_id}")
        return snapshot

    def delete_snapshot(self, snapshot_id: str) -> bool:
        snapshot = self._snapshots.pop(snapshot_id, None)
        if snapshot is None:
            return False
        session_ids = self._by_session.get(snapshot.session_id, [])
        if snapshot_id in session_ids:
            session_ids.remove(snapshot_id)
        return True

    def clear_session(self, session_id: str) -> None:
        for snapshot_id in self._by_session.pop(session_id, []):
            self._snapshots.pop(snapshot_id, None)

    def clear_all(self) -> None:
        self._snapshots.clear()
        self._by_session.clear()

    def _require(self, snapshot_id: str) -> DOMSnapshot:
        snapshot = self._snapshots.get(snapshot_id)
        if snapshot is None:
            raise NotFoundError(f"Snapshot not found: {snapshot_id}", {"snapshotId": snapshot_id})
        return snapshot
