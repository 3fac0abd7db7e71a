"""Eval fixtures -- sample violations, fake page handle, mocked collaborators."""

from unittest.mock import AsyncMock

import pytest

from a11y_remediator.audit.audit_logger import AuditLogger
from a11y_remediator.audit.rollback import RollbackManager
from a11y_remediator.models import FixResult, VerificationResult, Violation


def make_violation(
    violation_id: str = "v1",
    rule_id: str = "image-alt",
    impact: str = "critical",
    selector: str | None = None,
    html: str | None = None,
    description: str = "",
) -> Violation:
    """Violation with sensible defaults for the given rule."""
    return Violation(
        id=violation_id,
        rule_id=rule_id,
        selector=selector or f"#{violation_id}",
        description=description or f"{rule_id} violation",
        impact=impact,
        html=html if html is not None else f'<div id="{violation_id}"></div>',
    )


class FakeElement:
    """Records outerHTML writes the way a Playwright ElementHandle would apply them."""

    def __init__(self, html: str = ""):
        self.html = html
        self.evaluations: list[tuple[str, str]] = []

    async def evaluate(self, script: str, html: str) -> None:
        self.evaluations.append((script, html))
        self.html = html


class FakePage:
    """Page handle whose elements are looked up by exact selector."""

    def __init__(self, elements: dict[str, FakeElement] | None = None):
        self.elements = elements or {}

    async def query_selector(self, selector: str):
        return self.elements.get(selector)


@pytest.fixture
def v1_alt():
    return make_violation(
        "v1", "image-alt", "critical", selector="img.hero",
        html='<img class="hero" src="/assets/team-photo.jpg">',
    )


@pytest.fixture
def v2_contrast():
    return make_violation(
        "v2", "color-contrast", "serious", selector="p.muted",
        html='<p class="muted">Fine print</p>',
        description="Element has insufficient color contrast (foreground: #999999, background: #ffffff)",
    )


@pytest.fixture
def sample_violations(v1_alt, v2_contrast):
    """Two violations, deliberately listed lowest impact first."""
    return [v2_contrast, v1_alt]


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def rollback_manager():
    return RollbackManager()


@pytest.fixture
def fake_page():
    return FakePage()


@pytest.fixture
def mock_scanner(sample_violations):
    """Scanner that finds the sample violations and passes every verification."""
    scanner = AsyncMock()
    scanner.scan.return_value = list(sample_violations)
    scanner.verify.return_value = VerificationResult(status="pass")
    return scanner


@pytest.fixture
def mock_executor():
    """Executor that applies every fix, echoing the selector back."""
    executor = AsyncMock()

    async def apply_fix(instruction):
        return FixResult(
            success=True,
            selector=instruction.selector,
            before_html="<before>",
            after_html="<after>",
        )

    executor.apply_fix.side_effect = apply_fix
    return executor


@pytest.fixture
def violation_factory():
    return make_violation


@pytest.fixture
def page_factory():
    return FakePage, FakeElement
