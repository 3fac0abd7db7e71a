"""
Data contracts shared by every component of the remediation engine.

Internal code passes these dataclasses around; the wire format (session
attributes, action payloads, collaborator JSON) uses the camelCase field
names produced by to_dict(). Structural validation of untrusted input
lives in schemas.py.

Keep this file free of behavior beyond (de)serialization.
"""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


# =============================================================================
# CONSTANTS
# =============================================================================


class Impact:
    """Violation impact levels, highest first."""

    CRITICAL = "critical"
    SERIOUS = "serious"
    MODERATE = "moderate"
    MINOR = "minor"

    ALL = (CRITICAL, SERIOUS, MODERATE, MINOR)


IMPACT_PRIORITY = {
    Impact.CRITICAL: 4,
    Impact.SERIOUS: 3,
    Impact.MODERATE: 2,
    Impact.MINOR: 1,
}


class FixType:
    ATTRIBUTE = "attribute"
    CONTENT = "content"
    STYLE = "style"

    ALL = (ATTRIBUTE, CONTENT, STYLE)


class AuditResult:
    APPLIED = "applied"
    REJECTED = "rejected"
    ROLLED_BACK = "rolled_back"

    ALL = (APPLIED, REJECTED, ROLLED_BACK)


class ConfidenceTier:
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def utc_now_iso() -> str:
    """Server-assigned ISO-8601 timestamp (UTC)."""
    return datetime.now(timezone.utc).isoformat()


def compute_text_hash(text: str) -> str:
    """SHA-256 hex digest used as a content fix's originalTextHash."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


# =============================================================================
# SCANNER OUTPUT
# =============================================================================


@dataclass(frozen=True)
class Violation:
    """A single accessibility defect reported by the scanner.

    Attributes:
        id: Scanner-assigned identifier, unique within a scan.
        rule_id: Rule that failed (e.g. "image-alt", "color-contrast").
        selector: CSS selector of the offending element.
        description: Scanner description of the failure.
        impact: One of Impact.ALL.
        html: Outer HTML of the element at scan time.
        help: Short remediation hint from the rule, if any.
    """

    id: str
    rule_id: str
    selector: str
    description: str
    impact: str
    html: str
    help: str = ""

    @property
    def priority(self) -> int:
        return IMPACT_PRIORITY.get(self.impact, 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "ruleId": self.rule_id,
            "selector": self.selector,
            "description": self.description,
            "impact": self.impact,
            "html": self.html,
            "help": self.help,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Violation":
        return cls(
            id=data["id"],
            rule_id=data.get("ruleId", data.get("rule_id", "")),
            selector=data["selector"],
            description=data.get("description", ""),
            impact=data["impact"],
            html=data.get("html", ""),
            help=data.get("help") or "",
        )


def sort_by_impact(violations: list[Violation]) -> list[Violation]:
    """Critical first; stable for equal impact."""
    return sorted(violations, key=lambda v: v.priority, reverse=True)


@dataclass
class PageContext:
    """Extra page information a specialist may use to plan a better fix."""

    url: str = ""
    title: str | None = None
    surrounding_text: str | None = None
    parent_element: str | None = None
    sibling_elements: list[str] = field(default_factory=list)
    image_src: str | None = None
    image_filename: str | None = None
    current_colors: dict[str, str] | None = None  # {"foreground", "background"}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PageContext":
        return cls(
            url=data.get("url", ""),
            title=data.get("title"),
            surrounding_text=data.get("surroundingText"),
            parent_element=data.get("parentElement"),
            sibling_elements=list(data.get("siblingElements") or []),
            image_src=data.get("imageSrc"),
            image_filename=data.get("imageFilename"),
            current_colors=data.get("currentColors"),
        )


@dataclass
class VerificationResult:
    """Scanner answer to "is this violation gone now?"."""

    status: str  # "pass" or "fail"
    violations: list[dict[str, Any]] = field(default_factory=list)
    score: float | None = None

    @property
    def passed(self) -> bool:
        return self.status == "pass"


# =============================================================================
# FIX INSTRUCTIONS
# =============================================================================


@dataclass
class AttributeFixParams:
    selector: str
    attribute: str
    value: str
    reasoning: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "selector": self.selector,
            "attribute": self.attribute,
            "value": self.value,
            "reasoning": self.reasoning,
        }


@dataclass
class ContentFixParams:
    selector: str
    inner_text: str
    original_text_hash: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "selector": self.selector,
            "innerText": self.inner_text,
            "originalTextHash": self.original_text_hash,
        }


@dataclass
class StyleFixParams:
    selector: str
    css_class: str
    styles: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "selector": self.selector,
            "cssClass": self.css_class,
            "styles": dict(self.styles),
        }


FixParams = AttributeFixParams | ContentFixParams | StyleFixParams


@dataclass
class FixInstruction:
    """A declarative description of one corrective DOM mutation.

    Attributes:
        type: One of FixType.ALL; selects the params variant.
        selector: Target element selector (never empty).
        violation_id: The violation this fix addresses (never empty).
        reasoning: Why this fix was chosen, kept for the audit trail.
        params: AttributeFixParams, ContentFixParams or StyleFixParams.
    """

    type: str
    selector: str
    violation_id: str
    reasoning: str
    params: FixParams

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "selector": self.selector,
            "violationId": self.violation_id,
            "reasoning": self.reasoning,
            "params": self.params.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FixInstruction":
        """Build from a wire dict. Call SafetyValidator.validate_schema first."""
        fix_type = data["type"]
        raw = data.get("params") or {}
        params: FixParams
        if fix_type == FixType.ATTRIBUTE:
            params = AttributeFixParams(
                selector=raw["selector"],
                attribute=raw["attribute"],
                value=raw.get("value", ""),
                reasoning=raw["reasoning"],
            )
        elif fix_type == FixType.CONTENT:
            params = ContentFixParams(
                selector=raw["selector"],
                inner_text=raw.get("innerText", ""),
                original_text_hash=raw["originalTextHash"],
            )
        elif fix_type == FixType.STYLE:
            params = StyleFixParams(
                selector=raw["selector"],
                css_class=raw.get("cssClass", ""),
                styles=dict(raw.get("styles") or {}),
            )
        else:
            raise ValueError(f"Unknown fix type: {fix_type}")
        return cls(
            type=fix_type,
            selector=data["selector"],
            violation_id=data["violationId"],
            reasoning=data["reasoning"],
            params=params,
        )


@dataclass
class FixResult:
    """Outcome of applying one instruction, as reported by the executor."""

    success: bool
    selector: str
    before_html: str = ""
    after_html: str = ""
    error: dict[str, Any] | None = None

    @property
    def error_message(self) -> str:
        if not self.error:
            return ""
        return str(self.error.get("message", ""))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "selector": self.selector,
            "beforeHtml": self.before_html,
            "afterHtml": self.after_html,
        }
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FixResult":
        return cls(
            success=bool(data.get("success", False)),
            selector=data.get("selector", ""),
            before_html=data.get("beforeHtml", ""),
            after_html=data.get("afterHtml", ""),
            error=data.get("error"),
        )


@dataclass
class ConfidenceScore:
    """How much a specialist trusts its own fix for a violation."""

    value: int
    tier: str
    factors: list[str] = field(default_factory=list)
    requires_human_review: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "tier": self.tier,
            "factors": list(self.factors),
            "requiresHumanReview": self.requires_human_review,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConfidenceScore":
        return cls(
            value=int(data.get("value", 0)),
            tier=data.get("tier", ConfidenceTier.LOW),
            factors=list(data.get("factors") or []),
            requires_human_review=bool(data.get("requiresHumanReview", False)),
        )


# =============================================================================
# ROLLBACK + AUDIT RECORDS
# =============================================================================


@dataclass(frozen=True)
class DOMSnapshot:
    """Pre-fix copy of an element's markup. Never mutated after creation."""

    id: str
    session_id: str
    selector: str
    html: str
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "selector": self.selector,
            "html": self.html,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class AuditLogEntry:
    """One terminal outcome of a fix attempt. Append-only."""

    timestamp: str
    session_id: str
    violation_id: str
    instruction: dict[str, Any]
    before_html: str
    after_html: str
    result: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "sessionId": self.session_id,
            "violationId": self.violation_id,
            "instruction": self.instruction,
            "beforeHtml": self.before_html,
            "afterHtml": self.after_html,
            "result": self.result,
        }


# =============================================================================
# REPORT
# =============================================================================


@dataclass
class AppliedFix:
    violation_id: str
    rule_id: str
    selector: str
    fix_type: str
    before_html: str
    after_html: str
    reasoning: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "violationId": self.violation_id,
            "ruleId": self.rule_id,
            "selector": self.selector,
            "fixType": self.fix_type,
            "beforeHtml": self.before_html,
            "afterHtml": self.after_html,
            "reasoning": self.reasoning,
        }


@dataclass
class SkippedViolation:
    violation_id: str
    rule_id: str
    selector: str
    reason: str
    attempts: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "violationId": self.violation_id,
            "ruleId": self.rule_id,
            "selector": self.selector,
            "reason": self.reason,
            "attempts": self.attempts,
        }


@dataclass
class HumanHandoffItem:
    violation_id: str
    rule_id: str
    selector: str
    reason: str
    suggested_action: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "violationId": self.violation_id,
            "ruleId": self.rule_id,
            "selector": self.selector,
            "reason": self.reason,
            "suggestedAction": self.suggested_action,
        }


@dataclass
class RemediationReport:
    """Final account of a session: what was fixed, skipped, and handed off."""

    session_id: str
    url: str
    timestamp: str
    summary: dict[str, int]
    fixes: list[AppliedFix] = field(default_factory=list)
    skipped: list[SkippedViolation] = field(default_factory=list)
    human_handoff: list[HumanHandoffItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "url": self.url,
            "timestamp": self.timestamp,
            "summary": dict(self.summary),
            "fixes": [f.to_dict() for f in self.fixes],
            "skipped": [s.to_dict() for s in self.skipped],
            "humanHandoff": [h.to_dict() for h in self.human_handoff],
        }
