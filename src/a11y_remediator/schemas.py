"""
Pydantic schemas -- structural validation for untrusted payloads.

Anything that crosses a boundary (caller-supplied fix instructions, the
persisted fix cycle, scanner and executor responses) is parsed here before
it is turned into the dataclasses in models.py. Field aliases keep the
camelCase wire names.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool
from pydantic import ValidationError as PydanticValidationError


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# FIX INSTRUCTION
# =============================================================================


class AttributeFixParamsSchema(WireModel):
    selector: str = Field(min_length=1)
    attribute: str = Field(min_length=1)
    value: str
    reasoning: str = Field(min_length=1)


class ContentFixParamsSchema(WireModel):
    selector: str = Field(min_length=1)
    inner_text: str = Field(alias="innerText")
    original_text_hash: str = Field(alias="originalTextHash", min_length=1)


class StyleFixParamsSchema(WireModel):
    selector: str = Field(min_length=1)
    css_class: str = Field(alias="cssClass")
    styles: dict[str, str]


class FixInstructionSchema(WireModel):
    """Envelope of a fix instruction; params are checked per type afterwards."""

    type: Literal["attribute", "content", "style"]
    selector: str = Field(min_length=1)
    violation_id: str = Field(alias="violationId", min_length=1)
    reasoning: str = Field(min_length=1)
    params: dict[str, Any]


PARAMS_SCHEMAS: dict[str, type[WireModel]] = {
    "attribute": AttributeFixParamsSchema,
    "content": ContentFixParamsSchema,
    "style": StyleFixParamsSchema,
}


# =============================================================================
# COLLABORATOR PAYLOADS
# =============================================================================


class ViolationSchema(WireModel):
    id: str = Field(min_length=1)
    rule_id: str = Field(alias="ruleId", min_length=1)
    selector: str = Field(min_length=1)
    description: str = ""
    impact: Literal["critical", "serious", "moderate", "minor"]
    html: str = ""
    help: str | None = ""


class ScanResponseSchema(WireModel):
    violations: list[ViolationSchema] = Field(default_factory=list)


class VerifyResponseSchema(WireModel):
    status: Literal["pass", "fail"]
    violations: list[dict[str, Any]] = Field(default_factory=list)
    score: float | None = None


class ApplyResponseSchema(WireModel):
    success: bool
    selector: str = ""
    before_html: str = Field(default="", alias="beforeHtml")
    after_html: str = Field(default="", alias="afterHtml")
    error: dict[str, Any] | None = None


class ElementSummarySchema(WireModel):
    selector: str = ""
    tag_name: str = Field(default="", alias="tagName")
    role: str | None = None
    text: str | None = None


class PageStructureSchema(WireModel):
    interactive_elements: list[ElementSummarySchema] = Field(
        default_factory=list, alias="interactiveElements"
    )
    landmarks: list[ElementSummarySchema] = Field(default_factory=list)
    headings: list[ElementSummarySchema] = Field(default_factory=list)


# =============================================================================
# PERSISTED FIX CYCLE
# =============================================================================


class FixResultSchema(WireModel):
    success: StrictBool
    selector: str = ""
    before_html: str = Field(default="", alias="beforeHtml")
    after_html: str = Field(default="", alias="afterHtml")
    error: dict[str, Any] | None = None


class ConfidenceScoreSchema(WireModel):
    value: int = Field(ge=0, le=100)
    tier: Literal["high", "medium", "low"]
    factors: list[str] = Field(default_factory=list)
    requires_human_review: StrictBool = Field(default=False, alias="requiresHumanReview")


class CurrentFixSchema(WireModel):
    """The current_fix session attribute. Instruction params are checked per type afterwards."""

    violation: ViolationSchema | None = None
    instruction: FixInstructionSchema | None = None
    confidence: ConfidenceScoreSchema | None = None
    specialist: str = ""
    execution_started: StrictBool = Field(default=False, alias="executionStarted")
    result: FixResultSchema | None = None
    snapshot_id: str | None = Field(default=None, alias="snapshotId")
    verification_started: StrictBool = Field(default=False, alias="verificationStarted")
    rejected: StrictBool = False


def format_errors(exc: PydanticValidationError, prefix: str = "") -> list[str]:
    """Flatten a pydantic error into 'field.path: message' strings."""
    messages = []
    for err in exc.errors():
        path = ".".join(str(part) for part in err.get("loc", ()))
        if prefix:
            path = f"{prefix}.{path}" if path else prefix
        messages.append(f"{path}: {err.get('msg', 'invalid')}" if path else err.get("msg", "invalid"))
    return messages
