"""
Specialist agent protocol and shared helpers.

A specialist is a pure planner: given a violation (and optional page
context) it returns one FixInstruction and can say how confident it is.
It never touches the page. The SpecialistRouter picks the first specialist
whose rule patterns match the violation's rule id.

To add a specialist:
    class LangSpecialist(BaseSpecialist):
        rule_patterns = (re.compile(r"html-has-lang", re.I),)

        @property
        def name(self) -> str:
            return "LangSpecialist"

        def plan_fix(self, violation, context=None):
            return self.attribute_fix(violation, "lang", "en", "Declaring page language")
"""

import re
from typing import Protocol, runtime_checkable

from ..models import (
    AttributeFixParams,
    ConfidenceScore,
    ConfidenceTier,
    FixInstruction,
    FixType,
    PageContext,
    StyleFixParams,
    Violation,
)

HIGH_CONFIDENCE = 95
MEDIUM_CONFIDENCE = 80


@runtime_checkable
class SpecialistAgent(Protocol):
    """Interface every fix planner implements."""

    @property
    def name(self) -> str: ...

    def can_handle(self, violation: Violation) -> bool: ...

    def plan_fix(
        self, violation: Violation, context: PageContext | None = None
    ) -> FixInstruction: ...

    def calculate_confidence(self, violation: Violation) -> ConfidenceScore: ...


def confidence_tier(value: int) -> str:
    if value >= HIGH_CONFIDENCE:
        return ConfidenceTier.HIGH
    if value >= MEDIUM_CONFIDENCE:
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


def score(value: int, factors: list[str], force_review: bool = False) -> ConfidenceScore:
    """Build a ConfidenceScore; low-tier scores always require human review."""
    value = max(0, min(100, value))
    tier = confidence_tier(value)
    return ConfidenceScore(
        value=value,
        tier=tier,
        factors=factors,
        requires_human_review=force_review or tier == ConfidenceTier.LOW,
    )


def first_text_content(html: str, max_length: int = 50) -> str | None:
    """Text of the first text node in a snippet, if short enough to be a label."""
    match = re.search(r">([^<]+)<", html)
    if match and match.group(1).strip():
        text = match.group(1).strip()
        if len(text) <= max_length:
            return text
    return None


class BaseSpecialist:
    """Pattern matching plus instruction builders shared by all specialists."""

    rule_patterns: tuple[re.Pattern, ...] = ()

    @property
    def name(self) -> str:
        return type(self).__name__

    def can_handle(self, violation: Violation) -> bool:
        return any(p.search(violation.rule_id) for p in self.rule_patterns)

    def plan_fix(self, violation: Violation, context: PageContext | None = None) -> FixInstruction:
        raise NotImplementedError

    def calculate_confidence(self, violation: Violation) -> ConfidenceScore:
        return score(75, ["Heuristic fix"])

    def attribute_fix(
        self, violation: Violation, attribute: str, value: str, reasoning: str
    ) -> FixInstruction:
        return FixInstruction(
            type=FixType.ATTRIBUTE,
            selector=violation.selector,
            violation_id=violation.id,
            reasoning=reasoning,
            params=AttributeFixParams(
                selector=violation.selector,
                attribute=attribute,
                value=value,
                reasoning=reasoning,
            ),
        )

    def style_fix(
        self,
        violation: Violation,
        css_class: str,
        styles: dict[str, str],
        reasoning: str,
    ) -> FixInstruction:
        return FixInstruction(
            type=FixType.STYLE,
            selector=violation.selector,
            violation_id=violation.id,
            reasoning=reasoning,
            params=StyleFixParams(selector=violation.selector, css_class=css_class, styles=styles),
        )
