"""
FocusSpecialist -- WCAG 2.2 focus visibility (2.4.11, 2.4.12, 2.4.13).

All fixes are CSS-only:
  obscured    scroll margins so sticky headers/footers cannot hide focus
  appearance  a 2px outline indicator
  otherwise   default focus visibility styles
"""

import logging
import re

from ..models import ConfidenceScore, FixInstruction, PageContext, Violation
from .base import BaseSpecialist, score

logger = logging.getLogger(__name__)

OBSCURED_STYLES = {
    "scroll-margin-top": "80px",
    "scroll-margin-bottom": "80px",
    "position": "relative",
    "z-index": "1",
}
APPEARANCE_STYLES = {
    "outline": "2px solid #005fcc",
    "outline-offset": "2px",
    "border-radius": "2px",
}
DEFAULT_STYLES = {
    "scroll-margin-top": "80px",
    "outline": "2px solid currentColor",
    "outline-offset": "2px",
}


class FocusSpecialist(BaseSpecialist):
    """Plans CSS fixes that keep the focused element visible."""

    rule_patterns = tuple(
        re.compile(p, re.I)
        for p in (r"focus-not-obscured", r"focus-obscured", r"focus-visible",
                  r"focus-appearance", r"2\.4\.11", r"2\.4\.12", r"2\.4\.13")
    )

    @property
    def name(self) -> str:
        return "FocusSpecialist"

    def plan_fix(self, violation: Violation, context: PageContext | None = None) -> FixInstruction:
        rule = violation.rule_id.lower()

        if "obscured" in rule or "2.4.11" in rule or "2.4.12" in rule:
            css_class, styles = "a11y-focus-visible", OBSCURED_STYLES
            description = "Add scroll-margin to prevent focus being obscured by sticky elements"
        elif "appearance" in rule or "2.4.13" in rule:
            css_class, styles = "a11y-focus-indicator", APPEARANCE_STYLES
            description = "Add visible focus indicator meeting 2.4.13 requirements"
        else:
            css_class, styles = "a11y-focus-default", DEFAULT_STYLES
            description = "Add default focus visibility improvements"

        reasoning = (
            f"WCAG 2.2 Focus Fix: {description}. "
            f'This addresses violation "{violation.rule_id}" on element "{violation.selector}". '
            f"The fix ensures focused elements remain visible when users navigate with keyboard."
        )
        logger.debug(f"[FocusSpecialist] {violation.id}: {css_class}")
        return self.style_fix(violation, css_class, dict(styles), reasoning)

    def calculate_confidence(self, violation: Violation) -> ConfidenceScore:
        value = 90
        factors = []

        custom_component = (
            re.search(r"\[class\*=[\"']?custom", violation.selector, re.I) is not None
            or "[data-" in violation.selector
        )
        if custom_component:
            value -= 15
            factors.append("Custom component detected")

        if "z-index" in violation.description or "stacking" in violation.description:
            value -= 10
            factors.append("Z-index modification may affect layout")

        return score(value, factors or ["Standard CSS focus fix"])
