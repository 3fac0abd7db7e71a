"""
GenericAriaHandler -- catch-all planner for rules no specialist claims.

Infers a plausible ARIA attribute from the rule id, then fills in the
value from the violation's help text and markup. Always low confidence:
a generic guess should be reviewed by a human before it ships.
"""

import logging

from ..models import ConfidenceScore, FixInstruction, PageContext, Violation
from .base import BaseSpecialist, first_text_content, score

logger = logging.getLogger(__name__)

ELEMENT_LABELS = (
    ("<button", "Button"),
    ("<a ", "Link"),
    ("<input", "Input field"),
    ("<select", "Selection"),
    ("<nav", "Navigation"),
    ("<main", "Main content"),
    ("<aside", "Sidebar"),
    ("<footer", "Footer"),
    ("<header", "Header"),
)
ROLE_HINTS = (
    ("<nav", "navigation"),
    ("navigation", "navigation"),
    ("<main", "main"),
    ("<aside", "complementary"),
    ("<footer", "contentinfo"),
    ("<header", "banner"),
    ("<form", "form"),
    ("<search", "search"),
    ("onclick", "button"),
    ("click", "button"),
    ("menu", "menu"),
    ("tab", "tab"),
    ("dialog", "dialog"),
    ("modal", "dialog"),
    ("alert", "alert"),
    ("list", "list"),
    ("table", "table"),
    ("img", "img"),
    ("image", "img"),
)
STATE_ATTRIBUTES = ("pressed", "checked", "selected", "expanded", "disabled")


class GenericAriaHandler(BaseSpecialist):
    """Fallback handler: accepts every violation."""

    @property
    def name(self) -> str:
        return "GenericAriaHandler"

    def can_handle(self, violation: Violation) -> bool:
        return True

    def plan_fix(self, violation: Violation, context: PageContext | None = None) -> FixInstruction:
        attribute, value = self._infer_fix(violation)
        reasoning = (
            f'Applying generic ARIA fix: {attribute}="{value}". '
            f"This addresses the accessibility issue by providing semantic information "
            f"to assistive technologies. Rule: {violation.rule_id}"
        )
        logger.debug(f"[GenericAriaHandler] {violation.id}: {attribute}={value!r}")
        return self.attribute_fix(violation, attribute, value, reasoning)

    def calculate_confidence(self, violation: Violation) -> ConfidenceScore:
        return score(50, ["No specialist matched", "Generic ARIA inference from markup"])

    def _infer_fix(self, violation: Violation) -> tuple[str, str]:
        rule = violation.rule_id.lower()

        if "label" in rule or "name" in rule:
            return "aria-label", self._label(violation)
        if "role" in rule or "landmark" in rule:
            return "role", self._role(violation)
        if "aria-" in rule and "state" in rule:
            for state in STATE_ATTRIBUTES:
                if state in rule:
                    return f"aria-{state}", "false"
            return "aria-label", self._label(violation)
        if "hidden" in rule or "visible" in rule:
            return "aria-hidden", "false"
        if "required" in rule:
            return "aria-required", "true"
        if "invalid" in rule or "error" in rule:
            return "aria-invalid", "true"
        if "expand" in rule:
            return "aria-expanded", "false"
        return "aria-label", self._label(violation)

    def _label(self, violation: Violation) -> str:
        if violation.help:
            help_text = violation.help.strip()
            if help_text.lower().startswith("ensure "):
                help_text = help_text[len("ensure "):].strip()
            if help_text and len(help_text) <= 50:
                return help_text

        text = first_text_content(violation.html)
        if text:
            return text

        html = violation.html.lower()
        for marker, label in ELEMENT_LABELS:
            if marker in html:
                return label
        return "Interactive element"

    def _role(self, violation: Violation) -> str:
        html = violation.html.lower()
        for marker, role in ROLE_HINTS:
            if marker in html:
                return role
        return "region"
