"""
NavigationSpecialist -- keyboard access, tab order and accessible names.

Strategies by rule:
  tabindex        positive tabindex -> 0
  focus/focusable tabindex 0 for interactive elements, -1 otherwise
  keyboard        role="button" on click-handling non-buttons
  link/button name aria-label from existing label, title, text or icon hints
  skip/bypass     aria-label "Skip to main content"
"""

import logging
import re

from ..models import ConfidenceScore, FixInstruction, PageContext, Violation
from .base import BaseSpecialist, first_text_content, score

logger = logging.getLogger(__name__)

FALLBACK_LABEL = "Interactive element"

INTERACTIVE_MARKUP = [
    re.compile(p, re.I)
    for p in (r"<button", r"<a\s", r"<input", r"<select", r"<textarea", r"onclick",
              r"role\s*=\s*[\"']button[\"']", r"role\s*=\s*[\"']link[\"']",
              r"role\s*=\s*[\"']tab[\"']", r"role\s*=\s*[\"']menuitem[\"']")
]
ICON_HINTS = (
    ("search", "Search"),
    ("menu", "Menu"),
    ("close", "Close"),
    ("nav", "Navigation"),
    ("submit", "Submit"),
    ("cancel", "Cancel"),
    ("edit", "Edit"),
    ("delete", "Delete"),
    ("add", "Add"),
    ("remove", "Remove"),
)


def extract_label(html: str) -> str:
    """Best accessible name obtainable from an element's own markup."""
    for pattern in (r"aria-label\s*=\s*[\"']([^\"']+)[\"']", r"title\s*=\s*[\"']([^\"']+)[\"']"):
        match = re.search(pattern, html, re.I)
        if match and match.group(1).strip():
            return match.group(1).strip()

    text = first_text_content(html)
    if text:
        return text

    lowered = html.lower()
    for hint, label in ICON_HINTS:
        if hint in lowered:
            return label
    return FALLBACK_LABEL


class NavigationSpecialist(BaseSpecialist):
    """Plans tabindex, role and aria-label fixes for keyboard navigation."""

    rule_patterns = tuple(
        re.compile(p, re.I)
        for p in (r"focus", r"keyboard", r"tabindex", r"focusable", r"skip-link",
                  r"bypass", r"link-name", r"button-name")
    )

    @property
    def name(self) -> str:
        return "NavigationSpecialist"

    def plan_fix(self, violation: Violation, context: PageContext | None = None) -> FixInstruction:
        attribute, value = self._strategy(violation)
        logger.debug(f"[NavigationSpecialist] {violation.id}: {attribute}={value!r}")
        return self.attribute_fix(
            violation, attribute, value, self._reasoning(violation, attribute, value)
        )

    def calculate_confidence(self, violation: Violation) -> ConfidenceScore:
        rule = violation.rule_id.lower()
        if "tabindex" in rule or "focus" in rule:
            return score(90, ["Tab order change only", "No content or behavior change"])
        if "link-name" in rule or "button-name" in rule:
            if extract_label(violation.html) == FALLBACK_LABEL:
                return score(50, ["No label source found", "Fallback name is not descriptive"])
            return score(80, ["Label derived from existing markup"])
        if "keyboard" in rule:
            attribute, _ = self._strategy(violation)
            if attribute == "role":
                return score(
                    65,
                    ["Role added without key handlers", "Enter/Space behavior needs verification"],
                )
            return score(85, ["Tab order change only"])
        return score(80, ["Standard bypass labeling"])

    def _strategy(self, violation: Violation) -> tuple[str, str]:
        rule = violation.rule_id.lower()
        html = violation.html

        if "tabindex" in rule:
            return "tabindex", "0"

        if "focus" in rule:
            if "scrollable" in rule:
                return "tabindex", "0"
            if any(p.search(html) for p in INTERACTIVE_MARKUP):
                return "tabindex", "0"
            return "tabindex", "-1"

        if "keyboard" in rule:
            lowered = html.lower()
            if "click" in lowered and "<button" not in lowered and "<a " not in lowered:
                return "role", "button"
            return "tabindex", "0"

        if "link-name" in rule or "button-name" in rule:
            return "aria-label", extract_label(html)

        if "skip" in rule or "bypass" in rule:
            return "aria-label", "Skip to main content"

        return "tabindex", "0"

    def _reasoning(self, violation: Violation, attribute: str, value: str) -> str:
        rule = f"Rule: {violation.rule_id}"
        if attribute == "tabindex" and value == "0":
            return (
                'Adding tabindex="0" to include element in keyboard navigation order. '
                f"This ensures keyboard users can access this interactive element. {rule}"
            )
        if attribute == "tabindex":
            return (
                f'Adding tabindex="{value}" to allow programmatic focus without adding to tab order. '
                f"This is appropriate for elements that receive focus via scripts. {rule}"
            )
        if attribute == "role":
            return (
                f'Adding role="{value}" to provide semantic meaning for assistive technologies. '
                f"This ensures the element's purpose is communicated to screen readers. {rule}"
            )
        return (
            f'Adding aria-label="{value}" to provide accessible name for the element. '
            f"This ensures screen reader users understand the element's purpose. {rule}"
        )
