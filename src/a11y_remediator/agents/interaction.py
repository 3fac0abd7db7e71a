"""
InteractionSpecialist -- WCAG 2.2 pointer interactions (2.5.7, 2.5.8).

Target size (2.5.8) is a safe CSS fix and can be auto-applied. Dragging
movements (2.5.7) need a single-pointer alternative that only a developer
can build, so the planned fix just tags the element with
data-a11y-needs-alternative and the confidence is capped at 30 with
human review required.
"""

import logging
import re
from dataclasses import dataclass

from ..models import ConfidenceScore, FixInstruction, HumanHandoffItem, PageContext, Violation
from .base import BaseSpecialist, score

logger = logging.getLogger(__name__)

TARGET_SIZE_STYLES = {
    "min-width": "24px",
    "min-height": "24px",
    "padding": "4px",
    "touch-action": "manipulation",
}
DRAGGING_CONFIDENCE = 30


@dataclass
class DraggingAlternative:
    """Suggested single-pointer replacement for a drag interaction."""

    type: str  # "button", "input", "select", "keyboard"
    description: str
    code_example: str


SLIDER_ALTERNATIVE = DraggingAlternative(
    type="input",
    description="Add a number input for precise value entry",
    code_example=(
        '<input type="range" id="slider" value="50">\n'
        '<input type="number" id="slider-value" value="50" min="0" max="100">'
    ),
)
SORTABLE_ALTERNATIVE = DraggingAlternative(
    type="button",
    description='Add "Move Up" and "Move Down" buttons for each item',
    code_example=(
        '<button aria-label="Move item up">Up</button>\n'
        '<button aria-label="Move item down">Down</button>'
    ),
)
MAP_ALTERNATIVE = DraggingAlternative(
    type="button",
    description="Add pan buttons and search input",
    code_example=(
        '<button aria-label="Pan north">N</button>\n'
        '<button aria-label="Pan south">S</button>\n'
        '<input type="text" placeholder="Search location...">'
    ),
)
GENERIC_ALTERNATIVE = DraggingAlternative(
    type="button",
    description="Provide click-based alternatives to drag operation",
    code_example=(
        '<button aria-label="Move to position">Move</button>\n'
        '<select aria-label="Select position"><option>Position 1</option></select>'
    ),
)


def _is_target_size(violation: Violation) -> bool:
    rule = violation.rule_id.lower()
    return "target-size" in rule or "2.5.8" in rule


class InteractionSpecialist(BaseSpecialist):
    """Plans target-size CSS fixes and flags dragging interactions for review."""

    rule_patterns = tuple(
        re.compile(p, re.I)
        for p in (r"dragging", r"drag-movements", r"target-size", r"pointer",
                  r"2\.5\.7", r"2\.5\.8")
    )

    @property
    def name(self) -> str:
        return "InteractionSpecialist"

    def plan_fix(self, violation: Violation, context: PageContext | None = None) -> FixInstruction:
        if _is_target_size(violation):
            reasoning = (
                f"WCAG 2.2 Target Size Fix (2.5.8): Element \"{violation.selector}\" has a "
                f"target size below the 24x24 CSS pixels minimum. Applying minimum dimensions "
                f"to ensure adequate touch targets for users with motor impairments."
            )
            return self.style_fix(violation, "a11y-target-size", dict(TARGET_SIZE_STYLES), reasoning)

        alternative = self.suggest_alternative(violation)
        logger.info(
            f"[InteractionSpecialist] {violation.id} needs a {alternative.type}-based "
            f"alternative; flagging for human review"
        )
        reasoning = (
            f"WCAG 2.2 Dragging Movements (2.5.7): Element \"{violation.selector}\" uses dragging "
            f"for operation without a single-pointer alternative. REQUIRES HUMAN REVIEW: "
            f"Implement {alternative.type}-based alternative. Suggested: {alternative.description}"
        )
        return self.attribute_fix(violation, "data-a11y-needs-alternative", "true", reasoning)

    def calculate_confidence(self, violation: Violation) -> ConfidenceScore:
        if _is_target_size(violation):
            return score(85, ["CSS-only fix", "No functionality changes"])
        return score(
            DRAGGING_CONFIDENCE,
            [
                "Requires JavaScript implementation",
                "Alternative interface must be created",
                "Functional testing required",
            ],
            force_review=True,
        )

    def suggest_alternative(self, violation: Violation) -> DraggingAlternative:
        html = violation.html.lower()
        if "slider" in html or "range" in html:
            return SLIDER_ALTERNATIVE
        if "sortable" in html or "draggable" in html or "kanban" in html:
            return SORTABLE_ALTERNATIVE
        if "map" in html:
            return MAP_ALTERNATIVE
        return GENERIC_ALTERNATIVE

    def create_human_handoff(self, violation: Violation) -> HumanHandoffItem:
        alternative = self.suggest_alternative(violation)
        return HumanHandoffItem(
            violation_id=violation.id,
            rule_id=violation.rule_id,
            selector=violation.selector,
            reason=(
                "Dragging functionality requires JavaScript implementation "
                "of single-pointer alternative"
            ),
            suggested_action=(
                f"Implement {alternative.type}-based alternative: {alternative.description}"
            ),
        )
