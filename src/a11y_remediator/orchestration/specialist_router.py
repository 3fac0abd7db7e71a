"""
SpecialistRouter -- picks the specialist that plans a violation's fix.

Routing is a fixed-priority scan: the first specialist whose rule
patterns match violation.rule_id wins. Anything unmatched falls through
to the GenericAriaHandler, so route() is total and deterministic.

Default priority order:
  1. AltTextSpecialist     image-alt, area-alt, svg-img-alt, ...
  2. ContrastSpecialist    color-contrast, link-in-text-block
  3. FocusSpecialist       focus-not-obscured, focus-visible, 2.4.11-13
  4. InteractionSpecialist target-size, dragging, 2.5.7/2.5.8
  5. NavigationSpecialist  tabindex, keyboard, link-name, bypass, ...
  6. GenericAriaHandler    everything else

Focus sits ahead of Navigation because Navigation's broad "focus" pattern
would otherwise swallow the focus-appearance rules.
"""

import logging
from dataclasses import dataclass, field

from ..agents.alt_text import AltTextSpecialist
from ..agents.base import SpecialistAgent
from ..agents.contrast import ContrastSpecialist
from ..agents.focus import FocusSpecialist
from ..agents.generic_aria import GenericAriaHandler
from ..agents.interaction import InteractionSpecialist
from ..agents.navigation import NavigationSpecialist
from ..models import ConfidenceScore, FixInstruction, PageContext, Violation

logger = logging.getLogger(__name__)


@dataclass
class RoutingDecision:
    """Which specialist handles a violation and why."""

    specialist: SpecialistAgent
    rule_id: str
    matched: bool = True
    candidates_checked: list[str] = field(default_factory=list)

    @property
    def specialist_name(self) -> str:
        return self.specialist.name


@dataclass
class PlannedFix:
    """A specialist's plan for one violation."""

    instruction: FixInstruction
    confidence: ConfidenceScore
    specialist: str


class SpecialistRouter:
    """
    Maps violations to specialists.

    Usage:
        router = SpecialistRouter()
        planned = router.plan_fix(violation, PageContext(url=url))
        # planned.instruction, planned.confidence, planned.specialist
    """

    def __init__(
        self,
        specialists: list[SpecialistAgent] | None = None,
        fallback: SpecialistAgent | None = None,
    ):
        self._specialists: list[SpecialistAgent] = (
            list(specialists)
            if specialists is not None
            else [
                AltTextSpecialist(),
                ContrastSpecialist(),
                FocusSpecialist(),
                InteractionSpecialist(),
                NavigationSpecialist(),
            ]
        )
        self._fallback = fallback or GenericAriaHandler()

    def decide(self, violation: Violation) -> RoutingDecision:
        """Routing with the list of specialists that were consulted."""
        checked = []
        for specialist in self._specialists:
            checked.append(specialist.name)
            if specialist.can_handle(violation):
                return RoutingDecision(
                    specialist=specialist,
                    rule_id=violation.rule_id,
                    candidates_checked=checked,
                )
        return RoutingDecision(
            specialist=self._fallback,
            rule_id=violation.rule_id,
            matched=False,
            candidates_checked=checked,
        )

    def route(self, violation: Violation) -> SpecialistAgent:
        decision = self.decide(violation)
        logger.debug(
            f"[SpecialistRouter] {violation.rule_id} -> {decision.specialist_name}"
            f"{'' if decision.matched else ' (fallback)'}"
        )
        return decision.specialist

    def plan_fix(self, violation: Violation, context: PageContext | None = None) -> PlannedFix:
        specialist = self.route(violation)
        instruction = specialist.plan_fix(violation, context)
        confidence = specialist.calculate_confidence(violation)
        logger.debug(
            f"[SpecialistRouter] Planned {instruction.type} fix for {violation.id} "
            f"via {specialist.name} (confidence={confidence.value}, tier={confidence.tier})"
        )
        return PlannedFix(instruction=instruction, confidence=confidence, specialist=specialist.name)

    def get_specialist_name(self, violation: Violation) -> str:
        return self.route(violation).name

    def get_specialists(self) -> list[SpecialistAgent]:
        """Registered specialists in priority order, fallback last."""
        return [*self._specialists, self._fallback]
