"""
ErrorRecoveryService -- second chances for failed fix attempts.

Three recovery paths:
  1. Selector errors: fuzzy-match the lost selector against a summary of
     the page (interactive elements, landmarks, headings) and rewrite the
     instruction with the best candidate.
  2. Verification failures: classify the scanner's reason. Vague or
     redundant text gets an improved label; a newly introduced violation
     asks for a rollback; anything else is retried as-is.
  3. Other executor errors: handed off to a human.

Scoring for selector candidates (threshold 0.3):
  tag match 0.3, id match 0.4, selector similarity x 0.2,
  aria-label vs text similarity x 0.1, role match 0.1
"""

import dataclasses
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from ..errors import InjectorError, InjectorErrorCode
from ..models import AttributeFixParams, ContentFixParams, FixInstruction, FixType

logger = logging.getLogger(__name__)

CONFIDENCE_THRESHOLD = 0.3
TEXT_ATTRIBUTES = ("alt", "aria-label", "title")
VAGUE_PHRASES = ("click here", "read more", "learn more", "more", "here", "link", "button")

_TAG = re.compile(r"^([a-zA-Z][a-zA-Z0-9]*)")
_ID = re.compile(r"#([a-zA-Z_][a-zA-Z0-9_-]*)")
_CLASS = re.compile(r"\.([a-zA-Z_][a-zA-Z0-9_-]*)")
_ATTRIBUTE = re.compile(r"\[([a-zA-Z_][a-zA-Z0-9_-]*)(?:=\"([^\"]*)\")?\]")


class FailureType:
    VAGUE_TEXT = "vague_text"
    REDUNDANT_TEXT = "redundant_text"
    NEW_VIOLATION = "new_violation"
    OTHER = "other"


class SuggestedAction:
    IMPROVE_TEXT = "improve_text"
    ROLLBACK = "rollback"
    RETRY = "retry"
    HANDOFF = "handoff"


class RecoveryAction:
    SELECTOR_CORRECTED = "selector_corrected"
    TEXT_IMPROVED = "text_improved"
    RETRY = "retry"
    ROLLBACK = "rollback"
    HANDOFF = "handoff"


# =============================================================================
# TYPES
# =============================================================================


@dataclass
class ElementSummary:
    selector: str
    tag_name: str
    role: str | None = None
    text: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ElementSummary":
        return cls(
            selector=str(data.get("selector", "")),
            tag_name=str(data.get("tagName", "")),
            role=data.get("role"),
            text=data.get("text"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"selector": self.selector, "tagName": self.tag_name, "role": self.role, "text": self.text}


@dataclass
class PageStructure:
    """What the executor could see of the page when a selector went missing."""

    interactive_elements: list[ElementSummary] = field(default_factory=list)
    landmarks: list[ElementSummary] = field(default_factory=list)
    headings: list[ElementSummary] = field(default_factory=list)

    def all_elements(self) -> list[ElementSummary]:
        return [*self.interactive_elements, *self.landmarks, *self.headings]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PageStructure":
        def elements(key: str) -> list[ElementSummary]:
            return [ElementSummary.from_dict(e) for e in data.get(key) or [] if isinstance(e, dict)]

        return cls(
            interactive_elements=elements("interactiveElements"),
            landmarks=elements("landmarks"),
            headings=elements("headings"),
        )


@dataclass
class SelectorRecoveryResult:
    success: bool
    original_selector: str
    confidence: float
    corrected_selector: str | None = None
    matched_element: ElementSummary | None = None
    reason: str = ""


@dataclass
class VerificationFailureAnalysis:
    failure_type: str
    reason: str
    suggested_action: str
    improved_text: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "failureType": self.failure_type,
            "reason": self.reason,
            "suggestedAction": self.suggested_action,
            "improvedText": self.improved_text,
        }


@dataclass
class RecoveryResult:
    success: bool
    action: str
    details: str
    corrected_instruction: FixInstruction | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "action": self.action,
            "details": self.details,
            "correctedInstruction": (
                self.corrected_instruction.to_dict() if self.corrected_instruction else None
            ),
        }


# =============================================================================
# FUZZY MATCHING
# =============================================================================


def levenshtein_distance(a: str, b: str) -> int:
    previous = list(range(len(a) + 1))
    for i, char_b in enumerate(b, start=1):
        current = [i]
        for j, char_a in enumerate(a, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j - 1] + cost, current[j - 1] + 1, previous[j] + 1))
        previous = current
    return previous[-1]


def string_similarity(a: str, b: str) -> float:
    """1 - edit distance / longer length, case-insensitive. Identical strings score 1."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return 1 - levenshtein_distance(a.lower(), b.lower()) / max(len(a), len(b))


def extract_tag_from_selector(selector: str) -> str | None:
    match = _TAG.match(selector)
    return match.group(1).lower() if match else None


def extract_id_from_selector(selector: str) -> str | None:
    match = _ID.search(selector)
    return match.group(1) if match else None


def extract_classes_from_selector(selector: str) -> list[str]:
    return _CLASS.findall(selector)


def extract_attributes_from_selector(selector: str) -> dict[str, str]:
    return {name: value for name, value in _ATTRIBUTE.findall(selector)}


# =============================================================================
# SERVICE
# =============================================================================


class ErrorRecoveryService:
    """
    Stateless recovery helpers used by the action handler.

    Usage:
        recovery = ErrorRecoveryService()
        result = recovery.recover_from_injector_error(error, instruction, structure)
        if result.corrected_instruction:
            ...  # plan the next attempt with the corrected instruction
    """

    def recover_from_selector_error(
        self, original_selector: str, page_structure: PageStructure
    ) -> SelectorRecoveryResult:
        elements = page_structure.all_elements()
        if not elements:
            return SelectorRecoveryResult(
                success=False,
                original_selector=original_selector,
                confidence=0.0,
                reason="No elements found in page structure",
            )

        tag = extract_tag_from_selector(original_selector)
        element_id = extract_id_from_selector(original_selector)
        attributes = extract_attributes_from_selector(original_selector)

        best: tuple[float, ElementSummary, list[str]] | None = None
        for element in elements:
            score = 0.0
            reasons = []

            if tag and element.tag_name.lower() == tag:
                score += 0.3
                reasons.append("tag match")
            if element_id and f"#{element_id}" in element.selector:
                score += 0.4
                reasons.append("id match")

            similarity = string_similarity(original_selector, element.selector)
            score += similarity * 0.2
            if similarity > 0.5:
                reasons.append(f"selector similarity: {similarity * 100:.0f}%")

            label = attributes.get("aria-label")
            if element.text and label:
                text_similarity = string_similarity(label, element.text)
                score += text_similarity * 0.1
                if text_similarity > 0.5:
                    reasons.append(f"text similarity: {text_similarity * 100:.0f}%")

            if element.role and attributes.get("role") == element.role:
                score += 0.1
                reasons.append("role match")

            if best is None or score > best[0]:
                best = (score, element, reasons)

        score, element, reasons = best
        if score < CONFIDENCE_THRESHOLD:
            return SelectorRecoveryResult(
                success=False,
                original_selector=original_selector,
                confidence=score,
                reason=(
                    f"Best match score ({score * 100:.0f}%) below threshold "
                    f"({CONFIDENCE_THRESHOLD * 100:.0f}%)"
                ),
            )

        logger.info(
            f"[ErrorRecovery] Selector '{original_selector}' -> '{element.selector}' "
            f"(score {score:.2f})"
        )
        return SelectorRecoveryResult(
            success=True,
            original_selector=original_selector,
            confidence=score,
            corrected_selector=element.selector,
            matched_element=element,
            reason=f"Matched by: {', '.join(reasons)}",
        )

    def create_corrected_instruction(
        self, original: FixInstruction, corrected_selector: str
    ) -> FixInstruction:
        return dataclasses.replace(
            original,
            selector=corrected_selector,
            params=dataclasses.replace(original.params, selector=corrected_selector),
        )

    def analyze_verification_failure(
        self, failure_reason: str, original_text: str | None = None
    ) -> VerificationFailureAnalysis:
        reason = failure_reason.lower()

        if any(word in reason for word in ("vague", "generic", "non-descriptive", "unclear")):
            return VerificationFailureAnalysis(
                failure_type=FailureType.VAGUE_TEXT,
                reason=failure_reason,
                suggested_action=SuggestedAction.IMPROVE_TEXT,
                improved_text=self._improved_text(original_text, FailureType.VAGUE_TEXT),
            )
        if any(word in reason for word in ("redundant", "duplicate", "repetitive", "same as")):
            return VerificationFailureAnalysis(
                failure_type=FailureType.REDUNDANT_TEXT,
                reason=failure_reason,
                suggested_action=SuggestedAction.IMPROVE_TEXT,
                improved_text=self._improved_text(original_text, FailureType.REDUNDANT_TEXT),
            )
        if any(word in reason for word in ("new violation", "introduced", "caused", "broke")):
            return VerificationFailureAnalysis(
                failure_type=FailureType.NEW_VIOLATION,
                reason=failure_reason,
                suggested_action=SuggestedAction.ROLLBACK,
            )
        return VerificationFailureAnalysis(
            failure_type=FailureType.OTHER,
            reason=failure_reason,
            suggested_action=SuggestedAction.RETRY,
        )

    def create_improved_text_instruction(
        self, original: FixInstruction, improved_text: str
    ) -> FixInstruction:
        """Same fix with better text; instructions without a text value are returned unchanged."""
        params = original.params
        if original.type == FixType.CONTENT and isinstance(params, ContentFixParams):
            return dataclasses.replace(
                original, params=dataclasses.replace(params, inner_text=improved_text)
            )
        if (
            original.type == FixType.ATTRIBUTE
            and isinstance(params, AttributeFixParams)
            and params.attribute in TEXT_ATTRIBUTES
        ):
            return dataclasses.replace(original, params=dataclasses.replace(params, value=improved_text))
        return original

    def recover_from_injector_error(
        self,
        error: InjectorError,
        instruction: FixInstruction,
        page_structure: PageStructure | None = None,
    ) -> RecoveryResult:
        if error.code == InjectorErrorCode.SELECTOR_NOT_FOUND:
            if page_structure is None:
                return RecoveryResult(
                    success=False,
                    action=RecoveryAction.HANDOFF,
                    details="SELECTOR_NOT_FOUND error but no page structure available for fuzzy matching",
                )
            recovery = self.recover_from_selector_error(instruction.selector, page_structure)
            if recovery.success and recovery.corrected_selector:
                return RecoveryResult(
                    success=True,
                    action=RecoveryAction.SELECTOR_CORRECTED,
                    details=(
                        f'Selector corrected from "{instruction.selector}" to '
                        f'"{recovery.corrected_selector}" (confidence: {recovery.confidence * 100:.0f}%)'
                    ),
                    corrected_instruction=self.create_corrected_instruction(
                        instruction, recovery.corrected_selector
                    ),
                )
            return RecoveryResult(
                success=False,
                action=RecoveryAction.HANDOFF,
                details=f"Could not find matching element: {recovery.reason}",
            )

        if error.code == InjectorErrorCode.CONTENT_CHANGED:
            details = "Content changed since audit - re-audit required"
        elif error.code == InjectorErrorCode.DESTRUCTIVE_CHANGE:
            details = "Fix would cause destructive change - human review required"
        else:
            details = f"Unrecoverable error: {error.code} - {error.message}"
        return RecoveryResult(success=False, action=RecoveryAction.HANDOFF, details=details)

    def recover_from_verification_failure(
        self, failure_reason: str, instruction: FixInstruction
    ) -> RecoveryResult:
        """Turn a failure analysis into the next step for the current violation."""
        analysis = self.analyze_verification_failure(
            failure_reason, self.extract_text_from_instruction(instruction)
        )

        if analysis.suggested_action == SuggestedAction.IMPROVE_TEXT and analysis.improved_text:
            improved = self.create_improved_text_instruction(instruction, analysis.improved_text)
            if improved is not instruction:
                return RecoveryResult(
                    success=True,
                    action=RecoveryAction.TEXT_IMPROVED,
                    details=f"Text improved for {analysis.failure_type} issue",
                    corrected_instruction=improved,
                )
        if analysis.suggested_action == SuggestedAction.ROLLBACK:
            return RecoveryResult(
                success=True,
                action=RecoveryAction.ROLLBACK,
                details=f"Fix should be rolled back: {analysis.reason}",
            )
        if analysis.suggested_action == SuggestedAction.RETRY:
            return RecoveryResult(
                success=True,
                action=RecoveryAction.RETRY,
                details="Retrying with original instruction",
                corrected_instruction=instruction,
            )
        return RecoveryResult(
            success=False,
            action=RecoveryAction.HANDOFF,
            details=f"Could not recover from verification failure: {analysis.reason}",
        )

    def extract_text_from_instruction(self, instruction: FixInstruction) -> str | None:
        params = instruction.params
        if isinstance(params, ContentFixParams):
            return params.inner_text
        if isinstance(params, AttributeFixParams) and params.attribute in TEXT_ATTRIBUTES:
            return params.value
        return None

    def _improved_text(self, original_text: str | None, failure_type: str) -> str:
        if not original_text:
            return "Descriptive text for this element"
        if failure_type == FailureType.VAGUE_TEXT:
            if any(phrase in original_text.lower() for phrase in VAGUE_PHRASES):
                return f"{original_text} - provides additional context and functionality"
            return f"{original_text} (detailed description)"
        return f"{original_text} - unique identifier"
