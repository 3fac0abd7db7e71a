"""
SafetyValidator -- last line of defense before a fix reaches the page.

Two checks, composed by validate():
  1. Structure: the candidate must parse as a FixInstruction (schemas.py).
  2. Semantics: the fix must not break an interactive element. Clearing a
     critical attribute (href/type/name/action/method) or wiping all text
     of a button, link, input, select, textarea or form is destructive,
     and destructive instructions are always invalid.

Interactive targets that pass both checks still get a warning so the
verification step looks at functionality, not just the scanner rule.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..errors import InjectorError, InjectorErrorCode
from ..models import FixInstruction, FixType
from ..schemas import PARAMS_SCHEMAS, FixInstructionSchema, format_errors

logger = logging.getLogger(__name__)

INTERACTIVE_TAGS = ("button", "a", "input", "select", "textarea", "form")
CRITICAL_ATTRIBUTES = frozenset({"href", "type", "name", "action", "method"})

# Splits "nav > ul li a.link" into compound selectors; the last one is the target.
_COMBINATORS = re.compile(r"\s*[>+~]\s*|\s+")


@dataclass
class ValidationResult:
    """Outcome of a safety check.

    Attributes:
        valid: False if any error was found.
        errors: Reasons the instruction must not be executed.
        warnings: Non-blocking notes for the verifier.
    """

    valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors), "warnings": list(self.warnings)}


def _starts_with_tag(selector: str, tag: str) -> bool:
    if selector == tag:
        return True
    return any(selector.startswith(f"{tag}{sep}") for sep in (".", "[", "#", " ", ":"))


def is_interactive_selector(selector: str) -> bool:
    """Heuristic: does the selector start with, or end on, an interactive tag?"""
    normalized = selector.strip().lower()
    if not normalized:
        return False
    compounds = [part for part in _COMBINATORS.split(normalized) if part]
    candidates = {normalized, compounds[-1]} if compounds else {normalized}
    return any(
        _starts_with_tag(candidate, tag)
        for candidate in candidates
        for tag in INTERACTIVE_TAGS
    )


class SafetyValidator:
    """
    Validates fix instructions before execution.

    Usage:
        validator = SafetyValidator()
        result = validator.validate(instruction)
        if not result.valid:
            raise validator.create_validation_error(instruction, result)
    """

    def validate_schema(self, candidate: Any) -> ValidationResult:
        """Structural check against the FixInstruction shape."""
        if isinstance(candidate, FixInstruction):
            candidate = candidate.to_dict()
        if not isinstance(candidate, dict):
            return ValidationResult(valid=False, errors=["instruction must be an object"])

        try:
            envelope = FixInstructionSchema.model_validate(candidate)
        except PydanticValidationError as e:
            return ValidationResult(valid=False, errors=format_errors(e))

        try:
            PARAMS_SCHEMAS[envelope.type].model_validate(envelope.params)
        except PydanticValidationError as e:
            return ValidationResult(valid=False, errors=format_errors(e, prefix="params"))

        return ValidationResult()

    def is_destructive(self, instruction: FixInstruction) -> bool:
        """True if the fix would clear a critical attribute or the text of an interactive element."""
        targets = {instruction.selector, instruction.params.selector}
        if not any(is_interactive_selector(s) for s in targets):
            return False

        if instruction.type == FixType.ATTRIBUTE:
            params = instruction.params
            if params.attribute.strip().lower() in CRITICAL_ATTRIBUTES and not params.value.strip():
                return True

        if instruction.type == FixType.CONTENT:
            if not instruction.params.inner_text.strip():
                return True

        return False

    def validate(self, candidate: Any) -> ValidationResult:
        """Schema check, then destructive check, then interactive-target warning."""
        schema_result = self.validate_schema(candidate)
        if not schema_result.valid:
            logger.warning(f"[SafetyValidator] Schema rejected: {schema_result.errors}")
            return schema_result

        instruction = (
            candidate if isinstance(candidate, FixInstruction) else FixInstruction.from_dict(candidate)
        )
        result = ValidationResult()

        if self.is_destructive(instruction):
            result.valid = False
            result.errors.append(
                f"Destructive change detected: fix would modify interactive element "
                f'"{instruction.selector}" in a way that could break functionality'
            )
            logger.warning(
                f"[SafetyValidator] Destructive fix rejected for {instruction.violation_id} "
                f"on {instruction.selector}"
            )

        if is_interactive_selector(instruction.selector):
            result.warnings.append(
                f'Modifying interactive element "{instruction.selector}" - '
                f"verify functionality after fix"
            )

        return result

    def create_validation_error(
        self, instruction: FixInstruction, result: ValidationResult
    ) -> InjectorError:
        """Typed executor-style error describing why the instruction was refused."""
        if self.is_destructive(instruction):
            return InjectorError(
                code=InjectorErrorCode.DESTRUCTIVE_CHANGE,
                message=f"Fix would delete or break interactive element: {instruction.selector}",
                selector=instruction.selector,
                details={"fixType": instruction.type, "violationId": instruction.violation_id},
            )
        return InjectorError(
            code=InjectorErrorCode.VALIDATION_FAILED,
            message=f"Fix instruction validation failed: {'; '.join(result.errors)}",
            selector=instruction.selector,
            details={"validationErrors": list(result.errors)},
        )
