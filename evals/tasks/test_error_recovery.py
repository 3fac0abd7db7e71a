"""
Recovery evals -- selector fuzzy matching and verification failure analysis.
"""

import pytest

from a11y_remediator.errors import InjectorError, InjectorErrorCode
from a11y_remediator.models import AttributeFixParams, FixInstruction, FixType, StyleFixParams
from a11y_remediator.recovery import (
    ErrorRecoveryService,
    PageStructure,
    RecoveryAction,
    levenshtein_distance,
    string_similarity,
)
from a11y_remediator.recovery.error_recovery import (
    FailureType,
    SuggestedAction,
    extract_attributes_from_selector,
    extract_classes_from_selector,
    extract_id_from_selector,
    extract_tag_from_selector,
)


def label_instruction(selector="button#submit-btn", value="Click here"):
    return FixInstruction(
        type=FixType.ATTRIBUTE,
        selector=selector,
        violation_id="v1",
        reasoning="label",
        params=AttributeFixParams(selector=selector, attribute="aria-label", value=value, reasoning="label"),
    )


@pytest.fixture
def structure():
    return PageStructure.from_dict(
        {
            "interactiveElements": [
                {"selector": "button#submit-button", "tagName": "button", "text": "Submit"},
                {"selector": "a.nav-link", "tagName": "a", "text": "Home"},
            ],
            "landmarks": [{"selector": "main#content", "tagName": "main", "role": "main"}],
            "headings": [],
        }
    )


class TestStringHelpers:
    def test_levenshtein(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3

    def test_similarity_bounds(self):
        assert string_similarity("abc", "abc") == 1.0
        assert string_similarity("abc", "") == 0.0
        assert 0 < string_similarity("button#a", "button#b") < 1

    def test_selector_parts(self):
        selector = 'button#save.primary.large[aria-label="Save"]'
        assert extract_tag_from_selector(selector) == "button"
        assert extract_id_from_selector(selector) == "save"
        assert extract_classes_from_selector(selector) == ["primary", "large"]
        assert extract_attributes_from_selector(selector) == {"aria-label": "Save"}


class TestSelectorRecovery:
    def test_close_selector_is_corrected(self, structure):
        result = ErrorRecoveryService().recover_from_selector_error("button#submit-btn", structure)
        assert result.success
        assert result.corrected_selector == "button#submit-button"
        assert "tag match" in result.reason

    def test_no_elements(self):
        result = ErrorRecoveryService().recover_from_selector_error("div", PageStructure())
        assert not result.success
        assert result.confidence == 0.0

    def test_poor_match_below_threshold(self, structure):
        result = ErrorRecoveryService().recover_from_selector_error("svg.chart-legend", structure)
        assert not result.success
        assert "below threshold" in result.reason

    def test_corrected_instruction_updates_params(self):
        corrected = ErrorRecoveryService().create_corrected_instruction(
            label_instruction(), "button#submit-button"
        )
        assert corrected.selector == "button#submit-button"
        assert corrected.params.selector == "button#submit-button"
        assert corrected.params.value == "Click here"


class TestInjectorRecovery:
    def test_selector_not_found_with_structure(self, structure):
        error = InjectorError(InjectorErrorCode.SELECTOR_NOT_FOUND, "missing", "button#submit-btn")
        result = ErrorRecoveryService().recover_from_injector_error(error, label_instruction(), structure)
        assert result.action == RecoveryAction.SELECTOR_CORRECTED
        assert result.corrected_instruction.selector == "button#submit-button"

    def test_selector_not_found_without_structure(self):
        error = InjectorError(InjectorErrorCode.SELECTOR_NOT_FOUND, "missing")
        result = ErrorRecoveryService().recover_from_injector_error(error, label_instruction())
        assert result.action == RecoveryAction.HANDOFF
        assert not result.success

    @pytest.mark.parametrize(
        "code, phrase",
        [
            (InjectorErrorCode.CONTENT_CHANGED, "re-audit"),
            (InjectorErrorCode.DESTRUCTIVE_CHANGE, "human review"),
            (InjectorErrorCode.STYLE_CONFLICT, "Unrecoverable"),
        ],
    )
    def test_other_codes_hand_off(self, code, phrase):
        result = ErrorRecoveryService().recover_from_injector_error(
            InjectorError(code, "boom"), label_instruction()
        )
        assert result.action == RecoveryAction.HANDOFF
        assert phrase in result.details


class TestVerificationRecovery:
    def test_vague_text_is_improved(self):
        result = ErrorRecoveryService().recover_from_verification_failure(
            "Link text is too vague", label_instruction()
        )
        assert result.action == RecoveryAction.TEXT_IMPROVED
        assert result.corrected_instruction.params.value == (
            "Click here - provides additional context and functionality"
        )

    def test_new_violation_suggests_rollback(self):
        result = ErrorRecoveryService().recover_from_verification_failure(
            "Fix introduced a new violation", label_instruction()
        )
        assert result.action == RecoveryAction.ROLLBACK

    def test_unknown_failure_retries(self):
        instruction = label_instruction()
        result = ErrorRecoveryService().recover_from_verification_failure("timeout", instruction)
        assert result.action == RecoveryAction.RETRY
        assert result.corrected_instruction is instruction

    def test_text_failure_on_style_fix_hands_off(self):
        style = FixInstruction(
            type=FixType.STYLE,
            selector="p",
            violation_id="v1",
            reasoning="contrast",
            params=StyleFixParams(selector="p", css_class="fix", styles={"color": "#000"}),
        )
        result = ErrorRecoveryService().recover_from_verification_failure("redundant text", style)
        assert result.action == RecoveryAction.HANDOFF

    def test_analysis_classification(self):
        service = ErrorRecoveryService()
        redundant = service.analyze_verification_failure("Same as adjacent link", "Home")
        assert redundant.failure_type == FailureType.REDUNDANT_TEXT
        assert redundant.improved_text == "Home - unique identifier"
        other = service.analyze_verification_failure("scanner flaked")
        assert other.suggested_action == SuggestedAction.RETRY
