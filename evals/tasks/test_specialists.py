"""
Specialist evals -- each planner produces a safe, well-formed instruction.
"""

import dataclasses

import pytest

from a11y_remediator.agents import (
    AltTextSpecialist,
    ContrastSpecialist,
    FocusSpecialist,
    GenericAriaHandler,
    InteractionSpecialist,
    NavigationSpecialist,
    SpecialistAgent,
)
from a11y_remediator.agents.base import confidence_tier, score
from a11y_remediator.agents.contrast import (
    WHITE,
    adjust_for_contrast,
    contrast_ratio,
    parse_color,
    rgb_to_hex,
)
from a11y_remediator.models import ConfidenceTier, FixType, PageContext
from a11y_remediator.security.safety_validator import SafetyValidator


class TestConfidenceScoring:
    def test_tiers(self):
        assert confidence_tier(95) == ConfidenceTier.HIGH
        assert confidence_tier(80) == ConfidenceTier.MEDIUM
        assert confidence_tier(79) == ConfidenceTier.LOW

    def test_low_tier_forces_review(self):
        assert score(60, ["guess"]).requires_human_review
        assert not score(90, ["solid"]).requires_human_review
        assert score(90, ["solid"], force_review=True).requires_human_review

    def test_value_is_clamped(self):
        assert score(150, []).value == 100
        assert score(-5, []).value == 0


class TestProtocolConformance:
    @pytest.mark.parametrize(
        "specialist",
        [
            AltTextSpecialist(),
            ContrastSpecialist(),
            FocusSpecialist(),
            InteractionSpecialist(),
            NavigationSpecialist(),
            GenericAriaHandler(),
        ],
    )
    def test_is_specialist_agent(self, specialist):
        assert isinstance(specialist, SpecialistAgent)
        assert specialist.name == type(specialist).__name__


class TestAltTextSpecialist:
    """Alt text from filename, nearby text, decorative markup, or a generic fallback."""

    def test_descriptive_filename(self, v1_alt):
        instruction = AltTextSpecialist().plan_fix(v1_alt)
        assert instruction.type == FixType.ATTRIBUTE
        assert instruction.params.attribute == "alt"
        assert instruction.params.value == "Team photo"
        assert "filename analysis" in instruction.reasoning
        assert SafetyValidator().validate(instruction).valid

    def test_surrounding_text_when_filename_is_generic(self, violation_factory):
        violation = violation_factory(html='<img src="/uploads/DSC0001.jpg">')
        context = PageContext(surrounding_text="Our team at the spring offsite")
        instruction = AltTextSpecialist().plan_fix(violation, context)
        assert instruction.params.value == "Image related to: Our team at the spring offsite"

    def test_long_surrounding_text_is_truncated(self, violation_factory):
        violation = violation_factory(html="<img>")
        context = PageContext(surrounding_text="word " * 60)
        value = AltTextSpecialist().plan_fix(violation, context).params.value
        assert value.endswith("...")
        assert len(value) <= len("Image related to: ") + 125

    def test_decorative_gets_empty_alt(self, violation_factory):
        violation = violation_factory(html='<span class="icon-star" aria-hidden="true"></span>')
        instruction = AltTextSpecialist().plan_fix(violation)
        assert instruction.params.value == ""
        assert "decorative" in instruction.reasoning

    def test_generic_logo(self, violation_factory):
        violation = violation_factory(html='<img class="logo" src="/uploads/123.png">')
        assert AltTextSpecialist().plan_fix(violation).params.value == "Company logo"
        titled = AltTextSpecialist().plan_fix(violation, PageContext(title="Acme"))
        assert titled.params.value == "Acme logo"

    def test_confidence(self, v1_alt, violation_factory):
        specialist = AltTextSpecialist()
        assert specialist.calculate_confidence(v1_alt).value == 85
        unknown = specialist.calculate_confidence(violation_factory(html="<img>"))
        assert unknown.tier == ConfidenceTier.LOW
        assert unknown.requires_human_review


class TestContrastSpecialist:
    """Foreground color moves away from the background until AA is met."""

    def test_color_parsing(self):
        assert parse_color("#fff") == WHITE
        assert parse_color("rgb(0, 128, 255)") == (0, 128, 255)
        assert parse_color("rgba(10,20,30,0.5)") == (10, 20, 30)
        assert parse_color("teal") is None
        assert rgb_to_hex(parse_color("#0a0B0c")) == "#0a0b0c"

    def test_black_on_white_ratio(self):
        assert contrast_ratio(parse_color("#000"), WHITE) == pytest.approx(21.0)

    def test_adjusted_color_meets_target(self):
        adjusted = adjust_for_contrast(parse_color("#999999"), WHITE, 4.6)
        assert contrast_ratio(adjusted, WHITE) >= 4.6
        assert adjusted != (0, 0, 0)

    def test_plan_uses_reported_colors(self, v2_contrast):
        specialist = ContrastSpecialist()
        instruction = specialist.plan_fix(v2_contrast)
        assert instruction.type == FixType.STYLE
        assert instruction.params.css_class == "a11y-contrast-fix"
        new_color = parse_color(instruction.params.styles["color"])
        assert contrast_ratio(new_color, WHITE) >= 4.6
        assert specialist.calculate_confidence(v2_contrast).value == 90

    def test_context_colors_win(self, v2_contrast):
        context = PageContext(current_colors={"foreground": "#777777", "background": "#000000"})
        instruction = ContrastSpecialist().plan_fix(v2_contrast, context)
        new_color = parse_color(instruction.params.styles["color"])
        assert contrast_ratio(new_color, parse_color("#000000")) >= 4.6

    def test_large_text_target(self, violation_factory):
        violation = violation_factory(
            rule_id="color-contrast",
            html="<h1>Title</h1>",
            description="foreground: #888888 background: #ffffff",
        )
        instruction = ContrastSpecialist().plan_fix(violation)
        assert "large text (3:1)" in instruction.reasoning

    def test_unreported_colors_need_review(self, violation_factory):
        confidence = ContrastSpecialist().calculate_confidence(
            violation_factory(rule_id="color-contrast")
        )
        assert confidence.requires_human_review


class TestNavigationSpecialist:
    def test_positive_tabindex_reset(self, violation_factory):
        instruction = NavigationSpecialist().plan_fix(violation_factory(rule_id="tabindex"))
        assert (instruction.params.attribute, instruction.params.value) == ("tabindex", "0")

    def test_non_interactive_focus_gets_negative_tabindex(self, violation_factory):
        violation = violation_factory(rule_id="focus-order-semantics", html="<div>Panel</div>")
        assert NavigationSpecialist().plan_fix(violation).params.value == "-1"

    def test_link_name_from_title(self, violation_factory):
        violation = violation_factory(rule_id="link-name", html='<a href="/" title="Home"></a>')
        instruction = NavigationSpecialist().plan_fix(violation)
        assert instruction.params.attribute == "aria-label"
        assert instruction.params.value == "Home"

    def test_link_name_icon_hint(self, violation_factory):
        violation = violation_factory(rule_id="button-name", html='<button class="search-btn"></button>')
        assert NavigationSpecialist().plan_fix(violation).params.value == "Search"

    def test_clickable_div_gets_role(self, violation_factory):
        violation = violation_factory(rule_id="keyboard", html='<div onclick="go()">Go</div>')
        specialist = NavigationSpecialist()
        assert specialist.plan_fix(violation).params.value == "button"
        assert specialist.calculate_confidence(violation).value == 65

    def test_bypass_label(self, violation_factory):
        instruction = NavigationSpecialist().plan_fix(violation_factory(rule_id="bypass"))
        assert instruction.params.value == "Skip to main content"

    def test_fallback_label_is_low_confidence(self, violation_factory):
        violation = violation_factory(rule_id="link-name", html='<a href="/x"></a>')
        confidence = NavigationSpecialist().calculate_confidence(violation)
        assert confidence.value == 50
        assert confidence.requires_human_review


class TestFocusSpecialist:
    def test_obscured_adds_scroll_margin(self, violation_factory):
        instruction = FocusSpecialist().plan_fix(violation_factory(rule_id="focus-not-obscured"))
        assert instruction.params.css_class == "a11y-focus-visible"
        assert instruction.params.styles["scroll-margin-top"] == "80px"

    def test_appearance_adds_outline(self, violation_factory):
        instruction = FocusSpecialist().plan_fix(violation_factory(rule_id="focus-appearance"))
        assert instruction.params.styles["outline"] == "2px solid #005fcc"

    def test_custom_component_lowers_confidence(self, violation_factory):
        violation = violation_factory(rule_id="focus-visible", selector="[data-widget]")
        assert FocusSpecialist().calculate_confidence(violation).value == 75


class TestInteractionSpecialist:
    def test_target_size_is_css(self, violation_factory):
        violation = violation_factory(rule_id="target-size")
        specialist = InteractionSpecialist()
        instruction = specialist.plan_fix(violation)
        assert instruction.type == FixType.STYLE
        assert instruction.params.styles["min-width"] == "24px"
        assert not specialist.calculate_confidence(violation).requires_human_review

    def test_dragging_flags_for_review(self, violation_factory):
        violation = violation_factory(rule_id="dragging-movements", html='<div class="slider"></div>')
        specialist = InteractionSpecialist()
        instruction = specialist.plan_fix(violation)
        assert instruction.params.attribute == "data-a11y-needs-alternative"
        confidence = specialist.calculate_confidence(violation)
        assert confidence.value == 30
        assert confidence.requires_human_review

    def test_dragging_handoff_suggests_alternative(self, violation_factory):
        violation = violation_factory(rule_id="dragging-movements", html='<ul class="sortable"></ul>')
        handoff = InteractionSpecialist().create_human_handoff(violation)
        assert handoff.violation_id == violation.id
        assert handoff.suggested_action.startswith("Implement button-based alternative")


class TestGenericAriaHandler:
    def test_accepts_anything(self, violation_factory):
        assert GenericAriaHandler().can_handle(violation_factory(rule_id="made-up-rule"))

    def test_landmark_role_from_markup(self, violation_factory):
        violation = violation_factory(rule_id="landmark-one-main", html="<main>Content</main>")
        instruction = GenericAriaHandler().plan_fix(violation)
        assert (instruction.params.attribute, instruction.params.value) == ("role", "main")

    def test_label_from_help_text(self, violation_factory):
        violation = dataclasses.replace(
            violation_factory(rule_id="label", html="<input>"),
            help="Ensure form fields have labels",
        )
        assert GenericAriaHandler().plan_fix(violation).params.value == "form fields have labels"

    def test_required_state(self, violation_factory):
        instruction = GenericAriaHandler().plan_fix(violation_factory(rule_id="field-required"))
        assert (instruction.params.attribute, instruction.params.value) == ("aria-required", "true")

    def test_always_low_confidence(self, violation_factory):
        confidence = GenericAriaHandler().calculate_confidence(violation_factory())
        assert confidence.value == 50
        assert confidence.requires_human_review
