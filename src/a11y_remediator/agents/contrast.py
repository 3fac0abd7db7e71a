"""
ContrastSpecialist -- text colors that fail WCAG AA contrast.

Keeps the background, walks the foreground color away from it in steps
of 5 per channel until the target ratio is met (falling back to black or
white), and emits a style fix. Targets carry a 0.1 buffer over the AA
minimums: 4.6:1 for normal text, 3.1:1 for large text.

Color math follows the WCAG 2.1 definitions of relative luminance and
contrast ratio.
"""

import logging
import re
from typing import NamedTuple

from ..models import ConfidenceScore, FixInstruction, PageContext, Violation
from .base import BaseSpecialist, score

logger = logging.getLogger(__name__)

NORMAL_TEXT_RATIO = 4.5
LARGE_TEXT_RATIO = 3.0
RATIO_BUFFER = 0.1
ADJUST_STEP = 5
MAX_ADJUST_ITERATIONS = 100
CSS_CLASS = "a11y-contrast-fix"

_HEX_COLOR = re.compile(r"^#([0-9a-f]{3}|[0-9a-f]{6})$")
_RGB_COLOR = re.compile(r"rgba?\s*\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)")
_DESCRIPTION_COLORS = re.compile(
    r"foreground(?: colou?r)?[:\s]+(#[0-9a-f]{3,6}|rgba?\([^)]*\))"
    r".*?background(?: colou?r)?[:\s]+(#[0-9a-f]{3,6}|rgba?\([^)]*\))",
    re.I,
)


class RGB(NamedTuple):
    r: int
    g: int
    b: int


BLACK = RGB(0, 0, 0)
WHITE = RGB(255, 255, 255)
DEFAULT_FOREGROUND = RGB(150, 150, 150)


def parse_color(color: str) -> RGB | None:
    """Parse #rgb, #rrggbb, rgb() or rgba(); None if unrecognized."""
    value = color.strip().lower()
    match = _HEX_COLOR.match(value)
    if match:
        hex_digits = match.group(1)
        if len(hex_digits) == 3:
            hex_digits = "".join(c * 2 for c in hex_digits)
        return RGB(*(int(hex_digits[i:i + 2], 16) for i in (0, 2, 4)))

    match = _RGB_COLOR.search(value)
    if match:
        return RGB(*(min(255, int(g)) for g in match.groups()))
    return None


def rgb_to_hex(rgb: RGB) -> str:
    return "#" + "".join(f"{max(0, min(255, round(c))):02x}" for c in rgb)


def relative_luminance(rgb: RGB) -> float:
    def linear(channel: int) -> float:
        c = channel / 255
        return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4

    r, g, b = (linear(c) for c in rgb)
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def contrast_ratio(first: RGB, second: RGB) -> float:
    lighter, darker = sorted((relative_luminance(first), relative_luminance(second)), reverse=True)
    return (lighter + 0.05) / (darker + 0.05)


def adjust_for_contrast(foreground: RGB, background: RGB, target_ratio: float) -> RGB:
    """Step the foreground away from the background until target_ratio is met."""
    darken = relative_luminance(foreground) <= relative_luminance(background)
    adjusted = foreground

    for _ in range(MAX_ADJUST_ITERATIONS):
        if contrast_ratio(adjusted, background) >= target_ratio:
            break
        if darken:
            adjusted = RGB(*(max(0, c - ADJUST_STEP) for c in adjusted))
        else:
            adjusted = RGB(*(min(255, c + ADJUST_STEP) for c in adjusted))

    if contrast_ratio(adjusted, background) < target_ratio:
        return BLACK if contrast_ratio(BLACK, background) > contrast_ratio(WHITE, background) else WHITE
    return adjusted


class ContrastSpecialist(BaseSpecialist):
    """Plans foreground color style fixes for contrast violations."""

    rule_patterns = tuple(
        re.compile(p, re.I) for p in (r"contrast", r"color-contrast", r"link-in-text-block")
    )

    @property
    def name(self) -> str:
        return "ContrastSpecialist"

    def plan_fix(self, violation: Violation, context: PageContext | None = None) -> FixInstruction:
        foreground, background = self._extract_colors(violation, context)
        target = self._target_ratio(violation)

        if contrast_ratio(foreground, background) >= target:
            new_color = rgb_to_hex(foreground)
        else:
            new_color = rgb_to_hex(adjust_for_contrast(foreground, background, target))

        logger.debug(
            f"[ContrastSpecialist] {violation.id}: {rgb_to_hex(foreground)} -> {new_color} "
            f"on {rgb_to_hex(background)} (target {target:.1f})"
        )
        return self.style_fix(
            violation,
            CSS_CLASS,
            {"color": new_color},
            self._reasoning(violation, foreground, background, new_color, target),
        )

    def calculate_confidence(self, violation: Violation) -> ConfidenceScore:
        if self._colors_from_description(violation):
            return score(90, ["Measured colors available", "CSS-only change"])
        return score(
            70,
            ["Colors not reported by scanner", "Assumed gray-on-white; verify rendered colors"],
        )

    def _colors_from_description(self, violation: Violation) -> tuple[RGB, RGB] | None:
        match = _DESCRIPTION_COLORS.search(violation.description)
        if not match:
            return None
        foreground = parse_color(match.group(1))
        background = parse_color(match.group(2))
        if foreground and background:
            return foreground, background
        return None

    def _extract_colors(self, violation: Violation, context: PageContext | None) -> tuple[RGB, RGB]:
        if context and context.current_colors:
            foreground = parse_color(context.current_colors.get("foreground", ""))
            background = parse_color(context.current_colors.get("background", ""))
            if foreground and background:
                return foreground, background

        return self._colors_from_description(violation) or (DEFAULT_FOREGROUND, WHITE)

    def _target_ratio(self, violation: Violation) -> float:
        description = violation.description.lower()
        html = violation.html.lower()
        large_text = (
            "large text" in description
            or "font-size: 18" in html
            or "font-size: 24" in html
            or any(tag in html for tag in ("<h1", "<h2", "<h3"))
        )
        return (LARGE_TEXT_RATIO if large_text else NORMAL_TEXT_RATIO) + RATIO_BUFFER

    def _reasoning(
        self,
        violation: Violation,
        foreground: RGB,
        background: RGB,
        new_color: str,
        target: float,
    ) -> str:
        ratio_type = "normal text (4.5:1)" if target > 4 else "large text (3:1)"
        return (
            f"Adjusting text color from {rgb_to_hex(foreground)} to {new_color} to meet "
            f"WCAG AA {ratio_type} contrast requirement. "
            f"Original contrast ratio was {contrast_ratio(foreground, background):.2f}:1 "
            f"against background {rgb_to_hex(background)}. "
            f"New color achieves required {target:.1f}:1 minimum ratio. "
            f"Rule: {violation.rule_id}"
        )
