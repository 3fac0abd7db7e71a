"""
AltTextSpecialist -- missing text alternatives for images.

Alt text is chosen from, in order:
  1. a descriptive image filename ("team-photo.jpg" -> "Team photo")
  2. nearby text on the page
  3. empty alt for decorative images (role=presentation, icons, spacers)
  4. a generic description inferred from the markup ("Company logo")
"""

import logging
import re
from pathlib import PurePosixPath
from urllib.parse import urlparse

from ..models import ConfidenceScore, FixInstruction, PageContext, Violation
from .base import BaseSpecialist, score

logger = logging.getLogger(__name__)

MAX_ALT_LENGTH = 125

GENERIC_FILENAMES = [
    re.compile(p, re.I)
    for p in (r"^img\d*$", r"^image\d*$", r"^photo\d*$", r"^picture\d*$",
              r"^untitled", r"^dsc\d+$", r"^screenshot", r"^\d+$")
]
DECORATIVE_MARKUP = [
    re.compile(r"role\s*=\s*[\"']presentation[\"']", re.I),
    re.compile(r"aria-hidden\s*=\s*[\"']true[\"']", re.I),
    re.compile(r"class\s*=\s*[\"'][^\"']*(?:icon|decoration|spacer|divider)[^\"']*[\"']", re.I),
]
DECORATIVE_FILENAME = re.compile(r"spacer|divider|decoration|border|bullet|arrow|icon", re.I)
SRC_ATTRIBUTE = re.compile(r"\bsrc\s*=\s*[\"']([^\"']+)[\"']", re.I)


def filename_from_src(src: str) -> str | None:
    path = urlparse(src).path
    name = PurePosixPath(path).name
    return name or None


def alt_from_filename(filename: str) -> str | None:
    """Readable text from a descriptive filename, None for camera/generic names."""
    stem = re.sub(r"\.[^/.]+$", "", filename)
    if any(p.search(stem) for p in GENERIC_FILENAMES):
        return None
    readable = re.sub(r"([a-z])([A-Z])", r"\1 \2", re.sub(r"[-_]", " ", stem))
    readable = re.sub(r"\s+", " ", readable).strip().lower()
    if 0 < len(readable) <= 100:
        return readable[0].upper() + readable[1:]
    return None


class AltTextSpecialist(BaseSpecialist):
    """Plans alt attribute fixes for images, image inputs and image maps."""

    rule_patterns = tuple(
        re.compile(p, re.I)
        for p in (r"image-alt", r"img-alt", r"input-image-alt", r"area-alt",
                  r"object-alt", r"svg-img-alt")
    )

    @property
    def name(self) -> str:
        return "AltTextSpecialist"

    def plan_fix(self, violation: Violation, context: PageContext | None = None) -> FixInstruction:
        context = context or PageContext()
        filename = self._image_filename(violation, context)
        alt_text = self._generate_alt_text(violation, context, filename)
        reasoning = self._reasoning(violation, context, filename, alt_text)
        logger.debug(f"[AltTextSpecialist] {violation.id}: alt={alt_text!r}")
        return self.attribute_fix(violation, "alt", alt_text, reasoning)

    def calculate_confidence(self, violation: Violation) -> ConfidenceScore:
        html = violation.html
        if any(p.search(html) for p in DECORATIVE_MARKUP):
            return score(82, ["Decorative markup detected", "Empty alt is standard practice"])

        match = SRC_ATTRIBUTE.search(html)
        filename = filename_from_src(match.group(1)) if match else None
        if filename and alt_from_filename(filename):
            factors = ["Descriptive filename available"]
            value = 85
            if not re.search(r"<img\b", html, re.I):
                value -= 10
                factors.append("Non-img element; alt semantics vary")
            return score(value, factors)

        return score(
            60,
            ["No descriptive filename", "Alt text may be generic; review the image content"],
        )

    def _image_filename(self, violation: Violation, context: PageContext) -> str | None:
        if context.image_filename:
            return context.image_filename
        src = context.image_src
        if not src:
            match = SRC_ATTRIBUTE.search(violation.html)
            src = match.group(1) if match else None
        return filename_from_src(src) if src else None

    def _generate_alt_text(
        self, violation: Violation, context: PageContext, filename: str | None
    ) -> str:
        if filename:
            from_filename = alt_from_filename(filename)
            if from_filename:
                return from_filename

        if context.surrounding_text and context.surrounding_text.strip():
            text = context.surrounding_text.strip()
            if len(text) > MAX_ALT_LENGTH:
                text = text[: MAX_ALT_LENGTH - 3] + "..."
            return f"Image related to: {text}"

        if self._is_decorative(violation, filename):
            return ""

        return self._generic_alt(violation, context)

    def _is_decorative(self, violation: Violation, filename: str | None) -> bool:
        if any(p.search(violation.html) for p in DECORATIVE_MARKUP):
            return True
        return bool(filename and DECORATIVE_FILENAME.search(filename))

    def _generic_alt(self, violation: Violation, context: PageContext) -> str:
        html = violation.html.lower()
        if "logo" in html:
            return f"{context.title} logo" if context.title else "Company logo"
        if "avatar" in html or "profile" in html:
            return "User profile image"
        if "banner" in html or "hero" in html:
            return "Banner image"
        if "thumbnail" in html:
            return "Thumbnail image"
        return "Image"

    def _reasoning(
        self,
        violation: Violation,
        context: PageContext,
        filename: str | None,
        alt_text: str,
    ) -> str:
        if alt_text == "":
            return (
                "Setting empty alt attribute to mark image as decorative. "
                "This is appropriate when the image does not convey meaningful content. "
                f"Rule: {violation.rule_id}"
            )

        sources = []
        if filename:
            sources.append("filename analysis")
        if context.surrounding_text:
            sources.append("surrounding text context")
        if not sources:
            sources.append("HTML structure analysis")

        return (
            f'Generated alt text "{alt_text}" based on {" and ".join(sources)}. '
            f"This provides a meaningful description for screen reader users. "
            f"Rule: {violation.rule_id}"
        )
