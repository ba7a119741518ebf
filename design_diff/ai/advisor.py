"""Turns diff statistics into CSS fix suggestions, with or without the AI client.

Uses the vision model when a client is available and falls back to
similarity-based rules whenever the model is unavailable or fails.
"""

from __future__ import annotations

import base64
import json
import logging
from pathlib import Path

from pydantic import ValidationError

from design_diff.models.comparison import ComparisonResult
from design_diff.models.report import FixSuggestion

from .client import AIClient
from .prompts.fixes import FIXES_SYSTEM_PROMPT, build_fixes_prompt

logger = logging.getLogger(__name__)


def _encode_image(path: str | Path) -> str:
    with open(path, "rb") as f:
        return base64.b64encode(f.read()).decode()


class FixAdvisor:
    """Produces fix suggestions for a comparison result."""

    def __init__(self, ai_client: AIClient | None = None):
        self.ai_client = ai_client

    def suggest(self, images: dict[str, str], result: ComparisonResult) -> list[FixSuggestion]:
        """Suggest fixes. ``images`` maps design/actual/diff to file paths."""
        if self.ai_client is None:
            return self.suggest_with_rules(result)
        try:
            return self._suggest_with_ai(images, result)
        except Exception as e:
            logger.warning("AI fix suggestion failed, using rules instead: %s", e)
            return self.suggest_with_rules(result)

    def _suggest_with_ai(self, images: dict[str, str], result: ComparisonResult) -> list[FixSuggestion]:
        attached = [_encode_image(images[key]) for key in ("design", "actual", "diff") if images.get(key)]
        regions_json = json.dumps(
            [r.model_dump() for r in result.diff_regions], indent=2,
        )
        data = self.ai_client.complete_json(
            FIXES_SYSTEM_PROMPT,
            build_fixes_prompt(
                result.similarity_pct, result.diff_pixel_count,
                result.total_pixel_count, regions_json,
            ),
            images_base64=attached,
        )
        fixes = []
        for raw in data.get("fixes", []):
            try:
                fixes.append(FixSuggestion.model_validate(raw))
            except ValidationError as e:
                logger.debug("Dropping malformed fix suggestion %r: %s", raw, e)
        logger.info("AI produced %d fix suggestion(s)", len(fixes))
        return fixes

    @staticmethod
    def suggest_with_rules(result: ComparisonResult) -> list[FixSuggestion]:
        """Heuristic suggestions derived from similarity and diff coverage."""
        similarity = result.similarity_pct
        diff_ratio = result.diff_ratio * 100
        fixes: list[FixSuggestion] = []

        if similarity < 90:
            fixes.append(FixSuggestion(
                priority="high",
                type="layout",
                description="Severe structural shift: the layout does not match the design",
                selector="body > .container (estimated)",
                current_css="/* layout mismatch */",
                suggested_css="/* check width, box-sizing and flex-wrap of the main container */",
                impact=f"Similarity is only {similarity:.1f}%; the main container is likely misaligned",
            ))
        elif similarity < 95:
            fixes.append(FixSuggestion(
                priority="medium",
                type="spacing",
                description="Element spacing differs slightly from the design",
                selector="div (locate via the marked regions)",
                current_css="padding/margin: unknown",
                suggested_css="/* match padding and margin to the design's px values */",
                impact="Adjust the boxed regions by 2-4px in the browser dev tools",
            ))
        elif similarity < 98:
            fixes.append(FixSuggestion(
                priority="low",
                type="color",
                description="Colours differ at sub-pixel level",
                selector="*",
                current_css="color/background: unknown",
                suggested_css="/* verify text, shadow and border hex values */",
                impact="Blurred edges or colour contrast lower the similarity slightly",
            ))

        if diff_ratio > 5 and similarity > 90:
            fixes.append(FixSuggestion(
                priority="high",
                type="color",
                description="Large colour block mismatch, possibly a missing background",
                selector=".element",
                current_css="background-color: transparent;",
                suggested_css="background-color: <design background colour>;",
                impact=f"{diff_ratio:.1f}% of pixels differ, typical of a missing background colour or image",
            ))

        logger.debug("Rule engine produced %d suggestion(s)", len(fixes))
        return fixes
