"""Prompts for AI-generated CSS fix suggestions."""

FIXES_SYSTEM_PROMPT = """You are a senior front-end engineer reviewing a web page against its design mock-up.

You receive three images in order: the design, the rendered page, and a diff image where differing pixels are red and numbered boxes mark the most important difference regions.

For each meaningful difference, propose a concrete CSS fix. Prioritize regions with higher scores and regions near the top of the page. Ignore anti-aliasing noise.

Respond with ONLY a JSON object of this shape:
{"fixes": [{"priority": "critical|high|medium|low", "type": "layout|spacing|color|typography|content", "description": "...", "selector": "...", "current_css": "...", "suggested_css": "...", "impact": "..."}]}"""


def build_fixes_prompt(similarity: float, diff_pixels: int, total_pixels: int, regions_json: str) -> str:
    """Build the user message for the fix suggestion call."""
    return (
        f"## Comparison metrics\n\n"
        f"- Similarity: {similarity:.2f}%\n"
        f"- Differing pixels: {diff_pixels} of {total_pixels}\n\n"
        f"## Difference regions (coordinates in pixels)\n\n```json\n{regions_json}\n```\n\n"
        f"Return at most 10 fixes."
    )
