"""Claude API client wrapper used for vision-based fix suggestions."""

from __future__ import annotations

import json
import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Optional

import anthropic

logger = logging.getLogger(__name__)

# Configurable debug directory, set by the orchestrator at startup
_debug_dir: Path | None = None


def set_debug_dir(path: Path) -> None:
    """Set the directory for AI exchange logs."""
    global _debug_dir
    _debug_dir = path
    _debug_dir.mkdir(parents=True, exist_ok=True)


def _get_debug_dir() -> Path:
    global _debug_dir
    if _debug_dir is None:
        _debug_dir = Path(".design-diff") / "debug"
    _debug_dir.mkdir(parents=True, exist_ok=True)
    return _debug_dir


class AIClient:
    """Wrapper around the Anthropic Claude API."""

    def __init__(self, model: str = "claude-sonnet-4-20250514", max_tokens: int = 4096):
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise EnvironmentError(
                "ANTHROPIC_API_KEY environment variable is not set. "
                "AI fix suggestions need it; rule-based suggestions are used otherwise."
            )
        self.client = anthropic.Anthropic(api_key=api_key, timeout=300.0)
        self.model = model
        self.max_tokens = max_tokens
        self._call_count = 0

    @property
    def call_count(self) -> int:
        return self._call_count

    def complete(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None,
        temperature: float = 0.3,
    ) -> str:
        """Send a text-only completion request and return the text response."""
        return self._send(system_prompt, [{"type": "text", "text": user_message}],
                          user_message, max_tokens, temperature)

    def complete_with_images(
        self,
        system_prompt: str,
        user_message: str,
        images_base64: list[str],
        media_type: str = "image/png",
        max_tokens: Optional[int] = None,
        temperature: float = 0.2,
    ) -> str:
        """Send one message carrying several images followed by the text prompt."""
        content: list[dict[str, Any]] = [
            {
                "type": "image",
                "source": {"type": "base64", "media_type": media_type, "data": data},
            }
            for data in images_base64
        ]
        content.append({"type": "text", "text": user_message})
        return self._send(system_prompt, content,
                          f"[{len(images_base64)} IMAGE(S) ATTACHED]\n{user_message}",
                          max_tokens, temperature)

    def complete_json(
        self,
        system_prompt: str,
        user_message: str,
        images_base64: list[str] | None = None,
        max_tokens: Optional[int] = None,
    ) -> dict[str, Any]:
        """Send a request and parse the response as a JSON object."""
        if images_base64:
            text = self.complete_with_images(system_prompt, user_message, images_base64,
                                             max_tokens=max_tokens)
        else:
            text = self.complete(system_prompt, user_message, max_tokens, temperature=0.2)
        return self._parse_json_response(text)

    def _send(
        self,
        system_prompt: str,
        content: list[dict[str, Any]],
        log_message: str,
        max_tokens: Optional[int],
        temperature: float,
    ) -> str:
        self._call_count += 1
        tokens = max_tokens or self.max_tokens
        logger.info("Calling AI (call #%d, model=%s, max_tokens=%d)...",
                    self._call_count, self.model, tokens)
        try:
            call_start = time.time()
            response = self.client.messages.create(
                model=self.model,
                max_tokens=tokens,
                temperature=temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": content}],
            )
            text = response.content[0].text
            logger.info("AI response received in %.1fs (%d chars)",
                        time.time() - call_start, len(text))
            if response.stop_reason == "max_tokens":
                logger.warning("AI response was truncated at max_tokens=%d", tokens)
            self._save_exchange_log(self._call_count, system_prompt, log_message, text, None)
            return text
        except anthropic.APIError as e:
            logger.error("Claude API error: %s", e)
            self._save_exchange_log(self._call_count, system_prompt, log_message, "", str(e))
            raise

    @staticmethod
    def _parse_json_response(text: str) -> dict[str, Any]:
        """Parse an AI response as JSON, tolerating code fences and trailing commas."""
        text = text.strip()
        fence = re.search(r"```(?:json)?\s*\n(.*?)\n```", text, re.DOTALL)
        if fence:
            text = fence.group(1).strip()

        try:
            return json.loads(text, strict=False)
        except json.JSONDecodeError:
            pass

        cleaned = re.sub(r",\s*([}\]])", r"\1", text)
        first, last = cleaned.find("{"), cleaned.rfind("}")
        if first != -1 and last > first:
            cleaned = cleaned[first:last + 1]
        try:
            return json.loads(cleaned, strict=False)
        except json.JSONDecodeError as e:
            logger.error("Failed to parse AI response as JSON: %s", e)
            raise ValueError(f"AI returned invalid JSON: {e}") from e

    @staticmethod
    def _save_exchange_log(
        call_number: int,
        system_prompt: str,
        user_message: str,
        response_text: str,
        error: str | None,
    ) -> None:
        """Save the full AI exchange (prompt + response) to a log file."""
        try:
            ts = time.strftime("%Y%m%d_%H%M%S")
            log_file = _get_debug_dir() / f"ai_call_{ts}_{call_number:03d}.log"
            with open(log_file, "w", encoding="utf-8") as f:
                f.write(f"=== AI CALL #{call_number} at {time.strftime('%Y-%m-%d %H:%M:%S')} ===\n\n")
                f.write(f"=== SYSTEM PROMPT ({len(system_prompt)} chars) ===\n{system_prompt}\n\n")
                f.write(f"=== USER MESSAGE ({len(user_message)} chars) ===\n{user_message}\n\n")
                f.write(f"=== RESPONSE ({len(response_text)} chars) ===\n")
                f.write(response_text or "(empty)")
                if error:
                    f.write(f"\n\n=== ERROR ===\n{error}\n")
            logger.debug("AI exchange logged to %s", log_file)
        except OSError as log_err:
            logger.debug("Failed to save AI exchange log: %s", log_err)
