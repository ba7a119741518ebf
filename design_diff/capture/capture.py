"""Renders a live page to a PNG screenshot with Playwright."""

from __future__ import annotations

import logging
import time
from pathlib import Path

from playwright.async_api import Browser, Error as PlaywrightError, async_playwright

from design_diff.errors import CaptureError
from design_diff.models.config import CaptureConfig

logger = logging.getLogger(__name__)

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]


class PageCapturer:
    """Captures full-page screenshots at a fixed 1:1 device scale."""

    def __init__(self, config: CaptureConfig | None = None):
        self.config = config or CaptureConfig()

    async def capture(self, url: str, output_path: str | Path) -> Path:
        """Render ``url`` and write the screenshot to ``output_path``."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        start = time.time()
        logger.info("Capturing %s (%dx%d)", url, self.config.width, self.config.height)

        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(headless=True, args=BROWSER_ARGS)
                try:
                    await self._screenshot(browser, url, output_path)
                finally:
                    await browser.close()
        except PlaywrightError as e:
            raise CaptureError(f"Failed to capture {url}: {e}") from e

        logger.info("Captured %s in %.1fs to %s", url, time.time() - start, output_path)
        return output_path

    async def _screenshot(self, browser: Browser, url: str, output_path: Path) -> None:
        cfg = self.config
        context_opts = {
            "viewport": {"width": cfg.width, "height": cfg.height},
            "device_scale_factor": cfg.device_scale_factor,
        }
        if cfg.user_agent:
            context_opts["user_agent"] = cfg.user_agent
        context = await browser.new_context(**context_opts)
        try:
            page = await context.new_page()
            await page.goto(url, wait_until=cfg.wait_until, timeout=cfg.timeout_ms)
            # Lazy images, skeleton animations and late JS rendering
            if cfg.settle_ms:
                await page.wait_for_timeout(cfg.settle_ms)
            await page.screenshot(path=str(output_path), full_page=cfg.full_page)
        finally:
            await context.close()
