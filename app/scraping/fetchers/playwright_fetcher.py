"""
Headless-browser fetcher for JavaScript-rendered pricing pages.
"""

from __future__ import annotations

import logging

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from app.scraping.base import PageFetcher

logger = logging.getLogger(__name__)

_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
]

# Hides the most common automation fingerprints before any page script runs.
_STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
window.chrome = window.chrome || { runtime: {} };
"""


class PlaywrightPageFetcher(PageFetcher):
    """
    Render a page in headless Chromium and return the final DOM.

    A fresh browser is launched per attempt so every worker thread owns
    its own Playwright instance.
    """

    def __init__(
        self,
        *,
        user_agent: str,
        navigation_timeout_seconds: float = 120.0,
        settle_seconds: float = 5.0,
        headless: bool = True,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.user_agent = user_agent
        self.navigation_timeout_ms = int(navigation_timeout_seconds * 1000)
        self.settle_ms = int(settle_seconds * 1000)
        self.headless = headless

    def _fetch_once(self, url: str) -> str:
        with sync_playwright() as playwright:
            browser = playwright.chromium.launch(headless=self.headless, args=_LAUNCH_ARGS)
            try:
                context = browser.new_context(
                    user_agent=self.user_agent,
                    locale="en-US",
                    viewport={"width": 1366, "height": 900},
                    extra_http_headers={
                        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                        "Accept-Language": "en-US,en;q=0.9",
                    },
                )
                context.add_init_script(_STEALTH_INIT_SCRIPT)
                page = context.new_page()
                page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms)
                self._wait_for_stability(page, url)
                return page.content()
            finally:
                browser.close()

    def _wait_for_stability(self, page, url: str) -> None:
        if self.settle_ms <= 0:
            return
        try:
            page.wait_for_load_state("networkidle", timeout=self.settle_ms)
        except PlaywrightTimeoutError:
            # Pages with long-polling never go idle; take the DOM as it is.
            logger.debug("Page did not reach network idle within %d ms: %s", self.settle_ms, url)
