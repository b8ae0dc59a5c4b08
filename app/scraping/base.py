"""
Base fetcher abstraction for pricing page retrieval.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from urllib.parse import urlparse

from app.scraping.logging_utils import log_event
from pricing.errors import FetchFailure, PageBlockedError

logger = logging.getLogger(__name__)

DEFAULT_MIN_HTML_BYTES = 2000


class PageFetcher(ABC):
    """
    Base class implementing retry, block detection and snapshot mechanics.

    Subclasses only implement one attempt at retrieving the page.
    """

    def __init__(
        self,
        *,
        max_retries: int = 2,
        backoff_seconds: float = 1.0,
        backoff_multiplier: float = 2.0,
        min_html_bytes: int = DEFAULT_MIN_HTML_BYTES,
        snapshot_dir: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.max_retries = max(0, max_retries)
        self.backoff_seconds = max(0.0, backoff_seconds)
        self.backoff_multiplier = max(1.0, backoff_multiplier)
        self.min_html_bytes = max(0, min_html_bytes)
        self.snapshot_dir = snapshot_dir
        self._sleep = sleep

    def fetch(self, url: str) -> str:
        """
        Return the rendered HTML of `url`.

        Raises:
            PageBlockedError: If every attempt returned an implausibly small page.
            FetchFailure: If the page could not be retrieved within the retry budget.
        """

        total_attempts = self.max_retries + 1
        last_error: Exception | None = None

        for attempt in range(total_attempts):
            try:
                html = self._fetch_once(url)
                self._ensure_not_blocked(url, html)
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                log_event(
                    logger,
                    logging.WARNING,
                    "page_fetch_attempt_failed",
                    url=url,
                    attempt=attempt + 1,
                    attempts=total_attempts,
                    error=str(exc),
                )
                if not self._is_retryable(exc):
                    break
            else:
                self._write_snapshot(url, html)
                log_event(
                    logger,
                    logging.INFO,
                    "page_fetched",
                    url=url,
                    attempt=attempt + 1,
                    html_bytes=len(html),
                )
                return html

            if attempt + 1 < total_attempts:
                self._sleep(self.backoff_seconds * (self.backoff_multiplier**attempt))

        if isinstance(last_error, PageBlockedError):
            raise last_error
        raise FetchFailure(
            f"Failed to fetch {url} after {total_attempts} attempt(s): {last_error}"
        ) from last_error

    @abstractmethod
    def _fetch_once(self, url: str) -> str:
        """
        Make one attempt at retrieving the page HTML.
        """

    def _is_retryable(self, exc: Exception) -> bool:
        return True

    def close(self) -> None:
        """
        Release resources held across fetches.
        """

    def _ensure_not_blocked(self, url: str, html: str) -> None:
        if not isinstance(html, str):
            raise FetchFailure(f"Fetcher returned {type(html).__name__} instead of HTML for {url}")
        if len(html) < self.min_html_bytes:
            raise PageBlockedError(
                f"Potential block page detected for {url}. HTML size is only {len(html)} bytes."
            )

    def _write_snapshot(self, url: str, html: str) -> None:
        if not self.snapshot_dir:
            return
        hostname = urlparse(url).hostname or "page"
        try:
            directory = Path(self.snapshot_dir)
            directory.mkdir(parents=True, exist_ok=True)
            (directory / f"{hostname}.html").write_text(html, encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not write HTML snapshot for %s: %s", url, exc)
