"""
Page fetcher exports and factory.
"""

from __future__ import annotations

from app.config import PricingWorkerSettings, get_pricing_worker_settings
from app.scraping.base import PageFetcher
from app.scraping.fetchers.playwright_fetcher import PlaywrightPageFetcher
from app.scraping.fetchers.requests_fetcher import RequestsPageFetcher


def build_page_fetcher(settings: PricingWorkerSettings | None = None) -> PageFetcher:
    """
    Create the fetcher selected by PRICING_FETCHER.
    """

    resolved = settings or get_pricing_worker_settings()
    common = {
        "user_agent": resolved.user_agent,
        "max_retries": resolved.fetch_max_retries,
        "backoff_seconds": resolved.fetch_backoff_seconds,
        "min_html_bytes": resolved.min_html_bytes,
        "snapshot_dir": resolved.snapshot_dir,
    }
    if resolved.fetcher == "requests":
        return RequestsPageFetcher(timeout_seconds=resolved.navigation_timeout_seconds, **common)
    return PlaywrightPageFetcher(
        navigation_timeout_seconds=resolved.navigation_timeout_seconds,
        settle_seconds=resolved.settle_seconds,
        **common,
    )


__all__ = [
    "PageFetcher",
    "PlaywrightPageFetcher",
    "RequestsPageFetcher",
    "build_page_fetcher",
]
