"""
Plain HTTP fetcher for pricing pages that render server-side.
"""

from __future__ import annotations

import requests

from app.scraping.base import PageFetcher

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class RequestsPageFetcher(PageFetcher):
    """
    Fetch raw HTML with a shared requests session.
    """

    def __init__(
        self,
        *,
        user_agent: str,
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.session = session or requests.Session()
        self.timeout_seconds = timeout_seconds
        self.request_headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }

    def _fetch_once(self, url: str) -> str:
        response = self.session.get(
            url,
            headers=self.request_headers,
            timeout=self.timeout_seconds,
            allow_redirects=True,
        )
        if response.status_code in RETRYABLE_STATUS_CODES:
            raise requests.HTTPError(
                f"Retryable status={response.status_code}",
                response=response,
            )
        response.raise_for_status()
        return response.text

    def _is_retryable(self, exc: Exception) -> bool:
        if isinstance(exc, requests.HTTPError):
            status_code = exc.response.status_code if exc.response is not None else None
            return status_code in RETRYABLE_STATUS_CODES
        return True

    def close(self) -> None:
        self.session.close()
