"""
tests/test_page_fetcher.py

Retry, block detection and snapshot behaviour of the page fetchers.
No network access: attempts are scripted.
"""

from __future__ import annotations

from pathlib import Path
from unittest import mock

import pytest
import requests

from app.scraping.fetchers.requests_fetcher import RequestsPageFetcher
from pricing.errors import FetchFailure, PageBlockedError
from conftest import StaticPageFetcher

FULL_PAGE = "<html><body>" + ("Pricing " * 400) + "</body></html>"


class TestPageFetcherRetries:
    def test_returns_html_on_first_attempt(self) -> None:
        fetcher = StaticPageFetcher(FULL_PAGE)
        assert fetcher.fetch("https://acme.test/pricing") == FULL_PAGE
        assert fetcher.urls == ["https://acme.test/pricing"]

    def test_transient_failure_is_retried_with_backoff(self) -> None:
        delays: list[float] = []
        fetcher = StaticPageFetcher(
            FULL_PAGE,
            failures=[ConnectionError("reset"), TimeoutError("slow")],
            max_retries=2,
            backoff_seconds=1.0,
            sleep=delays.append,
        )
        assert fetcher.fetch("https://acme.test/pricing") == FULL_PAGE
        assert len(fetcher.urls) == 3
        assert delays == [1.0, 2.0]

    def test_exhausted_retries_raise_fetch_failure(self) -> None:
        fetcher = StaticPageFetcher(
            FULL_PAGE,
            failures=[ConnectionError("down")] * 3,
            max_retries=2,
        )
        with pytest.raises(FetchFailure) as ctx:
            fetcher.fetch("https://acme.test/pricing")
        assert "after 3 attempt(s)" in str(ctx.value)
        assert not isinstance(ctx.value, PageBlockedError)

    def test_small_page_is_reported_as_blocked(self) -> None:
        fetcher = StaticPageFetcher("<html>Access denied</html>", max_retries=1)
        with pytest.raises(PageBlockedError) as ctx:
            fetcher.fetch("https://acme.test/pricing")
        assert "Potential block page detected" in str(ctx.value)
        assert len(fetcher.urls) == 2

    def test_block_threshold_is_configurable(self) -> None:
        fetcher = StaticPageFetcher("<html>tiny</html>", min_html_bytes=10)
        assert fetcher.fetch("https://acme.test/pricing") == "<html>tiny</html>"

    def test_snapshot_is_written_per_hostname(self, tmp_path: Path) -> None:
        fetcher = StaticPageFetcher(FULL_PAGE, snapshot_dir=str(tmp_path))
        fetcher.fetch("https://www.acme.test/pricing?plan=pro")
        assert (tmp_path / "www.acme.test.html").read_text(encoding="utf-8") == FULL_PAGE


class TestRequestsPageFetcher:
    @staticmethod
    def _response(status_code: int, text: str = FULL_PAGE) -> requests.Response:
        response = requests.Response()
        response.status_code = status_code
        response._content = text.encode("utf-8")
        response.encoding = "utf-8"
        return response

    def test_retries_retryable_status(self) -> None:
        session = mock.Mock(spec=requests.Session)
        session.get.side_effect = [self._response(503), self._response(200)]
        fetcher = RequestsPageFetcher(user_agent="test-agent", session=session, sleep=lambda _s: None)

        assert fetcher.fetch("https://acme.test/pricing") == FULL_PAGE
        assert session.get.call_count == 2
        assert session.get.call_args.kwargs["headers"]["User-Agent"] == "test-agent"

    def test_does_not_retry_client_errors(self) -> None:
        session = mock.Mock(spec=requests.Session)
        session.get.return_value = self._response(404)
        fetcher = RequestsPageFetcher(user_agent="test-agent", session=session, sleep=lambda _s: None)

        with pytest.raises(FetchFailure):
            fetcher.fetch("https://acme.test/pricing")
        assert session.get.call_count == 1
