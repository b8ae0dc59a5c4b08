"""
BeautifulSoup-based reduction of rendered HTML to visible text.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod

from bs4 import BeautifulSoup

from pricing.errors import ExtractionFailure

NOISE_SELECTORS = "script, style, noscript, link, meta, head, footer, nav"

_WHITESPACE = re.compile(r"\s+")


class TextReducer(ABC):
    """
    Capability interface for the extraction stage.
    """

    @abstractmethod
    def reduce_to_text(self, html: str) -> str:
        """
        Return the visible text of an HTML document.
        """


class SoupTextReducer(TextReducer):
    """
    Deterministic reducer: drops non-content elements and collapses whitespace.
    """

    def __init__(self, *, parser: str = "html.parser", noise_selectors: str = NOISE_SELECTORS) -> None:
        self._parser = parser
        self._noise_selectors = noise_selectors

    def reduce_to_text(self, html: str) -> str:
        if not isinstance(html, str):
            raise ExtractionFailure(f"Expected HTML string, got {type(html).__name__}")

        try:
            soup = BeautifulSoup(html, self._parser)
        except Exception as exc:  # noqa: BLE001
            raise ExtractionFailure(f"Could not parse HTML: {exc}") from exc

        for node in soup.select(self._noise_selectors):
            node.decompose()

        root = soup.body if soup.body is not None else soup
        text = self.clean_text(root.get_text(" "))
        if not text:
            raise ExtractionFailure("Extracted text is empty after removing page chrome.")
        return text

    @staticmethod
    def clean_text(value: str) -> str:
        return _WHITESPACE.sub(" ", value).strip()
