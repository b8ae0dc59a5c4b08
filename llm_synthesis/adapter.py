"""LLM adapters for pricing-plan interpretation.

Provides a base interface and concrete adapters for OpenAI-compatible
APIs and a deterministic mock for testing.
"""

import json
from abc import ABC, abstractmethod
from typing import List, Optional

from openai import OpenAI

from app.config import LLMSettings, get_llm_settings


class BaseLLMAdapter(ABC):
    """Abstract base for all LLM adapters."""

    @abstractmethod
    def generate(self, prompt: str) -> str:
        """Send a prompt to the LLM and return the raw response text.

        Args:
            prompt: The fully formatted prompt string.

        Returns:
            Raw string response from the model (expected to hold JSON).
        """


class OpenAILLMAdapter(BaseLLMAdapter):
    """Adapter for OpenAI-compatible chat completion APIs.

    Any endpoint that speaks the chat completions protocol can be used by
    setting ``base_url``. Runs at temperature 0 for stable extraction.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        max_tokens: int = 4096,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: float = 120.0,
        client: Optional[OpenAI] = None,
    ) -> None:
        """Initialise the OpenAI adapter.

        Args:
            model: Model identifier.
            max_tokens: Maximum tokens in the completion.
            api_key: API key for the endpoint.
            base_url: Optional base URL for OpenAI-compatible endpoints.
            timeout_seconds: Request timeout enforced by the client.
            client: Pre-built client, mainly for tests.
        """
        if client is None:
            client_kwargs: dict = {"api_key": api_key, "timeout": timeout_seconds}
            if base_url:
                client_kwargs["base_url"] = base_url
            client = OpenAI(**client_kwargs)

        self._client = client
        self._model = model
        self._max_tokens = max_tokens

    def generate(self, prompt: str) -> str:
        """Call the chat completion API.

        Args:
            prompt: The fully formatted prompt string.

        Returns:
            Raw string content from the model response.
        """
        response = self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0,
            top_p=1,
            max_tokens=self._max_tokens,
            stream=False,
        )
        return response.choices[0].message.content or ""


# ---------------------------------------------------------------------------
# Fixed mock response used for local testing.
# ---------------------------------------------------------------------------
_MOCK_RESPONSE = {
    "plans": [
        {
            "planName": "Mock Pro",
            "price": 29,
            "currency": "USD",
            "billingCycle": "monthly",
            "description": "Mock plan for testing purposes.",
            "features": ["Feature A", "Feature B"],
        }
    ]
}

_MOCK_RESPONSE_JSON = json.dumps(_MOCK_RESPONSE, indent=2)


class MockLLMAdapter(BaseLLMAdapter):
    """Deterministic adapter that returns a fixed response.

    Used for local runs and CI pipelines where no LLM API is available.
    Every prompt it receives is kept in ``prompts``.
    """

    def __init__(self, response: Optional[str] = None) -> None:
        self._response = _MOCK_RESPONSE_JSON if response is None else response
        self.prompts: List[str] = []

    def generate(self, prompt: str) -> str:
        """Return the configured response regardless of input."""
        self.prompts.append(prompt)
        return self._response


def build_llm_adapter(settings: Optional[LLMSettings] = None) -> BaseLLMAdapter:
    """Create the adapter selected by ``LLM_ADAPTER``."""
    resolved = settings or get_llm_settings()
    if resolved.adapter == "mock":
        return MockLLMAdapter()
    return OpenAILLMAdapter(
        model=resolved.model,
        max_tokens=resolved.max_tokens,
        api_key=resolved.api_key,
        base_url=resolved.base_url,
        timeout_seconds=resolved.timeout_seconds,
    )
