"""Pricing-plan interpretation stage.

Turns the visible text of a pricing page into validated plan candidates:
prompt, model call, then validation and defaulting.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from llm_synthesis.adapter import BaseLLMAdapter
from llm_synthesis.prompt_builder import DEFAULT_MAX_TEXT_CHARS, PricingPromptBuilder
from llm_synthesis.schema import PricingPlanCandidate
from llm_synthesis.validator import PlanResponseValidationError, parse_plan_response
from pricing.errors import InterpretationFailure, UnparseableOutputError

logger = logging.getLogger(__name__)

_RAW_RESPONSE_LOG_CHARS = 500


class PlanInterpreter(ABC):
    """Capability interface for the interpretation stage."""

    @abstractmethod
    def interpret(self, text: str) -> List[PricingPlanCandidate]:
        """Return the pricing plans described by ``text``.

        Raises:
            InterpretationFailure: If no plan structure can be recovered.
        """


class LLMPlanInterpreter(PlanInterpreter):
    """Interpreter backed by a language model adapter."""

    def __init__(
        self,
        adapter: BaseLLMAdapter,
        prompt_builder: Optional[PricingPromptBuilder] = None,
        max_chars: int = DEFAULT_MAX_TEXT_CHARS,
    ) -> None:
        self._adapter = adapter
        self._prompt_builder = prompt_builder or PricingPromptBuilder(max_chars=max_chars)

    def interpret(self, text: str) -> List[PricingPlanCandidate]:
        """Interpret page text into plan candidates.

        An empty list is returned as-is; deciding that zero plans is a
        failure belongs to the orchestrator.

        Raises:
            UnparseableOutputError: If the response has no usable structure.
            InterpretationFailure: If the model request itself fails.
        """
        prompt = self._prompt_builder.build_prompt(text)

        try:
            raw = self._adapter.generate(prompt)
        except Exception as exc:  # noqa: BLE001
            raise InterpretationFailure(f"Language model request failed: {exc}") from exc

        try:
            plans = parse_plan_response(raw)
        except PlanResponseValidationError as exc:
            logger.warning(
                "Unusable model response at stage '%s'. Raw response: %s",
                exc.stage,
                (raw or "")[:_RAW_RESPONSE_LOG_CHARS],
            )
            raise UnparseableOutputError(str(exc)) from exc

        logger.info("Interpreted %d pricing plan(s) from %d characters of text", len(plans), len(text))
        return plans
