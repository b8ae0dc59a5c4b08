"""Structured prompt builder for pricing-plan extraction."""

import json

DEFAULT_MAX_TEXT_CHARS = 30000

_EXAMPLE_OUTPUT = json.dumps(
    {
        "plans": [
            {
                "planName": "Starter",
                "price": 0,
                "currency": "USD",
                "billingCycle": "monthly",
                "description": "For individuals trying the product.",
                "features": ["1 project", "Community support"],
            },
            {
                "planName": "Enterprise",
                "price": None,
                "currency": "USD",
                "billingCycle": "annually",
                "description": "For large organizations with custom needs.",
                "features": ["SSO", "Dedicated account manager"],
            },
        ]
    },
    indent=2,
)

_SYSTEM_INSTRUCTIONS = """\
You are a data extraction assistant. You read the visible text of a
company's pricing page and return its pricing plans as structured JSON.

For EACH plan on the page extract:
1. "planName": the plan name (e.g. "Free", "Pro", "Business"). If the page
   gives no explicit name, infer a short one such as "Standard Plan".
2. "price": the numeric price. Use 0 for free plans and null for
   "Contact us" or custom pricing.
3. "currency": the 3-letter currency code (e.g. "USD", "EUR"). Use "USD"
   when no currency is shown.
4. "billingCycle": exactly one of "monthly", "annually", "one_time".
5. "description": one sentence on who the plan is for.
6. "features": an array of strings listing the key features.

STRICT RULES:
- Return a single JSON object with one key, "plans", holding the array of plans.
- If the page lists no plans, return {"plans": []}.
- Do NOT include any text before or after the JSON object.
- Do NOT wrap the JSON in markdown code fences.
"""


class PricingPromptBuilder:
    """Builds the extraction prompt for one pricing page.

    The page text is truncated to a character budget because model
    endpoints reject oversized inputs.
    """

    def __init__(self, max_chars: int = DEFAULT_MAX_TEXT_CHARS) -> None:
        self._max_chars = max(1, max_chars)

    @property
    def max_chars(self) -> int:
        return self._max_chars

    def truncate(self, text: str) -> str:
        return text[: self._max_chars]

    def build_prompt(self, text: str) -> str:
        """Build the full extraction prompt.

        Args:
            text: Visible text of the pricing page.

        Returns:
            A fully formatted prompt string ready for LLM consumption.
        """
        return (
            f"{_SYSTEM_INSTRUCTIONS}\n"
            f"# EXAMPLE OUTPUT\n\n"
            f"{_EXAMPLE_OUTPUT}\n\n"
            f"# TEXT TO ANALYZE\n\n"
            f"---\n{self.truncate(text)}\n---\n"
        )
