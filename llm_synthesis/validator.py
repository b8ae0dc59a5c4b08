"""Validation and defaulting layer for raw pricing-plan model output.

Only structural problems are fatal: no JSON region, unparseable JSON, or
no plan list. Field-level anomalies inside a plan are normalized to safe
defaults so one odd value never costs the whole scrape.
"""

import json
import logging
import math
import re
from typing import Any, Dict, List, Optional

from llm_synthesis.schema import (
    BILLING_CYCLES,
    DEFAULT_BILLING_CYCLE,
    DEFAULT_CURRENCY,
    DEFAULT_PLAN_NAME,
    PricingPlanCandidate,
)

logger = logging.getLogger(__name__)

_CURRENCY_PATTERN = re.compile(r"^[A-Za-z]{3}$")
_PRICE_STRIP_PATTERN = re.compile(r"[\s,$€£¥]")
_NAME_KEYS = ("planName", "plan_name", "name")
_BILLING_KEYS = ("billingCycle", "billing_cycle")


class PlanResponseValidationError(Exception):
    """Raised when model output has no usable plan structure.

    Attributes:
        stage: Which step failed ("json_extract", "json_parse" or "shape").
        errors: List of human-readable error descriptions.
        raw_response: The original string that failed validation.
    """

    def __init__(
        self,
        stage: str,
        errors: List[str],
        raw_response: str,
    ) -> None:
        self.stage = stage
        self.errors = errors
        self.raw_response = raw_response
        message = (
            f"Model output validation failed at stage '{stage}': "
            + "; ".join(errors)
        )
        super().__init__(message)


def _strip_markdown_fences(text: str) -> str:
    """Remove optional markdown code fences wrapping JSON."""
    stripped = text.strip()
    match = re.match(
        r"^```(?:json)?\s*\n?(.*?)\n?\s*```$",
        stripped,
        re.DOTALL,
    )
    if match:
        return match.group(1).strip()
    return stripped


def _balanced_region(text: str, start: int) -> Optional[str]:
    """Return the balanced bracket region opening at ``start``.

    Brackets inside JSON string literals are ignored.
    """
    opener = text[start]
    closer = "}" if opener == "{" else "]"
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def _is_object_list(candidate: str) -> bool:
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return False
    return isinstance(parsed, list) and bool(parsed) and all(isinstance(item, dict) for item in parsed)


def extract_json_region(text: str) -> Optional[str]:
    """Find the JSON payload inside a model response.

    Models sometimes add commentary before or after the JSON despite
    instructions. The first balanced ``{...}`` region is used, unless a
    balanced ``[...]`` region starts before it and parses as a non-empty
    list of objects. Bracketed prose such as "I found [2] plans" is
    skipped.

    Args:
        text: Raw model response.

    Returns:
        The JSON substring, or None when no balanced region exists.
    """
    if not isinstance(text, str):
        return None
    cleaned = _strip_markdown_fences(text)

    object_start = cleaned.find("{")
    list_start = cleaned.find("[")
    if list_start != -1 and (object_start == -1 or list_start < object_start):
        candidate = _balanced_region(cleaned, list_start)
        if candidate is not None and _is_object_list(candidate):
            return candidate

    if object_start == -1:
        return None
    return _balanced_region(cleaned, object_start)


def _first_present(item: Dict[str, Any], keys: tuple) -> Any:
    for key in keys:
        if key in item and item[key] is not None:
            return item[key]
    return None


def _normalize_name(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return DEFAULT_PLAN_NAME


def _normalize_price(value: Any) -> Optional[float]:
    """Coerce a price to a non-negative float.

    None stays None (contact us / custom). Anything that is not numeric
    becomes 0.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(_PRICE_STRIP_PATTERN.sub("", value))
        except ValueError:
            return 0.0
    else:
        return 0.0
    if math.isnan(number) or math.isinf(number) or number < 0:
        return 0.0
    return number


def _normalize_currency(value: Any) -> str:
    if isinstance(value, str) and _CURRENCY_PATTERN.match(value.strip()):
        return value.strip().upper()
    return DEFAULT_CURRENCY


def _normalize_billing_cycle(value: Any) -> str:
    if isinstance(value, str):
        candidate = value.strip().lower()
        if candidate in BILLING_CYCLES:
            return candidate
    return DEFAULT_BILLING_CYCLE


def _normalize_features(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    features: List[str] = []
    for entry in value:
        if isinstance(entry, str) and entry.strip():
            features.append(entry.strip())
        elif isinstance(entry, (int, float)) and not isinstance(entry, bool):
            features.append(str(entry))
    return features


def normalize_plan(item: Dict[str, Any]) -> PricingPlanCandidate:
    """Normalize one raw plan object, never rejecting it.

    Args:
        item: One entry of the model's ``plans`` list.

    Returns:
        A PricingPlanCandidate with every field defaulted where needed.
    """
    description = item.get("description")
    return PricingPlanCandidate(
        plan_name=_normalize_name(_first_present(item, _NAME_KEYS)),
        price=_normalize_price(item.get("price")),
        currency=_normalize_currency(item.get("currency")),
        billing_cycle=_normalize_billing_cycle(_first_present(item, _BILLING_KEYS)),
        description=description.strip() if isinstance(description, str) else "",
        features=_normalize_features(item.get("features")),
    )


def normalize_plans(items: List[Any]) -> List[PricingPlanCandidate]:
    """Normalize a plan list, dropping entries that are not objects."""
    plans: List[PricingPlanCandidate] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning("Dropping plan entry %d: expected object, got %s", index, type(item).__name__)
            continue
        plans.append(normalize_plan(item))
    return plans


def parse_plan_response(raw_response: str) -> List[PricingPlanCandidate]:
    """Parse and normalize a raw model response into plan candidates.

    Steps:
        1. Extract the JSON region from the response.
        2. Parse it as JSON.
        3. Accept ``{"plans": [...]}`` or a bare list.
        4. Normalize every plan object.

    Args:
        raw_response: The raw string returned by the LLM adapter.

    Returns:
        Normalized plan candidates. May be empty; the caller decides
        whether an empty result is acceptable.

    Raises:
        PlanResponseValidationError: If no plan structure can be recovered.
    """
    region = extract_json_region(raw_response)
    if region is None:
        raise PlanResponseValidationError(
            stage="json_extract",
            errors=["response does not contain a JSON object"],
            raw_response=raw_response,
        )

    try:
        data = json.loads(region)
    except json.JSONDecodeError as exc:
        raise PlanResponseValidationError(
            stage="json_parse",
            errors=[str(exc)],
            raw_response=raw_response,
        ) from exc

    if isinstance(data, dict):
        items = data.get("plans")
    else:
        items = data

    if not isinstance(items, list):
        raise PlanResponseValidationError(
            stage="shape",
            errors=["plans field is not a list"],
            raw_response=raw_response,
        )

    return normalize_plans(items)
