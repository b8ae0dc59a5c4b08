"""Structured output schema for interpreted pricing plans."""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

BillingCycleValue = Literal["monthly", "annually", "one_time"]

BILLING_CYCLES = ("monthly", "annually", "one_time")
DEFAULT_BILLING_CYCLE = "monthly"
DEFAULT_CURRENCY = "USD"
DEFAULT_PLAN_NAME = "Unnamed Plan"


class PricingPlanCandidate(BaseModel):
    """One pricing plan recovered from a model response.

    Field names follow the storage layout; aliases follow the JSON keys
    the model is asked to produce, so a dump with ``by_alias=True`` can be
    fed straight back into the validator.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    plan_name: str = Field(alias="planName", min_length=1)
    price: Optional[float] = Field(default=None, ge=0)
    currency: str = Field(default=DEFAULT_CURRENCY, min_length=3, max_length=3)
    billing_cycle: BillingCycleValue = Field(
        default=DEFAULT_BILLING_CYCLE,
        alias="billingCycle",
    )
    description: str = ""
    features: List[str] = Field(default_factory=list)
