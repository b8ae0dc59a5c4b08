"""
Schemas for scrape session notifications and pricing endpoints.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ScrapeSessionEvent(BaseModel):
    """
    Job-created notification carrying the full scrape session row.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: UUID
    competitor_id: UUID
    status: str
    scraped_at: datetime | None = None
    error_message: str | None = None


class PricingScrapeCreateRequest(BaseModel):
    competitor_id: UUID


class PricingScrapeStatusResponse(BaseModel):
    job_id: UUID
    competitor_id: UUID
    status: str
    scraped_at: datetime
    completed_at: datetime | None = None
    error_message: str | None = None


class PricingPlanResponse(BaseModel):
    plan_id: UUID
    scrape_session_id: UUID
    plan_name: str
    price: float | None = None
    currency: str
    billing_cycle: str
    description: str
    features: list[str] = Field(default_factory=list)
    created_at: datetime


class CompetitorPricingResponse(BaseModel):
    competitor_id: UUID
    competitor_name: str
    pricing_page_url: str
    plans: list[PricingPlanResponse] = Field(default_factory=list)
