"""
app/schemas package marker.
"""

from app.schemas.pricing_scrape import (
    CompetitorPricingResponse,
    PricingPlanResponse,
    PricingScrapeCreateRequest,
    PricingScrapeStatusResponse,
    ScrapeSessionEvent,
)

__all__ = [
    "CompetitorPricingResponse",
    "PricingPlanResponse",
    "PricingScrapeCreateRequest",
    "PricingScrapeStatusResponse",
    "ScrapeSessionEvent",
]
