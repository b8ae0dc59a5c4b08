"""
Repository layer exports.
"""

from db.repositories.pricing_plan_repository import PricingPlanRepository
from db.repositories.scrape_session_repository import ScrapeSessionRepository

__all__ = [
    "PricingPlanRepository",
    "ScrapeSessionRepository",
]
