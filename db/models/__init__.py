"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.competitor import Competitor
from db.models.pricing_plan import BillingCycle, PlanFeature, PricingPlan
from db.models.scrape_session import ScrapeSession, ScrapeSessionStatus

__all__ = [
    "BillingCycle",
    "Competitor",
    "PlanFeature",
    "PricingPlan",
    "ScrapeSession",
    "ScrapeSessionStatus",
]
