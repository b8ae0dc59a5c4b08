"""
Storage layer exports.
"""

from app.scraping.storage.base import PricingStore, ScrapeSessionStateError
from app.scraping.storage.sqlalchemy_storage import SQLAlchemyPricingStore, sqlalchemy_store_scope

__all__ = ["PricingStore", "SQLAlchemyPricingStore", "ScrapeSessionStateError", "sqlalchemy_store_scope"]
