"""
app/api/routers package marker.
"""

from app.api.routers.pricing_scrape import router as pricing_scrape_router

__all__ = [
    "pricing_scrape_router",
]
