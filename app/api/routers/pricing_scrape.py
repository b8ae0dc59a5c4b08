"""
app/api/routers/pricing_scrape.py

Endpoints for requesting pricing refreshes and reading current pricing.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.schemas.pricing_scrape import (
    CompetitorPricingResponse,
    PricingPlanResponse,
    PricingScrapeCreateRequest,
    PricingScrapeStatusResponse,
    ScrapeSessionEvent,
)
from db.models.scrape_session import ScrapeSession
from db.repositories.pricing_plan_repository import PricingPlanRepository
from db.repositories.scrape_session_repository import ScrapeSessionRepository
from db.session import get_db

router = APIRouter(tags=["pricing-scrapes"])


def _to_status_response(row: ScrapeSession) -> PricingScrapeStatusResponse:
    return PricingScrapeStatusResponse(
        job_id=row.id,
        competitor_id=row.competitor_id,
        status=row.status,
        scraped_at=row.scraped_at,
        completed_at=row.completed_at,
        error_message=row.error_message,
    )


@router.post(
    "/pricing-scrapes",
    response_model=PricingScrapeStatusResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_pricing_scrape(
    payload: PricingScrapeCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> PricingScrapeStatusResponse:
    """
    Create a pending scrape session for a competitor.

    The worker picks the session up from the database notification, or
    directly when it runs in-process with a queue job source.
    """

    if PricingPlanRepository(db).get_competitor(payload.competitor_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Competitor {payload.competitor_id} not found.",
        )

    row = ScrapeSessionRepository(db).create_session(competitor_id=payload.competitor_id)
    db.commit()

    worker = getattr(request.app.state, "pricing_worker", None)
    if worker is not None:
        worker.notify_created(
            ScrapeSessionEvent(
                id=row.id,
                competitor_id=row.competitor_id,
                status=row.status,
                scraped_at=row.scraped_at,
                error_message=row.error_message,
            )
        )

    return _to_status_response(row)


@router.get("/pricing-scrapes/{job_id}", response_model=PricingScrapeStatusResponse)
def get_pricing_scrape(
    job_id: uuid.UUID,
    db: Session = Depends(get_db),
) -> PricingScrapeStatusResponse:
    row = ScrapeSessionRepository(db).get_session(job_id)
    if row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Scrape session {job_id} not found.",
        )
    return _to_status_response(row)


@router.get(
    "/competitors/{competitor_id}/pricing-plans",
    response_model=CompetitorPricingResponse,
)
def get_current_pricing(
    competitor_id: uuid.UUID,
    db: Session = Depends(get_db),
) -> CompetitorPricingResponse:
    """
    Return the competitor's current pricing generation.
    """

    repository = PricingPlanRepository(db)
    competitor = repository.get_competitor(competitor_id)
    if competitor is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Competitor {competitor_id} not found.",
        )

    plans = [
        PricingPlanResponse(
            plan_id=plan.id,
            scrape_session_id=plan.scrape_session_id,
            plan_name=plan.plan_name,
            price=plan.price,
            currency=plan.currency,
            billing_cycle=plan.billing_cycle,
            description=plan.description,
            features=[feature.feature_text for feature in plan.features if feature.is_current],
            created_at=plan.created_at,
        )
        for plan in repository.list_current_plans(competitor_id)
    ]
    return CompetitorPricingResponse(
        competitor_id=competitor.id,
        competitor_name=competitor.name,
        pricing_page_url=competitor.pricing_page_url,
        plans=plans,
    )
