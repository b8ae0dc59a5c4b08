"""
SQLAlchemy-backed storage implementation for versioned pricing data.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager

from sqlalchemy.orm import Session

from app.domain.pricing import Competitor
from app.scraping.storage.base import PricingStore, ScrapeSessionStateError
from db.models.scrape_session import ScrapeSessionStatus
from db.repositories.pricing_plan_repository import PricingPlanRepository
from db.repositories.scrape_session_repository import ScrapeSessionRepository
from llm_synthesis.schema import PricingPlanCandidate


class SQLAlchemyPricingStore(PricingStore):
    """
    Persist pricing generations and job status through the repositories.
    """

    def __init__(self, *, session: Session) -> None:
        self._session = session
        self._plans = PricingPlanRepository(session)
        self._sessions = ScrapeSessionRepository(session)

    def claim_job(self, job_id: uuid.UUID) -> bool:
        return self._sessions.claim(session_id=job_id)

    def get_competitor(self, competitor_id: uuid.UUID) -> Competitor | None:
        row = self._plans.get_competitor(competitor_id)
        if row is None:
            return None
        return Competitor(id=row.id, name=row.name, pricing_page_url=row.pricing_page_url)

    def get_current_plan_ids(self, competitor_id: uuid.UUID) -> list[uuid.UUID]:
        return self._plans.get_current_plan_ids(competitor_id)

    def set_features_non_current(self, plan_ids: Sequence[uuid.UUID]) -> int:
        return self._plans.archive_features(plan_ids)

    def set_plans_non_current(self, plan_ids: Sequence[uuid.UUID]) -> int:
        return self._plans.archive_plans(plan_ids)

    def insert_plan(
        self,
        job_id: uuid.UUID,
        competitor_id: uuid.UUID,
        plan: PricingPlanCandidate,
    ) -> uuid.UUID:
        row = self._plans.add_plan(
            scrape_session_id=job_id,
            competitor_id=competitor_id,
            plan_name=plan.plan_name,
            price=plan.price,
            currency=plan.currency,
            billing_cycle=plan.billing_cycle,
            description=plan.description,
        )
        return row.id

    def insert_features(self, plan_id: uuid.UUID, features: Sequence[str]) -> int:
        return self._plans.add_features(plan_id=plan_id, features=features)

    def update_job_status(
        self,
        job_id: uuid.UUID,
        status: str,
        error_message: str | None = None,
    ) -> None:
        if status == ScrapeSessionStatus.SUCCESS:
            updated = self._sessions.mark_success(session_id=job_id)
        elif status == ScrapeSessionStatus.FAILED:
            updated = self._sessions.mark_failed(
                session_id=job_id,
                error_message=error_message or "Unknown error",
            )
        else:
            raise ValueError(f"Unsupported terminal status: {status!r}")
        if updated:
            return
        if self._sessions.get_session(job_id) is None:
            raise LookupError(f"Scrape session {job_id} does not exist")
        raise ScrapeSessionStateError(f"Scrape session {job_id} is no longer pending")

    def commit(self) -> None:
        self._session.commit()

    def rollback(self) -> None:
        self._session.rollback()


@contextmanager
def sqlalchemy_store_scope(
    session_factory: Callable[[], Session] | None = None,
) -> Iterator[SQLAlchemyPricingStore]:
    """
    Yield a store bound to a fresh session and close the session on exit.
    """

    if session_factory is None:
        from db.session import SessionLocal

        session_factory = SessionLocal

    session = session_factory()
    try:
        yield SQLAlchemyPricingStore(session=session)
    finally:
        session.close()
