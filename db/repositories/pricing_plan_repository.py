"""
Repository for versioned pricing plan and feature rows.

Writes only flush; the caller owns the transaction boundary.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from db.models.competitor import Competitor
from db.models.pricing_plan import PlanFeature, PricingPlan


class PricingPlanRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_competitor(self, competitor_id: uuid.UUID) -> Competitor | None:
        return self._session.get(Competitor, competitor_id)

    def get_current_plan_ids(self, competitor_id: uuid.UUID) -> list[uuid.UUID]:
        stmt = select(PricingPlan.id).where(
            PricingPlan.competitor_id == competitor_id,
            PricingPlan.is_current.is_(True),
        )
        return list(self._session.scalars(stmt).all())

    def archive_features(self, plan_ids: Sequence[uuid.UUID]) -> int:
        if not plan_ids:
            return 0
        result = self._session.execute(
            update(PlanFeature)
            .where(PlanFeature.plan_id.in_(list(plan_ids)), PlanFeature.is_current.is_(True))
            .values(is_current=False)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    def archive_plans(self, plan_ids: Sequence[uuid.UUID]) -> int:
        if not plan_ids:
            return 0
        result = self._session.execute(
            update(PricingPlan)
            .where(PricingPlan.id.in_(list(plan_ids)), PricingPlan.is_current.is_(True))
            .values(is_current=False)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    def add_plan(
        self,
        *,
        scrape_session_id: uuid.UUID,
        competitor_id: uuid.UUID,
        plan_name: str,
        price: float | None,
        currency: str,
        billing_cycle: str,
        description: str,
    ) -> PricingPlan:
        plan = PricingPlan(
            scrape_session_id=scrape_session_id,
            competitor_id=competitor_id,
            plan_name=plan_name,
            price=price,
            currency=currency,
            billing_cycle=billing_cycle,
            description=description,
            is_current=True,
        )
        self._session.add(plan)
        self._session.flush()
        return plan

    def add_features(self, *, plan_id: uuid.UUID, features: Sequence[str]) -> int:
        rows = [
            PlanFeature(plan_id=plan_id, feature_text=text, position=index, is_current=True)
            for index, text in enumerate(features)
        ]
        if not rows:
            return 0
        self._session.add_all(rows)
        self._session.flush()
        return len(rows)

    def list_current_plans(self, competitor_id: uuid.UUID) -> list[PricingPlan]:
        stmt = (
            select(PricingPlan)
            .where(
                PricingPlan.competitor_id == competitor_id,
                PricingPlan.is_current.is_(True),
            )
            .options(selectinload(PricingPlan.features))
            .order_by(PricingPlan.created_at.asc(), PricingPlan.plan_name.asc())
        )
        return list(self._session.scalars(stmt).all())
