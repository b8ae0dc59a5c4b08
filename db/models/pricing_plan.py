"""
db/models/pricing_plan.py

Versioned pricing plans and their features.

Each successful scrape session writes one generation of plans for a
competitor. The previous generation is kept but flagged non-current, so
`is_current` on both tables is the only versioning discriminator.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, CurrentFlagMixin


class BillingCycle:
    MONTHLY = "monthly"
    ANNUALLY = "annually"
    ONE_TIME = "one_time"


class PricingPlan(Base, CurrentFlagMixin):
    __tablename__ = "pricing_plans"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    scrape_session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("scrape_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    competitor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("competitors.id", ondelete="CASCADE"),
        nullable=False,
    )
    plan_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    price: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
        comment="NULL means contact us / custom pricing",
    )
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="USD",
    )
    billing_cycle: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=BillingCycle.MONTHLY,
        comment="monthly, annually, one_time",
    )
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    features: Mapped[list["PlanFeature"]] = relationship(
        back_populates="plan",
        order_by="PlanFeature.position",
    )

    __table_args__ = (
        Index("ix_pricing_plans_competitor_current", "competitor_id", "is_current"),
        Index("ix_pricing_plans_scrape_session_id", "scrape_session_id"),
    )


class PlanFeature(Base, CurrentFlagMixin):
    __tablename__ = "plan_features"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    plan_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("pricing_plans.id", ondelete="CASCADE"),
        nullable=False,
    )
    feature_text: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    plan: Mapped[PricingPlan] = relationship(back_populates="features")

    __table_args__ = (Index("ix_plan_features_plan_current", "plan_id", "is_current"),)
