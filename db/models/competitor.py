"""
db/models/competitor.py

Competitor model: one tracked company and the pricing page to watch.
Rows are maintained outside the pricing worker, which only reads them.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class Competitor(Base, TimestampMixin):
    __tablename__ = "competitors"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    pricing_page_url: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    __table_args__ = (Index("ix_competitors_name", "name"),)
