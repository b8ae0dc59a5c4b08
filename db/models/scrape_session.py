"""
db/models/scrape_session.py

Scrape session model: the job queue row that triggers one pricing refresh.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class ScrapeSessionStatus:
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

    TERMINAL = frozenset({SUCCESS, FAILED})


class ScrapeSession(Base):
    __tablename__ = "scrape_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    competitor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("competitors.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ScrapeSessionStatus.PENDING,
        comment="pending, success, failed",
    )
    scraped_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="set once by the worker that runs the session",
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    __table_args__ = (
        Index("ix_scrape_sessions_competitor_id", "competitor_id"),
        Index("ix_scrape_sessions_status", "status"),
        Index("ix_scrape_sessions_scraped_at", "scraped_at"),
    )
