"""
Repository for scrape session lifecycle persistence and status lookup.

Status changes are conditional UPDATEs on ``status = 'pending'``, so a
scrape session reaches a terminal status exactly once even when two
workers receive the same notification.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Select, select, update
from sqlalchemy.orm import Session

from db.models.scrape_session import ScrapeSession, ScrapeSessionStatus


class ScrapeSessionRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_session(self, *, competitor_id: uuid.UUID) -> ScrapeSession:
        scrape_session = ScrapeSession(
            competitor_id=competitor_id,
            status=ScrapeSessionStatus.PENDING,
        )
        self._session.add(scrape_session)
        self._session.flush()
        self._session.refresh(scrape_session)
        return scrape_session

    def get_session(self, session_id: uuid.UUID) -> ScrapeSession | None:
        return self._session.get(ScrapeSession, session_id)

    def list_pending(self, *, limit: int = 100) -> list[ScrapeSession]:
        """Pending sessions no worker has claimed yet, oldest first."""
        stmt: Select[tuple[ScrapeSession]] = (
            select(ScrapeSession)
            .where(
                ScrapeSession.status == ScrapeSessionStatus.PENDING,
                ScrapeSession.claimed_at.is_(None),
            )
            .order_by(ScrapeSession.scraped_at.asc())
            .limit(max(1, limit))
        )
        return list(self._session.scalars(stmt).all())

    def claim(self, *, session_id: uuid.UUID) -> bool:
        """
        Mark a pending, unclaimed session as taken by this worker.

        Returns False when the session is missing, already claimed or no
        longer pending.
        """

        stmt = (
            update(ScrapeSession)
            .where(
                ScrapeSession.id == session_id,
                ScrapeSession.status == ScrapeSessionStatus.PENDING,
                ScrapeSession.claimed_at.is_(None),
            )
            .values(claimed_at=datetime.now(timezone.utc))
        )
        return self._session.execute(stmt).rowcount == 1

    def mark_success(self, *, session_id: uuid.UUID) -> bool:
        return self._finish(
            session_id,
            status=ScrapeSessionStatus.SUCCESS,
            error_message=None,
        )

    def mark_failed(
        self,
        *,
        session_id: uuid.UUID,
        error_message: str,
    ) -> bool:
        return self._finish(
            session_id,
            status=ScrapeSessionStatus.FAILED,
            error_message=error_message,
        )

    def _finish(
        self,
        session_id: uuid.UUID,
        *,
        status: str,
        error_message: str | None,
    ) -> bool:
        stmt = (
            update(ScrapeSession)
            .where(
                ScrapeSession.id == session_id,
                ScrapeSession.status == ScrapeSessionStatus.PENDING,
            )
            .values(
                status=status,
                completed_at=datetime.now(timezone.utc),
                error_message=error_message,
            )
        )
        return self._session.execute(stmt).rowcount == 1
