"""
pricing/job_source.py

Sources of job-created notifications.

The production source listens on a PostgreSQL NOTIFY channel fed by an
AFTER INSERT trigger on scrape_sessions (see the Alembic migration). The
queue source is an in-process stand-in used by tests and by API-created
jobs in single-process deployments.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from typing import Any

import psycopg
from psycopg import sql
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.schemas.pricing_scrape import ScrapeSessionEvent
from app.scraping.logging_utils import log_event
from db.repositories.scrape_session_repository import ScrapeSessionRepository

logger = logging.getLogger(__name__)

DEFAULT_NOTIFY_CHANNEL = "scrape_session_created"


def parse_event_payload(payload: str | bytes | dict[str, Any]) -> ScrapeSessionEvent | None:
    """
    Parse one notification payload, returning None when it is malformed.
    """

    try:
        if isinstance(payload, dict):
            return ScrapeSessionEvent.model_validate(payload)
        return ScrapeSessionEvent.model_validate_json(payload)
    except (ValidationError, ValueError) as exc:
        log_event(
            logger,
            logging.WARNING,
            "scrape_session_payload_invalid",
            payload=str(payload)[:500],
            error=str(exc),
        )
        return None


class JobSource(ABC):
    """
    Abstract event source of newly created scrape sessions.
    """

    @abstractmethod
    def events(self, stop_event: threading.Event) -> Iterator[ScrapeSessionEvent]:
        """
        Yield scrape session events until stop_event is set.
        """

    def wait_until_subscribed(self, timeout: float | None = None) -> bool:
        """
        Block until jobs created from now on are guaranteed to be delivered.

        Sources with nothing to subscribe to are always ready.
        """

        return True


class QueueJobSource(JobSource):
    """
    In-process job source backed by a thread-safe queue.
    """

    def __init__(self, *, poll_seconds: float = 0.5) -> None:
        self._queue: queue.Queue[ScrapeSessionEvent] = queue.Queue()
        self._poll_seconds = poll_seconds

    def publish(self, event: ScrapeSessionEvent) -> None:
        self._queue.put(event)

    def events(self, stop_event: threading.Event) -> Iterator[ScrapeSessionEvent]:
        while not stop_event.is_set():
            try:
                event = self._queue.get(timeout=self._poll_seconds)
            except queue.Empty:
                continue
            yield event


class PostgresNotificationJobSource(JobSource):
    """
    Job source that LISTENs on a PostgreSQL channel.

    A dedicated autocommit connection is used; SQLAlchemy's pool is not
    involved. Lost connections are re-established after a delay.
    """

    def __init__(
        self,
        *,
        conninfo: str,
        channel: str = DEFAULT_NOTIFY_CHANNEL,
        poll_seconds: float = 1.0,
        reconnect_delay_seconds: float = 5.0,
        connect: Callable[..., psycopg.Connection] = psycopg.connect,
    ) -> None:
        self._conninfo = conninfo
        self._channel = channel
        self._poll_seconds = poll_seconds
        self._reconnect_delay_seconds = reconnect_delay_seconds
        self._connect = connect
        self._subscribed = threading.Event()

    def wait_until_subscribed(self, timeout: float | None = None) -> bool:
        return self._subscribed.wait(timeout)

    def events(self, stop_event: threading.Event) -> Iterator[ScrapeSessionEvent]:
        while not stop_event.is_set():
            try:
                yield from self._listen(stop_event)
            except psycopg.OperationalError as exc:
                log_event(
                    logger,
                    logging.ERROR,
                    "scrape_session_listener_disconnected",
                    channel=self._channel,
                    error=str(exc),
                    retry_in_seconds=self._reconnect_delay_seconds,
                )
                stop_event.wait(self._reconnect_delay_seconds)

    def _listen(self, stop_event: threading.Event) -> Iterator[ScrapeSessionEvent]:
        with self._connect(self._conninfo, autocommit=True) as connection:
            connection.execute(sql.SQL("LISTEN {}").format(sql.Identifier(self._channel)))
            self._subscribed.set()
            log_event(
                logger,
                logging.INFO,
                "scrape_session_listener_subscribed",
                channel=self._channel,
            )
            try:
                while not stop_event.is_set():
                    for notify in connection.notifies(timeout=self._poll_seconds):
                        event = parse_event_payload(notify.payload)
                        if event is not None:
                            yield event
                        if stop_event.is_set():
                            break
            finally:
                self._subscribed.clear()


def load_pending_backlog(session: Session, *, limit: int = 100) -> list[ScrapeSessionEvent]:
    """
    Return scrape sessions still pending, oldest first.

    Used on startup to pick up jobs created while no worker was listening.
    """

    rows = ScrapeSessionRepository(session).list_pending(limit=limit)
    return [
        ScrapeSessionEvent(
            id=row.id,
            competitor_id=row.competitor_id,
            status=row.status,
            scraped_at=row.scraped_at,
            error_message=row.error_message,
        )
        for row in rows
    ]


def notification_payload(event: ScrapeSessionEvent) -> str:
    """
    Serialize an event the way the database trigger does.
    """

    return json.dumps(event.model_dump(mode="json"))
