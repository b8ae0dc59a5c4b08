"""
pricing/worker.py

Long-running pricing worker.

Lifecycle
----------
Call ``build_pricing_worker()`` once to get a configured ``PricingWorker``.
``start()`` consumes the job source on a background thread and, once the
source is subscribed, optionally drains scrape sessions left pending
while no worker was listening. A session seen both ways is run once.
``stop()`` unsubscribes, lets in-flight jobs finish and releases the
page fetcher and database engine.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from contextlib import AbstractContextManager
from functools import partial
from typing import Optional

from app.config import (
    LLMSettings,
    PricingWorkerSettings,
    get_llm_settings,
    get_pricing_worker_settings,
)
from app.schemas.pricing_scrape import ScrapeSessionEvent
from app.scraping.base import PageFetcher
from app.scraping.fetchers import build_page_fetcher
from app.scraping.logging_utils import log_event
from app.scraping.parsing.text_reducer import SoupTextReducer
from app.scraping.storage.sqlalchemy_storage import sqlalchemy_store_scope
from db.config import resolve_database_url, to_libpq_url
from db.session import dispose_engine, session_scope
from llm_synthesis.adapter import build_llm_adapter
from llm_synthesis.interpreter import LLMPlanInterpreter
from pricing.dispatcher import PricingJobDispatcher
from pricing.job_source import (
    JobSource,
    PostgresNotificationJobSource,
    QueueJobSource,
    load_pending_backlog,
)
from pricing.orchestrator import PricingPipelineOrchestrator

logger = logging.getLogger(__name__)

BacklogLoader = Callable[[], list[ScrapeSessionEvent]]


class PricingWorker:
    """
    Wires a job source to the dispatcher and manages the listening thread.
    """

    def __init__(
        self,
        *,
        dispatcher: PricingJobDispatcher,
        source: JobSource,
        backlog_loader: Optional[BacklogLoader] = None,
        fetcher: Optional[PageFetcher] = None,
        on_shutdown: Optional[Callable[[], None]] = None,
        subscribe_timeout_seconds: float = 10.0,
    ) -> None:
        self.dispatcher = dispatcher
        self.source = source
        self._backlog_loader = backlog_loader
        self._fetcher = fetcher
        self._on_shutdown = on_shutdown
        self._subscribe_timeout_seconds = subscribe_timeout_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._listen,
            name="pricing-job-listener",
            daemon=True,
        )
        self._thread.start()
        if self._backlog_loader is not None:
            # Sessions created after this point arrive as notifications.
            if not self.source.wait_until_subscribed(self._subscribe_timeout_seconds):
                log_event(
                    logger,
                    logging.WARNING,
                    "pricing_listener_not_subscribed",
                    timeout_seconds=self._subscribe_timeout_seconds,
                )
            self._drain_backlog()
        log_event(logger, logging.INFO, "pricing_worker_started", source=type(self.source).__name__)

    def stop(self, *, wait: bool = True, timeout: float | None = 30.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        self.dispatcher.shutdown(wait=wait)
        if self._fetcher is not None:
            self._fetcher.close()
        if self._on_shutdown is not None:
            self._on_shutdown()
        log_event(logger, logging.INFO, "pricing_worker_stopped")

    def wait(self) -> None:
        """Block until stop() is called from another thread or a signal handler."""
        self._stop_event.wait()

    def notify_created(self, event: ScrapeSessionEvent) -> None:
        """
        Hand a freshly created job to an in-process source.

        With the PostgreSQL source this is a no-op: the database trigger
        delivers the notification.
        """

        if isinstance(self.source, QueueJobSource):
            self.source.publish(event)

    def _listen(self) -> None:
        try:
            self.dispatcher.run(self.source, self._stop_event)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Pricing job listener stopped unexpectedly: %s", exc)

    def _drain_backlog(self) -> None:
        if self._backlog_loader is None:
            return
        try:
            events = self._backlog_loader()
        except Exception as exc:  # noqa: BLE001
            log_event(logger, logging.ERROR, "pricing_backlog_load_failed", error=str(exc))
            return
        log_event(logger, logging.INFO, "pricing_backlog_loaded", pending=len(events))
        for event in events:
            self.dispatcher.submit(event)


def build_orchestrator(
    settings: Optional[PricingWorkerSettings] = None,
    llm_settings: Optional[LLMSettings] = None,
    *,
    fetcher: Optional[PageFetcher] = None,
    store_factory: Optional[Callable[[], AbstractContextManager]] = None,
) -> PricingPipelineOrchestrator:
    """Compose the pipeline from configured collaborators."""
    resolved = settings or get_pricing_worker_settings()
    interpreter = LLMPlanInterpreter(
        build_llm_adapter(llm_settings or get_llm_settings()),
        max_chars=resolved.max_text_chars,
    )
    return PricingPipelineOrchestrator(
        store_factory=store_factory or sqlalchemy_store_scope,
        fetcher=fetcher or build_page_fetcher(resolved),
        reducer=SoupTextReducer(),
        interpreter=interpreter,
        archival_write_fatal=resolved.archival_write_fatal,
        error_message_max_length=resolved.error_message_max_length,
    )


def build_job_source(settings: Optional[PricingWorkerSettings] = None) -> JobSource:
    resolved = settings or get_pricing_worker_settings()
    if resolved.job_source == "queue":
        return QueueJobSource(poll_seconds=resolved.listen_poll_seconds)
    return PostgresNotificationJobSource(
        conninfo=to_libpq_url(resolve_database_url()),
        channel=resolved.notify_channel,
        poll_seconds=resolved.listen_poll_seconds,
        reconnect_delay_seconds=resolved.reconnect_delay_seconds,
    )


def _load_backlog(limit: int) -> list[ScrapeSessionEvent]:
    with session_scope() as session:
        return load_pending_backlog(session, limit=limit)


def build_pricing_worker(
    settings: Optional[PricingWorkerSettings] = None,
    llm_settings: Optional[LLMSettings] = None,
    *,
    drain_pending: Optional[bool] = None,
) -> PricingWorker:
    """
    Create a fully wired worker from environment configuration.
    """

    resolved = settings or get_pricing_worker_settings()
    fetcher = build_page_fetcher(resolved)
    orchestrator = build_orchestrator(resolved, llm_settings, fetcher=fetcher)
    dispatcher = PricingJobDispatcher(
        orchestrator=orchestrator,
        max_workers=resolved.worker_concurrency,
        max_pending=resolved.max_pending_jobs,
    )

    should_drain = resolved.drain_pending_on_start if drain_pending is None else drain_pending
    backlog_loader: Optional[BacklogLoader] = None
    if should_drain:
        backlog_loader = partial(_load_backlog, resolved.max_pending_jobs)

    return PricingWorker(
        dispatcher=dispatcher,
        source=build_job_source(resolved),
        backlog_loader=backlog_loader,
        fetcher=fetcher,
        on_shutdown=dispose_engine,
    )

