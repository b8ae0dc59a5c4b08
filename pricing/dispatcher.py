"""
pricing/dispatcher.py

Decouples job notification from job processing.

submit() returns as soon as the job is queued, so a burst of
notifications results in concurrently running jobs. Admission is bounded
by max_pending, and jobs for the same competitor never run at the same
time, which keeps archive-then-insert from interleaving.

Same-competitor jobs wait in a per-competitor queue and start when the
running one finishes. A busy competitor occupies at most one worker
thread.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor

from app.domain.pricing import PipelineRunResult
from app.schemas.pricing_scrape import ScrapeSessionEvent
from app.scraping.logging_utils import log_event
from db.models.scrape_session import ScrapeSessionStatus
from pricing.job_source import JobSource
from pricing.orchestrator import PricingPipelineOrchestrator

logger = logging.getLogger(__name__)

CAPACITY_ERROR_MESSAGE = "Worker at capacity: too many scrape sessions in flight. Create a new session to retry."

_QueuedJob = tuple[ScrapeSessionEvent, Future[PipelineRunResult]]


class PricingJobDispatcher:
    """
    Runs scrape sessions on a thread pool with admission control.

    A competitor appears in ``_competitor_queues`` while one of its jobs is
    running; the deque holds its jobs still waiting to start.
    """

    def __init__(
        self,
        *,
        orchestrator: PricingPipelineOrchestrator,
        max_workers: int = 4,
        max_pending: int = 100,
    ) -> None:
        self._orchestrator = orchestrator
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers),
            thread_name_prefix="pricing-job",
        )
        self._max_pending = max(1, max_pending)
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._in_flight: set[uuid.UUID] = set()
        self._competitor_queues: dict[uuid.UUID, deque[_QueuedJob]] = {}
        self._closed = False

    @property
    def in_flight(self) -> int:
        with self._lock:
            return len(self._in_flight)

    @property
    def busy_competitors(self) -> int:
        with self._lock:
            return len(self._competitor_queues)

    def submit(self, event: ScrapeSessionEvent) -> Future[PipelineRunResult] | None:
        """
        Queue one scrape session and return immediately.

        Returns None when the event is not dispatched: not pending, already
        in flight, rejected because the worker is at capacity, or submitted
        after shutdown.
        """

        if event.status != ScrapeSessionStatus.PENDING:
            log_event(
                logger,
                logging.DEBUG,
                "scrape_session_ignored",
                job_id=event.id,
                status=event.status,
            )
            return None

        future: Future[PipelineRunResult] = Future()
        with self._lock:
            if self._closed:
                log_event(logger, logging.WARNING, "scrape_session_not_scheduled", job_id=event.id)
                return None
            if event.id in self._in_flight:
                log_event(logger, logging.INFO, "scrape_session_duplicate", job_id=event.id)
                return None
            rejected = len(self._in_flight) >= self._max_pending
            waiting = None
            if not rejected:
                self._in_flight.add(event.id)
                waiting = self._competitor_queues.get(event.competitor_id)
                if waiting is None:
                    self._competitor_queues[event.competitor_id] = deque()
                else:
                    waiting.append((event, future))

        if rejected:
            log_event(
                logger,
                logging.WARNING,
                "scrape_session_rejected",
                job_id=event.id,
                competitor_id=event.competitor_id,
                max_pending=self._max_pending,
            )
            self._orchestrator.fail_job(event, CAPACITY_ERROR_MESSAGE)
            return None

        if waiting is not None:
            log_event(
                logger,
                logging.INFO,
                "scrape_session_queued",
                job_id=event.id,
                competitor_id=event.competitor_id,
                ahead=len(waiting),
            )
            return future

        if not self._start(event, future):
            return None
        log_event(
            logger,
            logging.INFO,
            "scrape_session_dispatched",
            job_id=event.id,
            competitor_id=event.competitor_id,
        )
        return future

    def run(self, source: JobSource, stop_event: threading.Event) -> None:
        """
        Consume the source until stop_event is set, dispatching every event.
        """

        for event in source.events(stop_event):
            self.submit(event)
            if stop_event.is_set():
                break

    def shutdown(self, *, wait: bool = True) -> None:
        """
        Stop accepting jobs.

        With wait=True every admitted job, queued ones included, runs to
        completion first. Otherwise queued jobs are cancelled and released.
        """

        with self._lock:
            self._closed = True
            if wait:
                while self._in_flight:
                    self._idle.wait()
                cancelled: list[_QueuedJob] = []
            else:
                cancelled = [job for waiting in self._competitor_queues.values() for job in waiting]
                for waiting in self._competitor_queues.values():
                    waiting.clear()
                for event, _ in cancelled:
                    self._in_flight.discard(event.id)
        for event, future in cancelled:
            future.cancel()
            log_event(logger, logging.WARNING, "scrape_session_cancelled", job_id=event.id)
        self._executor.shutdown(wait=wait, cancel_futures=not wait)

    def _start(self, event: ScrapeSessionEvent, future: Future[PipelineRunResult]) -> bool:
        try:
            task = self._executor.submit(self._run_job, event, future)
        except RuntimeError:
            log_event(logger, logging.WARNING, "scrape_session_not_scheduled", job_id=event.id)
            future.cancel()
            self._finish(event)
            return False
        task.add_done_callback(lambda done: self._on_task_done(done, event, future))
        return True

    def _on_task_done(
        self,
        task: Future[None],
        event: ScrapeSessionEvent,
        future: Future[PipelineRunResult],
    ) -> None:
        if task.cancelled():
            future.cancel()
            self._finish(event)

    def _run_job(self, event: ScrapeSessionEvent, future: Future[PipelineRunResult]) -> None:
        if not future.set_running_or_notify_cancel():
            self._finish(event)
            return
        try:
            future.set_result(self._orchestrator.process(event))
        except Exception as exc:  # noqa: BLE001
            future.set_exception(exc)
            logger.exception("Scrape session %s crashed outside the pipeline", event.id)
        finally:
            self._finish(event)

    def _finish(self, event: ScrapeSessionEvent) -> None:
        """Release a job and start the competitor's next queued job, if any."""

        with self._lock:
            self._in_flight.discard(event.id)
            waiting = self._competitor_queues.get(event.competitor_id)
            following = waiting.popleft() if waiting else None
            if following is None:
                self._competitor_queues.pop(event.competitor_id, None)
            if not self._in_flight:
                self._idle.notify_all()
        if following is not None:
            self._start(*following)
