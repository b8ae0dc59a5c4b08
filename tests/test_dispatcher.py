"""
tests/test_dispatcher.py

Admission control, duplicate suppression and per-competitor serialization
of PricingJobDispatcher. The orchestrator is replaced by a fake whose jobs
block until the test releases them.
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone

import pytest

from app.domain.pricing import PipelineRunResult
from app.schemas.pricing_scrape import ScrapeSessionEvent
from pricing.dispatcher import CAPACITY_ERROR_MESSAGE, PricingJobDispatcher
from pricing.job_source import QueueJobSource


class _BlockingOrchestrator:
    def __init__(self) -> None:
        self.release = threading.Event()
        self.started: list[uuid.UUID] = []
        self.failed: list[tuple[uuid.UUID, str]] = []
        self.active_by_competitor: dict[uuid.UUID, int] = {}
        self.max_active_by_competitor: dict[uuid.UUID, int] = {}
        self._lock = threading.Lock()

    def process(self, job: ScrapeSessionEvent) -> PipelineRunResult:
        with self._lock:
            self.started.append(job.id)
            active = self.active_by_competitor.get(job.competitor_id, 0) + 1
            self.active_by_competitor[job.competitor_id] = active
            self.max_active_by_competitor[job.competitor_id] = max(
                active, self.max_active_by_competitor.get(job.competitor_id, 0)
            )
        self.release.wait(timeout=5)
        with self._lock:
            self.active_by_competitor[job.competitor_id] -= 1
        return PipelineRunResult(job_id=job.id, competitor_id=job.competitor_id, status="success")

    def fail_job(self, job: ScrapeSessionEvent, message: str) -> PipelineRunResult:
        self.failed.append((job.id, message))
        return PipelineRunResult(
            job_id=job.id,
            competitor_id=job.competitor_id,
            status="failed",
            error_message=message,
        )


def _event(competitor_id: uuid.UUID | None = None, *, status: str = "pending") -> ScrapeSessionEvent:
    return ScrapeSessionEvent(
        id=uuid.uuid4(),
        competitor_id=competitor_id or uuid.uuid4(),
        status=status,
        scraped_at=datetime.now(timezone.utc),
    )


def _wait_until(predicate, timeout: float = 5.0) -> bool:
    pause = threading.Event()
    for _ in range(int(timeout / 0.02)):
        if predicate():
            return True
        pause.wait(0.02)
    return predicate()


@pytest.fixture()
def orchestrator() -> _BlockingOrchestrator:
    return _BlockingOrchestrator()


class TestSubmit:
    def test_returns_before_job_completes(self, orchestrator) -> None:
        dispatcher = PricingJobDispatcher(orchestrator=orchestrator, max_workers=2)
        future = dispatcher.submit(_event())

        assert future is not None
        assert not future.done()
        orchestrator.release.set()
        assert future.result(timeout=5).status == "success"
        dispatcher.shutdown()

    def test_non_pending_event_is_ignored(self, orchestrator) -> None:
        dispatcher = PricingJobDispatcher(orchestrator=orchestrator)

        assert dispatcher.submit(_event(status="success")) is None
        assert orchestrator.started == []
        dispatcher.shutdown()

    def test_duplicate_event_is_suppressed(self, orchestrator) -> None:
        dispatcher = PricingJobDispatcher(orchestrator=orchestrator)
        event = _event()

        first = dispatcher.submit(event)
        second = dispatcher.submit(event)

        assert first is not None
        assert second is None
        orchestrator.release.set()
        first.result(timeout=5)
        dispatcher.shutdown()
        assert orchestrator.started == [event.id]

    def test_jobs_over_capacity_are_failed(self, orchestrator) -> None:
        dispatcher = PricingJobDispatcher(orchestrator=orchestrator, max_workers=1, max_pending=2)
        accepted = [dispatcher.submit(_event()), dispatcher.submit(_event())]
        rejected_event = _event()

        assert dispatcher.submit(rejected_event) is None
        assert orchestrator.failed == [(rejected_event.id, CAPACITY_ERROR_MESSAGE)]
        assert dispatcher.in_flight == 2

        orchestrator.release.set()
        for future in accepted:
            future.result(timeout=5)
        dispatcher.shutdown()
        assert dispatcher.in_flight == 0

    def test_same_competitor_jobs_never_overlap(self, orchestrator) -> None:
        dispatcher = PricingJobDispatcher(orchestrator=orchestrator, max_workers=4)
        competitor_id = uuid.uuid4()
        futures = [dispatcher.submit(_event(competitor_id)) for _ in range(3)]
        other = dispatcher.submit(_event())

        orchestrator.release.set()
        for future in [*futures, other]:
            future.result(timeout=5)
        dispatcher.shutdown()

        assert len(orchestrator.started) == 4
        assert orchestrator.max_active_by_competitor[competitor_id] == 1


    def test_busy_competitor_does_not_hold_other_competitors_back(self, orchestrator) -> None:
        dispatcher = PricingJobDispatcher(orchestrator=orchestrator, max_workers=2)
        busy_competitor = uuid.uuid4()
        busy_jobs = [dispatcher.submit(_event(busy_competitor)) for _ in range(2)]
        other_event = _event()
        other_job = dispatcher.submit(other_event)

        assert _wait_until(lambda: other_event.id in orchestrator.started)
        assert _wait_until(lambda: len(orchestrator.started) == 2)
        assert dispatcher.busy_competitors == 2
        assert dispatcher.in_flight == 3

        orchestrator.release.set()
        for future in [*busy_jobs, other_job]:
            assert future.result(timeout=5).status == "success"
        dispatcher.shutdown()

        assert len(orchestrator.started) == 3
        assert orchestrator.max_active_by_competitor[busy_competitor] == 1
        assert dispatcher.busy_competitors == 0
        assert dispatcher.in_flight == 0

    def test_shutdown_without_wait_cancels_queued_jobs(self, orchestrator) -> None:
        dispatcher = PricingJobDispatcher(orchestrator=orchestrator, max_workers=1)
        competitor_id = uuid.uuid4()
        running = dispatcher.submit(_event(competitor_id))
        queued = dispatcher.submit(_event(competitor_id))
        assert _wait_until(lambda: len(orchestrator.started) == 1)

        dispatcher.shutdown(wait=False)
        orchestrator.release.set()

        assert queued.cancelled()
        assert running.result(timeout=5).status == "success"
        assert dispatcher.submit(_event()) is None
        assert len(orchestrator.started) == 1


class TestRun:
    def test_consumes_queue_source_until_stopped(self, orchestrator) -> None:
        orchestrator.release.set()
        dispatcher = PricingJobDispatcher(orchestrator=orchestrator)
        source = QueueJobSource(poll_seconds=0.05)
        stop_event = threading.Event()
        events = [_event(), _event()]
        for event in events:
            source.publish(event)

        thread = threading.Thread(target=dispatcher.run, args=(source, stop_event))
        thread.start()
        deadline = threading.Event()
        for _ in range(100):
            if len(orchestrator.started) == 2:
                break
            deadline.wait(0.05)
        stop_event.set()
        thread.join(timeout=5)
        dispatcher.shutdown()

        assert not thread.is_alive()
        assert sorted(orchestrator.started) == sorted(event.id for event in events)
