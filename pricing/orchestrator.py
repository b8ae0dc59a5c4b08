"""
pricing/orchestrator.py

Drives one scrape session through fetch, extraction, interpretation and
persistence, and owns the scrape session state machine:

    pending -> success   (new generation inserted and committed)
    pending -> failed    (any stage failed; error_message recorded)

A job is claimed before any stage runs. Deliveries that find it already
claimed or terminal are skipped, so a job is processed at most once.

Every failure is converted into a failed scrape session here. process()
never raises, so one broken job cannot take down the listening process.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from contextlib import AbstractContextManager
from typing import Any, TypeVar

from app.domain.pricing import Competitor, PipelineRunResult
from app.schemas.pricing_scrape import ScrapeSessionEvent
from app.scraping.base import PageFetcher
from app.scraping.logging_utils import log_event
from app.scraping.parsing.text_reducer import TextReducer
from app.scraping.storage.base import PricingStore
from db.models.scrape_session import ScrapeSessionStatus
from llm_synthesis.interpreter import PlanInterpreter
from llm_synthesis.schema import PricingPlanCandidate
from pricing.archival import ArchivalResult, archive_current_generation
from pricing.errors import (
    CompetitorNotFoundError,
    EmptyPlanResultError,
    ExtractionFailure,
    FetchFailure,
    InterpretationFailure,
    PlanInsertError,
    PricingPipelineError,
)

logger = logging.getLogger(__name__)

StoreFactory = Callable[[], AbstractContextManager[PricingStore]]

_T = TypeVar("_T")

DEFAULT_ERROR_MESSAGE_MAX_LENGTH = 500


class PricingPipelineOrchestrator:
    """Runs the pricing pipeline for one scrape session at a time.

    Each call to process() opens its own store through ``store_factory``,
    so concurrent jobs share nothing but the database. The collaborators
    are shared and must be safe to call from several threads.
    """

    def __init__(
        self,
        *,
        store_factory: StoreFactory,
        fetcher: PageFetcher,
        reducer: TextReducer,
        interpreter: PlanInterpreter,
        archival_write_fatal: bool = True,
        error_message_max_length: int = DEFAULT_ERROR_MESSAGE_MAX_LENGTH,
    ) -> None:
        self._store_factory = store_factory
        self._fetcher = fetcher
        self._reducer = reducer
        self._interpreter = interpreter
        self._archival_write_fatal = archival_write_fatal
        self._error_message_max_length = max(1, error_message_max_length)

    def process(self, job: ScrapeSessionEvent) -> PipelineRunResult:
        """Run the pipeline for one scrape session and record the outcome.

        Args:
            job: The scrape session as delivered by the job source.

        Returns:
            PipelineRunResult with the terminal status. Jobs that are not
            pending are left untouched and reported as "skipped", as are
            redelivered jobs another delivery has already claimed.
        """

        if job.status != ScrapeSessionStatus.PENDING:
            return self._skipped(job, reason=f"status is {job.status}")

        started = time.monotonic()
        try:
            with self._store_factory() as store:
                if not self._claim(store, job):
                    return self._skipped(job, reason="already claimed or finished")
                return self._process_with_store(store, job, started)
        except Exception as exc:  # noqa: BLE001
            message = self._truncate(f"{type(exc).__name__}: {exc}")
            log_event(
                logger,
                logging.ERROR,
                "pricing_job_crashed",
                job_id=job.id,
                competitor_id=job.competitor_id,
                error=message,
            )
            return PipelineRunResult(
                job_id=job.id,
                competitor_id=job.competitor_id,
                status=ScrapeSessionStatus.FAILED,
                error_message=message,
                failed_stage="store",
            )

    def fail_job(self, job: ScrapeSessionEvent, message: str) -> PipelineRunResult:
        """Mark a job failed without running it (e.g. rejected at admission)."""

        truncated = self._truncate(message)
        try:
            with self._store_factory() as store:
                if not self._claim(store, job):
                    return self._skipped(job, reason="already claimed or finished")
                self._mark_failed(store, job, truncated)
        except Exception as exc:  # noqa: BLE001
            log_event(
                logger,
                logging.ERROR,
                "pricing_job_status_update_failed",
                job_id=job.id,
                error=str(exc),
            )
        return PipelineRunResult(
            job_id=job.id,
            competitor_id=job.competitor_id,
            status=ScrapeSessionStatus.FAILED,
            error_message=truncated,
            failed_stage="admission",
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    @staticmethod
    def _claim(store: PricingStore, job: ScrapeSessionEvent) -> bool:
        claimed = store.claim_job(job.id)
        store.commit()
        return claimed

    @staticmethod
    def _skipped(job: ScrapeSessionEvent, *, reason: str) -> PipelineRunResult:
        log_event(
            logger,
            logging.INFO,
            "pricing_job_skipped",
            job_id=job.id,
            reason=reason,
        )
        return PipelineRunResult(job_id=job.id, competitor_id=job.competitor_id, status="skipped")

    def _process_with_store(
        self,
        store: PricingStore,
        job: ScrapeSessionEvent,
        started: float,
    ) -> PipelineRunResult:
        log_event(
            logger,
            logging.INFO,
            "pricing_job_started",
            job_id=job.id,
            competitor_id=job.competitor_id,
        )

        archival: ArchivalResult | None = None
        try:
            competitor = self._resolve_competitor(store, job)
            plans = self._run_stages(job, competitor)
            archival = archive_current_generation(
                store,
                competitor.id,
                write_fatal=self._archival_write_fatal,
            )
            plans_inserted, features_inserted = self._persist_generation(store, job, competitor, plans)
        except PricingPipelineError as exc:
            return self._fail(store, job, exc, str(exc), started, archival)
        except Exception as exc:  # noqa: BLE001
            return self._fail(store, job, exc, f"{type(exc).__name__}: {exc}", started, archival)

        log_event(
            logger,
            logging.INFO,
            "pricing_job_succeeded",
            job_id=job.id,
            competitor_id=competitor.id,
            competitor=competitor.name,
            plans_inserted=plans_inserted,
            features_inserted=features_inserted,
            plans_archived=archival.plans_archived,
            duration_ms=self._elapsed_ms(started),
        )
        return PipelineRunResult(
            job_id=job.id,
            competitor_id=competitor.id,
            status=ScrapeSessionStatus.SUCCESS,
            plans_inserted=plans_inserted,
            features_inserted=features_inserted,
            plans_archived=archival.plans_archived,
        )

    def _resolve_competitor(self, store: PricingStore, job: ScrapeSessionEvent) -> Competitor:
        try:
            competitor = store.get_competitor(job.competitor_id)
        except Exception as exc:  # noqa: BLE001
            raise CompetitorNotFoundError(
                f"Competitor lookup failed for scrape session {job.id}: {exc}"
            ) from exc
        if competitor is None:
            raise CompetitorNotFoundError(
                f"Competitor {job.competitor_id} not found for scrape session {job.id}"
            )
        return competitor

    def _run_stages(
        self,
        job: ScrapeSessionEvent,
        competitor: Competitor,
    ) -> list[PricingPlanCandidate]:
        html = self._run_stage(
            "fetch", FetchFailure, job, self._fetcher.fetch, competitor.pricing_page_url
        )
        text = self._run_stage(
            "extract", ExtractionFailure, job, self._reducer.reduce_to_text, html
        )
        plans = self._run_stage(
            "interpret", InterpretationFailure, job, self._interpreter.interpret, text
        )
        if not plans:
            raise EmptyPlanResultError("No pricing plans were found in the language model response.")
        return list(plans)

    def _run_stage(
        self,
        stage: str,
        failure_cls: type[PricingPipelineError],
        job: ScrapeSessionEvent,
        func: Callable[[Any], _T],
        argument: Any,
    ) -> _T:
        stage_started = time.monotonic()
        try:
            result = func(argument)
        except PricingPipelineError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise failure_cls(f"{stage} stage failed: {type(exc).__name__}: {exc}") from exc

        log_event(
            logger,
            logging.INFO,
            "pricing_stage_completed",
            job_id=job.id,
            stage=stage,
            duration_ms=self._elapsed_ms(stage_started),
        )
        return result

    def _persist_generation(
        self,
        store: PricingStore,
        job: ScrapeSessionEvent,
        competitor: Competitor,
        plans: Sequence[PricingPlanCandidate],
    ) -> tuple[int, int]:
        """Insert the new generation and mark the job successful in one transaction."""

        plans_inserted = 0
        features_inserted = 0
        current_plan = None
        try:
            for plan in plans:
                current_plan = plan.plan_name
                plan_id = store.insert_plan(job.id, competitor.id, plan)
                plans_inserted += 1
                features_inserted += store.insert_features(plan_id, plan.features)
            current_plan = None
            store.update_job_status(job.id, ScrapeSessionStatus.SUCCESS)
            store.commit()
        except Exception as exc:  # noqa: BLE001
            store.rollback()
            target = f'plan "{current_plan}"' if current_plan else "pricing generation"
            raise PlanInsertError(
                f"Failed to insert {target} for competitor {competitor.name}: {exc}"
            ) from exc
        return plans_inserted, features_inserted

    # ------------------------------------------------------------------
    # Failure handling
    # ------------------------------------------------------------------

    def _fail(
        self,
        store: PricingStore,
        job: ScrapeSessionEvent,
        exc: Exception,
        message: str,
        started: float,
        archival: ArchivalResult | None,
    ) -> PipelineRunResult:
        try:
            store.rollback()
        except Exception as rollback_exc:  # noqa: BLE001
            logger.warning("Rollback failed for scrape session %s: %s", job.id, rollback_exc)

        truncated = self._truncate(message)
        stage = getattr(exc, "stage", "unexpected")
        log_event(
            logger,
            logging.ERROR,
            "pricing_job_failed",
            job_id=job.id,
            competitor_id=job.competitor_id,
            stage=stage,
            error_type=type(exc).__name__,
            error=truncated,
            duration_ms=self._elapsed_ms(started),
        )
        self._mark_failed(store, job, truncated)
        return PipelineRunResult(
            job_id=job.id,
            competitor_id=job.competitor_id,
            status=ScrapeSessionStatus.FAILED,
            plans_archived=archival.plans_archived if archival else 0,
            error_message=truncated,
            failed_stage=stage,
        )

    def _mark_failed(self, store: PricingStore, job: ScrapeSessionEvent, message: str) -> None:
        try:
            store.update_job_status(job.id, ScrapeSessionStatus.FAILED, message)
            store.commit()
        except Exception as exc:  # noqa: BLE001
            try:
                store.rollback()
            except Exception:  # noqa: BLE001
                logger.debug("Rollback after status update failure also failed", exc_info=True)
            log_event(
                logger,
                logging.ERROR,
                "pricing_job_status_update_failed",
                job_id=job.id,
                error=str(exc),
            )

    def _truncate(self, message: str) -> str:
        return message[: self._error_message_max_length]

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
