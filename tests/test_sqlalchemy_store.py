"""
tests/test_sqlalchemy_store.py

SQLAlchemyPricingStore and the repositories against in-memory SQLite.
"""

from __future__ import annotations

import uuid

import pytest

from db.models.competitor import Competitor
from db.models.pricing_plan import PlanFeature, PricingPlan
from db.models.scrape_session import ScrapeSession
from db.repositories.pricing_plan_repository import PricingPlanRepository
from db.repositories.scrape_session_repository import ScrapeSessionRepository
from app.schemas.pricing_scrape import ScrapeSessionEvent
from app.scraping.storage.base import ScrapeSessionStateError
from app.scraping.storage.sqlalchemy_storage import SQLAlchemyPricingStore, sqlalchemy_store_scope
from pricing.job_source import load_pending_backlog
from pricing.orchestrator import PricingPipelineOrchestrator
from conftest import RecordingReducer, StaticInterpreter, StaticPageFetcher, pricing_page_html


@pytest.fixture()
def competitor_id(sqlite_session_factory) -> uuid.UUID:
    with sqlite_session_factory() as session:
        competitor = Competitor(name="Acme", pricing_page_url="https://acme.test/pricing")
        session.add(competitor)
        session.commit()
        return competitor.id


def _new_job(session_factory, competitor_id: uuid.UUID) -> ScrapeSession:
    with session_factory() as session:
        row = ScrapeSessionRepository(session).create_session(competitor_id=competitor_id)
        session.commit()
        return row


def _event(row: ScrapeSession):
    return ScrapeSessionEvent(
        id=row.id,
        competitor_id=row.competitor_id,
        status=row.status,
        scraped_at=row.scraped_at,
    )


class TestSQLAlchemyPricingStore:
    def test_get_competitor_returns_domain_object(self, sqlite_session_factory, competitor_id) -> None:
        with sqlite_session_factory() as session:
            store = SQLAlchemyPricingStore(session=session)
            competitor = store.get_competitor(competitor_id)
            assert competitor is not None
            assert competitor.name == "Acme"
            assert competitor.pricing_page_url == "https://acme.test/pricing"
            assert store.get_competitor(uuid.uuid4()) is None

    def test_archive_flags_features_and_plans(self, sqlite_session_factory, competitor_id, pro_plan) -> None:
        job = _new_job(sqlite_session_factory, competitor_id)
        with sqlite_session_factory() as session:
            store = SQLAlchemyPricingStore(session=session)
            plan_id = store.insert_plan(job.id, competitor_id, pro_plan)
            assert store.insert_features(plan_id, pro_plan.features) == 2
            store.commit()

            assert store.get_current_plan_ids(competitor_id) == [plan_id]
            assert store.set_features_non_current([plan_id]) == 2
            assert store.set_plans_non_current([plan_id]) == 1
            store.commit()
            assert store.get_current_plan_ids(competitor_id) == []

        with sqlite_session_factory() as session:
            features = session.query(PlanFeature).filter(PlanFeature.plan_id == plan_id).all()
            assert [feature.is_current for feature in features] == [False, False]

    def test_update_job_status(self, sqlite_session_factory, competitor_id) -> None:
        job = _new_job(sqlite_session_factory, competitor_id)
        with sqlite_session_factory() as session:
            store = SQLAlchemyPricingStore(session=session)
            store.update_job_status(job.id, "failed", "Potential block page detected")
            store.commit()

            row = session.get(ScrapeSession, job.id)
            assert row.status == "failed"
            assert row.error_message == "Potential block page detected"
            assert row.completed_at is not None

    def test_update_job_status_rejects_bad_input(self, sqlite_session_factory, competitor_id) -> None:
        job = _new_job(sqlite_session_factory, competitor_id)
        with sqlite_session_factory() as session:
            store = SQLAlchemyPricingStore(session=session)
            with pytest.raises(ValueError):
                store.update_job_status(job.id, "pending")
            with pytest.raises(LookupError):
                store.update_job_status(uuid.uuid4(), "success")


    def test_claim_is_granted_once(self, sqlite_session_factory, competitor_id) -> None:
        job = _new_job(sqlite_session_factory, competitor_id)
        with sqlite_session_factory() as session:
            store = SQLAlchemyPricingStore(session=session)
            assert store.claim_job(job.id) is True
            store.commit()
            assert store.claim_job(job.id) is False
            assert store.claim_job(uuid.uuid4()) is False
            assert session.get(ScrapeSession, job.id).claimed_at is not None

    def test_terminal_status_is_written_once(self, sqlite_session_factory, competitor_id) -> None:
        job = _new_job(sqlite_session_factory, competitor_id)
        with sqlite_session_factory() as session:
            store = SQLAlchemyPricingStore(session=session)
            store.update_job_status(job.id, "success")
            store.commit()
            with pytest.raises(ScrapeSessionStateError):
                store.update_job_status(job.id, "failed", "late failure")
            store.rollback()

        with sqlite_session_factory() as session:
            row = session.get(ScrapeSession, job.id)
            assert row.status == "success"
            assert row.error_message is None


class TestPipelineAgainstDatabase:
    def test_two_runs_keep_one_current_generation(self, sqlite_session_factory, competitor_id, pro_plan) -> None:
        orchestrator = PricingPipelineOrchestrator(
            store_factory=lambda: sqlalchemy_store_scope(sqlite_session_factory),
            fetcher=StaticPageFetcher(pricing_page_html("Pro Plan $29/month")),
            reducer=RecordingReducer(),
            interpreter=StaticInterpreter([pro_plan]),
        )

        first_job = _new_job(sqlite_session_factory, competitor_id)
        second_job = _new_job(sqlite_session_factory, competitor_id)
        assert orchestrator.process(_event(first_job)).succeeded
        second = orchestrator.process(_event(second_job))

        assert second.succeeded
        assert second.plans_archived == 1
        with sqlite_session_factory() as session:
            assert session.query(PricingPlan).count() == 2
            current = PricingPlanRepository(session).list_current_plans(competitor_id)
            assert len(current) == 1
            assert current[0].scrape_session_id == second_job.id
            assert [feature.feature_text for feature in current[0].features] == [
                "Unlimited projects",
                "Priority support",
            ]
            assert session.get(ScrapeSession, second_job.id).status == "success"

    def test_redelivered_event_is_skipped(self, sqlite_session_factory, competitor_id, pro_plan) -> None:
        interpreter = StaticInterpreter([pro_plan])
        orchestrator = PricingPipelineOrchestrator(
            store_factory=lambda: sqlalchemy_store_scope(sqlite_session_factory),
            fetcher=StaticPageFetcher(pricing_page_html("Pro Plan $29/month")),
            reducer=RecordingReducer(),
            interpreter=interpreter,
        )
        event = _event(_new_job(sqlite_session_factory, competitor_id))

        first = orchestrator.process(event)
        second = orchestrator.process(event)

        assert first.succeeded
        assert second.status == "skipped"
        assert interpreter.calls == 1
        with sqlite_session_factory() as session:
            plans = session.query(PricingPlan).filter(PricingPlan.scrape_session_id == event.id).all()
            assert len(plans) == 1
            assert plans[0].is_current
            assert session.get(ScrapeSession, event.id).status == "success"

    def test_unknown_competitor_marks_job_failed(self, sqlite_session_factory, competitor_id) -> None:
        job = _new_job(sqlite_session_factory, competitor_id)
        orchestrator = PricingPipelineOrchestrator(
            store_factory=lambda: sqlalchemy_store_scope(sqlite_session_factory),
            fetcher=StaticPageFetcher(pricing_page_html("Pro")),
            reducer=RecordingReducer(),
            interpreter=StaticInterpreter(),
        )
        event = _event(job).model_copy(update={"competitor_id": uuid.uuid4()})

        result = orchestrator.process(event)

        assert result.failed_stage == "resolve"
        with sqlite_session_factory() as session:
            row = session.get(ScrapeSession, job.id)
            assert row.status == "failed"
            assert "not found" in row.error_message


def test_backlog_lists_only_pending_sessions(sqlite_session_factory, competitor_id) -> None:
    pending = _new_job(sqlite_session_factory, competitor_id)
    done = _new_job(sqlite_session_factory, competitor_id)
    with sqlite_session_factory() as session:
        ScrapeSessionRepository(session).mark_success(session_id=done.id)
        session.commit()

        events = load_pending_backlog(session)

    assert [event.id for event in events] == [pending.id]


def test_backlog_skips_claimed_sessions(sqlite_session_factory, competitor_id) -> None:
    claimed = _new_job(sqlite_session_factory, competitor_id)
    unclaimed = _new_job(sqlite_session_factory, competitor_id)
    with sqlite_session_factory() as session:
        assert ScrapeSessionRepository(session).claim(session_id=claimed.id)
        session.commit()

        events = load_pending_backlog(session)

    assert [event.id for event in events] == [unclaimed.id]
