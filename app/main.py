from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

from app.config import validate_worker_env
from app.scraping.logging_utils import configure_logging


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import SessionLocal

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Compare Base.metadata table names against the live DB schema.

    Every table registered on Base.metadata must exist in the database.
    If any are missing, log a critical error and abort startup so that
    the operator is forced to run migrations before serving traffic.

    Does NOT auto-migrate.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401  registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        log = logging.getLogger(__name__)
        log.critical(
            "Schema mismatch: %d table(s) defined in ORM metadata are absent from "
            "the database: %s. Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Validate DB connectivity and schema, start the pricing worker on boot; stop it on exit."""
    _check_db()
    logging.getLogger(__name__).info("Database connectivity confirmed")
    _check_schema()
    logging.getLogger(__name__).info("Database schema validated")

    if not application.state.start_worker:
        yield
        return

    from pricing.worker import build_pricing_worker

    worker = build_pricing_worker()
    worker.start()
    application.state.pricing_worker = worker
    logging.getLogger(__name__).info("Pricing worker started")
    try:
        yield
    finally:
        application.state.pricing_worker = None
        worker.stop(wait=True)
        logging.getLogger(__name__).info("Pricing worker shut down")


def create_app(*, start_worker: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    validate_worker_env()
    configure_logging()

    application = FastAPI(
        title="Competitor Pricing Watch API",
        version="1.0.0",
        lifespan=_lifespan,
    )
    application.state.start_worker = start_worker
    application.state.pricing_worker = None

    from app.api.routers import pricing_scrape_router

    application.include_router(pricing_scrape_router)

    @application.get("/health")
    def healthcheck() -> dict[str, object]:
        worker = application.state.pricing_worker
        return {
            "status": "ok",
            "worker_running": bool(worker is not None and worker.running),
            "jobs_in_flight": worker.dispatcher.in_flight if worker is not None else 0,
        }

    return application


app = create_app()
