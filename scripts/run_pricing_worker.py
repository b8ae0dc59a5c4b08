"""
Run the pricing worker from CLI.

Without arguments the worker listens for new scrape sessions until it
receives SIGINT or SIGTERM. With --once it processes a single scrape
session synchronously and prints the result.
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
import uuid
from dataclasses import asdict

from app.config import validate_worker_env
from app.schemas.pricing_scrape import ScrapeSessionEvent
from app.scraping.logging_utils import configure_logging
from db.repositories.scrape_session_repository import ScrapeSessionRepository
from db.session import dispose_engine, session_scope
from pricing.worker import build_orchestrator, build_pricing_worker


def _run_once(session_id: uuid.UUID) -> int:
    with session_scope() as db:
        row = ScrapeSessionRepository(db).get_session(session_id)
        if row is None:
            print(f"Scrape session {session_id} not found.", file=sys.stderr)
            return 1
        event = ScrapeSessionEvent(
            id=row.id,
            competitor_id=row.competitor_id,
            status=row.status,
            scraped_at=row.scraped_at,
            error_message=row.error_message,
        )

    orchestrator = build_orchestrator()
    try:
        result = orchestrator.process(event)
    finally:
        dispose_engine()

    print(json.dumps(asdict(result), indent=2, default=str))
    return 0 if result.status != "failed" else 2


def _run_forever(*, drain_pending: bool) -> int:
    worker = build_pricing_worker(drain_pending=drain_pending or None)

    def _handle_signal(signum: int, _frame: object) -> None:
        worker.stop(wait=True)

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    worker.start()
    worker.wait()
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the competitor pricing worker.")
    parser.add_argument(
        "--drain-pending",
        action="store_true",
        help="Process scrape sessions left pending before listening for new ones.",
    )
    parser.add_argument(
        "--once",
        dest="session_id",
        type=uuid.UUID,
        default=None,
        metavar="SESSION_ID",
        help="Process one scrape session and exit.",
    )
    args = parser.parse_args()

    validate_worker_env()
    configure_logging()

    if args.session_id is not None:
        return _run_once(args.session_id)
    return _run_forever(drain_pending=args.drain_pending)


if __name__ == "__main__":
    raise SystemExit(main())
