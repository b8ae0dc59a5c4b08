"""
pricing/archival.py

Archival / versioning protocol for pricing generations.

Before a new generation is inserted, the competitor's current generation
is flagged non-current: features first, then plans. In that order a
reader joining plans to features never sees a non-current plan that
still points at current features.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from app.scraping.logging_utils import log_event
from app.scraping.storage.base import PricingStore
from pricing.errors import ArchivalReadError, ArchivalWriteError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArchivalResult:
    """
    Outcome of archiving one competitor's current generation.
    """

    competitor_id: uuid.UUID
    plan_ids: tuple[uuid.UUID, ...] = field(default_factory=tuple)
    plans_archived: int = 0
    features_archived: int = 0
    write_failed: bool = False

    @property
    def had_current_generation(self) -> bool:
        return bool(self.plan_ids)


def archive_current_generation(
    store: PricingStore,
    competitor_id: uuid.UUID,
    *,
    write_fatal: bool = True,
) -> ArchivalResult:
    """Flag the competitor's current plans and features non-current.

    The flag updates are committed before returning, so archival is
    confirmed before any new row is written.

    Args:
        store: Pricing store scoped to the running job.
        competitor_id: Competitor whose generation is archived.
        write_fatal: When False, a failed flag update is logged and the
            pipeline continues with the old generation still current.

    Returns:
        ArchivalResult describing what was archived.

    Raises:
        ArchivalReadError: If the current plan ids cannot be read.
        ArchivalWriteError: If flagging fails and write_fatal is True.
    """

    try:
        plan_ids = tuple(store.get_current_plan_ids(competitor_id))
    except Exception as exc:  # noqa: BLE001
        raise ArchivalReadError(
            f"Could not read current plans for competitor {competitor_id}: {exc}"
        ) from exc

    if not plan_ids:
        log_event(
            logger,
            logging.INFO,
            "pricing_generation_archive_skipped",
            competitor_id=competitor_id,
            reason="no_current_generation",
        )
        return ArchivalResult(competitor_id=competitor_id)

    try:
        features_archived = store.set_features_non_current(plan_ids)
        plans_archived = store.set_plans_non_current(plan_ids)
        store.commit()
    except Exception as exc:  # noqa: BLE001
        store.rollback()
        if write_fatal:
            raise ArchivalWriteError(
                f"Could not archive {len(plan_ids)} current plan(s) for competitor "
                f"{competitor_id}: {exc}"
            ) from exc
        log_event(
            logger,
            logging.WARNING,
            "pricing_generation_archive_failed",
            competitor_id=competitor_id,
            plan_count=len(plan_ids),
            error=str(exc),
        )
        return ArchivalResult(competitor_id=competitor_id, plan_ids=plan_ids, write_failed=True)

    log_event(
        logger,
        logging.INFO,
        "pricing_generation_archived",
        competitor_id=competitor_id,
        plans_archived=plans_archived,
        features_archived=features_archived,
    )
    return ArchivalResult(
        competitor_id=competitor_id,
        plan_ids=plan_ids,
        plans_archived=plans_archived,
        features_archived=features_archived,
    )
