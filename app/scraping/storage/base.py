"""
Storage layer interface for versioned pricing data.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections.abc import Sequence

from app.domain.pricing import Competitor
from llm_synthesis.schema import PricingPlanCandidate


class ScrapeSessionStateError(RuntimeError):
    """
    Raised when a status update targets a scrape session that is no longer pending.
    """


class PricingStore(ABC):
    """
    Persistence operations the pricing pipeline consumes.

    Write operations take effect only after commit(); rollback() discards
    everything written since the last commit.
    """

    @abstractmethod
    def claim_job(self, job_id: uuid.UUID) -> bool:
        """
        Claim a pending scrape session for this worker.

        Returns False when the session is missing, no longer pending, or
        already claimed by another delivery.
        """

    @abstractmethod
    def get_competitor(self, competitor_id: uuid.UUID) -> Competitor | None:
        """
        Return the competitor, or None when it does not exist.
        """

    @abstractmethod
    def get_current_plan_ids(self, competitor_id: uuid.UUID) -> list[uuid.UUID]:
        """
        Return ids of the competitor's plans flagged current.
        """

    @abstractmethod
    def set_features_non_current(self, plan_ids: Sequence[uuid.UUID]) -> int:
        """
        Flag every feature of the given plans non-current; return rows changed.
        """

    @abstractmethod
    def set_plans_non_current(self, plan_ids: Sequence[uuid.UUID]) -> int:
        """
        Flag the given plans non-current; return rows changed.
        """

    @abstractmethod
    def insert_plan(
        self,
        job_id: uuid.UUID,
        competitor_id: uuid.UUID,
        plan: PricingPlanCandidate,
    ) -> uuid.UUID:
        """
        Insert one plan flagged current and return its id.
        """

    @abstractmethod
    def insert_features(self, plan_id: uuid.UUID, features: Sequence[str]) -> int:
        """
        Insert the plan's features flagged current; return rows inserted.
        """

    @abstractmethod
    def update_job_status(
        self,
        job_id: uuid.UUID,
        status: str,
        error_message: str | None = None,
    ) -> None:
        """
        Move a pending scrape session to a terminal status.

        Raises LookupError for an unknown session and
        ScrapeSessionStateError when it is already terminal.
        """

    @abstractmethod
    def commit(self) -> None:
        """
        Make pending writes durable.
        """

    @abstractmethod
    def rollback(self) -> None:
        """
        Discard pending writes.
        """
