"""
app/domain/pricing.py

Domain models for competitor pricing refresh jobs.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass


@dataclass(frozen=True)
class Competitor:
    """
    One competitor and the pricing page the pipeline scrapes.
    """

    id: uuid.UUID
    name: str
    pricing_page_url: str


@dataclass(frozen=True)
class PipelineRunResult:
    """
    Outcome of one scrape session run through the pipeline.
    """

    job_id: uuid.UUID
    competitor_id: uuid.UUID
    status: str
    plans_inserted: int = 0
    features_inserted: int = 0
    plans_archived: int = 0
    error_message: str | None = None
    failed_stage: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "success"
