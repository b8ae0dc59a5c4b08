"""
pricing/errors.py

Failure taxonomy for the pricing pipeline.

Every stage raises a subclass of PricingPipelineError. The orchestrator
catches them all and turns them into a failed scrape session, so none
of these ever escape job processing.
"""

from __future__ import annotations


class PricingPipelineError(Exception):
    """Base class for every pipeline failure.

    Attributes:
        stage: Pipeline stage that raised ("resolve", "fetch", "extract",
            "interpret", "archive", "insert").
    """

    stage = "pipeline"


class CompetitorNotFoundError(PricingPipelineError):
    """Raised when a job's competitor cannot be resolved."""

    stage = "resolve"


class FetchFailure(PricingPipelineError):
    """Raised when the pricing page could not be retrieved."""

    stage = "fetch"


class PageBlockedError(FetchFailure):
    """Raised when the retrieved page is implausibly small (likely a block page)."""


class ExtractionFailure(PricingPipelineError):
    """Raised when HTML cannot be reduced to usable text."""

    stage = "extract"


class InterpretationFailure(PricingPipelineError):
    """Raised when the language model output cannot be turned into plans."""

    stage = "interpret"


class UnparseableOutputError(InterpretationFailure):
    """Raised when the model output holds no parseable plan structure."""


class EmptyPlanResultError(InterpretationFailure):
    """Raised when the model output parses but contains zero plans."""


class PersistenceFailure(PricingPipelineError):
    """Raised when reading or writing the pricing store fails."""

    stage = "persist"


class ArchivalReadError(PersistenceFailure):
    """Raised when the current generation cannot be read before archival."""

    stage = "archive"


class ArchivalWriteError(PersistenceFailure):
    """Raised when flagging the current generation non-current fails."""

    stage = "archive"


class PlanInsertError(PersistenceFailure):
    """Raised when the new generation cannot be inserted."""

    stage = "insert"
