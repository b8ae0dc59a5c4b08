"""
app/domain package marker.
"""

from app.domain.pricing import Competitor, PipelineRunResult

__all__ = [
    "Competitor",
    "PipelineRunResult",
]
