"""
Generation services wired from adapters.
"""

from .generation import ContentGenerationService, GenerationOutcome, OutcomeStatus
from .usage import UsageRecord, UsageSummary, UsageTracker

__all__ = [
    "ContentGenerationService",
    "GenerationOutcome",
    "OutcomeStatus",
    "UsageRecord",
    "UsageSummary",
    "UsageTracker",
]
