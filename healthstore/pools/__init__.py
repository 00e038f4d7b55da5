"""
Research pool module
Entity-published pools and the submissions patients make into them
"""

from .models import (
    PoolStatus, SubmissionStatus, ResearchPool, PoolSubmission, SubmissionKey
)
from .registry import ResearchPoolRegistry
from .submissions import SubmissionTracker

__all__ = [
    "PoolStatus",
    "SubmissionStatus",
    "ResearchPool",
    "PoolSubmission",
    "SubmissionKey",
    "ResearchPoolRegistry",
    "SubmissionTracker",
]
