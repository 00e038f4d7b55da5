"""
Patient record module
Owner-controlled health records and their authorization lists
"""

from .models import HealthRecord, PatientDataResponse
from .store import RecordStore

__all__ = [
    "HealthRecord",
    "PatientDataResponse",
    "RecordStore",
]
