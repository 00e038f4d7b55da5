"""
Consent management module
Time-bounded consent of patients towards entities
"""

from .models import ConsentPolicy, ConsentKey
from .ledger import ConsentLedger

__all__ = [
    "ConsentPolicy",
    "ConsentKey",
    "ConsentLedger",
]
