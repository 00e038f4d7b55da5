"""
Utility functions for the health record store
Input validation helpers
"""

from .validators import (
    validate_identifier,
    validate_bytes,
    validate_text,
    validate_optional_text,
    validate_amount,
    validate_status,
)

__all__ = [
    "validate_identifier",
    "validate_bytes",
    "validate_text",
    "validate_optional_text",
    "validate_amount",
    "validate_status",
]
