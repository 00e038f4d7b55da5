"""
Constants for the health record store

Service identification, consent window and error codes shared across
the record, consent and pool components.
"""

from typing import Final

# =============================================================================
# SERVICE IDENTIFICATION
# =============================================================================

SERVICE_NAME: Final[str] = "healthstore"
SERVICE_VERSION: Final[str] = "0.1.0"

# =============================================================================
# CONSENT
# =============================================================================

# 90 days in clock units (seconds). Fixed, not configurable.
CONSENT_WINDOW_SECONDS: Final[int] = 7_776_000

# Timestamps and amounts are unsigned 64-bit values
MAX_UINT64: Final[int] = 2**64 - 1


# =============================================================================
# ERROR CODES
# =============================================================================

class ErrorCodes:
    """Standardized error codes"""
    UNKNOWN_ERROR: Final[str] = "UNKNOWN_ERROR"
    VALIDATION_ERROR: Final[str] = "VALIDATION_ERROR"

    NOT_FOUND: Final[str] = "NOT_FOUND"
    RECORD_NOT_FOUND: Final[str] = "RECORD_NOT_FOUND"
    POOL_NOT_FOUND: Final[str] = "POOL_NOT_FOUND"
    SUBMISSION_NOT_FOUND: Final[str] = "SUBMISSION_NOT_FOUND"
    CONSENT_NOT_FOUND: Final[str] = "CONSENT_NOT_FOUND"

    NOT_AUTHORIZED: Final[str] = "NOT_AUTHORIZED"
    CONSENT_EXPIRED: Final[str] = "CONSENT_EXPIRED"

    STORAGE_ERROR: Final[str] = "STORAGE_ERROR"
