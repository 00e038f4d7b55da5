"""
Input validators for the health record store

Identifier, payload, amount and status validation applied at the
public operation boundary before any state is touched.
"""

import re
from enum import Enum
from typing import Any, Optional

from ..exceptions import ValidationError
from ..constants import MAX_UINT64

# =============================================================================
# LIMITS
# =============================================================================

MAX_IDENTIFIER_LENGTH = 256
MAX_TEXT_LENGTH = 10_000
CONTROL_CHARS_PATTERN = re.compile(r"[\x00-\x1f\x7f]")

# =============================================================================
# VALIDATION FUNCTIONS
# =============================================================================

def validate_identifier(value: Any, field_name: str = "id") -> str:
    """
    Validate a patient or entity id.

    Ids are compared byte-for-byte against caller identities, so they are
    not stripped or normalised; only empty values and control characters
    are rejected.

    Args:
        value: Identifier to validate
        field_name: Field name for error messages

    Returns:
        The identifier unchanged

    Raises:
        ValidationError: If validation fails
    """
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string", field=field_name)
    if not value:
        raise ValidationError(f"{field_name} is required", field=field_name)
    if len(value) > MAX_IDENTIFIER_LENGTH:
        raise ValidationError(f"{field_name} exceeds maximum length", field=field_name)
    if CONTROL_CHARS_PATTERN.search(value):
        raise ValidationError(f"{field_name} contains invalid characters", field=field_name)
    return value


def validate_bytes(value: Any, field_name: str = "payload") -> bytes:
    """Validate an opaque byte payload"""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise ValidationError(f"{field_name} must be bytes", field=field_name)


def validate_text(value: Any, field_name: str) -> str:
    """Validate free-form text such as a record type, title or purpose"""
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string", field=field_name)
    if len(value) > MAX_TEXT_LENGTH:
        raise ValidationError(f"{field_name} exceeds maximum length", field=field_name)
    return value


def validate_amount(value: Any, field_name: str = "reward_amount") -> int:
    """Validate an unsigned 64-bit amount"""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field_name} must be an integer", field=field_name)
    if value < 0:
        raise ValidationError(f"{field_name} must not be negative", field=field_name)
    if value > MAX_UINT64:
        raise ValidationError(f"{field_name} exceeds {MAX_UINT64}", field=field_name)
    return value


def validate_status(value: Any, field_name: str = "status") -> str:
    """
    Validate a pool or submission status.

    Statuses are free-form; the PoolStatus and SubmissionStatus members are
    conventional values, not a closed set.
    """
    if isinstance(value, Enum):
        value = value.value
    return validate_text(value, field_name)


def validate_optional_text(value: Optional[Any], field_name: str) -> Optional[str]:
    if value is None:
        return None
    return validate_text(value, field_name)
