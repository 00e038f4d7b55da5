"""
Custom Exceptions for the health record store

Provides a unified exception hierarchy for missing records, pools and
submissions, authorization failures, consent expiry and storage errors.
"""

from typing import Optional, Dict, Any, Sequence

from .constants import ErrorCodes


class HealthStoreError(Exception):
    """
    Base exception for all store errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCodes.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses"""
        result: Dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================

class NotFoundError(HealthStoreError):
    """Base exception for an absent record, pool or submission"""

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCodes.NOT_FOUND,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details)


class RecordNotFound(NotFoundError):
    """Raised when no record exists for a patient id"""

    def __init__(self, patient_id: str):
        super().__init__(
            message=f"Record not found for patient: {patient_id}",
            error_code=ErrorCodes.RECORD_NOT_FOUND,
            details={"patient_id": patient_id}
        )


class PoolNotFound(NotFoundError):
    """Raised when no research pool exists for an entity id"""

    def __init__(self, entity_id: str):
        super().__init__(
            message=f"Research pool not found for entity: {entity_id}",
            error_code=ErrorCodes.POOL_NOT_FOUND,
            details={"entity_id": entity_id}
        )


class SubmissionNotFound(NotFoundError):
    """Raised when a patient has no submission in a pool"""

    def __init__(self, entity_id: str, patient_id: str):
        super().__init__(
            message=f"Submission not found for patient {patient_id} in pool {entity_id}",
            error_code=ErrorCodes.SUBMISSION_NOT_FOUND,
            details={"entity_id": entity_id, "patient_id": patient_id}
        )


class ConsentNotFound(NotFoundError):
    """Raised when a patient has no consent policy for an entity"""

    def __init__(self, patient_id: str, entity_id: str):
        super().__init__(
            message=f"No consent from patient {patient_id} for entity {entity_id}",
            error_code=ErrorCodes.CONSENT_NOT_FOUND,
            details={"patient_id": patient_id, "entity_id": entity_id}
        )


# =============================================================================
# AUTHORIZATION ERRORS
# =============================================================================

class NotAuthorizedError(HealthStoreError):
    """Raised when the caller identity does not match the required owner"""

    def __init__(
        self,
        resource: str,
        action: str,
        owner_id: Optional[str] = None
    ):
        details: Dict[str, Any] = {"resource": resource, "action": action}
        if owner_id is not None:
            details["owner_id"] = owner_id
        super().__init__(
            message=f"Not authorized to {action} {resource}",
            error_code=ErrorCodes.NOT_AUTHORIZED,
            details=details
        )


class ConsentExpiredError(HealthStoreError):
    """Raised when a consent policy is past its expiration"""

    def __init__(
        self,
        patient_id: str,
        entity_id: str,
        expired_at: Optional[int] = None
    ):
        details: Dict[str, Any] = {"patient_id": patient_id, "entity_id": entity_id}
        if expired_at is not None:
            details["expired_at"] = expired_at
        super().__init__(
            message=f"Consent expired for patient {patient_id} and entity {entity_id}",
            error_code=ErrorCodes.CONSENT_EXPIRED,
            details=details
        )


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class ValidationError(HealthStoreError):
    """Raised when input validation fails"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        allowed: Optional[Sequence[str]] = None
    ):
        details: Dict[str, Any] = {}
        if field:
            details["field"] = field
        if allowed:
            details["allowed"] = list(allowed)
        super().__init__(message, ErrorCodes.VALIDATION_ERROR, details)


# =============================================================================
# STORAGE ERRORS
# =============================================================================

class StorageError(HealthStoreError):
    """Raised when the persistence backend fails"""

    def __init__(
        self,
        message: str = "Failed to persist store state",
        reason: Optional[str] = None
    ):
        details: Dict[str, Any] = {}
        if reason:
            details["reason"] = reason
        super().__init__(message, ErrorCodes.STORAGE_ERROR, details)
