"""
Caller identity comparison
Exact byte-wise matching of opaque caller identities against stored ids
"""

import hmac
from typing import Union

import structlog

from .exceptions import NotAuthorizedError, ValidationError

logger = structlog.get_logger(__name__)

IdentityLike = Union[bytes, bytearray, memoryview, str]


def to_identity(value: IdentityLike) -> bytes:
    """Normalise a caller identity to bytes. Text is encoded as UTF-8."""
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise ValidationError("identity must be bytes or str", field="identity")


def patient_id_from_identity(identity: IdentityLike) -> str:
    """Derive the patient id of a pool submission: lowercase hex of the raw identity bytes"""
    return to_identity(identity).hex()


class IdentityComparator:
    """Compares caller identities with stored owner and entity ids.

    A stored id is text; it matches a caller only when its UTF-8 encoding is
    byte-for-byte equal to the caller identity. Caller bytes are never
    decoded, so two distinct byte identities can never match the same id.
    """

    def matches(self, caller: IdentityLike, stored_id: str) -> bool:
        return hmac.compare_digest(to_identity(caller), stored_id.encode("utf-8"))

    def require(self, caller: IdentityLike, stored_id: str,
                resource: str, action: str) -> None:
        """Raise NotAuthorizedError unless the caller is the stored id"""
        if not self.matches(caller, stored_id):
            logger.warning("Caller identity mismatch", resource=resource,
                           action=action, owner_id=stored_id)
            raise NotAuthorizedError(resource=resource, action=action, owner_id=stored_id)


_comparator = IdentityComparator()


def identity_matches(caller: IdentityLike, stored_id: str) -> bool:
    """Check a caller identity against a stored id"""
    return _comparator.matches(caller, stored_id)
