"""
Health record data models
Owner-controlled record with an explicit authorization list
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class HealthRecord(BaseModel):
    """Encrypted record for one patient"""
    owner_id: str = Field(..., description="Patient identity, immutable after creation")
    payload: bytes = Field(..., description="Caller-encrypted data, never inspected")
    record_type: str = Field(..., description="Free-form category tag")
    timestamp: int = Field(..., ge=0, description="Creation or last update time")

    authorized_ids: List[str] = Field(default_factory=list)

    # Anonymization is a one-way policy marker, the payload is not transformed
    is_anonymized: bool = Field(default=False)
    anonymization_proof: Optional[bytes] = Field(default=None)

    def is_authorized(self, entity_id: str) -> bool:
        """Check if entity is on the authorization list"""
        return entity_id in self.authorized_ids

    def can_read(self, entity_id: str) -> bool:
        """Owner or authorized entity"""
        return entity_id == self.owner_id or self.is_authorized(entity_id)

    def authorize(self, entity_id: str) -> bool:
        """Add entity to the authorization list; False if it was already there"""
        if self.is_authorized(entity_id):
            return False
        self.authorized_ids.append(entity_id)
        return True

    def deauthorize(self, entity_id: str) -> int:
        """Remove every occurrence of entity, returning how many were removed"""
        before = len(self.authorized_ids)
        self.authorized_ids = [i for i in self.authorized_ids if i != entity_id]
        return before - len(self.authorized_ids)

    def mark_anonymized(self, proof: bytes) -> None:
        self.is_anonymized = True
        self.anonymization_proof = proof

    def to_response(self) -> "PatientDataResponse":
        return PatientDataResponse(
            payload=self.payload,
            record_type=self.record_type,
            timestamp=self.timestamp
        )


class PatientDataResponse(BaseModel):
    """Payload, type and timestamp returned to readers"""
    payload: bytes
    record_type: str
    timestamp: int
