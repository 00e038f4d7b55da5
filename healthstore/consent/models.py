"""
Consent policy data models
Time-bounded consent of one patient towards one entity
"""

from typing import Tuple
from pydantic import BaseModel, Field

from ..constants import CONSENT_WINDOW_SECONDS, MAX_UINT64

# (patient_id, entity_id)
ConsentKey = Tuple[str, str]


class ConsentPolicy(BaseModel):
    """Consent granted by a patient to an entity for a stated purpose"""
    patient_id: str = Field(..., description="Patient identifier")
    entity_id: str = Field(..., description="Entity identifier")
    purpose: str = Field(..., description="Purpose of access")
    expiration: int = Field(..., ge=0, description="Consent is valid strictly before this time")
    proof: bytes = Field(default=b"", description="Opaque attestation, not verified")

    @classmethod
    def issue(cls, patient_id: str, entity_id: str, purpose: str,
              proof: bytes, now: int) -> "ConsentPolicy":
        """Create a policy expiring one consent window after now, saturating at the u64 limit"""
        return cls(
            patient_id=patient_id,
            entity_id=entity_id,
            purpose=purpose,
            expiration=min(now + CONSENT_WINDOW_SECONDS, MAX_UINT64),
            proof=proof
        )

    @property
    def key(self) -> ConsentKey:
        return (self.patient_id, self.entity_id)

    def is_valid(self, now: int) -> bool:
        """Check if consent is still in force at time now"""
        return now < self.expiration
