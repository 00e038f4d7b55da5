"""
Research pool and submission data models
"""

from enum import Enum
from typing import Tuple
from pydantic import BaseModel, Field

# (entity_id, patient_id)
SubmissionKey = Tuple[str, str]


class PoolStatus(str, Enum):
    """Conventional research pool statuses. Only "active" pools are listed."""
    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"


class SubmissionStatus(str, Enum):
    """Conventional submission statuses. Reviewers may set any other string."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ResearchPool(BaseModel):
    """Reward-bearing campaign published by an entity"""
    entity_id: str = Field(..., description="Owning entity, immutable")
    title: str
    description: str = ""
    reward_amount: int = Field(..., ge=0)
    created_at: int = Field(..., ge=0)
    status: str = Field(default=PoolStatus.ACTIVE.value, description="Free-form pool status")

    def is_active(self) -> bool:
        return self.status == PoolStatus.ACTIVE.value


class PoolSubmission(BaseModel):
    """A patient's application to a research pool"""
    patient_id: str
    entity_id: str
    submitted_at: int = Field(..., ge=0)
    status: str = Field(default=SubmissionStatus.PENDING.value,
                        description="Free-form review status, any transition allowed")

    @property
    def key(self) -> SubmissionKey:
        return (self.entity_id, self.patient_id)
