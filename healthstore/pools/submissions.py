"""
Pool submission tracking
Patients submit into pools; only the pool owner moves submission status
"""

from typing import TYPE_CHECKING, List, Optional
import structlog

from .models import PoolSubmission, SubmissionStatus
from .registry import ResearchPoolRegistry
from ..events import PoolSubmissionEvent, SubmissionUpdated
from ..exceptions import SubmissionNotFound
from ..identity import patient_id_from_identity

if TYPE_CHECKING:
    from ..state import Transaction

logger = structlog.get_logger(__name__)


class SubmissionTracker:
    """Owns the (entity id, patient id) -> PoolSubmission map"""

    def __init__(self, registry: Optional[ResearchPoolRegistry] = None):
        self.registry = registry or ResearchPoolRegistry()

    def submit(self, tx: "Transaction", entity_id: str) -> PoolSubmission:
        """
        Submit the caller into the pool of an entity.

        The patient id is the hex encoding of the caller's raw identity.
        The pool does not have to exist. A repeated submission is reset
        to pending.
        """
        patient_id = patient_id_from_identity(tx.caller)
        submission = PoolSubmission(
            patient_id=patient_id,
            entity_id=entity_id,
            submitted_at=tx.now,
            status=SubmissionStatus.PENDING.value,
        )
        tx.state.pool_submissions[submission.key] = submission
        tx.touch()
        tx.emit(PoolSubmissionEvent(patient_id=patient_id, entity_id=entity_id,
                                    status=submission.status))

        logger.info("Pool submission received", entity_id=entity_id, patient_id=patient_id,
                    pool_exists=entity_id in tx.state.research_pools)
        return submission

    def update_status(self, tx: "Transaction", entity_id: str, patient_id: str,
                      status: str) -> PoolSubmission:
        """Set the status of a submission; caller must own the pool"""
        self.registry.owned_pool(tx, entity_id, "review submissions of")

        submission = tx.state.pool_submissions.get((entity_id, patient_id))
        if submission is None:
            raise SubmissionNotFound(entity_id, patient_id)

        previous = submission.status
        submission.status = status
        tx.touch()
        tx.emit(SubmissionUpdated(patient_id=patient_id, entity_id=entity_id,
                                  status=status))

        logger.info("Submission status updated", entity_id=entity_id, patient_id=patient_id,
                    previous=previous, status=status)
        return submission

    def list_for_pool(self, tx: "Transaction", entity_id: str) -> List[PoolSubmission]:
        """Submissions of an owned pool, oldest first"""
        self.registry.owned_pool(tx, entity_id, "list submissions of")
        submissions = [s for key, s in tx.state.pool_submissions.items() if key[0] == entity_id]
        submissions.sort(key=lambda s: s.submitted_at)
        return submissions
