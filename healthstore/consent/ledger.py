"""
Consent ledger for time-bounded entity access
Issues, checks and enforces consent policies keyed by (patient, entity)
"""

from typing import TYPE_CHECKING, List, Optional
import structlog

from .models import ConsentPolicy
from ..config import StoreConfig, get_store_config
from ..events import RecordAccessed
from ..exceptions import ConsentExpiredError, ConsentNotFound, NotAuthorizedError
from ..identity import IdentityComparator

if TYPE_CHECKING:
    from ..state import Transaction

logger = structlog.get_logger(__name__)


class ConsentLedger:
    """Owns the (patient id, entity id) -> ConsentPolicy map"""

    def __init__(self, config: Optional[StoreConfig] = None,
                 comparator: Optional[IdentityComparator] = None):
        self.config = config or get_store_config()
        self.comparator = comparator or IdentityComparator()

    def add(self, tx: "Transaction", patient_id: str, entity_id: str,
            purpose: str, proof: bytes) -> ConsentPolicy:
        """
        Issue or renew consent for one consent window from now.

        The entity is also added to the authorization list of the patient's
        record when the record exists.
        """
        if self.config.consent_requires_owner:
            self.comparator.require(tx.caller, patient_id,
                                    resource=f"consent of patient {patient_id}", action="add")

        policy = ConsentPolicy.issue(patient_id, entity_id, purpose, proof, tx.now)
        renewed = policy.key in tx.state.consent_policies
        tx.state.consent_policies[policy.key] = policy

        record = tx.state.records.get(patient_id)
        if record is not None:
            record.authorize(entity_id)

        tx.touch()
        logger.info("Added consent", patient_id=patient_id, entity_id=entity_id,
                    purpose=purpose, expiration=policy.expiration, renewed=renewed,
                    record_present=record is not None)
        return policy

    def check(self, tx: "Transaction", patient_id: str, entity_id: str) -> Optional[ConsentPolicy]:
        """Return the policy if it is still valid; absent and expired look the same"""
        policy = tx.state.consent_policies.get((patient_id, entity_id))
        if policy is None or not policy.is_valid(tx.now):
            return None
        return policy

    def require(self, tx: "Transaction", patient_id: str, entity_id: str) -> ConsentPolicy:
        """Return the valid policy or raise explaining why there is none"""
        policy = tx.state.consent_policies.get((patient_id, entity_id))
        if policy is None:
            raise ConsentNotFound(patient_id, entity_id)
        if not policy.is_valid(tx.now):
            raise ConsentExpiredError(patient_id, entity_id, expired_at=policy.expiration)
        return policy

    def access_with_consent(self, tx: "Transaction", patient_id: str,
                            entity_id: str) -> Optional[bytes]:
        """Payload for an entity holding both valid consent and authorization"""
        try:
            self.require(tx, patient_id, entity_id)

            record = tx.state.records.get(patient_id)
            if record is None or not record.is_authorized(entity_id):
                raise NotAuthorizedError(resource=f"record {patient_id}", action="access")

        except (ConsentNotFound, ConsentExpiredError, NotAuthorizedError) as e:
            logger.warning("Consented access denied", patient_id=patient_id,
                           entity_id=entity_id, reason=e.error_code)
            return None

        tx.emit(RecordAccessed(patient_id=patient_id, accessor_id=entity_id))
        logger.info("Consented access granted", patient_id=patient_id, entity_id=entity_id)
        return record.payload

    def for_patient(self, tx: "Transaction", patient_id: str) -> List[ConsentPolicy]:
        """All policies of a patient, valid or not"""
        return [policy for key, policy in tx.state.consent_policies.items()
                if key[0] == patient_id]
