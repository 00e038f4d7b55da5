"""
Record store for patient health records
Ownership, authorization, anonymization and lifecycle rules
"""

from typing import TYPE_CHECKING, List, Optional
import structlog

from .models import HealthRecord, PatientDataResponse
from ..config import StoreConfig, get_store_config
from ..events import ConsentGranted, RecordAccessed, RecordAdded, RecordDeleted, RecordUpdated
from ..exceptions import RecordNotFound
from ..identity import IdentityComparator

if TYPE_CHECKING:
    from ..state import Transaction

logger = structlog.get_logger(__name__)


class RecordStore:
    """Owns the patient id -> HealthRecord map"""

    def __init__(self, config: Optional[StoreConfig] = None,
                 comparator: Optional[IdentityComparator] = None):
        self.config = config or get_store_config()
        self.comparator = comparator or IdentityComparator()

    def owned_record(self, tx: "Transaction", patient_id: str, action: str,
                      strict: bool = True) -> Optional[HealthRecord]:
        """Look up a record and require the caller to own it"""
        record = tx.state.records.get(patient_id)
        if record is None:
            if strict:
                raise RecordNotFound(patient_id)
            logger.info("No record, skipping", patient_id=patient_id, action=action)
            return None
        self.comparator.require(tx.caller, record.owner_id,
                                resource=f"record {patient_id}", action=action)
        return record

    def store(self, tx: "Transaction", patient_id: str, payload: bytes,
              record_type: str) -> HealthRecord:
        """Create or overwrite the record of a patient"""
        record = HealthRecord(
            owner_id=patient_id,
            payload=payload,
            record_type=record_type,
            timestamp=tx.now,
        )
        replaced = patient_id in tx.state.records
        tx.state.records[patient_id] = record
        tx.touch()
        tx.emit(RecordAdded(patient_id=patient_id))

        logger.info("Stored patient record", patient_id=patient_id,
                    record_type=record_type, replaced=replaced)
        return record

    def update(self, tx: "Transaction", patient_id: str, payload: bytes,
               record_type: str) -> HealthRecord:
        """Replace payload and type of an owned record"""
        record = self.owned_record(tx, patient_id, "update")
        record.payload = payload
        record.record_type = record_type
        record.timestamp = tx.now
        tx.touch()
        tx.emit(RecordUpdated(patient_id=patient_id))

        logger.info("Updated patient record", patient_id=patient_id, record_type=record_type)
        return record

    def delete(self, tx: "Transaction", patient_id: str) -> int:
        """Delete an owned record and every consent policy of the patient"""
        self.owned_record(tx, patient_id, "delete")
        del tx.state.records[patient_id]

        consent_keys = [key for key in tx.state.consent_policies if key[0] == patient_id]
        for key in consent_keys:
            del tx.state.consent_policies[key]

        tx.touch()
        tx.emit(RecordDeleted(patient_id=patient_id))

        logger.info("Deleted patient record", patient_id=patient_id,
                    consents_removed=len(consent_keys))
        return len(consent_keys)

    def grant_access(self, tx: "Transaction", patient_id: str, entity_id: str) -> bool:
        """Authorize an entity on an owned record. Granting twice is a no-op."""
        record = self.owned_record(tx, patient_id, "grant access to",
                                    strict=self.config.strict_record_lookup)
        if record is None:
            return False

        added = record.authorize(entity_id)
        if added:
            tx.touch()
        tx.emit(ConsentGranted(patient_id=patient_id, entity_id=entity_id))

        logger.info("Granted access", patient_id=patient_id, entity_id=entity_id, added=added)
        return True

    def revoke_access(self, tx: "Transaction", patient_id: str, entity_id: str) -> bool:
        """Remove an entity from an owned record and drop its consent policy"""
        record = self.owned_record(tx, patient_id, "revoke access to",
                                    strict=self.config.strict_record_lookup)
        if record is None:
            return False

        removed = record.deauthorize(entity_id)
        consent = tx.state.consent_policies.pop((patient_id, entity_id), None)
        tx.touch()

        logger.info("Revoked access", patient_id=patient_id, entity_id=entity_id,
                    entries_removed=removed, consent_removed=consent is not None)
        return True

    def read_for_entity(self, tx: "Transaction", patient_id: str,
                        entity_id: str) -> Optional[PatientDataResponse]:
        """Return the record to its owner or an authorized entity, otherwise None"""
        record = tx.state.records.get(patient_id)
        if record is None:
            logger.debug("No record found", patient_id=patient_id)
            return None

        if not record.can_read(entity_id):
            logger.warning("Access denied", patient_id=patient_id, entity_id=entity_id)
            return None

        tx.emit(RecordAccessed(patient_id=patient_id, accessor_id=entity_id))
        logger.debug("Access granted", patient_id=patient_id, entity_id=entity_id,
                     record_type=record.record_type)
        return record.to_response()

    def anonymized_read(self, tx: "Transaction", patient_id: str, entity_id: str,
                        proof: bytes) -> Optional[bytes]:
        """
        Record an anonymized access by an authorized entity.

        Sets the anonymization flag and stores the proof, then returns the
        payload as stored. The payload itself is not redacted.
        """
        record = tx.state.records.get(patient_id)
        if record is None or not record.is_authorized(entity_id):
            logger.warning("Anonymized access denied", patient_id=patient_id,
                           entity_id=entity_id)
            return None

        record.mark_anonymized(proof)
        tx.touch()

        logger.info("Anonymized access recorded", patient_id=patient_id, entity_id=entity_id)
        return record.payload

    def list_authorized(self, tx: "Transaction", entity_id: str) -> List[PatientDataResponse]:
        """All records the entity is authorized on"""
        reports = [
            record.to_response()
            for record in tx.state.records.values()
            if record.is_authorized(entity_id)
        ]
        logger.debug("Listed authorized reports", entity_id=entity_id, count=len(reports))
        return reports
