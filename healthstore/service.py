"""
Health data store service
Single entry point for every public operation over the shared state
"""

import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional
import structlog

from .config import StoreConfig, get_store_config
from .consent import ConsentLedger, ConsentPolicy
from .events import EventSink, InMemoryEventSink, LoggingEventSink
from .host import Clock, ContextIdentityResolver, IdentityResolver, SystemClock
from .identity import IdentityComparator
from .pools import (
    PoolSubmission, ResearchPool, ResearchPoolRegistry, SubmissionTracker
)
from .records import PatientDataResponse, RecordStore
from .state import StoreState, Transaction
from .storage import InMemoryStateStorage, SQLStateStorage, StateStorage
from .utils.validators import (
    validate_amount,
    validate_bytes,
    validate_identifier,
    validate_optional_text,
    validate_status,
    validate_text,
)

logger = structlog.get_logger(__name__)


class HealthDataStore:
    """
    Permissioned record store with consent, research pools and submissions.

    Every operation runs under one re-entrant lock. Mutating operations work
    on a copy of the state which is saved and swapped in only if the
    operation succeeds, so a failure leaves the state untouched. Events are
    delivered after the state is committed.
    """

    def __init__(self,
                 storage: Optional[StateStorage] = None,
                 clock: Optional[Clock] = None,
                 identity: Optional[IdentityResolver] = None,
                 events: Optional[EventSink] = None,
                 config: Optional[StoreConfig] = None):
        self.config = config or get_store_config()

        if storage is None:
            if self.config.database_url:
                storage = SQLStateStorage(self.config.database_url)
            else:
                storage = InMemoryStateStorage()
        if events is None:
            events = LoggingEventSink() if self.config.emit_events_to_log else InMemoryEventSink()

        self.storage = storage
        self.clock = clock or SystemClock()
        self.identity = identity or ContextIdentityResolver(self.config.default_identity)
        self.events = events

        comparator = IdentityComparator()
        self.records = RecordStore(self.config, comparator)
        self.consents = ConsentLedger(self.config, comparator)
        self.pools = ResearchPoolRegistry(comparator)
        self.submissions = SubmissionTracker(self.pools)

        self._lock = threading.RLock()
        self._state = self.storage.load()

    @contextmanager
    def _transaction(self, write: bool = True) -> Iterator[Transaction]:
        with self._lock:
            state = self._state.copy() if write else self._state
            tx = Transaction(state=state, now=self.clock.now(), caller=self.identity.current())
            yield tx

            if tx.dirty:
                if not write:
                    raise RuntimeError("read-only operation mutated store state")
                self.storage.save(tx.state)
                self._state = tx.state

            # The state is committed at this point; a failing sink must not
            # report the operation as failed.
            for event in tx.events:
                try:
                    self.events.emit(event)
                except Exception as e:
                    logger.error("Event delivery failed", event=event.name, error=str(e))

    def snapshot(self) -> StoreState:
        """Copy of the committed state"""
        with self._lock:
            return self._state.copy()

    # ------------------------------------------------------------------
    # Patient records
    # ------------------------------------------------------------------

    def store_patient_data(self, patient_id: str, payload: bytes, record_type: str) -> None:
        patient_id = validate_identifier(patient_id, "patient_id")
        payload = validate_bytes(payload, "payload")
        record_type = validate_text(record_type, "record_type")

        with self._transaction() as tx:
            self.records.store(tx, patient_id, payload, record_type)

    def update_patient_data(self, patient_id: str, payload: bytes, record_type: str) -> None:
        patient_id = validate_identifier(patient_id, "patient_id")
        payload = validate_bytes(payload, "payload")
        record_type = validate_text(record_type, "record_type")

        with self._transaction() as tx:
            self.records.update(tx, patient_id, payload, record_type)

    def delete_patient_data(self, patient_id: str) -> None:
        patient_id = validate_identifier(patient_id, "patient_id")

        with self._transaction() as tx:
            self.records.delete(tx, patient_id)

    def grant_access(self, patient_id: str, entity_id: str) -> None:
        patient_id = validate_identifier(patient_id, "patient_id")
        entity_id = validate_identifier(entity_id, "entity_id")

        with self._transaction() as tx:
            self.records.grant_access(tx, patient_id, entity_id)

    def revoke_access(self, patient_id: str, entity_id: str) -> None:
        patient_id = validate_identifier(patient_id, "patient_id")
        entity_id = validate_identifier(entity_id, "entity_id")

        with self._transaction() as tx:
            self.records.revoke_access(tx, patient_id, entity_id)

    def get_patient_data(self, patient_id: str, entity_id: str) -> Optional[PatientDataResponse]:
        """Record for its owner or an authorized entity, None otherwise"""
        patient_id = validate_identifier(patient_id, "patient_id")
        entity_id = validate_identifier(entity_id, "entity_id")

        with self._transaction(write=False) as tx:
            return self.records.read_for_entity(tx, patient_id, entity_id)

    def get_anonymized_data(self, patient_id: str, entity_id: str,
                            proof: bytes) -> Optional[bytes]:
        """Payload for an authorized entity; records the anonymization proof"""
        patient_id = validate_identifier(patient_id, "patient_id")
        entity_id = validate_identifier(entity_id, "entity_id")
        proof = validate_bytes(proof, "proof")

        with self._transaction() as tx:
            return self.records.anonymized_read(tx, patient_id, entity_id, proof)

    def list_authorized_reports(self, entity_id: str) -> List[PatientDataResponse]:
        entity_id = validate_identifier(entity_id, "entity_id")

        with self._transaction(write=False) as tx:
            return self.records.list_authorized(tx, entity_id)

    def export_patient_history(self, patient_id: str) -> Dict[str, Any]:
        """Owner-only summary of a record and its consents, without payload or proofs"""
        patient_id = validate_identifier(patient_id, "patient_id")

        with self._transaction(write=False) as tx:
            record = self.records.owned_record(tx, patient_id, "export")
            consents = self.consents.for_patient(tx, patient_id)
            return {
                "patient_id": patient_id,
                "exported_at": tx.now,
                "record": record.model_dump(exclude={"payload", "anonymization_proof"}),
                "consents": [
                    {**policy.model_dump(exclude={"proof"}), "valid": policy.is_valid(tx.now)}
                    for policy in consents
                ],
            }

    # ------------------------------------------------------------------
    # Consent
    # ------------------------------------------------------------------

    def add_consent(self, patient_id: str, entity_id: str, purpose: str, proof: bytes) -> None:
        patient_id = validate_identifier(patient_id, "patient_id")
        entity_id = validate_identifier(entity_id, "entity_id")
        purpose = validate_text(purpose, "purpose")
        proof = validate_bytes(proof, "proof")

        with self._transaction() as tx:
            self.consents.add(tx, patient_id, entity_id, purpose, proof)

    def get_consent(self, patient_id: str, entity_id: str) -> Optional[ConsentPolicy]:
        """Consent policy if it is currently valid"""
        patient_id = validate_identifier(patient_id, "patient_id")
        entity_id = validate_identifier(entity_id, "entity_id")

        with self._transaction(write=False) as tx:
            policy = self.consents.check(tx, patient_id, entity_id)
            return policy.model_copy() if policy else None

    def access_patient_data(self, patient_id: str, entity_id: str) -> Optional[bytes]:
        """Payload for an entity with valid consent and authorization"""
        patient_id = validate_identifier(patient_id, "patient_id")
        entity_id = validate_identifier(entity_id, "entity_id")

        with self._transaction(write=False) as tx:
            return self.consents.access_with_consent(tx, patient_id, entity_id)

    # ------------------------------------------------------------------
    # Research pools
    # ------------------------------------------------------------------

    def create_research_pool(self, entity_id: str, title: str, description: str,
                             reward_amount: int) -> None:
        entity_id = validate_identifier(entity_id, "entity_id")
        title = validate_text(title, "title")
        description = validate_text(description, "description")
        reward_amount = validate_amount(reward_amount)

        with self._transaction() as tx:
            self.pools.create(tx, entity_id, title, description, reward_amount)

    def get_research_pool(self, entity_id: str) -> Optional[ResearchPool]:
        entity_id = validate_identifier(entity_id, "entity_id")

        with self._transaction(write=False) as tx:
            pool = self.pools.get(tx, entity_id)
            return pool.model_copy() if pool else None

    def list_research_pools(self) -> List[ResearchPool]:
        """Active pools, newest first"""
        with self._transaction(write=False) as tx:
            return [pool.model_copy() for pool in self.pools.list_active(tx)]

    def update_research_pool(self, entity_id: str,
                             title: Optional[str] = None,
                             description: Optional[str] = None,
                             reward_amount: Optional[int] = None,
                             status: Optional[str] = None) -> None:
        entity_id = validate_identifier(entity_id, "entity_id")
        title = validate_optional_text(title, "title")
        if description is not None:
            description = validate_text(description, "description")
        if reward_amount is not None:
            reward_amount = validate_amount(reward_amount)
        if status is not None:
            status = validate_status(status)

        with self._transaction() as tx:
            self.pools.update(tx, entity_id, title=title, description=description,
                              reward_amount=reward_amount, status=status)

    def delete_research_pool(self, entity_id: str) -> None:
        entity_id = validate_identifier(entity_id, "entity_id")

        with self._transaction() as tx:
            self.pools.delete(tx, entity_id)

    # ------------------------------------------------------------------
    # Pool submissions
    # ------------------------------------------------------------------

    def submit_to_pool(self, entity_id: str) -> None:
        """Submit the caller into a pool; the patient id comes from the caller identity"""
        entity_id = validate_identifier(entity_id, "entity_id")

        with self._transaction() as tx:
            self.submissions.submit(tx, entity_id)

    def update_submission_status(self, entity_id: str, patient_id: str, status: str) -> None:
        entity_id = validate_identifier(entity_id, "entity_id")
        patient_id = validate_identifier(patient_id, "patient_id")
        status = validate_status(status)

        with self._transaction() as tx:
            self.submissions.update_status(tx, entity_id, patient_id, status)

    def get_pool_submissions(self, entity_id: str) -> List[PoolSubmission]:
        """Submissions of the caller's pool, oldest first"""
        entity_id = validate_identifier(entity_id, "entity_id")

        with self._transaction(write=False) as tx:
            return [s.model_copy() for s in self.submissions.list_for_pool(tx, entity_id)]


# Global store instance
_health_store: Optional[HealthDataStore] = None


def get_health_store() -> HealthDataStore:
    """Get the global store instance"""
    global _health_store
    if _health_store is None:
        _health_store = HealthDataStore()
        logger.info("Health data store created")
    return _health_store
