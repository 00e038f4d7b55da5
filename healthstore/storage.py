"""
State storage adapters
Persistence of the four store maps across invocations
"""

from typing import Any, Callable, Dict, Hashable, Optional, Tuple
import json
import structlog
from sqlalchemy import (
    create_engine, Column, String, Text, Boolean, BigInteger, Integer, LargeBinary
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from .constants import MAX_UINT64
from .consent.models import ConsentPolicy
from .exceptions import StorageError
from .pools.models import PoolSubmission, ResearchPool
from .records.models import HealthRecord
from .state import StoreState

logger = structlog.get_logger(__name__)

Base = declarative_base()

MAX_INT64 = 2**63 - 1


class UnsignedBigInteger(TypeDecorator):
    """Unsigned 64-bit value kept in a signed BIGINT column as two's complement"""
    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not 0 <= value <= MAX_UINT64:
            raise ValueError(f"{value} is outside the unsigned 64-bit range")
        return value - 2**64 if value > MAX_INT64 else value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value + 2**64 if value < 0 else value


class HealthRecordDB(Base):
    """SQLAlchemy model for health records"""
    __tablename__ = "health_records"

    patient_id = Column(String, primary_key=True)
    position = Column(Integer, nullable=False)
    owner_id = Column(String, nullable=False)
    payload = Column(LargeBinary, nullable=False)
    record_type = Column(Text, nullable=False)
    timestamp = Column(UnsignedBigInteger, nullable=False)
    authorized_ids = Column(Text, nullable=False)  # JSON list
    is_anonymized = Column(Boolean, nullable=False)
    anonymization_proof = Column(LargeBinary)


class ConsentPolicyDB(Base):
    """SQLAlchemy model for consent policies"""
    __tablename__ = "consent_policies"

    patient_id = Column(String, primary_key=True)
    entity_id = Column(String, primary_key=True)
    position = Column(Integer, nullable=False)
    purpose = Column(Text, nullable=False)
    expiration = Column(UnsignedBigInteger, nullable=False)
    proof = Column(LargeBinary, nullable=False)


class ResearchPoolDB(Base):
    """SQLAlchemy model for research pools"""
    __tablename__ = "research_pools"

    entity_id = Column(String, primary_key=True)
    position = Column(Integer, nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    reward_amount = Column(UnsignedBigInteger, nullable=False)
    created_at = Column(UnsignedBigInteger, nullable=False)
    status = Column(Text, nullable=False)


class PoolSubmissionDB(Base):
    """SQLAlchemy model for pool submissions"""
    __tablename__ = "pool_submissions"

    entity_id = Column(String, primary_key=True)
    patient_id = Column(String, primary_key=True)
    position = Column(Integer, nullable=False)
    submitted_at = Column(UnsignedBigInteger, nullable=False)
    status = Column(Text, nullable=False)


# =============================================================================
# ROW MAPPING
# =============================================================================

def _record_row(patient_id: str, record: HealthRecord) -> Dict[str, Any]:
    return {
        "patient_id": patient_id,
        "owner_id": record.owner_id,
        "payload": record.payload,
        "record_type": record.record_type,
        "timestamp": record.timestamp,
        "authorized_ids": json.dumps(record.authorized_ids),
        "is_anonymized": record.is_anonymized,
        "anonymization_proof": record.anonymization_proof,
    }


def _consent_row(key: Tuple[str, str], policy: ConsentPolicy) -> Dict[str, Any]:
    return {
        "patient_id": policy.patient_id,
        "entity_id": policy.entity_id,
        "purpose": policy.purpose,
        "expiration": policy.expiration,
        "proof": policy.proof,
    }


def _pool_row(entity_id: str, pool: ResearchPool) -> Dict[str, Any]:
    return {
        "entity_id": entity_id,
        "title": pool.title,
        "description": pool.description,
        "reward_amount": pool.reward_amount,
        "created_at": pool.created_at,
        "status": pool.status,
    }


def _submission_row(key: Tuple[str, str], submission: PoolSubmission) -> Dict[str, Any]:
    return {
        "entity_id": submission.entity_id,
        "patient_id": submission.patient_id,
        "submitted_at": submission.submitted_at,
        "status": submission.status,
    }


# (state attribute, table, key columns, row builder)
TABLES: Tuple[Tuple[str, Any, Tuple[str, ...], Callable[[Any, Any], Dict[str, Any]]], ...] = (
    ("records", HealthRecordDB, ("patient_id",), _record_row),
    ("consent_policies", ConsentPolicyDB, ("patient_id", "entity_id"), _consent_row),
    ("research_pools", ResearchPoolDB, ("entity_id",), _pool_row),
    ("pool_submissions", PoolSubmissionDB, ("entity_id", "patient_id"), _submission_row),
)


def _key_filter(columns: Tuple[str, ...], key: Hashable) -> Dict[str, Any]:
    values = key if isinstance(key, tuple) else (key,)
    return dict(zip(columns, values))


class StateStorage:
    """Storage adapter interface: load the whole state, save a committed state"""

    def load(self) -> StoreState:
        raise NotImplementedError

    def save(self, state: StoreState) -> None:
        raise NotImplementedError


class InMemoryStateStorage(StateStorage):
    """In-memory storage for testing and single-process hosts"""

    def __init__(self, state: Optional[StoreState] = None):
        self._state = (state or StoreState()).copy()

    def load(self) -> StoreState:
        return self._state.copy()

    def save(self, state: StoreState) -> None:
        self._state = state.copy()


class SQLStateStorage(StateStorage):
    """
    Relational storage; each save is a single transaction.

    After a load or save the adapter remembers the persisted state and the
    next save only writes rows that were added, changed or removed. It
    assumes it is the only writer of its tables. Until the first load, a
    save rewrites every table.
    """

    def __init__(self, database_url: Optional[str] = None):
        # Default to SQLite for development
        self.database_url = database_url or "sqlite:///healthstore.db"
        if self.database_url.startswith("sqlite") and ":memory:" in self.database_url:
            self.engine = create_engine(
                self.database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(self.database_url)
        self.SessionLocal = sessionmaker(bind=self.engine)

        self._persisted: Optional[StoreState] = None
        self._positions: Dict[str, Dict[Hashable, int]] = {name: {} for name, *_ in TABLES}
        self._next_position: Dict[str, int] = {name: 0 for name, *_ in TABLES}

        # Create tables
        Base.metadata.create_all(bind=self.engine)
        logger.info("State storage initialised", database_url=self.database_url)

    def load(self) -> StoreState:
        state = StoreState()
        positions: Dict[str, Dict[Hashable, int]] = {name: {} for name, *_ in TABLES}
        try:
            with self.SessionLocal() as session:
                for row in session.query(HealthRecordDB).order_by(HealthRecordDB.position):
                    state.records[row.patient_id] = HealthRecord(
                        owner_id=row.owner_id,
                        payload=row.payload,
                        record_type=row.record_type,
                        timestamp=row.timestamp,
                        authorized_ids=json.loads(row.authorized_ids),
                        is_anonymized=row.is_anonymized,
                        anonymization_proof=row.anonymization_proof,
                    )
                    positions["records"][row.patient_id] = row.position

                for row in session.query(ConsentPolicyDB).order_by(ConsentPolicyDB.position):
                    key = (row.patient_id, row.entity_id)
                    state.consent_policies[key] = ConsentPolicy(
                        patient_id=row.patient_id,
                        entity_id=row.entity_id,
                        purpose=row.purpose,
                        expiration=row.expiration,
                        proof=row.proof,
                    )
                    positions["consent_policies"][key] = row.position

                for row in session.query(ResearchPoolDB).order_by(ResearchPoolDB.position):
                    state.research_pools[row.entity_id] = ResearchPool(
                        entity_id=row.entity_id,
                        title=row.title,
                        description=row.description,
                        reward_amount=row.reward_amount,
                        created_at=row.created_at,
                        status=row.status,
                    )
                    positions["research_pools"][row.entity_id] = row.position

                for row in session.query(PoolSubmissionDB).order_by(PoolSubmissionDB.position):
                    key = (row.entity_id, row.patient_id)
                    state.pool_submissions[key] = PoolSubmission(
                        patient_id=row.patient_id,
                        entity_id=row.entity_id,
                        submitted_at=row.submitted_at,
                        status=row.status,
                    )
                    positions["pool_submissions"][key] = row.position

        except (SQLAlchemyError, json.JSONDecodeError, ValueError) as e:
            logger.error("Failed to load store state", error=str(e))
            raise StorageError("Failed to load store state", reason=str(e)) from e

        self._persisted = state.copy()
        self._positions = positions
        self._next_position = {
            name: max(table_positions.values(), default=-1) + 1
            for name, table_positions in positions.items()
        }

        logger.info("Loaded store state", records=len(state.records),
                    consents=len(state.consent_policies), pools=len(state.research_pools),
                    submissions=len(state.pool_submissions))
        return state

    def save(self, state: StoreState) -> None:
        previous = self._persisted
        if previous is None:
            positions: Dict[str, Dict[Hashable, int]] = {name: {} for name, *_ in TABLES}
            next_position = {name: 0 for name, *_ in TABLES}
        else:
            positions = {name: dict(p) for name, p in self._positions.items()}
            next_position = dict(self._next_position)

        written = removed = 0
        try:
            with self.SessionLocal() as session:
                for name, model, key_columns, to_row in TABLES:
                    current = getattr(state, name)
                    if previous is None:
                        session.query(model).delete()
                        before: Dict[Hashable, Any] = {}
                    else:
                        before = getattr(previous, name)
                    table_positions = positions[name]

                    for key in before:
                        if key not in current:
                            session.query(model).filter_by(**_key_filter(key_columns, key)).delete()
                            table_positions.pop(key, None)
                            removed += 1

                    for key, item in current.items():
                        if before.get(key) == item:
                            continue
                        if key not in table_positions:
                            table_positions[key] = next_position[name]
                            next_position[name] += 1
                        session.merge(model(position=table_positions[key], **to_row(key, item)))
                        written += 1

                session.commit()

        except (SQLAlchemyError, OverflowError, ValueError) as e:
            logger.error("Failed to save store state", error=str(e))
            raise StorageError(reason=str(e)) from e

        self._persisted = state.copy()
        self._positions = positions
        self._next_position = next_position
        logger.debug("Saved store state", rows_written=written, rows_removed=removed)
