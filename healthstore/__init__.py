"""
Health Data Store
Permissioned health records with time-bounded consent and research pools
"""

__version__ = "0.1.0"

# Core exports
from .config import StoreConfig, get_store_config
from .service import HealthDataStore, get_health_store

# Records
from .records import HealthRecord, PatientDataResponse, RecordStore

# Consent
from .consent import ConsentPolicy, ConsentLedger

# Research pools
from .pools import (
    PoolStatus, SubmissionStatus, ResearchPool, PoolSubmission,
    ResearchPoolRegistry, SubmissionTracker
)

# Host capabilities
from .host import (
    Clock, IdentityResolver, SystemClock, ManualClock,
    StaticIdentityResolver, ContextIdentityResolver, caller_identity
)
from .identity import IdentityComparator, identity_matches, patient_id_from_identity

# Events
from .events import (
    EventSink, InMemoryEventSink, LoggingEventSink,
    RecordAdded, RecordUpdated, RecordDeleted, RecordAccessed, ConsentGranted,
    PoolCreated, PoolUpdated, PoolDeleted, PoolSubmissionEvent, SubmissionUpdated
)

# Storage
from .state import StoreState
from .storage import StateStorage, InMemoryStateStorage, SQLStateStorage

# Errors
from .exceptions import (
    HealthStoreError, NotFoundError, RecordNotFound, PoolNotFound,
    SubmissionNotFound, ConsentNotFound, NotAuthorizedError,
    ConsentExpiredError, ValidationError, StorageError
)

__all__ = [
    # Core
    "StoreConfig",
    "get_store_config",
    "HealthDataStore",
    "get_health_store",

    # Records
    "HealthRecord",
    "PatientDataResponse",
    "RecordStore",

    # Consent
    "ConsentPolicy",
    "ConsentLedger",

    # Pools
    "PoolStatus",
    "SubmissionStatus",
    "ResearchPool",
    "PoolSubmission",
    "ResearchPoolRegistry",
    "SubmissionTracker",

    # Host
    "Clock",
    "IdentityResolver",
    "SystemClock",
    "ManualClock",
    "StaticIdentityResolver",
    "ContextIdentityResolver",
    "caller_identity",
    "IdentityComparator",
    "identity_matches",
    "patient_id_from_identity",

    # Events
    "EventSink",
    "InMemoryEventSink",
    "LoggingEventSink",
    "RecordAdded",
    "RecordUpdated",
    "RecordDeleted",
    "RecordAccessed",
    "ConsentGranted",
    "PoolCreated",
    "PoolUpdated",
    "PoolDeleted",
    "PoolSubmissionEvent",
    "SubmissionUpdated",

    # Storage
    "StoreState",
    "StateStorage",
    "InMemoryStateStorage",
    "SQLStateStorage",

    # Errors
    "HealthStoreError",
    "NotFoundError",
    "RecordNotFound",
    "PoolNotFound",
    "SubmissionNotFound",
    "ConsentNotFound",
    "NotAuthorizedError",
    "ConsentExpiredError",
    "ValidationError",
    "StorageError",
]
