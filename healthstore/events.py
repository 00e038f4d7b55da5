"""
Store events and event sinks
Typed notifications emitted after successful mutations
"""

from typing import Any, Dict, List, Literal, Protocol, Type, TypeVar, Union

import structlog
from pydantic import BaseModel

logger = structlog.get_logger(__name__)


class RecordAdded(BaseModel):
    name: Literal["RecordAdded"] = "RecordAdded"
    patient_id: str


class RecordUpdated(BaseModel):
    name: Literal["RecordUpdated"] = "RecordUpdated"
    patient_id: str


class RecordDeleted(BaseModel):
    name: Literal["RecordDeleted"] = "RecordDeleted"
    patient_id: str


class RecordAccessed(BaseModel):
    name: Literal["RecordAccessed"] = "RecordAccessed"
    patient_id: str
    accessor_id: str


class ConsentGranted(BaseModel):
    name: Literal["ConsentGranted"] = "ConsentGranted"
    patient_id: str
    entity_id: str


class PoolCreated(BaseModel):
    name: Literal["PoolCreated"] = "PoolCreated"
    entity_id: str
    title: str
    reward_amount: int


class PoolUpdated(BaseModel):
    name: Literal["PoolUpdated"] = "PoolUpdated"
    entity_id: str
    title: str


class PoolDeleted(BaseModel):
    name: Literal["PoolDeleted"] = "PoolDeleted"
    entity_id: str
    title: str


class PoolSubmissionEvent(BaseModel):
    name: Literal["PoolSubmission"] = "PoolSubmission"
    patient_id: str
    entity_id: str
    status: str


class SubmissionUpdated(BaseModel):
    name: Literal["SubmissionUpdated"] = "SubmissionUpdated"
    patient_id: str
    entity_id: str
    status: str


HealthEvent = Union[
    RecordAdded, RecordUpdated, RecordDeleted, RecordAccessed, ConsentGranted,
    PoolCreated, PoolUpdated, PoolDeleted, PoolSubmissionEvent, SubmissionUpdated,
]

E = TypeVar("E", bound=BaseModel)


class EventSink(Protocol):
    """Receives events after the mutation that produced them is committed"""

    def emit(self, event: HealthEvent) -> None:
        ...


class InMemoryEventSink:
    """Collects events in emission order"""

    def __init__(self) -> None:
        self.events: List[HealthEvent] = []

    def emit(self, event: HealthEvent) -> None:
        self.events.append(event)

    def names(self) -> List[str]:
        return [event.name for event in self.events]

    def of_type(self, event_type: Type[E]) -> List[E]:
        return [event for event in self.events if isinstance(event, event_type)]

    def clear(self) -> None:
        self.events.clear()


class LoggingEventSink:
    """Writes every event to the structured log"""

    def emit(self, event: HealthEvent) -> None:
        payload: Dict[str, Any] = event.model_dump(exclude={"name"})
        logger.info("Store event", event=event.name, **payload)
