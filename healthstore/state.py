"""
Store state aggregate
The four keyed maps and the transaction each operation runs in
"""

from dataclasses import dataclass, field
from typing import Dict, List

from .consent.models import ConsentKey, ConsentPolicy
from .events import HealthEvent
from .pools.models import PoolSubmission, ResearchPool, SubmissionKey
from .records.models import HealthRecord


@dataclass
class StoreState:
    """All store data. Insertion order of every map is preserved."""
    records: Dict[str, HealthRecord] = field(default_factory=dict)
    consent_policies: Dict[ConsentKey, ConsentPolicy] = field(default_factory=dict)
    research_pools: Dict[str, ResearchPool] = field(default_factory=dict)
    pool_submissions: Dict[SubmissionKey, PoolSubmission] = field(default_factory=dict)

    def copy(self) -> "StoreState":
        """Deep copy; mutating the copy never affects this state"""
        return StoreState(
            records={k: v.model_copy(deep=True) for k, v in self.records.items()},
            consent_policies={k: v.model_copy(deep=True) for k, v in self.consent_policies.items()},
            research_pools={k: v.model_copy(deep=True) for k, v in self.research_pools.items()},
            pool_submissions={k: v.model_copy(deep=True) for k, v in self.pool_submissions.items()},
        )


@dataclass
class Transaction:
    """
    Working context of a single store operation.

    Attributes:
        state: State the operation reads and mutates
        now: Clock reading taken once at the start of the operation
        caller: Raw identity of the caller
        events: Events to deliver once the operation commits
        dirty: Set when the state was mutated and must be saved
    """
    state: StoreState
    now: int
    caller: bytes
    events: List[HealthEvent] = field(default_factory=list)
    dirty: bool = False

    def emit(self, event: HealthEvent) -> None:
        self.events.append(event)

    def touch(self) -> None:
        self.dirty = True
