"""
Tests for consent management
"""

import pytest

from healthstore.config import StoreConfig
from healthstore.consent.ledger import ConsentLedger
from healthstore.consent.models import ConsentPolicy
from healthstore.constants import CONSENT_WINDOW_SECONDS
from healthstore.events import InMemoryEventSink, RecordAccessed
from healthstore.exceptions import ConsentExpiredError, ConsentNotFound, NotAuthorizedError
from healthstore.host import ContextIdentityResolver, ManualClock, caller_identity
from healthstore.service import HealthDataStore
from healthstore.state import StoreState, Transaction
from healthstore.storage import InMemoryStateStorage


class TestConsentModels:
    """Test consent data models"""

    def test_issue_sets_ninety_day_window(self):
        policy = ConsentPolicy.issue("p1", "e1", "research", b"proof", now=500)

        assert policy.expiration == 500 + 7_776_000
        assert policy.key == ("p1", "e1")

    def test_policy_is_valid_strictly_before_expiration(self):
        policy = ConsentPolicy.issue("p1", "e1", "research", b"proof", now=0)

        assert policy.is_valid(CONSENT_WINDOW_SECONDS - 1)
        assert not policy.is_valid(CONSENT_WINDOW_SECONDS)
        assert not policy.is_valid(CONSENT_WINDOW_SECONDS + 1)


class TestConsentLedger:
    """Test the ledger against a bare transaction"""

    def setup_method(self):
        self.ledger = ConsentLedger(config=StoreConfig())

    def tx(self, now=0, caller=b"p1", state=None):
        return Transaction(state=state or StoreState(), now=now, caller=caller)

    def test_require_distinguishes_missing_and_expired(self):
        state = StoreState()
        self.ledger.add(self.tx(state=state), "p1", "e1", "research", b"proof")

        with pytest.raises(ConsentNotFound):
            self.ledger.require(self.tx(state=state), "p1", "e2")
        with pytest.raises(ConsentExpiredError):
            self.ledger.require(self.tx(now=CONSENT_WINDOW_SECONDS, state=state), "p1", "e1")

    def test_check_hides_the_difference(self):
        state = StoreState()
        self.ledger.add(self.tx(state=state), "p1", "e1", "research", b"proof")

        assert self.ledger.check(self.tx(state=state), "p1", "e1") is not None
        assert self.ledger.check(self.tx(now=CONSENT_WINDOW_SECONDS, state=state), "p1", "e1") is None
        assert self.ledger.check(self.tx(state=state), "p1", "e2") is None

    def test_add_marks_transaction_dirty(self):
        tx = self.tx()
        self.ledger.add(tx, "p1", "e1", "research", b"proof")

        assert tx.dirty
        assert tx.events == []


class TestConsentedAccess:
    """Test access that needs both consent and authorization"""

    def setup_method(self):
        self.clock = ManualClock(1000)
        self.events = InMemoryEventSink()
        self.store = HealthDataStore(
            storage=InMemoryStateStorage(),
            clock=self.clock,
            identity=ContextIdentityResolver(),
            events=self.events,
            config=StoreConfig(),
        )
        self.store.store_patient_data("p1", b"x", "lab")

    def test_consent_then_access_until_expiry(self):
        with caller_identity("p1"):
            self.store.add_consent("p1", "e1", "research", b"proof")

        assert self.store.access_patient_data("p1", "e1") == b"x"
        accessed = self.events.of_type(RecordAccessed)
        assert accessed[-1].accessor_id == "e1"

        self.clock.advance(CONSENT_WINDOW_SECONDS)

        assert self.store.access_patient_data("p1", "e1") is None
        assert self.store.get_consent("p1", "e1") is None

    def test_expired_consent_denies_even_when_still_authorized(self):
        with caller_identity("p1"):
            self.store.add_consent("p1", "e1", "research", b"proof")
        self.clock.advance(CONSENT_WINDOW_SECONDS + 1)

        assert self.store.snapshot().records["p1"].is_authorized("e1")
        assert self.store.access_patient_data("p1", "e1") is None
        # plain authorized reads do not look at consent
        assert self.store.get_patient_data("p1", "e1") is not None

    def test_add_consent_authorizes_existing_record(self):
        with caller_identity("p1"):
            self.store.add_consent("p1", "e1", "research", b"proof")
            self.store.add_consent("p1", "e1", "research", b"proof")

        assert self.store.snapshot().records["p1"].authorized_ids == ["e1"]

    def test_renewing_consent_extends_expiration(self):
        with caller_identity("p1"):
            self.store.add_consent("p1", "e1", "research", b"proof")
            self.clock.advance(1000)
            self.store.add_consent("p1", "e1", "follow-up", b"proof2")

        policy = self.store.get_consent("p1", "e1")
        assert policy.expiration == 2000 + CONSENT_WINDOW_SECONDS
        assert policy.purpose == "follow-up"
        assert policy.proof == b"proof2"

    def test_consent_without_authorization_is_denied(self):
        with caller_identity("p2"):
            self.store.add_consent("p2", "e1", "research", b"proof")
        self.store.store_patient_data("p2", b"y", "lab")

        assert self.store.get_consent("p2", "e1") is not None
        assert self.store.access_patient_data("p2", "e1") is None

    def test_authorization_without_consent_is_denied(self):
        with caller_identity("p1"):
            self.store.grant_access("p1", "e1")

        assert self.store.access_patient_data("p1", "e1") is None
        assert not self.events.of_type(RecordAccessed)

    def test_only_patient_may_add_consent(self):
        with caller_identity("e1"):
            with pytest.raises(NotAuthorizedError):
                self.store.add_consent("p1", "e1", "research", b"proof")

        state = self.store.snapshot()
        assert state.consent_policies == {}
        assert state.records["p1"].authorized_ids == []

    def test_anyone_may_add_consent_when_owner_check_disabled(self):
        store = HealthDataStore(
            storage=InMemoryStateStorage(),
            clock=self.clock,
            identity=ContextIdentityResolver(),
            events=InMemoryEventSink(),
            config=StoreConfig(consent_requires_owner=False),
        )
        store.store_patient_data("p1", b"x", "lab")

        with caller_identity("e1"):
            store.add_consent("p1", "e1", "research", b"proof")

        assert store.access_patient_data("p1", "e1") == b"x"
