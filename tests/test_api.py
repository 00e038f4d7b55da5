"""Tests for the HTTP surface of the health data store."""

import base64
from typing import Dict

from fastapi.testclient import TestClient

from healthstore.config import StoreConfig
from healthstore.constants import CONSENT_WINDOW_SECONDS
from healthstore.events import InMemoryEventSink
from healthstore.host import ContextIdentityResolver, ManualClock
from healthstore.main import app
from healthstore.service import HealthDataStore
from healthstore.storage import InMemoryStateStorage
import healthstore.main as main_mod


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def as_caller(identity: bytes) -> Dict[str, str]:
    return {"X-Caller-Identity": identity.hex()}


class TestRecordEndpoints:
    def setup_method(self) -> None:
        self.clock = ManualClock(1000)
        self.store = HealthDataStore(
            storage=InMemoryStateStorage(),
            clock=self.clock,
            identity=ContextIdentityResolver(),
            events=InMemoryEventSink(),
            config=StoreConfig(),
        )
        main_mod.health_store = self.store
        self.client = TestClient(app)

    def teardown_method(self) -> None:
        main_mod.health_store = None

    def test_health(self) -> None:
        response = self.client.get("/health")

        assert response.status_code == 200
        assert response.json()["components"]["health_store"] is True

    def test_store_and_read_as_owner(self) -> None:
        response = self.client.post(
            "/records", json={"patient_id": "p1", "payload": b64(b"x"), "record_type": "lab"}
        )
        assert response.status_code == 200

        response = self.client.get("/records/p1", params={"entity_id": "p1"})

        assert response.status_code == 200
        record = response.json()["record"]
        assert base64.b64decode(record["payload"]) == b"x"
        assert record["record_type"] == "lab"
        assert record["timestamp"] == 1000

    def test_denied_read_returns_empty_result(self) -> None:
        self.store.store_patient_data("p1", b"x", "lab")

        response = self.client.get("/records/p1", params={"entity_id": "e1"})

        assert response.status_code == 200
        assert response.json()["record"] is None

    def test_update_by_other_caller_is_forbidden(self) -> None:
        self.store.store_patient_data("p1", b"x", "lab")

        response = self.client.put(
            "/records/p1",
            json={"payload": b64(b"evil"), "record_type": "lab"},
            headers=as_caller(b"intruder"),
        )

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "NOT_AUTHORIZED"
        assert self.store.get_patient_data("p1", "p1").payload == b"x"

    def test_delete_missing_record_is_not_found(self) -> None:
        response = self.client.delete("/records/p1", headers=as_caller(b"p1"))

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "RECORD_NOT_FOUND"

    def test_invalid_base64_is_bad_request(self) -> None:
        response = self.client.post(
            "/records", json={"patient_id": "p1", "payload": "not base64!", "record_type": "lab"}
        )

        assert response.status_code == 400
        assert response.json()["detail"]["details"]["field"] == "payload"

    def test_invalid_caller_header_is_bad_request(self) -> None:
        response = self.client.delete("/records/p1", headers={"X-Caller-Identity": "zz"})

        assert response.status_code == 400

    def test_consent_flow_until_expiry(self) -> None:
        self.store.store_patient_data("p1", b"x", "lab")

        response = self.client.post(
            "/consents",
            json={"patient_id": "p1", "entity_id": "e1", "purpose": "research", "proof": b64(b"proof")},
            headers=as_caller(b"p1"),
        )
        assert response.status_code == 200

        data = self.client.get("/consents/p1/e1/data").json()
        assert base64.b64decode(data["payload"]) == b"x"

        consent = self.client.get("/consents/p1/e1").json()["consent"]
        assert consent["expiration"] == 1000 + CONSENT_WINDOW_SECONDS

        self.clock.advance(CONSENT_WINDOW_SECONDS)

        assert self.client.get("/consents/p1/e1/data").json()["payload"] is None
        assert self.client.get("/consents/p1/e1").json()["consent"] is None

    def test_grant_list_and_revoke(self) -> None:
        self.store.store_patient_data("p1", b"x", "lab")

        response = self.client.post(
            "/records/p1/grants", json={"entity_id": "e1"}, headers=as_caller(b"p1")
        )
        assert response.status_code == 200

        reports = self.client.get("/entities/e1/reports").json()["reports"]
        assert [base64.b64decode(r["payload"]) for r in reports] == [b"x"]

        response = self.client.delete("/records/p1/grants/e1", headers=as_caller(b"p1"))
        assert response.status_code == 200
        assert self.client.get("/entities/e1/reports").json()["reports"] == []

    def test_anonymized_access(self) -> None:
        self.store.store_patient_data("p1", b"x", "lab")
        self.client.post("/records/p1/grants", json={"entity_id": "e1"}, headers=as_caller(b"p1"))

        response = self.client.post(
            "/records/p1/anonymized", json={"entity_id": "e1", "proof": b64(b"zk")}
        )

        assert base64.b64decode(response.json()["payload"]) == b"x"
        assert self.store.snapshot().records["p1"].is_anonymized is True


class TestPoolEndpoints:
    def setup_method(self) -> None:
        self.clock = ManualClock(100)
        self.store = HealthDataStore(
            storage=InMemoryStateStorage(),
            clock=self.clock,
            identity=ContextIdentityResolver(),
            events=InMemoryEventSink(),
            config=StoreConfig(),
        )
        main_mod.health_store = self.store
        self.client = TestClient(app)

    def teardown_method(self) -> None:
        main_mod.health_store = None

    def test_pool_listing_and_update(self) -> None:
        for ts, entity in ((100, "a"), (200, "b"), (300, "c")):
            self.clock.set(ts)
            self.client.post("/pools", json={"entity_id": entity, "title": entity.upper(), "reward_amount": 5})

        pools = self.client.get("/pools").json()["pools"]
        assert [p["created_at"] for p in pools] == [300, 200, 100]
        assert pools[0]["status"] == "active"

        response = self.client.patch("/pools/b", json={"status": "paused"}, headers=as_caller(b"b"))
        assert response.status_code == 200
        assert [p["entity_id"] for p in self.client.get("/pools").json()["pools"]] == ["c", "a"]

        response = self.client.patch("/pools/a", json={"status": "inactive"}, headers=as_caller(b"a"))
        assert response.status_code == 200
        assert [p["entity_id"] for p in self.client.get("/pools").json()["pools"]] == ["c"]
        assert self.client.get("/pools/a").json()["pool"]["status"] == "inactive"

    def test_missing_pool_is_null(self) -> None:
        assert self.client.get("/pools/none").json()["pool"] is None

    def test_submission_review_flow(self) -> None:
        self.client.post("/pools", json={"entity_id": "pool1", "title": "Study", "reward_amount": 5})

        response = self.client.post("/pools/pool1/submissions", headers=as_caller(bytes([0xAB, 0xCD])))
        assert response.json()["patient_id"] == "abcd"

        response = self.client.put(
            "/pools/pool1/submissions/abcd", json={"status": "accepted"}, headers=as_caller(b"other")
        )
        assert response.status_code == 403

        response = self.client.put(
            "/pools/pool1/submissions/abcd", json={"status": "approved"}, headers=as_caller(b"pool1")
        )
        assert response.status_code == 200

        submissions = self.client.get("/pools/pool1/submissions", headers=as_caller(b"pool1")).json()
        assert submissions["submissions"][0]["status"] == "approved"

    def test_delete_pool_requires_owner(self) -> None:
        self.client.post("/pools", json={"entity_id": "pool1", "title": "Study", "reward_amount": 5})

        assert self.client.delete("/pools/pool1", headers=as_caller(b"x")).status_code == 403
        assert self.client.delete("/pools/pool1", headers=as_caller(b"pool1")).status_code == 200
        assert self.client.delete("/pools/pool1", headers=as_caller(b"pool1")).status_code == 404
