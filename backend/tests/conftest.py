"""
Shared Test Fixtures

Every test gets its own in-memory document store driven by a fake
clock, plus a small seeding helper for vehicles, violations and
sanctions.
"""

from datetime import datetime, timezone

import pytest

from campus_parking.database import (
    SANCTIONS,
    VEHICLES,
    VIOLATIONS,
    SqlDocumentStore,
    create_store_engine,
    where,
)

TEST_DATABASE_URL = "sqlite:///:memory:"

DAY = 24 * 60 * 60

# Monday 2026-01-05 09:00 UTC
MONDAY = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc).timestamp()


class FakeClock:
    """Settable clock returning epoch seconds"""

    def __init__(self, start: float = MONDAY):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, days: float = 0, seconds: float = 0):
        self.now += days * DAY + seconds


class Seeder:
    """Writes fixture documents straight into the store"""

    def __init__(self, store: SqlDocumentStore):
        self.store = store

    def vehicle(self, vehicle_id: str = "veh-1", **fields) -> str:
        now = self.store.now()
        data = {
            "plateNumber": f"PLT-{vehicle_id.upper()}",
            "registrationStatus": "active",
            "hasActiveSanction": False,
            "hasUnresolvedViolation": False,
            "registrationValidFrom": now - 30 * DAY,
            "registrationValidUntil": now + 300 * DAY,
        }
        data.update(fields)
        self.store.set_document(VEHICLES, vehicle_id, data)
        return vehicle_id

    def violation(self, violation_id: str, vehicle_id: str = "veh-1", status: str = "pending", **fields) -> str:
        data = {
            "vehicleId": vehicle_id,
            "violationType": "illegal_parking",
            "status": status,
            "sanctionApplied": False,
            "sanctionId": None,
            "reportedAt": self.store.now() - DAY,
        }
        data.update(fields)
        self.store.set_document(VIOLATIONS, violation_id, data)
        return violation_id

    def sanction(
        self,
        sanction_id: str,
        vehicle_id: str = "veh-1",
        violation_id: str = "vio-1",
        sanction_type: str = "suspension",
        status: str = "active",
        end_at: float = None,
        offense_number: int = 2,
    ) -> str:
        now = self.store.now()
        self.store.set_document(SANCTIONS, sanction_id, {
            "vehicleId": vehicle_id,
            "violationId": violation_id,
            "type": sanction_type,
            "status": status,
            "offenseNumber": offense_number,
            "startAt": now - 10 * DAY,
            "endAt": end_at,
            "createdAt": now - 10 * DAY,
            "createdBy": "officer-1",
        })
        return sanction_id

    def suspended_vehicle(self, vehicle_id: str, end_at: float, **vehicle_fields) -> str:
        """Vehicle under an active suspension linked to a confirmed violation"""
        sanction_id = f"san-{vehicle_id}"
        violation_id = f"vio-{vehicle_id}"
        fields = {
            "registrationStatus": "suspended",
            "hasActiveSanction": True,
            "hasUnresolvedViolation": True,
        }
        fields.update(vehicle_fields)
        self.vehicle(vehicle_id, **fields)
        self.violation(violation_id, vehicle_id, status="confirmed", sanctionApplied=True, sanctionId=sanction_id)
        self.sanction(sanction_id, vehicle_id, violation_id, end_at=end_at)
        return sanction_id

    def doc(self, collection: str, doc_id: str) -> dict:
        document = self.store.get_document(collection, doc_id)
        assert document is not None, f"{collection}/{doc_id} missing"
        return document.data

    def all(self, collection: str, **equals) -> list:
        return self.store.query_documents(
            collection, [where(name, "==", value) for name, value in equals.items()]
        )


def assert_sanction_flags_consistent(store: SqlDocumentStore):
    """hasActiveSanction is true exactly when an active sanction exists"""
    for vehicle in store.query_documents(VEHICLES):
        active = store.query_documents(SANCTIONS, [
            where("vehicleId", "==", vehicle.id),
            where("status", "==", "active"),
        ])
        assert vehicle.get("hasActiveSanction") == bool(active), vehicle.id


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    """Fresh in-memory store with schema"""
    engine = create_store_engine(TEST_DATABASE_URL)
    document_store = SqlDocumentStore(engine, clock=clock, max_transaction_attempts=3, backoff_seconds=0)
    document_store.init_schema()
    yield document_store
    engine.dispose()


@pytest.fixture
def seed(store):
    return Seeder(store)


@pytest.fixture
def flags_consistent():
    return assert_sanction_flags_consistent
