"""
Sanction Lifecycle Tests

Violation confirmation: escalation by offense count, the single-active
sanction rule, idempotency and atomicity under concurrent changes.
"""

import pytest

from campus_parking.database import SANCTIONS, VEHICLES, VIOLATIONS, WriteConflictError
from campus_parking.models import RegistrationStatus, SanctionType
from campus_parking.sanctions import (
    ConflictError,
    ExpirationSweeper,
    NotFoundError,
    SanctionLifecycleService,
    ValidationError,
    add_working_days,
)


@pytest.fixture
def lifecycle(store):
    return SanctionLifecycleService(store)


@pytest.fixture
def vehicle(seed):
    return seed.vehicle("veh-1")


# ============================================
# Escalation
# ============================================

class TestEscalation:
    """Test the sanction chosen for each offense"""

    def test_first_offense_warning(self, lifecycle, seed, vehicle, clock, flags_consistent):
        """Test first confirmation creates a completed warning"""
        seed.violation("vio-1")

        result = lifecycle.confirm_violation("vio-1", confirmed_by="officer-7")

        assert result.sanction_type == SanctionType.WARNING
        assert result.offense_ordinal == 1
        assert result.vehicle_status == RegistrationStatus.WARNED
        assert result.end_at is None
        assert result.already_confirmed is False

        violation = seed.doc(VIOLATIONS, "vio-1")
        assert violation["status"] == "confirmed"
        assert violation["confirmedAt"] == clock.now
        assert violation["confirmedBy"] == "officer-7"
        assert violation["sanctionApplied"] is True
        assert violation["sanctionId"] == result.sanction_id

        sanction = seed.doc(SANCTIONS, result.sanction_id)
        assert sanction["type"] == "warning"
        assert sanction["status"] == "completed"
        assert sanction["offenseNumber"] == 1
        assert sanction["vehicleId"] == "veh-1"
        assert sanction["violationId"] == "vio-1"
        assert sanction["startAt"] == clock.now
        assert sanction["endAt"] is None
        assert sanction["createdBy"] == "officer-7"

        vehicle_doc = seed.doc(VEHICLES, "veh-1")
        assert vehicle_doc["registrationStatus"] == "warned"
        assert vehicle_doc["hasActiveSanction"] is False
        assert vehicle_doc["hasUnresolvedViolation"] is True
        flags_consistent(lifecycle.store)

    def test_second_offense_suspension(self, lifecycle, seed, vehicle, clock, flags_consistent):
        """Test one prior confirmed offense leads to a suspension"""
        seed.violation("vio-0", status="confirmed")
        seed.violation("vio-1")

        result = lifecycle.confirm_violation("vio-1")

        assert result.sanction_type == SanctionType.SUSPENSION
        assert result.offense_ordinal == 2
        assert result.end_at == add_working_days(clock.now, 30)

        sanction = seed.doc(SANCTIONS, result.sanction_id)
        assert sanction["status"] == "active"
        assert sanction["endAt"] == result.end_at

        vehicle_doc = seed.doc(VEHICLES, "veh-1")
        assert vehicle_doc["registrationStatus"] == "suspended"
        assert vehicle_doc["hasActiveSanction"] is True
        flags_consistent(lifecycle.store)

    def test_third_offense_revocation(self, lifecycle, seed, vehicle, flags_consistent):
        """Test two prior confirmed offenses lead to a revocation"""
        seed.violation("vio-a", status="confirmed")
        seed.violation("vio-b", status="confirmed")
        seed.violation("vio-c")

        result = lifecycle.confirm_violation("vio-c")

        assert result.sanction_type == SanctionType.REVOCATION
        assert result.offense_ordinal == 3
        assert result.end_at is None
        assert seed.doc(VEHICLES, "veh-1")["registrationStatus"] == "revoked"
        assert seed.doc(SANCTIONS, result.sanction_id)["status"] == "active"
        flags_consistent(lifecycle.store)

    def test_tenth_offense_revocation(self, lifecycle, seed, vehicle):
        """Test offense counts beyond three stay revocations"""
        for i in range(9):
            seed.violation(f"vio-{i}", status="confirmed")
        seed.violation("vio-new")

        result = lifecycle.confirm_violation("vio-new")

        assert result.sanction_type == SanctionType.REVOCATION
        assert result.offense_ordinal == 10

    def test_only_own_offenses_counted(self, lifecycle, seed, vehicle):
        """Test other vehicles' confirmed violations do not escalate"""
        seed.vehicle("veh-2")
        seed.violation("vio-other-1", "veh-2", status="confirmed")
        seed.violation("vio-other-2", "veh-2", status="confirmed")
        seed.violation("vio-1")

        result = lifecycle.confirm_violation("vio-1")
        assert result.sanction_type == SanctionType.WARNING

    def test_pending_and_cleared_not_counted(self, lifecycle, seed, vehicle):
        """Test only confirmed violations count toward the ordinal"""
        seed.violation("vio-a", status="pending")
        seed.violation("vio-b", status="cleared")
        seed.violation("vio-c")

        assert lifecycle.confirm_violation("vio-c").offense_ordinal == 1

    def test_custom_suspension_length(self, store, seed, vehicle, clock):
        """Test the suspension window follows the service setting"""
        seed.violation("vio-0", status="confirmed")
        seed.violation("vio-1")
        service = SanctionLifecycleService(store, suspension_working_days=10)

        result = service.confirm_violation("vio-1")
        assert result.end_at == add_working_days(clock.now, 10)


# ============================================
# Preconditions
# ============================================

class TestPreconditions:
    """Test rejected confirmations leave the store unchanged"""

    def test_active_sanction_blocks(self, lifecycle, seed):
        """Test a vehicle under an active sanction cannot be sanctioned again"""
        seed.suspended_vehicle("veh-1", end_at=lifecycle.store.now() + 86400)
        seed.violation("vio-new")

        with pytest.raises(ConflictError):
            lifecycle.confirm_violation("vio-new")

        assert seed.doc(VIOLATIONS, "vio-new")["status"] == "pending"
        assert len(seed.all(SANCTIONS)) == 1

    @pytest.mark.parametrize("violation_id", [None, "", "   "])
    def test_missing_violation_id(self, lifecycle, violation_id):
        """Test a missing violation id is a validation error"""
        with pytest.raises(ValidationError) as exc_info:
            lifecycle.confirm_violation(violation_id)
        assert exc_info.value.field == "violationId"

    def test_unknown_violation(self, lifecycle, vehicle):
        """Test an unknown violation is not found"""
        with pytest.raises(NotFoundError):
            lifecycle.confirm_violation("vio-missing")

    def test_unknown_vehicle(self, lifecycle, seed):
        """Test a violation whose vehicle is missing is not found"""
        seed.violation("vio-1", "veh-ghost")

        with pytest.raises(NotFoundError) as exc_info:
            lifecycle.confirm_violation("vio-1")
        assert exc_info.value.field == "vehicleId"
        assert seed.all(SANCTIONS) == []

    def test_cleared_violation(self, lifecycle, seed, vehicle):
        """Test a cleared violation cannot be confirmed"""
        seed.violation("vio-1", status="cleared")

        with pytest.raises(ConflictError):
            lifecycle.confirm_violation("vio-1")
        assert seed.all(SANCTIONS) == []

    def test_vehicle_mismatch(self, lifecycle, seed, vehicle):
        """Test a supplied vehicle id must match the violation's vehicle"""
        seed.violation("vio-1")

        with pytest.raises(ValidationError) as exc_info:
            lifecycle.confirm_violation("vio-1", vehicle_id="veh-other")
        assert exc_info.value.field == "vehicleId"
        assert seed.doc(VIOLATIONS, "vio-1")["status"] == "pending"

    def test_matching_vehicle_accepted(self, lifecycle, seed, vehicle):
        """Test a matching vehicle id is accepted"""
        seed.violation("vio-1")
        result = lifecycle.confirm_violation("vio-1", vehicle_id="veh-1")
        assert result.vehicle_id == "veh-1"


# ============================================
# Idempotency and Concurrency
# ============================================

class TestIdempotencyAndConcurrency:
    """Test repeated and racing confirmations"""

    def test_reconfirm_is_noop(self, lifecycle, seed, vehicle):
        """Test confirming twice creates one sanction and reports it"""
        seed.violation("vio-1")
        first = lifecycle.confirm_violation("vio-1")
        vehicle_version = lifecycle.store.get_document(VEHICLES, "veh-1").version

        second = lifecycle.confirm_violation("vio-1")

        assert second.already_confirmed is True
        assert second.sanction_id == first.sanction_id
        assert second.sanction_type == SanctionType.WARNING
        assert second.offense_ordinal == 1
        assert len(seed.all(SANCTIONS)) == 1
        assert lifecycle.store.get_document(VEHICLES, "veh-1").version == vehicle_version

    def test_reconfirm_while_sanction_active(self, lifecycle, seed, vehicle):
        """Test re-confirming the violation behind an active suspension is not a conflict"""
        seed.violation("vio-0", status="confirmed")
        seed.violation("vio-1")
        first = lifecycle.confirm_violation("vio-1")

        second = lifecycle.confirm_violation("vio-1")
        assert second.already_confirmed is True
        assert second.end_at == first.end_at

    def test_race_rechecks_active_sanction(self, lifecycle, seed, vehicle, monkeypatch):
        """Test a sanction committed mid-transaction is seen on the re-run"""
        seed.violation("vio-1")
        store = lifecycle.store
        original = store.run_transaction
        attempts = []

        def racing(fn, max_attempts=None):
            def wrapped(tx):
                result = fn(tx)
                if not attempts:
                    store.update_document(VEHICLES, "veh-1", {
                        "hasActiveSanction": True,
                        "registrationStatus": "suspended",
                    })
                attempts.append(result)
                return result
            return original(wrapped, max_attempts)

        monkeypatch.setattr(store, "run_transaction", racing)

        with pytest.raises(ConflictError):
            lifecycle.confirm_violation("vio-1")

        assert len(attempts) == 1
        assert seed.doc(VIOLATIONS, "vio-1")["status"] == "pending"
        assert seed.all(SANCTIONS) == []

    def test_race_recounts_offenses(self, lifecycle, seed, vehicle, monkeypatch):
        """Test a confirmation committed mid-transaction raises the ordinal"""
        seed.violation("vio-1")
        seed.violation("vio-2")
        store = lifecycle.store
        original = store.run_transaction
        raced = []

        def racing(fn, max_attempts=None):
            def wrapped(tx):
                result = fn(tx)
                if not raced:
                    raced.append(True)
                    store.update_document(VIOLATIONS, "vio-2", {"status": "confirmed"})
                    store.update_document(VEHICLES, "veh-1", {"registrationStatus": "warned"})
                return result
            return original(wrapped, max_attempts)

        monkeypatch.setattr(store, "run_transaction", racing)

        result = lifecycle.confirm_violation("vio-1")

        assert result.offense_ordinal == 2
        assert result.sanction_type == SanctionType.SUSPENSION
        assert len(seed.all(SANCTIONS)) == 1

    def test_retries_exhausted(self, lifecycle, seed, vehicle, monkeypatch):
        """Test exhausted retries surface as a conflict"""
        seed.violation("vio-1")

        def always_conflicting(fn, max_attempts=None):
            raise WriteConflictError("aborted after 5 attempts")

        monkeypatch.setattr(lifecycle.store, "run_transaction", always_conflicting)

        with pytest.raises(ConflictError):
            lifecycle.confirm_violation("vio-1")
        assert seed.doc(VIOLATIONS, "vio-1")["status"] == "pending"


# ============================================
# Full Workflow
# ============================================

class TestWorkflow:
    """Test escalation across the whole lifecycle"""

    def test_warning_suspension_expiry_revocation(self, lifecycle, seed, vehicle, clock, flags_consistent):
        """Test a vehicle walks through all three tiers"""
        sweeper = ExpirationSweeper(lifecycle.store)
        for i in (1, 2, 3):
            seed.violation(f"vio-{i}")

        assert lifecycle.confirm_violation("vio-1").sanction_type == SanctionType.WARNING
        suspension = lifecycle.confirm_violation("vio-2")
        assert suspension.sanction_type == SanctionType.SUSPENSION

        with pytest.raises(ConflictError):
            lifecycle.confirm_violation("vio-3")
        flags_consistent(lifecycle.store)

        clock.advance(days=60)
        report = sweeper.sweep_sanctions()
        assert report.processed_count == 1
        assert seed.doc(VEHICLES, "veh-1")["hasActiveSanction"] is False
        flags_consistent(lifecycle.store)

        revocation = lifecycle.confirm_violation("vio-3")
        assert revocation.sanction_type == SanctionType.REVOCATION
        assert revocation.offense_ordinal == 3
        assert seed.doc(VEHICLES, "veh-1")["registrationStatus"] == "revoked"
        flags_consistent(lifecycle.store)
