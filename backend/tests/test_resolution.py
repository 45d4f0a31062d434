"""
Resolution and Renewal Tests

Administrative resolve and registration renewal: scope of what each
clears, idempotency and input validation.
"""

import pytest

from campus_parking.database import SANCTIONS, VEHICLES, VIOLATIONS
from campus_parking.models import SanctionType
from campus_parking.sanctions.resolution import MAX_EXTENSION_DAYS
from campus_parking.sanctions import (
    NotFoundError,
    SanctionLifecycleService,
    SanctionResolutionService,
    ValidationError,
    to_iso,
)

from conftest import DAY


@pytest.fixture
def resolution(store):
    return SanctionResolutionService(store)


RENEWAL = {
    "year_level": 3,
    "semester": "1st",
    "academic_year": "2026-2027",
    "renewed_by": "registrar-1",
}


# ============================================
# Administrative Resolve
# ============================================

class TestResolveVehicle:
    """Test administrative lifting of active sanctions"""

    def test_resolves_active_suspension(self, resolution, seed, clock, flags_consistent):
        """Test active sanction resolved, flags reset, history kept"""
        sanction_id = seed.suspended_vehicle("veh-1", end_at=clock.now + 20 * DAY)

        result = resolution.resolve_vehicle("veh-1", resolved_by="admin-1")

        assert result.resolved_count == 1
        assert result.sanction_ids == [sanction_id]

        sanction = seed.doc(SANCTIONS, sanction_id)
        assert sanction["status"] == "resolved"
        assert sanction["resolvedBy"] == "admin-1"
        assert sanction["resolvedAt"] == clock.now

        vehicle = seed.doc(VEHICLES, "veh-1")
        assert vehicle["registrationStatus"] == "active"
        assert vehicle["hasActiveSanction"] is False
        assert vehicle["hasUnresolvedViolation"] is False

        violation = seed.doc(VIOLATIONS, "vio-veh-1")
        assert violation["status"] == "confirmed"
        assert violation["sanctionApplied"] is False
        flags_consistent(resolution.store)

    def test_resolves_revocation(self, resolution, seed):
        """Test revocations are lifted too"""
        seed.vehicle("veh-1", registrationStatus="revoked", hasActiveSanction=True)
        seed.sanction("san-rev", sanction_type="revocation", end_at=None, offense_number=3)

        assert resolution.resolve_vehicle("veh-1").resolved_count == 1
        assert seed.doc(SANCTIONS, "san-rev")["status"] == "resolved"

    def test_idempotent(self, resolution, seed, clock):
        """Test a second resolve finds nothing and keeps the vehicle clear"""
        seed.suspended_vehicle("veh-1", end_at=clock.now + DAY)
        resolution.resolve_vehicle("veh-1")

        result = resolution.resolve_vehicle("veh-1")

        assert result.resolved_count == 0
        assert seed.doc(VEHICLES, "veh-1")["registrationStatus"] == "active"

    def test_other_vehicles_untouched(self, resolution, seed, clock):
        """Test only the named vehicle's sanctions are resolved"""
        seed.suspended_vehicle("veh-1", end_at=clock.now + DAY)
        other = seed.suspended_vehicle("veh-2", end_at=clock.now + DAY)

        resolution.resolve_vehicle("veh-1")

        assert seed.doc(SANCTIONS, other)["status"] == "active"
        assert seed.doc(VEHICLES, "veh-2")["hasActiveSanction"] is True

    def test_expired_registration_stays_expired(self, resolution, seed, clock):
        """Test resolve does not reactivate an expired registration"""
        seed.suspended_vehicle("veh-1", end_at=clock.now + DAY, registrationStatus="expired")

        resolution.resolve_vehicle("veh-1")
        assert seed.doc(VEHICLES, "veh-1")["registrationStatus"] == "expired"

    def test_unknown_vehicle(self, resolution):
        """Test resolving an unknown vehicle"""
        with pytest.raises(NotFoundError):
            resolution.resolve_vehicle("veh-missing")

    @pytest.mark.parametrize("vehicle_id", [None, ""])
    def test_missing_vehicle_id(self, resolution, vehicle_id):
        """Test a missing vehicle id is a validation error"""
        with pytest.raises(ValidationError) as exc_info:
            resolution.resolve_vehicle(vehicle_id)
        assert exc_info.value.field == "vehicleId"

    def test_to_dict(self, resolution, seed, clock):
        """Test serialized result"""
        seed.suspended_vehicle("veh-1", end_at=clock.now + DAY)
        payload = resolution.resolve_vehicle("veh-1").to_dict()

        assert payload["vehicleId"] == "veh-1"
        assert payload["resolvedCount"] == 1
        assert payload["resolvedAt"] == to_iso(clock.now)


# ============================================
# Renewal
# ============================================

class TestRenewVehicle:
    """Test registration renewal"""

    @pytest.fixture
    def history(self, seed, clock):
        """veh-1 with mixed history, veh-2 with its own confirmed offense"""
        seed.suspended_vehicle("veh-1", end_at=clock.now + 20 * DAY, registrationStatus="expired")
        seed.violation("vio-old", "veh-1", status="confirmed", sanctionId="san-warn")
        seed.violation("vio-pending", "veh-1")
        seed.sanction("san-warn", "veh-1", "vio-old", sanction_type="warning",
                      status="completed", offense_number=1)
        seed.suspended_vehicle("veh-2", end_at=clock.now + 20 * DAY)

    def test_renew_clears_history(self, resolution, seed, clock, history, flags_consistent):
        """Test renewal clears confirmed violations and active sanctions"""
        result = resolution.renew_vehicle("veh-1", **RENEWAL)

        assert result.violations_cleared == 2
        assert result.sanctions_cleared == 1
        assert result.new_expiry_date == clock.now + 365 * DAY

        vehicle = seed.doc(VEHICLES, "veh-1")
        assert vehicle["registrationStatus"] == "active"
        assert vehicle["hasActiveSanction"] is False
        assert vehicle["hasUnresolvedViolation"] is False
        assert vehicle["registrationValidFrom"] == clock.now
        assert vehicle["registrationValidUntil"] == clock.now + 365 * DAY
        assert vehicle["yearLevel"] == 3
        assert vehicle["semester"] == "1st"
        assert vehicle["academicYear"] == "2026-2027"
        assert vehicle["renewedBy"] == "registrar-1"
        assert vehicle["renewedAt"] == clock.now

        for violation_id in ("vio-veh-1", "vio-old"):
            violation = seed.doc(VIOLATIONS, violation_id)
            assert violation["status"] == "cleared"
            assert violation["clearedBy"] == "registrar-1"
            assert violation["clearedAt"] == clock.now
        assert seed.doc(VIOLATIONS, "vio-pending")["status"] == "pending"

        suspension = seed.doc(SANCTIONS, "san-veh-1")
        assert suspension["status"] == "cleared"
        assert suspension["endAt"] == clock.now
        assert suspension["endedBy"] == "registrar-1"
        assert seed.doc(SANCTIONS, "san-warn")["status"] == "completed"
        flags_consistent(resolution.store)

    def test_other_vehicle_untouched(self, resolution, seed, history):
        """Test renewal of one vehicle leaves another's record alone"""
        resolution.renew_vehicle("veh-1", **RENEWAL)

        assert seed.doc(VIOLATIONS, "vio-veh-2")["status"] == "confirmed"
        assert seed.doc(SANCTIONS, "san-veh-2")["status"] == "active"
        assert seed.doc(VEHICLES, "veh-2")["hasActiveSanction"] is True

    def test_idempotent(self, resolution, history):
        """Test renewing again clears nothing new"""
        resolution.renew_vehicle("veh-1", **RENEWAL)
        result = resolution.renew_vehicle("veh-1", **RENEWAL)

        assert result.violations_cleared == 0
        assert result.sanctions_cleared == 0

    def test_custom_extension(self, resolution, seed, clock):
        """Test an explicit extension length"""
        seed.vehicle("veh-1")
        result = resolution.renew_vehicle("veh-1", extension_days=30, **RENEWAL)
        assert seed.doc(VEHICLES, "veh-1")["registrationValidUntil"] == clock.now + 30 * DAY
        assert result.to_dict()["newExpiryTimestamp"] == clock.now + 30 * DAY

    def test_configured_default_extension(self, store, seed, clock):
        """Test the service-wide default extension"""
        seed.vehicle("veh-1")
        SanctionResolutionService(store, default_extension_days=180).renew_vehicle("veh-1", **RENEWAL)
        assert seed.doc(VEHICLES, "veh-1")["registrationValidUntil"] == clock.now + 180 * DAY

    def test_escalation_restarts_after_renewal(self, resolution, store, seed, history):
        """Test the next offense after renewal is a first offense again"""
        resolution.renew_vehicle("veh-1", **RENEWAL)
        seed.violation("vio-fresh", "veh-1")

        result = SanctionLifecycleService(store).confirm_violation("vio-fresh")
        assert result.sanction_type == SanctionType.WARNING
        assert result.offense_ordinal == 1

    def test_unknown_vehicle(self, resolution):
        """Test renewing an unknown vehicle"""
        with pytest.raises(NotFoundError):
            resolution.renew_vehicle("veh-missing", **RENEWAL)

    @pytest.mark.parametrize("missing", ["year_level", "semester", "academic_year", "renewed_by"])
    def test_missing_fields(self, resolution, seed, missing):
        """Test every academic field and the actor are required"""
        seed.vehicle("veh-1")
        fields = dict(RENEWAL, **{missing: None})

        with pytest.raises(ValidationError):
            resolution.renew_vehicle("veh-1", **fields)
        assert seed.doc(VEHICLES, "veh-1").get("renewedAt") is None

    def test_missing_academic_year_field_name(self, resolution, seed):
        """Test the validation error names the missing field"""
        seed.vehicle("veh-1")
        fields = dict(RENEWAL, academic_year="  ")

        with pytest.raises(ValidationError) as exc_info:
            resolution.renew_vehicle("veh-1", **fields)
        assert exc_info.value.field == "academicYear"

    def test_missing_vehicle_id(self, resolution):
        """Test a missing vehicle id is a validation error"""
        with pytest.raises(ValidationError) as exc_info:
            resolution.renew_vehicle(None, **RENEWAL)
        assert exc_info.value.field == "vehicleId"

    @pytest.mark.parametrize("extension_days", [0, -5, True, "30"])
    def test_invalid_extension(self, resolution, seed, extension_days):
        """Test extensions must be positive integers"""
        seed.vehicle("veh-1")
        with pytest.raises(ValidationError) as exc_info:
            resolution.renew_vehicle("veh-1", extension_days=extension_days, **RENEWAL)
        assert exc_info.value.field == "extensionDays"

    @pytest.mark.parametrize("extension_days", [3651, 10 ** 9])
    def test_extension_above_maximum(self, resolution, seed, history, extension_days):
        """Test an oversized extension is rejected before anything is written"""
        before = seed.doc(VEHICLES, "veh-1")

        with pytest.raises(ValidationError) as exc_info:
            resolution.renew_vehicle("veh-1", extension_days=extension_days, **RENEWAL)

        assert exc_info.value.field == "extensionDays"
        assert seed.doc(VEHICLES, "veh-1") == before
        assert seed.doc(VIOLATIONS, "vio-veh-1")["status"] == "confirmed"
        assert seed.doc(SANCTIONS, "san-veh-1")["status"] == "active"

    def test_extension_at_maximum(self, resolution, seed, clock):
        """Test the longest allowed extension still serializes"""
        seed.vehicle("veh-1")
        result = resolution.renew_vehicle("veh-1", extension_days=MAX_EXTENSION_DAYS, **RENEWAL)

        assert result.new_expiry_date == clock.now + MAX_EXTENSION_DAYS * DAY
        assert result.to_dict()["newExpiryDate"].endswith("Z")

    def test_configured_maximum_extension(self, store, seed):
        """Test the service-wide extension ceiling"""
        seed.vehicle("veh-1")
        service = SanctionResolutionService(store, max_extension_days=400)

        with pytest.raises(ValidationError):
            service.renew_vehicle("veh-1", extension_days=401, **RENEWAL)
        assert seed.doc(VEHICLES, "veh-1").get("renewedAt") is None
