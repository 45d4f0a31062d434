"""
Renewal / Resolution Workflow

Two idempotent entry points that force-clear a vehicle's state:

- resolve_vehicle: administrative override. Every active sanction of
  the vehicle becomes resolved and the vehicle's sanction flags reset.
  Violation history stays confirmed.
- renew_vehicle: registration renewal. Extends the registration window,
  stamps academic metadata, clears every confirmed violation and every
  active sanction. The only path that clears violation history.

Each runs as one store transaction.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import structlog

from campus_parking.database import (
    SANCTIONS,
    VEHICLES,
    VIOLATIONS,
    DocumentStore,
    Transaction,
    WriteConflictError,
    where,
)
from campus_parking.models import RegistrationStatus, SanctionStatus, ViolationStatus
from .errors import ConflictError, NotFoundError, ValidationError
from .working_days import to_iso

logger = structlog.get_logger(__name__)

DEFAULT_EXTENSION_DAYS = 365
MAX_EXTENSION_DAYS = 3650
SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class ResolutionResult:
    vehicle_id: str
    resolved_count: int
    sanction_ids: List[str] = field(default_factory=list)
    resolved_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vehicleId": self.vehicle_id,
            "resolvedCount": self.resolved_count,
            "sanctionIds": list(self.sanction_ids),
            "resolvedAt": to_iso(self.resolved_at),
        }


@dataclass
class RenewalResult:
    vehicle_id: str
    new_expiry_date: float
    violations_cleared: int
    sanctions_cleared: int
    renewed_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vehicleId": self.vehicle_id,
            "newExpiryDate": to_iso(self.new_expiry_date),
            "newExpiryTimestamp": self.new_expiry_date,
            "violationsCleared": self.violations_cleared,
            "sanctionsCleared": self.sanctions_cleared,
            "renewedAt": to_iso(self.renewed_at),
        }


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _released_status(current: Optional[str]) -> str:
    """Status after lifting sanctions; an expired registration stays expired"""
    if current == RegistrationStatus.EXPIRED.value:
        return current
    return RegistrationStatus.ACTIVE.value


class SanctionResolutionService:
    """
    Administrative resolution and registration renewal

    Args:
        store: Document store adapter
        default_extension_days: Renewal length when none is given
        max_extension_days: Longest renewal accepted
        max_attempts: Transaction attempt bound (store default if None)
    """

    def __init__(
        self,
        store: DocumentStore,
        default_extension_days: int = DEFAULT_EXTENSION_DAYS,
        max_extension_days: int = MAX_EXTENSION_DAYS,
        max_attempts: Optional[int] = None,
    ):
        self.store = store
        self.default_extension_days = default_extension_days
        self.max_extension_days = max_extension_days
        self.max_attempts = max_attempts

    def _run(self, fn, operation: str, vehicle_id: str):
        try:
            return self.store.run_transaction(fn, max_attempts=self.max_attempts)
        except WriteConflictError as exc:
            logger.warning(f"{operation}_conflict", vehicle_id=vehicle_id, reason=exc.detail)
            raise ConflictError(
                f"Vehicle {vehicle_id} could not be updated due to concurrent changes"
            ) from exc

    # ============================================
    # Administrative resolve
    # ============================================

    def resolve_vehicle(self, vehicle_id: Optional[str], resolved_by: Optional[str] = None) -> ResolutionResult:
        """
        Resolve every active sanction of vehicle_id and reset its flags

        Raises:
            ValidationError: vehicle_id missing
            NotFoundError: vehicle does not exist
        """
        if _is_blank(vehicle_id):
            raise ValidationError("vehicleId is required", field="vehicleId")

        def attempt(tx: Transaction) -> ResolutionResult:
            vehicle = tx.get(VEHICLES, vehicle_id)
            if vehicle is None:
                raise NotFoundError(f"Vehicle not found: {vehicle_id}", field="vehicleId")

            active = tx.query(SANCTIONS, [
                where("vehicleId", "==", vehicle_id),
                where("status", "==", SanctionStatus.ACTIVE.value),
            ])
            linked = []
            for sanction in active:
                linked.extend(tx.query(VIOLATIONS, [where("sanctionId", "==", sanction.id)]))

            now = self.store.server_timestamp()
            for sanction in active:
                tx.update(SANCTIONS, sanction.id, {
                    "status": SanctionStatus.RESOLVED.value,
                    "resolvedAt": now,
                    "resolvedBy": resolved_by,
                    "lastEvaluatedAt": now,
                })
            for violation in linked:
                tx.update(VIOLATIONS, violation.id, {"sanctionApplied": False})
            tx.update(VEHICLES, vehicle_id, {
                "registrationStatus": _released_status(vehicle.get("registrationStatus")),
                "hasActiveSanction": False,
                "hasUnresolvedViolation": False,
            })

            return ResolutionResult(
                vehicle_id=vehicle_id,
                resolved_count=len(active),
                sanction_ids=[s.id for s in active],
                resolved_at=now,
            )

        result = self._run(attempt, "resolve", vehicle_id)
        logger.info("vehicle_sanctions_resolved", vehicle_id=vehicle_id, resolved=result.resolved_count)
        return result

    # ============================================
    # Renewal
    # ============================================

    def renew_vehicle(
        self,
        vehicle_id: Optional[str],
        year_level: Optional[Union[int, str]],
        semester: Optional[Union[int, str]],
        academic_year: Optional[str],
        renewed_by: Optional[str],
        extension_days: Optional[int] = None,
    ) -> RenewalResult:
        """
        Renew the registration of vehicle_id and clear its record

        Args:
            vehicle_id: Vehicle to renew
            year_level, semester, academic_year: Academic metadata to stamp
            renewed_by: Identity performing the renewal
            extension_days: Days from now until the new expiry (default 365)

        Raises:
            ValidationError: a required field is missing or extension_days
                is not a positive integer up to max_extension_days
            NotFoundError: vehicle does not exist
        """
        required = {
            "vehicleId": vehicle_id,
            "yearLevel": year_level,
            "semester": semester,
            "academicYear": academic_year,
            "renewedBy": renewed_by,
        }
        missing = [name for name, value in required.items() if _is_blank(value)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", field=missing[0])

        if extension_days is None:
            extension_days = self.default_extension_days
        if isinstance(extension_days, bool) or not isinstance(extension_days, int) or extension_days < 1:
            raise ValidationError("extensionDays must be a positive integer", field="extensionDays")
        if extension_days > self.max_extension_days:
            raise ValidationError(
                f"extensionDays must not exceed {self.max_extension_days}", field="extensionDays"
            )

        def attempt(tx: Transaction) -> RenewalResult:
            if tx.get(VEHICLES, vehicle_id) is None:
                raise NotFoundError(f"Vehicle not found: {vehicle_id}", field="vehicleId")

            confirmed = tx.query(VIOLATIONS, [
                where("vehicleId", "==", vehicle_id),
                where("status", "==", ViolationStatus.CONFIRMED.value),
            ])
            active = tx.query(SANCTIONS, [
                where("vehicleId", "==", vehicle_id),
                where("status", "==", SanctionStatus.ACTIVE.value),
            ])

            now = self.store.server_timestamp()
            new_expiry = now + extension_days * SECONDS_PER_DAY

            tx.update(VEHICLES, vehicle_id, {
                "registrationValidFrom": now,
                "registrationValidUntil": new_expiry,
                "registrationStatus": RegistrationStatus.ACTIVE.value,
                "hasActiveSanction": False,
                "hasUnresolvedViolation": False,
                "yearLevel": year_level,
                "semester": semester,
                "academicYear": academic_year,
                "renewedBy": renewed_by,
                "renewedAt": now,
            })
            for violation in confirmed:
                tx.update(VIOLATIONS, violation.id, {
                    "status": ViolationStatus.CLEARED.value,
                    "clearedAt": now,
                    "clearedBy": renewed_by,
                })
            for sanction in active:
                tx.update(SANCTIONS, sanction.id, {
                    "status": SanctionStatus.CLEARED.value,
                    "endAt": now,
                    "endedBy": renewed_by,
                })

            return RenewalResult(
                vehicle_id=vehicle_id,
                new_expiry_date=new_expiry,
                violations_cleared=len(confirmed),
                sanctions_cleared=len(active),
                renewed_at=now,
            )

        result = self._run(attempt, "renew", vehicle_id)
        logger.info(
            "vehicle_renewed",
            vehicle_id=vehicle_id,
            violations_cleared=result.violations_cleared,
            sanctions_cleared=result.sanctions_cleared,
            renewed_by=renewed_by,
        )
        return result
