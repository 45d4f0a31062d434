"""
Sanction Lifecycle Transaction

Confirms a pending violation and applies its consequence in one
store transaction:

1. violation -> confirmed (linked to the new sanction)
2. new sanction document from the escalation decision
3. vehicle status and sanction flags

The offense count, the vehicle flag check and the writes all run in
the same transaction; a conflicting concurrent commit makes the store
re-run the whole read-decide-write function.
"""

from dataclasses import dataclass
from datetime import tzinfo
from typing import Any, Dict, Optional

import structlog

from campus_parking.database import (
    SANCTIONS,
    VEHICLES,
    VIOLATIONS,
    DocumentStore,
    Transaction,
    WriteConflictError,
)
from campus_parking.models import (
    RegistrationStatus,
    Sanction,
    SanctionType,
    Vehicle,
    Violation,
    ViolationStatus,
)
from .errors import ConflictError, NotFoundError, ValidationError
from .escalation import SUSPENSION_WORKING_DAYS, decide
from .offense_counter import next_offense_ordinal

logger = structlog.get_logger(__name__)


@dataclass
class ConfirmationResult:
    """Outcome of confirming one violation"""
    violation_id: str
    vehicle_id: str
    sanction_id: Optional[str]
    sanction_type: Optional[SanctionType]
    offense_ordinal: Optional[int]
    vehicle_status: Optional[RegistrationStatus] = None
    end_at: Optional[float] = None
    already_confirmed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "violationId": self.violation_id,
            "vehicleId": self.vehicle_id,
            "sanctionId": self.sanction_id,
            "sanctionType": self.sanction_type.value if self.sanction_type else None,
            "offenseOrdinal": self.offense_ordinal,
            "vehicleStatus": self.vehicle_status.value if self.vehicle_status else None,
            "endAt": self.end_at,
            "alreadyConfirmed": self.already_confirmed,
        }


class SanctionLifecycleService:
    """
    Confirm violations and apply escalated sanctions

    Args:
        store: Document store adapter
        suspension_working_days: Suspension length in working days
        tz: Calendar used for weekends
        max_attempts: Transaction attempt bound (store default if None)
    """

    def __init__(
        self,
        store: DocumentStore,
        suspension_working_days: int = SUSPENSION_WORKING_DAYS,
        tz: Optional[tzinfo] = None,
        max_attempts: Optional[int] = None,
    ):
        self.store = store
        self.suspension_working_days = suspension_working_days
        self.tz = tz
        self.max_attempts = max_attempts

    def confirm_violation(
        self,
        violation_id: Optional[str],
        confirmed_by: Optional[str] = None,
        vehicle_id: Optional[str] = None,
    ) -> ConfirmationResult:
        """
        Confirm violation_id and create its sanction

        Re-confirming an already confirmed violation changes nothing and
        reports the sanction recorded the first time.

        Args:
            violation_id: Violation to confirm
            confirmed_by: Identity of the confirming officer
            vehicle_id: Optional cross-check against the violation's vehicle

        Raises:
            ValidationError: violation_id missing, or vehicle_id mismatch
            NotFoundError: violation or its vehicle does not exist
            ConflictError: vehicle already has an active sanction, the
                violation was cleared, or retries were exhausted
        """
        if not violation_id or not str(violation_id).strip():
            raise ValidationError("violationId is required", field="violationId")

        def attempt(tx: Transaction) -> ConfirmationResult:
            return self._confirm(tx, violation_id, confirmed_by, vehicle_id)

        try:
            result = self.store.run_transaction(attempt, max_attempts=self.max_attempts)
        except WriteConflictError as exc:
            logger.warning("violation_confirm_conflict", violation_id=violation_id, reason=exc.detail)
            raise ConflictError(
                f"Violation {violation_id} could not be confirmed due to concurrent updates"
            ) from exc

        if result.already_confirmed:
            logger.info("violation_already_confirmed", violation_id=violation_id)
        else:
            logger.info(
                "violation_confirmed",
                violation_id=violation_id,
                vehicle_id=result.vehicle_id,
                offense_ordinal=result.offense_ordinal,
                sanction_type=result.sanction_type.value,
                sanction_id=result.sanction_id,
            )
        return result

    def _confirm(
        self,
        tx: Transaction,
        violation_id: str,
        confirmed_by: Optional[str],
        expected_vehicle_id: Optional[str],
    ) -> ConfirmationResult:
        violation_doc = tx.get(VIOLATIONS, violation_id)
        if violation_doc is None:
            raise NotFoundError(f"Violation not found: {violation_id}", field="violationId")
        violation = Violation.from_document(violation_doc)

        if expected_vehicle_id and expected_vehicle_id != violation.vehicle_id:
            raise ValidationError(
                f"Violation {violation_id} does not belong to vehicle {expected_vehicle_id}",
                field="vehicleId",
            )

        if violation.status == ViolationStatus.CONFIRMED:
            return self._recorded_outcome(tx, violation)
        if violation.status == ViolationStatus.CLEARED:
            raise ConflictError(f"Violation {violation_id} was cleared and cannot be confirmed")

        vehicle_doc = tx.get(VEHICLES, violation.vehicle_id)
        if vehicle_doc is None:
            raise NotFoundError(f"Vehicle not found: {violation.vehicle_id}", field="vehicleId")
        vehicle = Vehicle.from_document(vehicle_doc)
        if vehicle.has_active_sanction:
            raise ConflictError(f"Vehicle {vehicle.id} already has an active sanction")

        ordinal = next_offense_ordinal(tx, vehicle.id)
        now = self.store.server_timestamp()
        decision = decide(ordinal, now, self.suspension_working_days, self.tz)

        sanction = Sanction(
            id=self.store.new_document_id(SANCTIONS),
            vehicle_id=vehicle.id,
            violation_id=violation_id,
            sanction_type=decision.sanction_type,
            status=decision.sanction_status,
            offense_number=ordinal,
            start_at=now,
            end_at=decision.end_at,
            created_at=now,
            created_by=confirmed_by,
        )

        tx.update(VIOLATIONS, violation_id, {
            "status": ViolationStatus.CONFIRMED.value,
            "confirmedAt": now,
            "confirmedBy": confirmed_by,
            "sanctionApplied": True,
            "sanctionId": sanction.id,
        })
        tx.set(SANCTIONS, sanction.id, sanction.to_document())
        tx.update(VEHICLES, vehicle.id, {
            "registrationStatus": decision.vehicle_status.value,
            "hasActiveSanction": decision.keeps_sanction_active,
            "hasUnresolvedViolation": True,
        })

        return ConfirmationResult(
            violation_id=violation_id,
            vehicle_id=vehicle.id,
            sanction_id=sanction.id,
            sanction_type=decision.sanction_type,
            offense_ordinal=ordinal,
            vehicle_status=decision.vehicle_status,
            end_at=decision.end_at,
        )

    def _recorded_outcome(self, tx: Transaction, violation: Violation) -> ConfirmationResult:
        sanction = None
        if violation.sanction_id:
            sanction_doc = tx.get(SANCTIONS, violation.sanction_id)
            if sanction_doc is not None:
                sanction = Sanction.from_document(sanction_doc)

        return ConfirmationResult(
            violation_id=violation.id,
            vehicle_id=violation.vehicle_id,
            sanction_id=violation.sanction_id,
            sanction_type=sanction.sanction_type if sanction else None,
            offense_ordinal=sanction.offense_number if sanction else None,
            end_at=sanction.end_at if sanction else None,
            already_confirmed=True,
        )
