"""
Expiration Sweeper

Periodic (externally triggered) sweeps:

- sanctions: active suspensions whose endAt has passed are cleared,
  their vehicle's sanction flags reset and the triggering violations
  marked as no longer carrying an applied sanction. Violations stay
  confirmed; the offense remains on record.
- registrations: vehicles whose registrationValidUntil has passed are
  marked expired. Sanction and violation documents are not touched.

Candidates are read first, then written in batches. Each batch is
all-or-nothing; writes for one sanction never straddle two batches.
If a batch fails after earlier batches committed, SweepIncompleteError
reports how many of the found documents were processed.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog

from campus_parking.database import (
    SANCTIONS,
    VEHICLES,
    VIOLATIONS,
    Document,
    DocumentStore,
    StoreError,
    WriteBatch,
    where,
)
from campus_parking.models import (
    RegistrationStatus,
    Sanction,
    SanctionStatus,
    SanctionType,
)
from .errors import SweepIncompleteError, ValidationError
from .working_days import to_iso

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 450
SECONDS_PER_DAY = 24 * 60 * 60
MIN_DAYS_AHEAD = 1
MAX_DAYS_AHEAD = 30

Write = Tuple[str, str, Dict[str, Any]]


@dataclass
class SweepReport:
    """Result of one sweep run"""
    sweep: str
    found_count: int
    processed_count: int
    details: List[Dict[str, Any]] = field(default_factory=list)
    processed_at: Optional[float] = None

    @property
    def complete(self) -> bool:
        return self.processed_count == self.found_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sweep": self.sweep,
            "processedCount": self.processed_count,
            "foundCount": self.found_count,
            "details": list(self.details),
            "processedAt": to_iso(self.processed_at),
        }


@dataclass
class UpcomingExpirations:
    """Active sanctions ending within the look-ahead window"""
    days_ahead: int
    sanctions: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.sanctions)

    def to_dict(self) -> Dict[str, Any]:
        return {"count": self.count, "daysAhead": self.days_ahead, "sanctions": list(self.sanctions)}


@dataclass
class _SweepUnit:
    """Writes that must commit together, plus the detail they report"""
    writes: List[Write]
    detail: Dict[str, Any]


def _stage(units: List[_SweepUnit]) -> Callable[[WriteBatch], None]:
    def stage(batch: WriteBatch):
        for unit in units:
            for collection, doc_id, fields in unit.writes:
                batch.update(collection, doc_id, fields)
    return stage


def _chunk(units: List[_SweepUnit], batch_size: int) -> List[List[_SweepUnit]]:
    """Pack whole units into chunks of at most batch_size writes"""
    chunks: List[List[_SweepUnit]] = []
    current: List[_SweepUnit] = []
    current_writes = 0
    for unit in units:
        size = len(unit.writes)
        if current and current_writes + size > batch_size:
            chunks.append(current)
            current, current_writes = [], 0
        current.append(unit)
        current_writes += size
    if current:
        chunks.append(current)
    return chunks


class ExpirationSweeper:
    """
    Sweeps expired suspensions and registrations

    Args:
        store: Document store adapter
        batch_size: Maximum writes per committed batch
    """

    def __init__(self, store: DocumentStore, batch_size: int = DEFAULT_BATCH_SIZE):
        self.store = store
        self.batch_size = max(1, int(batch_size))

    # ============================================
    # Sanctions
    # ============================================

    def sweep_sanctions(self, now: Optional[float] = None) -> SweepReport:
        """Clear every active suspension whose endAt <= now"""
        now = self.store.now() if now is None else now
        expired = self.store.query_documents(SANCTIONS, [
            where("type", "==", SanctionType.SUSPENSION.value),
            where("status", "==", SanctionStatus.ACTIVE.value),
            where("endAt", "<=", now),
        ])
        logger.info("sanction_sweep_started", found=len(expired))

        sanctions = [Sanction.from_document(doc) for doc in expired]
        related = self._related_violations(sanctions)
        vehicles: Dict[str, Optional[Document]] = {}
        for sanction in sanctions:
            if sanction.vehicle_id not in vehicles:
                vehicles[sanction.vehicle_id] = self.store.get_document(VEHICLES, sanction.vehicle_id)

        units = [
            self._sanction_unit(
                sanction,
                vehicles[sanction.vehicle_id],
                related.get((sanction.vehicle_id, sanction.id), []),
                now,
            )
            for sanction in sanctions
        ]
        return self._commit("sanctions", units, now)

    def _related_violations(self, sanctions: List[Sanction]) -> Dict[Tuple[str, str], List[Document]]:
        """Violations linked to the swept sanctions, keyed by (vehicleId, sanctionId)"""
        if not sanctions:
            return {}
        linked = self.store.query_documents(VIOLATIONS, [
            where("sanctionId", "in", frozenset(s.id for s in sanctions)),
        ])
        index: Dict[Tuple[str, str], List[Document]] = {}
        for violation in linked:
            key = (violation.get("vehicleId"), violation.get("sanctionId"))
            index.setdefault(key, []).append(violation)
        return index

    def _sanction_unit(
        self,
        sanction: Sanction,
        vehicle_doc: Optional[Document],
        related: List[Document],
        now: float,
    ) -> _SweepUnit:
        writes: List[Write] = [(SANCTIONS, sanction.id, {
            "status": SanctionStatus.CLEARED.value,
            "lastEvaluatedAt": now,
            "clearedAt": now,
        })]

        plate_number = "N/A"
        if vehicle_doc is None:
            logger.warning("sanction_vehicle_missing", sanction_id=sanction.id, vehicle_id=sanction.vehicle_id)
        else:
            plate_number = vehicle_doc.get("plateNumber") or "N/A"
            # Clearing a sanction never un-expires a registration
            status = vehicle_doc.get("registrationStatus")
            if status != RegistrationStatus.EXPIRED.value:
                status = RegistrationStatus.CLEARED.value
            writes.append((VEHICLES, sanction.vehicle_id, {
                "registrationStatus": status,
                "hasActiveSanction": False,
                "hasUnresolvedViolation": False,
            }))

        for violation in related:
            writes.append((VIOLATIONS, violation.id, {"sanctionApplied": False}))

        return _SweepUnit(writes=writes, detail={
            "sanctionId": sanction.id,
            "vehicleId": sanction.vehicle_id,
            "violationId": sanction.violation_id,
            "plateNumber": plate_number,
            "type": sanction.sanction_type.value,
            "violationsUpdated": len(related),
            "clearedAt": to_iso(now),
        })

    # ============================================
    # Registrations
    # ============================================

    def sweep_registrations(self, now: Optional[float] = None) -> SweepReport:
        """Mark every vehicle whose registrationValidUntil <= now as expired"""
        now = self.store.now() if now is None else now
        lapsed = self.store.query_documents(VEHICLES, [
            where("registrationValidUntil", "<=", now),
            where("registrationStatus", "!=", RegistrationStatus.EXPIRED.value),
        ])
        logger.info("registration_sweep_started", found=len(lapsed))

        units = [
            _SweepUnit(
                writes=[(VEHICLES, doc.id, {
                    "registrationStatus": RegistrationStatus.EXPIRED.value,
                    "registrationExpiredAt": now,
                })],
                detail={
                    "vehicleId": doc.id,
                    "plateNumber": doc.get("plateNumber") or "N/A",
                    "previousStatus": doc.get("registrationStatus"),
                    "expiredAt": to_iso(now),
                },
            )
            for doc in lapsed
        ]
        return self._commit("registrations", units, now)

    # ============================================
    # Upcoming expirations
    # ============================================

    def list_upcoming_expirations(self, days_ahead: Any = 7, now: Optional[float] = None) -> UpcomingExpirations:
        """
        Active sanctions whose endAt falls in (now, now + days_ahead days]

        Raises:
            ValidationError: days_ahead not an integer in [1, 30]
        """
        if isinstance(days_ahead, bool) or not isinstance(days_ahead, int):
            raise ValidationError("daysAhead must be an integer", field="daysAhead")
        if not MIN_DAYS_AHEAD <= days_ahead <= MAX_DAYS_AHEAD:
            raise ValidationError(
                f"daysAhead must be between {MIN_DAYS_AHEAD} and {MAX_DAYS_AHEAD}",
                field="daysAhead",
            )

        now = self.store.now() if now is None else now
        horizon = now + days_ahead * SECONDS_PER_DAY
        upcoming = self.store.query_documents(SANCTIONS, [
            where("status", "==", SanctionStatus.ACTIVE.value),
            where("endAt", "<=", horizon),
            where("endAt", ">", now),
        ])
        upcoming.sort(key=lambda doc: doc.get("endAt"))

        return UpcomingExpirations(
            days_ahead=days_ahead,
            sanctions=[
                {"sanctionId": doc.id, **doc.data, "expiresAt": to_iso(doc.get("endAt"))}
                for doc in upcoming
            ],
        )

    # ============================================
    # Batched commit
    # ============================================

    def _commit(self, sweep: str, units: List[_SweepUnit], now: float) -> SweepReport:
        report = SweepReport(sweep=sweep, found_count=len(units), processed_count=0, processed_at=now)
        if not units:
            logger.info("sweep_nothing_to_do", sweep=sweep)
            return report

        for chunk in _chunk(units, self.batch_size):
            try:
                self.store.run_batch(_stage(chunk))
            except StoreError as exc:
                logger.error(
                    "sweep_incomplete",
                    sweep=sweep,
                    processed=report.processed_count,
                    found=report.found_count,
                    reason=exc.detail,
                )
                raise SweepIncompleteError(
                    f"{sweep} sweep processed {report.processed_count} of {report.found_count}: {exc.detail}",
                    report,
                ) from exc
            report.processed_count += len(chunk)
            report.details.extend(unit.detail for unit in chunk)

        logger.info("sweep_completed", sweep=sweep, processed=report.processed_count)
        return report
