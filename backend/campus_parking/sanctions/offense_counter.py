"""Offense counting inside a transaction snapshot."""

from campus_parking.database import VIOLATIONS, Transaction, where
from campus_parking.models import ViolationStatus


def count_confirmed_offenses(tx: Transaction, vehicle_id: str) -> int:
    """Confirmed violations on record for vehicle_id, read through tx"""
    confirmed = tx.query(VIOLATIONS, [
        where("vehicleId", "==", vehicle_id),
        where("status", "==", ViolationStatus.CONFIRMED.value),
    ])
    return len(confirmed)


def next_offense_ordinal(tx: Transaction, vehicle_id: str) -> int:
    """Ordinal the violation now being confirmed will receive (count + 1)"""
    return count_confirmed_offenses(tx, vehicle_id) + 1
