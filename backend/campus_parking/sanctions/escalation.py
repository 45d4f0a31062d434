"""
Escalation Engine

Single source of truth for sanction policy. Maps an offense ordinal to
the sanction to create and the vehicle status to show:

    1   -> warning     / warned    / no end
    2   -> suspension  / suspended / now + 30 working days
    >=3 -> revocation  / revoked   / no end (permanent)

Pure: no store access, time is passed in.
"""

from dataclasses import dataclass
from datetime import tzinfo
from typing import Optional

from campus_parking.models import RegistrationStatus, SanctionStatus, SanctionType
from .working_days import add_working_days

SUSPENSION_WORKING_DAYS = 30


@dataclass(frozen=True)
class SanctionDecision:
    """Outcome of the escalation policy for one offense"""
    offense_ordinal: int
    sanction_type: SanctionType
    vehicle_status: RegistrationStatus
    end_at: Optional[float]

    @property
    def sanction_status(self) -> SanctionStatus:
        """Warnings have no enforcement window and start out completed"""
        if self.sanction_type == SanctionType.WARNING:
            return SanctionStatus.COMPLETED
        return SanctionStatus.ACTIVE

    @property
    def keeps_sanction_active(self) -> bool:
        return self.sanction_status == SanctionStatus.ACTIVE


def decide(
    offense_ordinal: int,
    now: float,
    suspension_working_days: int = SUSPENSION_WORKING_DAYS,
    tz: Optional[tzinfo] = None,
) -> SanctionDecision:
    """
    Decide the sanction for the offense_ordinal-th confirmed offense

    Args:
        offense_ordinal: 1-based rank of the offense for its vehicle
        now: Current time (epoch seconds) used as suspension start
        suspension_working_days: Length of a suspension
        tz: Calendar used to recognise weekends

    Raises:
        ValueError: offense_ordinal below 1
    """
    if offense_ordinal < 1:
        raise ValueError(f"offense ordinal must be >= 1, got {offense_ordinal}")

    if offense_ordinal == 1:
        return SanctionDecision(offense_ordinal, SanctionType.WARNING, RegistrationStatus.WARNED, None)

    if offense_ordinal == 2:
        return SanctionDecision(
            offense_ordinal,
            SanctionType.SUSPENSION,
            RegistrationStatus.SUSPENDED,
            add_working_days(now, suspension_working_days, tz),
        )

    return SanctionDecision(offense_ordinal, SanctionType.REVOCATION, RegistrationStatus.REVOKED, None)
