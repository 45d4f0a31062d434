"""
Pydantic Models Package

Document models for vehicles, violations and sanctions.
Import from here for convenience.
"""

from .vehicle import (
    RegistrationStatus,
    Vehicle,
)

from .violation import (
    ViolationStatus,
    Violation,
)

from .sanction import (
    SanctionType,
    SanctionStatus,
    Sanction,
)


__all__ = [
    "RegistrationStatus",
    "Vehicle",
    "ViolationStatus",
    "Violation",
    "SanctionType",
    "SanctionStatus",
    "Sanction",
]
