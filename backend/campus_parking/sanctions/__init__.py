"""
Sanction Lifecycle Engine

Escalates disciplinary sanctions as violations are confirmed and lifts
them on expiry, administrative resolution or registration renewal.

Components:
- decide / SanctionDecision: escalation policy (pure)
- SanctionLifecycleService: confirm violation + apply sanction atomically
- ExpirationSweeper: sanction and registration expiry sweeps
- SanctionResolutionService: administrative resolve and renewal
- run_maintenance_jobs / MaintenanceService: scheduled sweeps

Usage:
    from campus_parking.sanctions import SanctionLifecycleService

    lifecycle = SanctionLifecycleService(store)
    result = lifecycle.confirm_violation("vio-123", confirmed_by="officer-7")
"""

from .errors import (
    SanctionError,
    ValidationError,
    NotFoundError,
    ConflictError,
    SweepIncompleteError,
)

from .working_days import (
    add_working_days,
    count_working_days,
    is_working_day,
    to_iso,
)

from .escalation import (
    SUSPENSION_WORKING_DAYS,
    SanctionDecision,
    decide,
)

from .offense_counter import (
    count_confirmed_offenses,
    next_offense_ordinal,
)

from .lifecycle import (
    ConfirmationResult,
    SanctionLifecycleService,
)

from .expiration import (
    SweepReport,
    UpcomingExpirations,
    ExpirationSweeper,
)

from .resolution import (
    ResolutionResult,
    RenewalResult,
    SanctionResolutionService,
)

from .maintenance import (
    MaintenanceRunResult,
    MaintenanceService,
    run_maintenance_jobs,
)


__all__ = [
    "SanctionError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "SweepIncompleteError",
    "add_working_days",
    "count_working_days",
    "is_working_day",
    "to_iso",
    "SUSPENSION_WORKING_DAYS",
    "SanctionDecision",
    "decide",
    "count_confirmed_offenses",
    "next_offense_ordinal",
    "ConfirmationResult",
    "SanctionLifecycleService",
    "SweepReport",
    "UpcomingExpirations",
    "ExpirationSweeper",
    "ResolutionResult",
    "RenewalResult",
    "SanctionResolutionService",
    "MaintenanceRunResult",
    "MaintenanceService",
    "run_maintenance_jobs",
]
