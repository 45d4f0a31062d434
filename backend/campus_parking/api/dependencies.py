"""
Request-scoped access to the components built at startup.

The application factory stores a SanctionComponents instance on
app.state; routes receive it through Depends(get_components).
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request

from campus_parking.database import DocumentStore
from campus_parking.sanctions import (
    ExpirationSweeper,
    MaintenanceService,
    SanctionLifecycleService,
    SanctionResolutionService,
)


@dataclass
class SanctionComponents:
    store: DocumentStore
    lifecycle: SanctionLifecycleService
    sweeper: ExpirationSweeper
    resolution: SanctionResolutionService
    maintenance: Optional[MaintenanceService] = None


def get_components(request: Request) -> SanctionComponents:
    components = getattr(request.app.state, "components", None)
    if components is None:
        raise HTTPException(status_code=503, detail="Sanction system not initialized")
    return components
