"""
Sanction Routes - violation confirmation and sanction lifecycle endpoints

Endpoints:
- POST /api/sanctions/from-violation - Confirm a violation and apply its sanction
- POST /api/sanctions/resolve-vehicle - Administratively resolve a vehicle's sanctions
- POST /api/sanctions/resolve - Alias of resolve-vehicle
- POST /api/sanctions/resolve-expired - Sweep expired suspensions
- GET /api/sanctions/upcoming-expirations - Suspensions ending soon
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from .dependencies import SanctionComponents, get_components

router = APIRouter(prefix="/api/sanctions", tags=["sanctions"])


# ============================================
# Request Models
# ============================================

class ConfirmViolationRequest(BaseModel):
    """Confirm a pending violation"""
    violationId: Optional[str] = None
    vehicleId: Optional[str] = None
    confirmedBy: Optional[str] = None


class ResolveVehicleRequest(BaseModel):
    """Administrative sanction resolution"""
    vehicleId: Optional[str] = None
    resolvedBy: Optional[str] = None


# ============================================
# Endpoints
# ============================================

@router.post("/from-violation")
def confirm_violation(
    body: ConfirmViolationRequest,
    components: SanctionComponents = Depends(get_components),
):
    """
    Confirm a violation and apply the escalated sanction

    Offense 1 -> warning, 2 -> 30 working day suspension, 3+ -> revocation.
    Confirming an already confirmed violation is a no-op.
    """
    result = components.lifecycle.confirm_violation(
        body.violationId,
        confirmed_by=body.confirmedBy,
        vehicle_id=body.vehicleId,
    )
    message = "Violation already confirmed" if result.already_confirmed else "Sanction applied"
    return {"success": True, "message": message, **result.to_dict()}


@router.post("/resolve-vehicle")
@router.post("/resolve")
def resolve_vehicle_sanctions(
    body: ResolveVehicleRequest,
    components: SanctionComponents = Depends(get_components),
):
    """Resolve every active sanction of a vehicle and reset its flags"""
    result = components.resolution.resolve_vehicle(body.vehicleId, resolved_by=body.resolvedBy)
    return {"success": True, "message": "Vehicle sanctions resolved successfully", **result.to_dict()}


@router.post("/resolve-expired")
def resolve_expired_sanctions(components: SanctionComponents = Depends(get_components)):
    """
    Clear all suspensions past their end date

    Intended for schedulers; see also /api/maintenance/run-all.
    """
    report = components.sweeper.sweep_sanctions()
    return {"success": True, "message": "Expired sanctions resolved successfully", **report.to_dict()}


@router.get("/upcoming-expirations")
def get_upcoming_expirations(
    daysAhead: int = Query(7, description="Look-ahead window in days (1-30)"),
    components: SanctionComponents = Depends(get_components),
):
    """Active sanctions ending within the next daysAhead days"""
    result = components.sweeper.list_upcoming_expirations(daysAhead)
    return {"success": True, **result.to_dict()}
