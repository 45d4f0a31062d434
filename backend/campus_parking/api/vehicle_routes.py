"""
Vehicle Routes - registration renewal and status endpoints

Endpoints:
- POST /api/vehicles/renew - Renew registration and clear violation history
- GET /api/vehicles/{vehicle_id} - Registration status and sanction flags
"""

from typing import Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from campus_parking.database import VEHICLES
from campus_parking.models import Vehicle
from campus_parking.sanctions import NotFoundError, to_iso
from .dependencies import SanctionComponents, get_components

router = APIRouter(prefix="/api/vehicles", tags=["vehicles"])


class RenewVehicleRequest(BaseModel):
    """Registration renewal"""
    vehicleId: Optional[str] = None
    extensionDays: Optional[int] = None
    yearLevel: Optional[Union[int, str]] = None
    semester: Optional[Union[int, str]] = None
    academicYear: Optional[str] = None
    renewedBy: Optional[str] = None


class VehicleStatusResponse(BaseModel):
    """Vehicle registration status"""
    success: bool = True
    vehicleId: str
    plateNumber: Optional[str]
    registrationStatus: str
    hasActiveSanction: bool
    hasUnresolvedViolation: bool
    registrationValidFrom: Optional[str]
    registrationValidUntil: Optional[str]


@router.post("/renew")
def renew_vehicle(
    body: RenewVehicleRequest,
    components: SanctionComponents = Depends(get_components),
):
    """
    Renew a vehicle registration

    Extends the registration (default 365 days), clears confirmed
    violations and active sanctions, and stamps academic metadata.
    """
    result = components.resolution.renew_vehicle(
        body.vehicleId,
        year_level=body.yearLevel,
        semester=body.semester,
        academic_year=body.academicYear,
        renewed_by=body.renewedBy,
        extension_days=body.extensionDays,
    )
    return {"success": True, "message": "Vehicle renewed successfully", "data": result.to_dict()}


@router.get("/{vehicle_id}", response_model=VehicleStatusResponse)
def get_vehicle_status(
    vehicle_id: str,
    components: SanctionComponents = Depends(get_components),
):
    """Current registration status and sanction flags of a vehicle"""
    document = components.store.get_document(VEHICLES, vehicle_id)
    if document is None:
        raise NotFoundError(f"Vehicle not found: {vehicle_id}", field="vehicleId")
    vehicle = Vehicle.from_document(document)

    return VehicleStatusResponse(
        vehicleId=vehicle.id,
        plateNumber=vehicle.plate_number,
        registrationStatus=vehicle.registration_status.value,
        hasActiveSanction=vehicle.has_active_sanction,
        hasUnresolvedViolation=vehicle.has_unresolved_violation,
        registrationValidFrom=to_iso(vehicle.registration_valid_from),
        registrationValidUntil=to_iso(vehicle.registration_valid_until),
    )
