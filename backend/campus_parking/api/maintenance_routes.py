"""
Maintenance Routes - manual triggers for the scheduled sweeps

Endpoints:
- POST /api/maintenance/run-all - Registration sweep, then sanction sweep
- POST /api/maintenance/expire-registrations - Registration sweep only
- POST /api/maintenance/clear-sanctions - Sanction sweep only
- GET /api/maintenance/status - In-process scheduler statistics
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from campus_parking.sanctions import run_maintenance_jobs
from .dependencies import SanctionComponents, get_components

router = APIRouter(prefix="/api/maintenance", tags=["maintenance"])


@router.post("/run-all")
def run_all_maintenance(components: SanctionComponents = Depends(get_components)):
    """
    Run all maintenance jobs

    Both sweeps always run; a failure in one is reported alongside the
    other's committed result.
    """
    result = run_maintenance_jobs(components.sweeper)
    payload = result.to_dict()
    if result.success:
        return {"message": "Maintenance jobs completed successfully", **payload}

    details = "; ".join(f"{name}: {reason}" for name, reason in result.errors.items())
    return JSONResponse(
        status_code=500,
        content={"error": "maintenance_failed", "details": details, **payload},
    )


@router.post("/expire-registrations")
def expire_registrations(components: SanctionComponents = Depends(get_components)):
    """Mark lapsed registrations as expired"""
    report = components.sweeper.sweep_registrations()
    return {"success": True, "message": "Registration expiration completed", **report.to_dict()}


@router.post("/clear-sanctions")
def clear_sanctions(components: SanctionComponents = Depends(get_components)):
    """Clear expired suspensions"""
    report = components.sweeper.sweep_sanctions()
    return {"success": True, "message": "Sanction clearing completed", **report.to_dict()}


@router.get("/status")
def maintenance_status(components: SanctionComponents = Depends(get_components)):
    """Periodic scheduler statistics (enabled=false when sweeps are external)"""
    if components.maintenance is None:
        return {"success": True, "enabled": False}
    return {"success": True, "enabled": True, **components.maintenance.get_stats()}
