"""
API Routes Package

This module exports all FastAPI routers for the sanction service.
"""

from .sanction_routes import router as sanction_router
from .vehicle_routes import router as vehicle_router
from .maintenance_routes import router as maintenance_router
from .error_handlers import register_exception_handlers
from .dependencies import SanctionComponents, get_components

__all__ = [
    "sanction_router",
    "vehicle_router",
    "maintenance_router",
    "register_exception_handlers",
    "SanctionComponents",
    "get_components",
]
