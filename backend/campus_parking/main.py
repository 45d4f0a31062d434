"""
Campus Parking Sanction Service
Main FastAPI Application Entry Point

Builds configuration, logging, the document store and the sanction
components explicitly, then exposes them through the API routers.
"""

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import structlog

from campus_parking.config import ConfigManager
from campus_parking.logging_config import configure_structlog
from campus_parking.bootstrap import build_components
from campus_parking.database import DocumentStore, SqlDocumentStore
from campus_parking.api import (
    maintenance_router,
    register_exception_handlers,
    sanction_router,
    vehicle_router,
)

logger = structlog.get_logger(__name__)

APP_VERSION = "1.0.0"


def create_app(config: Optional[ConfigManager] = None, store: Optional[DocumentStore] = None) -> FastAPI:
    """
    Application factory

    Args:
        config: Configuration (loaded from backend/config and env if None)
        store: Document store to use (built from config if None)
    """
    config = config or ConfigManager()
    log_config = config.get_logging_config()
    configure_structlog(log_config.get('environment', 'development'), log_config.get('level'))

    components = build_components(config, store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events - startup and shutdown"""
        if isinstance(components.store, SqlDocumentStore):
            components.store.init_schema()
        if components.maintenance:
            await components.maintenance.start()
        logger.info("service_started", version=APP_VERSION)

        yield

        if components.maintenance:
            await components.maintenance.stop()
        logger.info("service_stopped")

    app = FastAPI(
        title="Campus Parking Sanction Service",
        description="Violation escalation, sanction expiry and registration renewal",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.components = components

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Sanction routes: /api/sanctions/*
    app.include_router(sanction_router)

    # Vehicle routes: /api/vehicles/*
    app.include_router(vehicle_router)

    # Maintenance routes: /api/maintenance/*
    app.include_router(maintenance_router)

    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint - API information"""
        return {
            "name": "Campus Parking Sanction Service",
            "version": APP_VERSION,
            "status": "operational",
            "documentation": "/docs",
            "endpoints": {
                "sanctions": "/api/sanctions/*",
                "vehicles": "/api/vehicles/*",
                "maintenance": "/api/maintenance/*",
            },
        }

    @app.get("/health", tags=["health"])
    def health_check():
        """Health check endpoint"""
        store_ok = components.store.ping()
        return {
            "status": "healthy" if store_ok else "degraded",
            "timestamp": time.time(),
            "store": "ok" if store_ok else "unavailable",
        }

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "campus_parking.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
