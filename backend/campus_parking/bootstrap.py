"""
Component wiring

Explicit construction of the document store and the sanction services
from configuration. Used by the FastAPI factory and by the maintenance
script; nothing here is a module-level singleton.
"""

from typing import Optional
from zoneinfo import ZoneInfo

from campus_parking.config import ConfigManager
from campus_parking.database import DocumentStore, SqlDocumentStore, create_store_engine
from campus_parking.sanctions import (
    ExpirationSweeper,
    MaintenanceService,
    SanctionLifecycleService,
    SanctionResolutionService,
)
from campus_parking.api.dependencies import SanctionComponents


def build_store(config: ConfigManager) -> SqlDocumentStore:
    """SQLAlchemy document store from the database config section"""
    db_config = config.get_database_config()
    engine = create_store_engine(
        db_config.get('url'),
        timeout_seconds=float(db_config.get('timeoutSeconds', 10)),
    )
    return SqlDocumentStore(
        engine,
        max_transaction_attempts=int(db_config.get('maxTransactionAttempts', 5)),
    )


def build_components(config: ConfigManager, store: Optional[DocumentStore] = None) -> SanctionComponents:
    """Wire every sanction component around one store"""
    store = store or build_store(config)

    sanction_config = config.get_sanction_config()
    renewal_config = config.get_renewal_config()
    maintenance_config = config.get_maintenance_config()

    sweeper = ExpirationSweeper(store, batch_size=maintenance_config.get('batchSize', 450))
    maintenance = None
    if maintenance_config.get('enabled'):
        maintenance = MaintenanceService(
            sweeper,
            interval_seconds=float(maintenance_config.get('intervalSeconds', 3600)),
        )

    return SanctionComponents(
        store=store,
        lifecycle=SanctionLifecycleService(
            store,
            suspension_working_days=int(sanction_config.get('suspensionWorkingDays', 30)),
            tz=ZoneInfo(sanction_config.get('timezone', 'UTC')),
        ),
        sweeper=sweeper,
        resolution=SanctionResolutionService(
            store,
            default_extension_days=int(renewal_config.get('defaultExtensionDays', 365)),
            max_extension_days=int(renewal_config.get('maxExtensionDays', 3650)),
        ),
        maintenance=maintenance,
    )
