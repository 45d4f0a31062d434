"""
Database Configuration and Session Management

This module provides the SQLAlchemy engine/session factory helpers and
schema initialization. Nothing here is created at import time; the
application factory builds the engine explicitly from configuration.
"""

from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
import structlog

logger = structlog.get_logger(__name__)

# Base class for ORM models
Base = declarative_base()


def create_store_engine(database_url: str, timeout_seconds: float = 10.0, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine for the document store

    SQLite URLs get the driver busy timeout set to timeout_seconds so a
    stalled lock surfaces as an error instead of hanging the caller.
    In-memory SQLite shares one connection across sessions.

    Args:
        database_url: SQLAlchemy database URL
        timeout_seconds: Store call timeout
        echo: Log emitted SQL
    """
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": timeout_seconds}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                database_url,
                connect_args=connect_args,
                poolclass=StaticPool,
                echo=echo,
            )
        db_path = database_url.split(":///", 1)[-1]
        if db_path:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(database_url, connect_args=connect_args, echo=echo)

    return create_engine(database_url, pool_pre_ping=True, echo=echo)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to engine"""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine):
    """
    Initialize database - create all tables

    Called on application startup to ensure all tables exist.
    """
    # Import all models to ensure they're registered with Base
    from campus_parking.database import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("database_initialized", url=str(engine.url))

