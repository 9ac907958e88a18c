# backend/portfolio_tracker/database.py
"""
Engine, session factory and schema helpers for the tracker database.

PostgreSQL is the production target: a QueuePool sized from the DB_POOL_*
settings, with SELECT ... FOR UPDATE available for portfolio locks.
SQLite is accepted for tests and local development. It gets a single shared
connection and foreign key enforcement, so deleting a portfolio behaves
the same on both backends.

Tables are created by create_tables() (see backend/init_db.py); the
schema has no migrations.
"""

import logging
from collections.abc import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool, QueuePool

from portfolio_tracker.config import settings
from portfolio_tracker.models import Base

logger = logging.getLogger(__name__)

# Seconds a request waits for a pooled connection before failing
POOL_TIMEOUT_SECONDS = 30


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    Args:
        database_url: SQLAlchemy URL (sqlite:// or postgresql://)

    Returns:
        Engine configured for the backend behind the URL
    """
    if database_url.startswith("sqlite"):
        logger.info("Using SQLite database with a shared connection")
        sqlite_engine = create_engine(
            database_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=settings.debug,
        )
        event.listen(sqlite_engine, "connect", _enable_sqlite_foreign_keys)
        return sqlite_engine

    logger.info(
        f"Using PostgreSQL pool: size={settings.db_pool_size}, "
        f"max_overflow={settings.db_pool_max_overflow}, recycle={settings.db_pool_recycle}s"
    )
    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_pool_max_overflow,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_timeout=POOL_TIMEOUT_SECONDS,
        echo=settings.debug,
    )


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, closed afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_connection(db: Session) -> None:
    """Round-trip a trivial query. Raises whatever the driver raises."""
    db.execute(text("SELECT 1"))


def create_tables(drop: bool = False, bind: Engine | None = None) -> list[str]:
    """
    Create every table declared in portfolio_tracker.models.

    Args:
        drop: Drop the existing tables first
        bind: Engine to use (defaults to the application engine)

    Returns:
        Sorted table names
    """
    target = bind or engine
    if drop:
        logger.warning("Dropping all portfolio tracker tables")
        Base.metadata.drop_all(bind=target)

    Base.metadata.create_all(bind=target)
    tables = sorted(Base.metadata.tables)
    logger.info(f"Tables ready: {', '.join(tables)}")
    return tables
