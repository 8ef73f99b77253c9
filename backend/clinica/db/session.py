import logging
import os

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from clinica.core.config import get_database_url

logger = logging.getLogger(__name__)

# Create Base class for models
Base = declarative_base()

# Internal lazy globals
_engine = None
_SessionLocal = None
_database_url = None


def _mask_url_password(url: str) -> str:
    import re

    return re.sub(r"(://[^:/?#]+):[^@]*@", r"\1:***@", url)


def get_engine():
    """Return a cached SQLAlchemy engine, creating it from DATABASE_URL on
    first call. The engine is re-created when DATABASE_URL changes so tests
    can point the app at a fresh database before the first session."""
    global _engine
    global _SessionLocal
    global _database_url
    database_url = get_database_url()
    if _engine is None or _database_url != database_url:
        if _engine is not None:
            _engine.dispose()
        _engine = build_engine(database_url)
        _SessionLocal = None
        _database_url = database_url
        logger.info(
            "SQLAlchemy engine created",
            extra={
                "context": {
                    "url": _mask_url_password(database_url),
                    "dialect": _engine.dialect.name,
                }
            },
        )
    return _engine


def build_engine(database_url: str):
    """Create an engine with settings suited to the backend.

    PostgreSQL gets a production pool; SQLite in-memory databases share a
    single connection so DDL persists across sessions.
    """
    if database_url.startswith("postgres"):
        return create_engine(
            database_url,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args={"application_name": "clinica", "connect_timeout": 10},
        )

    if database_url.startswith("sqlite") and ":memory:" in database_url:
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(database_url)

    if engine.dialect.name == "sqlite":
        _enable_sqlite_foreign_keys(engine)
    return engine


def _enable_sqlite_foreign_keys(engine) -> None:
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_sessionmaker():
    """Return a cached sessionmaker bound to the lazy engine."""
    global _SessionLocal
    engine = get_engine()
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return _SessionLocal


def SessionLocal():
    """Calling SessionLocal() returns a new Session bound to the current engine."""
    session = get_sessionmaker()()
    if os.getenv("TESTING", "").lower() in ("1", "true", "yes"):
        create_tables()
    return session


def create_tables():
    """Create all tables in the database using the lazy engine."""
    # Importing the models populates Base.metadata
    from clinica.db import base  # noqa: F401

    Base.metadata.create_all(bind=get_engine())


def drop_tables():
    from clinica.db import base  # noqa: F401

    Base.metadata.drop_all(bind=get_engine())
