"""
Database configuration
"""
import sqlite3

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session
from sqlmodel.pool import StaticPool
from core.config import get_settings


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


@event.listens_for(Engine, "connect")
def _register_sqlite_functions(dbapi_connection, connection_record):
    """
    Replace SQLite's ASCII-only lower() with Python's str.lower so name
    filters fold case the same way on both sides of the comparison
    """
    if isinstance(dbapi_connection, sqlite3.Connection):
        dbapi_connection.create_function(
            "lower", 1, _unicode_lower, deterministic=True
        )

# Create engine lazily to allow test configuration to be applied
_engine = None


def get_engine():
    """
    Get or create the database engine.
    This lazy initialization allows test settings to be applied properly.
    """
    global _engine
    if _engine is None:
        uri = str(get_settings().SQLALCHEMY_DATABASE_URI)
        if uri.startswith("sqlite"):
            # Requests are served from a thread pool
            kwargs = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in uri or uri == "sqlite://":
                kwargs["poolclass"] = StaticPool
            _engine = create_engine(uri, echo=False, **kwargs)
        else:
            _engine = create_engine(uri, echo=False, pool_pre_ping=True)
    return _engine


def reset_engine():
    """
    Reset the engine to None.
    This is useful for tests that need to switch between different settings.
    """
    global _engine
    _engine = None


def init_db():
    """
    Create all tables that do not exist yet
    """
    # Register table models on SQLModel.metadata
    import api.auth.models  # noqa: F401
    import api.files.models  # noqa: F401

    SQLModel.metadata.create_all(get_engine())


# Yield session
def get_session():
    with Session(get_engine()) as session:
        yield session
