"""Database configuration and session management."""
from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from approvaldesk.config import get_settings
from approvaldesk.models.base import Base

engine: Engine | None = None
SessionLocal: sessionmaker[Session] | None = None

# Seconds SQLite waits on a locked database before giving up; concurrent
# approvers queue on the write lock instead of failing.
SQLITE_BUSY_TIMEOUT = 30


def engine_kwargs(database_url: str) -> dict[str, object]:
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT}}
    return {}


def make_sessionmaker(bind: Engine) -> sessionmaker[Session]:
    """Return a session factory configured the way every component expects."""

    return sessionmaker(
        bind=bind,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


def init_engine() -> Engine:
    """Initialise the synchronous SQLAlchemy engine lazily."""

    global engine, SessionLocal
    if engine is None:
        settings = get_settings()
        engine = create_engine(
            settings.database_url, future=True, echo=False, **engine_kwargs(settings.database_url)
        )
        SessionLocal = make_sessionmaker(engine)
    return engine


def get_engine() -> Engine:
    """Return the active SQLAlchemy engine, creating it if necessary."""

    if engine is None:
        return init_engine()
    return engine


def get_sessionmaker() -> sessionmaker[Session]:
    """Return the configured session factory, initialising the engine on demand."""

    if SessionLocal is None:
        init_engine()
    assert SessionLocal is not None  # for type-checkers
    return SessionLocal


def create_all() -> None:
    """Create all database tables using the shared declarative metadata."""

    Base.metadata.create_all(bind=get_engine())


def close_engine() -> None:
    """Dispose of the SQLAlchemy engine and reset the session factory."""

    global engine, SessionLocal
    if engine is not None:
        engine.dispose()
        engine = None
        SessionLocal = None


def get_session_factory() -> sessionmaker[Session]:
    """FastAPI dependency handing components their persistence handle."""

    return get_sessionmaker()


__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "create_all",
    "engine_kwargs",
    "get_engine",
    "get_session_factory",
    "get_sessionmaker",
    "init_engine",
    "make_sessionmaker",
    "close_engine",
]
