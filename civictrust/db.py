"""Engine, session factory and transaction helpers for the local store."""
from __future__ import annotations

from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from civictrust.config import get_settings
from civictrust.models.base import Base

engine: Engine | None = None
SessionLocal: sessionmaker[Session] | None = None


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _install_sqlite_pragmas(target: Engine, url: str) -> None:
    # The snapshot row is rewritten on every action; WAL keeps readers off the writer's lock.
    in_memory = url in {"sqlite://", "sqlite:///:memory:"}

    @event.listens_for(target, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        if not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()


def init_engine(database_url: str | None = None) -> Engine:
    """Create the engine once; later calls return the existing one."""

    global engine, SessionLocal
    if engine is not None:
        return engine

    url = database_url or get_settings().DATABASE_URL
    connect_args = {"check_same_thread": False} if _is_sqlite(url) else {}
    engine = create_engine(url, future=True, echo=False, connect_args=connect_args)
    if _is_sqlite(url):
        _install_sqlite_pragmas(engine, url)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)
    return engine


def get_engine() -> Engine:
    return engine if engine is not None else init_engine()


def get_sessionmaker() -> sessionmaker[Session]:
    if SessionLocal is None:
        init_engine()
    assert SessionLocal is not None  # for type-checkers
    return SessionLocal


@contextmanager
def session_scope(factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    """Run a unit of work: commit on success, roll back and re-raise on error."""

    session = (factory or get_sessionmaker())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all() -> None:
    """Create the snapshot and session tables."""

    import civictrust.models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())


def close_engine() -> None:
    global engine, SessionLocal
    if engine is not None:
        engine.dispose()
    engine = None
    SessionLocal = None


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session for FastAPI dependencies."""

    session = get_sessionmaker()()
    try:
        yield session
    finally:
        session.close()


__all__ = [
    "Base",
    "create_all",
    "get_db",
    "get_engine",
    "get_sessionmaker",
    "init_engine",
    "close_engine",
    "session_scope",
]
