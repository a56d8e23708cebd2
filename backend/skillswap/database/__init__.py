"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

import logging
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from skillswap.core.config import settings

logger = logging.getLogger(__name__)

SQLITE_BUSY_TIMEOUT_MS = 30_000


def build_engine(db_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for ``db_url``.

    SQLite connections are opened with ``check_same_thread=False`` so worker
    threads can each hold their own session, and get foreign keys plus a busy
    timeout so concurrent writers wait instead of failing immediately.
    """
    kwargs: dict[str, Any] = {"echo": echo, "future": True}
    if db_url.startswith("sqlite"):
        kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": SQLITE_BUSY_TIMEOUT_MS / 1000,
        }
    else:
        kwargs["pool_pre_ping"] = True

    new_engine = create_engine(db_url, **kwargs)

    if new_engine.dialect.name == "sqlite":

        @event.listens_for(new_engine, "connect")
        def _sqlite_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
            cursor.close()

    return new_engine


def build_sessionmaker(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind, expire_on_commit=False)


engine: Engine = build_engine(settings.database_url, echo=settings.database_echo)

SessionLocal = build_sessionmaker(engine)

Base: DeclarativeMeta = declarative_base()


def init_db(bind: Engine | None = None) -> None:
    """Create all tables (idempotent)."""
    from skillswap import models  # noqa: F401  (registers mappers)

    Base.metadata.create_all(bind=bind or engine)


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
