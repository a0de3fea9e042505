"""Embedded record store for overrides, templates and signature history.

Backed by SQLite through SQLAlchemy. Writes go through ``Database.write()``,
which serialises writers process-wide and commits or rolls back on every
exit path.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

import structlog
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from sigaudit.errors import StorageError
from sigaudit.models import Base

logger = structlog.get_logger()


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo on read; stored values are always UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _ensure_sqlite_directory(url: str) -> None:
    prefix = "sqlite:///"
    if not url.startswith(prefix):
        return
    path = url[len(prefix):]
    if path and path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)


class Database:
    """Engine, session factory and single-writer lock."""

    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = url
        kwargs: dict = {"echo": echo}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
            else:
                _ensure_sqlite_directory(url)
        self.engine: Engine = create_engine(url, **kwargs)
        if url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._write_lock = threading.RLock()

    def create_all(self) -> None:
        """Create missing tables (embedded/dev use; managed deployments use alembic)."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def read(self) -> Iterator[Session]:
        session = self._sessions()
        try:
            yield session
        except SQLAlchemyError as exc:
            logger.error("storage_read_failed", error=str(exc))
            raise StorageError(f"Read failed: {exc}") from exc
        finally:
            session.close()

    @contextmanager
    def write(self) -> Iterator[Session]:
        """Acquire the writer lock, yield a session, commit, release."""
        with self._write_lock:
            session = self._sessions()
            try:
                yield session
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("storage_write_failed", error=str(exc))
                raise StorageError(f"Write failed: {exc}") from exc
            except BaseException:
                session.rollback()
                raise
            finally:
                session.close()

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")

    def dispose(self) -> None:
        self.engine.dispose()


def _set_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()
