from __future__ import annotations

from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from itsm.db import filters as _filters  # noqa: F401  (register soft-delete filter)
from itsm.settings import get_settings


def create_db_engine(url: str, *, echo: bool = False, pool_pre_ping: bool = True) -> Engine:
    """
    Build an engine for `url`.

    SQLite gets the pysqlite SAVEPOINT fix: the driver's own transaction
    handling is disabled and BEGIN is emitted explicitly, otherwise nested
    transactions (used by code generation retries) silently misbehave.
    """

    is_sqlite = url.startswith("sqlite")
    engine = create_engine(
        url,
        echo=echo,
        pool_pre_ping=pool_pre_ping,
        connect_args={"check_same_thread": False} if is_sqlite else {},
    )

    if is_sqlite:

        @event.listens_for(engine, "connect")
        def _disable_pysqlite_begin(dbapi_connection, connection_record) -> None:
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _emit_begin(conn) -> None:
            conn.exec_driver_sql("BEGIN")

    return engine


_settings = get_settings()

engine = create_db_engine(
    _settings.resolved_db_url(),
    echo=_settings.db_echo,
    pool_pre_ping=_settings.db_pool_pre_ping,
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


@contextmanager
def session_scope(factory: sessionmaker = SessionLocal) -> Iterator[Session]:
    """Unit of work: commit on success, roll back on any error, always close."""

    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_db() -> Generator[Session, None, None]:
    """
    Per-request session for the (external) API layer.

    Each request gets its own session; nothing is shared between calls apart
    from the engine's connection pool.
    """

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
