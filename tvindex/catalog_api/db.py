"""Database helpers for the catalog service."""
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import Session, SQLModel, create_engine

from .settings import CatalogSettings

# Execution option selecting the SQLite BEGIN flavour ("IMMEDIATE", "EXCLUSIVE").
SQLITE_BEGIN_MODE = "sqlite_begin_mode"


def _ensure_sqlite_path(database_url: str) -> None:
    """Create parent directories when using a SQLite URL."""

    if database_url.startswith("sqlite:///"):
        path_part = database_url.removeprefix("sqlite:///").split("?")[0]
        if path_part and path_part != ":memory:":
            db_path = Path(path_part)
            db_path.parent.mkdir(parents=True, exist_ok=True)


def _install_sqlite_transactions(engine: Engine) -> None:
    """Let SQLAlchemy own BEGIN so DDL participates in transactions.

    pysqlite only opens transactions implicitly before DML, which would
    commit CREATE VIRTUAL TABLE on its own and expose a half-built index.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:  # noqa: ARG001
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn) -> None:
        mode = conn.get_execution_options().get(SQLITE_BEGIN_MODE)
        conn.exec_driver_sql(f"BEGIN {mode}" if mode else "BEGIN")


def create_engine_from_settings(settings: CatalogSettings) -> Engine:
    """Create a SQLModel engine using catalog settings."""

    _ensure_sqlite_path(settings.database_url)
    is_sqlite = settings.database_url.startswith("sqlite")
    connect_args = (
        {"check_same_thread": False, "timeout": settings.database_timeout}
        if is_sqlite
        else {}
    )
    engine = create_engine(
        settings.database_url, echo=settings.database_echo, connect_args=connect_args
    )
    if is_sqlite:
        _install_sqlite_transactions(engine)
    return engine


def init_database(engine: Engine) -> None:
    """Create catalog and job tables when missing."""

    SQLModel.metadata.create_all(engine)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Return the session factory every catalog writer should use.

    Index synchronization hooks are attached to this factory, so sessions
    created elsewhere do not propagate their changes to search.
    """

    return sessionmaker(bind=engine, class_=Session, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    """Yield a session that commits on success and rolls back on error."""

    session: Session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
