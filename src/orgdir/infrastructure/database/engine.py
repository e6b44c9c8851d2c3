"""Database engine setup for SQLite with WAL mode.

SQLite is the default graph store backend: WAL mode for concurrent reads,
foreign keys for edge integrity, and a busy timeout so every round trip is
bounded.  SQLAlchemy Core (not ORM) is used because the engines issue
declarative statements and translate rows themselves.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from orgdir.infrastructure.database.schema import metadata


def create_db_engine(db_path: Path, *, timeout: float = 5.0) -> Engine:
    """Create a SQLite engine with WAL mode and foreign keys enabled.

    *timeout* is the per-statement busy timeout in seconds.  The pysqlite
    dialect registers a Python ``REGEXP`` function, which search relies on.
    """
    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"timeout": timeout},
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def init_database(db_path: Path, *, timeout: float = 5.0) -> Engine:
    """Create the database file and all tables at *db_path*.

    Idempotent — safe to call on an existing database.  Returns the engine
    ready for use.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_db_engine(db_path, timeout=timeout)
    metadata.create_all(engine)
    return engine
