"""GraphStore — the only path from the engines to storage.

The engines never open connections themselves.  They hand a declarative
SQLAlchemy Core statement plus bound parameters to :meth:`GraphStore.execute`
and get back plain row mappings.  Multi-step mutations run inside
:meth:`GraphStore.transaction`, which yields a store bound to one connection:

- **Outside a transaction**: each ``execute`` runs in its own
  ``engine.begin()`` block and commits immediately.
- **Inside a transaction**: every ``execute`` shares one connection; the
  block commits on success and rolls back on any exception.  Nested
  ``transaction()`` calls join the outer one.

SQLAlchemy errors are wrapped in :class:`~orgdir.domain.errors.StoreFailure`
with the original exception chained.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager, contextmanager
from typing import TYPE_CHECKING, Any, Protocol

from sqlalchemy.exc import SQLAlchemyError

from orgdir.domain.errors import StoreFailure
from orgdir.infrastructure.database.engine import init_database

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping
    from pathlib import Path

    from sqlalchemy import Connection
    from sqlalchemy.engine import Engine
    from sqlalchemy.sql import Executable

type Row = dict[str, Any]

logger = logging.getLogger(__name__)


class GraphStore(Protocol):
    """Query/execute contract consumed by every engine."""

    @property
    def atomic(self) -> bool:
        """Whether multi-phase mutations should share one transaction."""
        ...

    def execute(self, statement: Executable, params: Mapping[str, Any] | None = None) -> list[Row]:
        """Run *statement* with bound *params* and return its rows (empty for writes)."""
        ...

    def transaction(self) -> AbstractContextManager[GraphStore]:
        """Context manager yielding a store whose calls share one transaction."""
        ...


class SqlGraphStore:
    """GraphStore backed by the SQLAlchemy ``nodes``/``edges`` schema."""

    def __init__(
        self,
        engine: Engine,
        *,
        atomic: bool = True,
        _conn: Connection | None = None,
    ) -> None:
        self._engine = engine
        self._atomic = atomic
        self._conn = _conn

    @classmethod
    def open(cls, db_path: Path, *, timeout: float = 5.0, atomic: bool = True) -> SqlGraphStore:
        """Initialize the database at *db_path* and return a store over it."""
        try:
            engine = init_database(db_path, timeout=timeout)
        except (SQLAlchemyError, OSError) as exc:
            raise StoreFailure(f"Cannot open graph store at {db_path}: {exc}", path=str(db_path)) from exc
        return cls(engine, atomic=atomic)

    @property
    def engine(self) -> Engine:
        """The underlying SQLAlchemy engine (for direct access in tests and checks)."""
        return self._engine

    @property
    def atomic(self) -> bool:
        return self._atomic

    @property
    def in_transaction(self) -> bool:
        return self._conn is not None

    def execute(self, statement: Executable, params: Mapping[str, Any] | None = None) -> list[Row]:
        if self._conn is not None:
            return self._run(self._conn, statement, params)
        try:
            with self._engine.begin() as conn:
                return self._run(conn, statement, params)
        except SQLAlchemyError as exc:
            raise StoreFailure(f"Graph store error: {exc}") from exc

    @contextmanager
    def transaction(self) -> Iterator[SqlGraphStore]:
        """Yield a store bound to a single connection within ``engine.begin()``.

        Usage::

            with store.transaction() as tx:
                tx.execute(delete_stmt, {...})
                tx.execute(insert_stmt, {...})
                # Both commit on success, both roll back on failure.
        """
        if self._conn is not None:
            yield self
            return
        try:
            with self._engine.begin() as conn:
                yield SqlGraphStore(self._engine, atomic=self._atomic, _conn=conn)
        except SQLAlchemyError as exc:
            raise StoreFailure(f"Graph store transaction failed: {exc}") from exc

    def close(self) -> None:
        """Dispose of pooled connections."""
        self._engine.dispose()

    @staticmethod
    def _run(conn: Connection, statement: Executable, params: Mapping[str, Any] | None) -> list[Row]:
        try:
            result = conn.execute(statement, dict(params or {}))
        except SQLAlchemyError as exc:
            logger.debug("Statement failed", exc_info=True)
            raise StoreFailure(f"Graph store error: {exc.__class__.__name__}: {exc}") from exc
        if not result.returns_rows:
            return []
        return [dict(row) for row in result.mappings().all()]
