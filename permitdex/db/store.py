"""Target store: the two write primitives the import pipeline depends on.

``upsert`` (insert-or-update on a conflict key) and ``insert`` (append-only)
each run as one transaction and either fully succeed or raise
:class:`StoreError`. There is no per-row success signal.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from typing import Any, Protocol

from sqlalchemy import Date, MetaData, Table, func, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from permitdex.db.models import Base
from permitdex.importing.errors import StoreError

logger = logging.getLogger(__name__)

# Stay under the 32767 bind-parameter ceiling of asyncpg / SQLite
MAX_BIND_PARAMS = 30_000

# Raised by DB-API drivers while binding values SQLAlchemy does not wrap
# (e.g. sqlite3 on integers outside the 64-bit range)
_BIND_ERRORS = (OverflowError, TypeError)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class TargetStore(Protocol):
    async def upsert(
        self,
        table: str,
        rows: Sequence[Mapping[str, Any]],
        conflict_key: Sequence[str],
        *,
        update_columns: Sequence[str] | None = None,
        increment_columns: Sequence[str] = (),
    ) -> None: ...

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> None: ...

    async def select(
        self,
        table: str,
        columns: Sequence[str],
        filters: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]: ...


def _error_message(exc: Exception) -> str:
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig)
    return str(exc)


def collapse_on_key(
    rows: Sequence[Mapping[str, Any]], conflict_key: Sequence[str]
) -> list[dict[str, Any]]:
    """Keep the last row per conflict key; rows with a NULL key part are all kept.

    A single ``ON CONFLICT DO UPDATE`` statement cannot touch the same row
    twice, so duplicates inside one batch are collapsed before sending.
    """
    keyed: dict[tuple, dict[str, Any]] = {}
    unkeyed: list[dict[str, Any]] = []
    for row in rows:
        key = tuple(row.get(column) for column in conflict_key)
        if any(part is None for part in key):
            unkeyed.append(dict(row))
        else:
            keyed.pop(key, None)
            keyed[key] = dict(row)
    return list(keyed.values()) + unkeyed


def _uniform(rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Give every row the same keys (multi-row VALUES requires it)."""
    rows = [dict(row) for row in rows]
    columns: list[str] = []
    for row in rows:
        for column in row:
            if column not in columns:
                columns.append(column)
    return [{column: row.get(column) for column in columns} for row in rows]


def _chunks(rows: list[dict[str, Any]], width: int) -> Iterable[list[dict[str, Any]]]:
    size = max(1, MAX_BIND_PARAMS // max(width, 1))
    for start in range(0, len(rows), size):
        yield rows[start : start + size]


class SQLAlchemyTargetStore:
    """Target store over an async SQLAlchemy engine (PostgreSQL or SQLite)."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        metadata: MetaData = Base.metadata,
    ):
        self.session_factory = session_factory
        self.metadata = metadata

    def _table(self, name: str) -> Table:
        try:
            return self.metadata.tables[name]
        except KeyError:
            raise StoreError(name, f"Unknown table: {name}") from None

    def _bind_row(self, table: Table, row: Mapping[str, Any]) -> dict[str, Any]:
        bound = dict(row)
        for column, value in row.items():
            if column in table.c and isinstance(table.c[column].type, Date) and isinstance(value, str):
                bound[column] = date.fromisoformat(value)
        return bound

    def _prepare(self, table: Table, rows: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        try:
            return _uniform(self._bind_row(table, row) for row in rows)
        except ValueError as e:
            raise StoreError(table.name, f"Invalid value: {e}") from e

    async def upsert(
        self,
        table: str,
        rows: Sequence[Mapping[str, Any]],
        conflict_key: Sequence[str],
        *,
        update_columns: Sequence[str] | None = None,
        increment_columns: Sequence[str] = (),
    ) -> None:
        """Insert rows, updating existing ones that collide on ``conflict_key``.

        Args:
            update_columns: Columns overwritten on conflict (default: every
                non-key column present in the rows)
            increment_columns: Columns added to the stored value on conflict,
                atomically inside the statement
        """
        if not rows:
            return

        target = self._table(table)
        prepared = _uniform(collapse_on_key(self._prepare(target, rows), conflict_key))
        key = list(conflict_key)
        if update_columns is None:
            update_columns = [column for column in prepared[0] if column not in key]

        try:
            async with self.session_factory() as session:
                dialect = session.get_bind().dialect.name
                dialect_insert = _DIALECT_INSERTS.get(dialect)
                if dialect_insert is None:
                    raise StoreError(table, f"Upsert not supported on dialect '{dialect}'")

                async with session.begin():
                    for chunk in _chunks(prepared, len(prepared[0])):
                        stmt = dialect_insert(target).values(chunk)
                        set_ = {
                            column: stmt.excluded[column]
                            for column in update_columns
                            if column not in increment_columns
                        }
                        for column in increment_columns:
                            set_[column] = func.coalesce(target.c[column], 0) + stmt.excluded[column]

                        if set_:
                            stmt = stmt.on_conflict_do_update(index_elements=key, set_=set_)
                        else:
                            stmt = stmt.on_conflict_do_nothing(index_elements=key)
                        await session.execute(stmt)
        except (SQLAlchemyError, *_BIND_ERRORS) as e:
            raise StoreError(table, _error_message(e)) from e

        logger.debug(f"Upserted {len(prepared)} rows into {table}")

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> None:
        if not rows:
            return

        target = self._table(table)
        prepared = self._prepare(target, rows)

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    await session.execute(insert(target), prepared)
        except (SQLAlchemyError, *_BIND_ERRORS) as e:
            raise StoreError(table, _error_message(e)) from e

        logger.debug(f"Inserted {len(prepared)} rows into {table}")

    async def select(
        self,
        table: str,
        columns: Sequence[str],
        filters: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch ``columns``; list/tuple/set filter values become ``IN`` clauses."""
        target = self._table(table)
        try:
            stmt = select(*(target.c[column] for column in columns))
            for column, value in (filters or {}).items():
                if isinstance(value, (list, tuple, set, frozenset)):
                    stmt = stmt.where(target.c[column].in_(list(value)))
                else:
                    stmt = stmt.where(target.c[column] == value)

            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return [dict(row) for row in result.mappings().all()]
        except KeyError as e:
            raise StoreError(table, f"Unknown column: {e}") from e
        except SQLAlchemyError as e:
            raise StoreError(table, _error_message(e)) from e
