"""Generic row store over a single table.

Predicates are SQL fragments with named bind parameters, e.g.
`table.fetch('"id" = :id', {"id": 3})`. Values are always bound, never
interpolated into the statement.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Row
from sqlalchemy.exc import SQLAlchemyError

from offcron.db.engine import Database
from offcron.errors import StorageError

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(value: datetime) -> str:
    """Render a datetime as second-resolution UTC text for storage."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse stored timestamp text back into an aware UTC datetime."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=UTC)


def _quote(identifier: str) -> str:
    if not identifier.replace("_", "").isalnum():
        raise ValueError(f"Invalid column name: {identifier!r}")
    return f'"{identifier}"'


class Table:
    """fetch/insert/update/delete over one table of a Database."""

    def __init__(self, database: Database, name: str) -> None:
        self._db = database
        self._name = _quote(name)

    @property
    def name(self) -> str:
        return self._name.strip('"')

    async def fetch(
        self,
        where: str | None = None,
        params: Mapping[str, Any] | None = None,
        *,
        order_by: str = "rowid",
    ) -> list[Row]:
        """Fetch rows matching the predicate, in store order."""
        sql = f"SELECT * FROM {self._name}"
        if where:
            sql += f" WHERE {where}"
        sql += f" ORDER BY {order_by}"
        try:
            async with self._db.session() as session:
                result = await session.execute(text(sql), dict(params or {}))
                return list(result.fetchall())
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to fetch from {self.name}: {e}") from e

    async def count(
        self, where: str | None = None, params: Mapping[str, Any] | None = None
    ) -> int:
        sql = f"SELECT COUNT(*) FROM {self._name}"
        if where:
            sql += f" WHERE {where}"
        try:
            async with self._db.session() as session:
                result = await session.execute(text(sql), dict(params or {}))
                return int(result.scalar_one())
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to count {self.name}: {e}") from e

    async def insert(self, fields: Mapping[str, Any]) -> int:
        """Insert a row and return its generated id."""
        columns = ", ".join(_quote(k) for k in fields)
        values = ", ".join(f":{k}" for k in fields)
        sql = f"INSERT INTO {self._name} ({columns}) VALUES ({values})"
        try:
            async with self._db.session() as session:
                result = await session.execute(text(sql), dict(fields))
                row_id = result.lastrowid
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to insert into {self.name}: {e}") from e
        if row_id is None:
            raise StorageError(f"Insert into {self.name} returned no id")
        return int(row_id)

    async def update(
        self,
        fields: Mapping[str, Any],
        where: str,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """Update matching rows; returns the number of rows touched."""
        # Field binds are prefixed so they cannot collide with predicate binds
        assignments = ", ".join(f"{_quote(k)} = :set_{k}" for k in fields)
        sql = f"UPDATE {self._name} SET {assignments} WHERE {where}"
        bound = {f"set_{k}": v for k, v in fields.items()}
        bound.update(params or {})
        try:
            async with self._db.session() as session:
                result = await session.execute(text(sql), bound)
                return result.rowcount
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update {self.name}: {e}") from e

    async def delete(
        self, where: str, params: Mapping[str, Any] | None = None
    ) -> int:
        """Delete matching rows; returns the number of rows removed."""
        sql = f"DELETE FROM {self._name} WHERE {where}"
        try:
            async with self._db.session() as session:
                result = await session.execute(text(sql), dict(params or {}))
                return result.rowcount
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete from {self.name}: {e}") from e


def in_clause(
    column: str, values: Sequence[Any], prefix: str = "v"
) -> tuple[str, dict[str, Any]]:
    """Build an `IN (...)` predicate with one bind per value."""
    binds = {f"{prefix}{i}": value for i, value in enumerate(values)}
    placeholders = ", ".join(f":{name}" for name in binds)
    return f"{_quote(column)} IN ({placeholders})", binds
