"""
Migration interfaces and result contracts for active-orm.

Concrete migrations subclass Migration and implement `up`/`down` against a
Connection; SqlMigration covers the common case of plain SQL statements.
The ledger returns a MigrationReport TypedDict to standardize CLI output.
"""

from __future__ import annotations

import abc
from typing import ClassVar, List, Optional, Sequence, TypedDict, Union

from active_orm.domain.models import Field, Record
from active_orm.domain.values import StringValue
from active_orm.infrastructure.connection import Connection


class MigrationReport(TypedDict, total=False):
    """
    Outcome of one `MigrationLedger.migrate()` run.
    """

    applied: List[str]
    pending: List[str]
    failed: Optional[str]
    error: Optional[str]
    duration_seconds: float


class Migration(abc.ABC):
    """
    One schema change.

    Subclasses set `id` (also the name recorded in the ledger) and
    `timestamp` (ordering key), either as class attributes or through the
    constructor, and implement `up` and `down`.
    """

    id: ClassVar[str] = ""
    timestamp: ClassVar[int] = 0

    def __init__(self, id: Optional[str] = None, timestamp: Optional[int] = None) -> None:
        if id is not None:
            self.id = id  # type: ignore[misc]
        if timestamp is not None:
            self.timestamp = timestamp  # type: ignore[misc]
        if not self.id:
            raise ValueError(f"{type(self).__name__} needs an id")

    @abc.abstractmethod
    def up(self, connection: Connection) -> None:  # pragma: no cover - interface only
        """Apply the change."""
        raise NotImplementedError

    @abc.abstractmethod
    def down(self, connection: Connection) -> None:  # pragma: no cover - interface only
        """Revert the change."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id} @{self.timestamp}>"


Statements = Union[str, Sequence[str]]


def _as_list(statements: Optional[Statements]) -> List[str]:
    if statements is None:
        return []
    if isinstance(statements, str):
        return [statements]
    return list(statements)


class SqlMigration(Migration):
    """Migration made of plain SQL statements executed in order."""

    def __init__(
        self,
        id: str,
        timestamp: int,
        up_sql: Statements,
        down_sql: Optional[Statements] = None,
    ) -> None:
        super().__init__(id=id, timestamp=timestamp)
        self.up_sql = _as_list(up_sql)
        self.down_sql = _as_list(down_sql)

    def up(self, connection: Connection) -> None:
        for statement in self.up_sql:
            connection.execute(statement)

    def down(self, connection: Connection) -> None:
        for statement in self.down_sql:
            connection.execute(statement)


class SchemaMigration(Record):
    """Ledger row naming an applied migration."""

    table_name = "schema_migrations"
    primary_key = "name"

    name = Field(StringValue)


__all__ = [
    "Migration",
    "MigrationReport",
    "SchemaMigration",
    "SqlMigration",
]
