"""
Connection capability consumed by the relation builder, sessions and the
migration ledger.

`Connection` and `SchemaAdapter` are structural protocols so tests and other
drivers can supply their own implementations. The psycopg-backed classes in
this module are the production implementations.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, Iterator, List, Optional, Protocol, runtime_checkable

import psycopg
from psycopg_pool import ConnectionPool

from active_orm.config import get_settings
from active_orm.domain.values import quote
from active_orm.errors import StatementError
from active_orm.infrastructure.db_factory import (
    apply_statement_timeout,
    get_sync_connection,
    get_sync_pool,
)
from active_orm.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class Result:
    """
    Tabular result of a query: ordered column names plus ordered rows.
    """

    columns: List[str] = field(default_factory=list)
    rows: List[List[Any]] = field(default_factory=list)

    @property
    def hashes(self) -> List[Dict[str, Any]]:
        """Rows as column name -> value mappings."""
        return [dict(zip(self.columns, row)) for row in self.rows]

    def column(self, name: str) -> List[Any]:
        index = self.columns.index(name)
        return [row[index] for row in self.rows]

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[List[Any]]:
        return iter(self.rows)


@dataclass(frozen=True)
class ColumnDescriptor:
    name: str
    is_primary_key: bool = False


@runtime_checkable
class Connection(Protocol):
    """
    Blocking statement execution boundary.

    `timeout` (seconds) is an optional deadline for the single statement;
    implementations raise StatementError when it is exceeded.
    """

    def execute(self, statement: str, timeout: Optional[float] = None) -> None:
        ...

    def execute_query(self, statement: str, timeout: Optional[float] = None) -> Result:
        ...


@runtime_checkable
class SchemaAdapter(Protocol):
    def structure(self, table_name: str) -> List[ColumnDescriptor]:
        ...


def _timeout_ms(timeout: Optional[float], default_ms: int) -> int:
    if timeout is not None:
        return max(int(timeout * 1000), 1)
    return default_ms


class PsycopgConnection:
    """
    Connection capability over psycopg.

    Wraps either a dedicated connection or a ConnectionPool. Both run every
    statement inside an explicit `transaction()` block: committed when the
    statement succeeds, rolled back when it raises.
    """

    def __init__(
        self,
        connection: Optional[psycopg.Connection] = None,
        pool: Optional[ConnectionPool] = None,
        statement_timeout_ms: Optional[int] = None,
    ) -> None:
        if (connection is None) == (pool is None):
            raise ValueError("Provide exactly one of connection or pool")
        self._connection = connection
        self._pool = pool
        if statement_timeout_ms is None:
            statement_timeout_ms = get_settings().db_statement_timeout_ms
        self.statement_timeout_ms = statement_timeout_ms

    @contextmanager
    def _checkout(self) -> Generator[psycopg.Connection, None, None]:
        if self._pool is None:
            yield self._connection  # type: ignore[misc]
            return
        with self._pool.connection() as conn:
            yield conn

    @contextmanager
    def _cursor(
        self, statement: str, timeout: Optional[float]
    ) -> Generator[psycopg.Cursor, None, None]:
        timeout_ms = _timeout_ms(timeout, self.statement_timeout_ms)
        try:
            with self._checkout() as conn, conn.transaction(), conn.cursor() as cur:
                apply_statement_timeout(cur, timeout_ms)
                yield cur
        except psycopg.Error as exc:
            log.debug("Statement failed", extra={"statement": statement, "error": str(exc)})
            raise StatementError(statement, str(exc)) from exc

    def execute(self, statement: str, timeout: Optional[float] = None) -> None:
        with self._cursor(statement, timeout) as cur:
            cur.execute(statement)  # type: ignore[arg-type]

    def execute_query(self, statement: str, timeout: Optional[float] = None) -> Result:
        with self._cursor(statement, timeout) as cur:
            cur.execute(statement)  # type: ignore[arg-type]
            columns = [column.name for column in cur.description or []]
            rows = [list(row) for row in cur.fetchall()] if cur.description else []
        return Result(columns=columns, rows=rows)

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()


class PsycopgSchemaAdapter:
    """
    Reads table structure from PostgreSQL's information_schema.
    """

    def __init__(self, connection: Connection) -> None:
        self._connection = connection

    def structure(self, table_name: str) -> List[ColumnDescriptor]:
        statement = (
            "SELECT c.column_name, "
            "CASE WHEN k.column_name IS NULL THEN 0 ELSE 1 END AS is_primary_key "
            "FROM information_schema.columns c "
            "LEFT JOIN information_schema.table_constraints t "
            "ON t.table_schema = c.table_schema AND t.table_name = c.table_name "
            "AND t.constraint_type = 'PRIMARY KEY' "
            "LEFT JOIN information_schema.key_column_usage k "
            "ON k.constraint_name = t.constraint_name AND k.table_schema = t.table_schema "
            "AND k.table_name = c.table_name AND k.column_name = c.column_name "
            f"WHERE c.table_schema = current_schema() AND c.table_name = {quote(table_name)} "
            "ORDER BY c.ordinal_position;"
        )
        result = self._connection.execute_query(statement)
        return [
            ColumnDescriptor(name=row["column_name"], is_primary_key=bool(row["is_primary_key"]))
            for row in result.hashes
        ]


def open_connection(pooled: bool = True, dsn: Optional[str] = None) -> PsycopgConnection:
    """
    Build a PsycopgConnection from settings.

    Parameters
    ----------
    pooled : bool
        Use the shared pool managed by PoolManager. When False, or when a DSN
        override is given, a dedicated connection is opened with retry.
    dsn : str | None
        Optional DSN override, mainly for tests and tooling.
    """
    if pooled and dsn is None:
        return PsycopgConnection(pool=get_sync_pool())
    return PsycopgConnection(connection=get_sync_connection(dsn))


__all__ = [
    "Result",
    "ColumnDescriptor",
    "Connection",
    "SchemaAdapter",
    "PsycopgConnection",
    "PsycopgSchemaAdapter",
    "open_connection",
]
