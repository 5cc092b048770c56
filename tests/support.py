"""
Test doubles and sample record types shared by the unit tests.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from active_orm.domain.models import Field, Record
from active_orm.domain.values import DateValue, IntValue, StringValue
from active_orm.errors import StatementError
from active_orm.infrastructure.connection import ColumnDescriptor, Result


class Ticket(Record):
    table_name = "tickets"

    id = Field(IntValue)
    status = Field(StringValue)
    title = Field(StringValue)
    created_at = Field(DateValue)


class Comment(Record):
    table_name = "comments"

    id = Field(IntValue)
    ticket_id = Field(IntValue)
    body = Field(StringValue)


class Watcher(Record):
    table_name = "watchers"

    id = Field(IntValue)
    ticket_id = Field(IntValue)
    email = Field(StringValue)


class FakeConnection:
    """
    In-memory Connection capability.

    Records every statement, answers queries with the first canned Result whose
    fragment occurs in the statement, and raises StatementError for statements
    containing a registered failure fragment.
    """

    def __init__(self) -> None:
        self.statements: List[str] = []
        self.timeouts: List[Optional[float]] = []
        self._responses: List[Tuple[str, Result]] = []
        self._failures: Dict[str, str] = {}

    def respond(self, fragment: str, columns: List[str], rows: List[List[object]]) -> None:
        self._responses.append((fragment, Result(columns=columns, rows=rows)))

    def fail_on(self, fragment: str, message: str = "rejected by backend") -> None:
        self._failures[fragment] = message

    def _record(self, statement: str, timeout: Optional[float]) -> None:
        self.statements.append(statement)
        self.timeouts.append(timeout)
        for fragment, message in self._failures.items():
            if fragment in statement:
                raise StatementError(statement, message)

    def execute(self, statement: str, timeout: Optional[float] = None) -> None:
        self._record(statement, timeout)

    def execute_query(self, statement: str, timeout: Optional[float] = None) -> Result:
        self._record(statement, timeout)
        for fragment, result in self._responses:
            if fragment in statement:
                return result
        return Result()


class FakeSchemaAdapter:
    def __init__(self, structures: Optional[Dict[str, List[ColumnDescriptor]]] = None) -> None:
        self.structures = structures or {}
        self.calls: List[str] = []

    def structure(self, table_name: str) -> List[ColumnDescriptor]:
        self.calls.append(table_name)
        return list(self.structures.get(table_name, []))
