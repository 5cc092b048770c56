"""
Statement rendering for single-record writes and bulk deletes.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Mapping, Optional, Sequence

from active_orm.domain.models import Record
from active_orm.domain.values import AttributeValue, RelatedRows


class SQLAction(str, Enum):
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

    def clause(self, table_name: str, projection: str = "*", assignments: str = "") -> str:
        """Leading part of a statement for this action."""
        if self is SQLAction.SELECT:
            return f"SELECT {projection} FROM {table_name}"
        if self is SQLAction.INSERT:
            return f"INSERT INTO {table_name}"
        if self is SQLAction.UPDATE:
            return f"UPDATE {table_name} SET {assignments}"
        return f"DELETE FROM {table_name}"


def writable(attributes: Mapping[str, AttributeValue]) -> Dict[str, AttributeValue]:
    """Drop values that never reach the backend (eager-loaded row groups)."""
    return {
        name: value for name, value in attributes.items() if not isinstance(value, RelatedRows)
    }


def assignments(changes: Mapping[str, AttributeValue]) -> str:
    return ", ".join(f"{name} = {value.persisted()}" for name, value in changes.items())


def insert_statement(record: Record) -> str:
    """
    INSERT for a new record. Without an identity the statement returns the
    generated primary key.
    """
    pk = record.primary_key
    values = {
        name: value
        for name, value in writable(record.attributes).items()
        if not (name == pk and value.is_null)
    }
    head = SQLAction.INSERT.clause(record.table_name)
    if values:
        columns = ", ".join(values)
        literals = ", ".join(value.persisted() for value in values.values())
        statement = f"{head} ({columns}) VALUES ({literals})"
    else:
        statement = f"{head} DEFAULT VALUES"
    if record.identity.is_null:
        statement += f" RETURNING {pk}"
    return statement + ";"


def update_statement(record: Record, changes: Mapping[str, AttributeValue]) -> Optional[str]:
    """UPDATE of `changes` for a persisted record; None when nothing is left to write."""
    pk = record.primary_key
    values = {name: value for name, value in writable(changes).items() if name != pk}
    if not values:
        return None
    head = SQLAction.UPDATE.clause(record.table_name, assignments=assignments(values))
    return f"{head} WHERE {pk} = {record.identity.persisted()};"


def delete_statement(table_name: str, primary_key: str, identities: Sequence[AttributeValue]) -> str:
    ids = ", ".join(identity.persisted() for identity in identities)
    return f"{SQLAction.DELETE.clause(table_name)} WHERE {primary_key} IN ({ids});"


__all__ = [
    "SQLAction",
    "assignments",
    "delete_statement",
    "insert_statement",
    "update_statement",
    "writable",
]
