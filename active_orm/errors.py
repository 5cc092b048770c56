"""
Error taxonomy for active-orm.

Every error raised by a public persistence or query operation derives from
ActiveRecordError so callers can catch the whole family at once.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from active_orm.domain.models import Record


class ActiveRecordError(Exception):
    """Base class for all mapping-layer failures."""


class RecordNotValid(ActiveRecordError):
    """Validation was requested on save and the record reported errors."""

    def __init__(self, record: "Record", errors: Optional[List[str]] = None) -> None:
        self.record = record
        self.errors = list(errors or [])
        detail = "; ".join(self.errors) or "validation failed"
        super().__init__(f"{type(record).__name__} is not valid: {detail}")


class RecordNotFound(ActiveRecordError):
    """A strict query returned no rows."""

    def __init__(self, attributes: Dict[str, Any]) -> None:
        self.attributes = dict(attributes)
        super().__init__(f"Record not found for {self.attributes!r}")


class AttributeMissing(ActiveRecordError):
    def __init__(self, record: "Record", name: str) -> None:
        self.record = record
        self.name = name
        super().__init__(f"{type(record).__name__} has no attribute '{name}'")


class InvalidAttributeType(ActiveRecordError):
    def __init__(self, record: "Record", name: str, expected_type: str) -> None:
        self.record = record
        self.name = name
        self.expected_type = expected_type
        super().__init__(
            f"{type(record).__name__}.{name} expects a value of type '{expected_type}'"
        )


class ParametersMissing(ActiveRecordError):
    """The record lacks the identifying attributes the operation needs."""

    def __init__(self, record: "Record", names: Optional[List[str]] = None) -> None:
        self.record = record
        self.names = list(names or [])
        super().__init__(
            f"{type(record).__name__} is missing identifying attributes: "
            f"{', '.join(self.names) or 'unknown'}"
        )


class StatementError(ActiveRecordError):
    """The backend rejected or failed to execute a statement."""

    def __init__(self, statement: str, message: str) -> None:
        self.statement = statement
        self.message = message
        super().__init__(f"{message} (statement: {statement})")


__all__ = [
    "ActiveRecordError",
    "RecordNotValid",
    "RecordNotFound",
    "AttributeMissing",
    "InvalidAttributeType",
    "ParametersMissing",
    "StatementError",
]
