"""
Attribute values for active-orm records.

Each variant is a frozen Pydantic model. Equality is structural per variant:
two values compare equal only when they are the same variant holding equal
payloads, so comparing a string with an integer is simply unequal.

Every persistable variant knows its persisted representation, the literal
that is spliced into generated SQL.
"""
from __future__ import annotations

import copy
import json
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Tuple, Union

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from active_orm.domain.models import Record


def quote(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


class AttributeValue(BaseModel):
    """
    Base of the attribute value union.
    """

    tag: ClassVar[str] = "value"

    model_config = ConfigDict(frozen=True, strict=True)

    @property
    def is_null(self) -> bool:
        return False

    def native(self) -> Any:
        """Return the plain Python value carried by this variant."""
        return getattr(self, "value", None)

    def persisted(self) -> str:  # pragma: no cover - overridden by every variant
        raise NotImplementedError

    def __str__(self) -> str:
        return self.persisted()


class NullValue(AttributeValue):
    tag: ClassVar[str] = "null"

    @property
    def is_null(self) -> bool:
        return True

    def persisted(self) -> str:
        return "NULL"


class StringValue(AttributeValue):
    tag: ClassVar[str] = "string"
    value: str

    def persisted(self) -> str:
        return quote(self.value)


class IntValue(AttributeValue):
    tag: ClassVar[str] = "integer"
    value: int

    def persisted(self) -> str:
        return str(self.value)


class FloatValue(AttributeValue):
    tag: ClassVar[str] = "float"
    value: float

    def persisted(self) -> str:
        return repr(self.value)


class BoolValue(AttributeValue):
    tag: ClassVar[str] = "boolean"
    value: bool

    def persisted(self) -> str:
        return "1" if self.value else "0"


class DateValue(AttributeValue):
    tag: ClassVar[str] = "date"
    value: Union[datetime, date]

    def persisted(self) -> str:
        if isinstance(self.value, datetime):
            return quote(self.value.isoformat(sep=" "))
        return quote(self.value.isoformat())


class RecordRef(AttributeValue):
    """Reference to another record by table and identity."""

    tag: ClassVar[str] = "record"
    table: str
    identity: Any = None

    def native(self) -> Any:
        return self.identity

    def persisted(self) -> str:
        return wrap(self.identity).persisted()


class JsonValue(AttributeValue):
    """json/jsonb document: a mapping or a list of plain values."""

    tag: ClassVar[str] = "json"
    value: Any

    def native(self) -> Any:
        return copy.deepcopy(self.value)

    def persisted(self) -> str:
        return quote(json.dumps(self.value, default=str))


class RelatedRows(AttributeValue):
    """Rows of an eager-loaded table grouped under one owning record."""

    tag: ClassVar[str] = "rows"
    rows: Tuple[Dict[str, Any], ...] = ()

    def native(self) -> Any:
        return [dict(row) for row in self.rows]

    def persisted(self) -> str:
        raise TypeError("eager-loaded rows have no persisted representation")

    def __len__(self) -> int:
        return len(self.rows)


NULL = NullValue()


def wrap(raw: Any) -> AttributeValue:
    """
    Convert a plain Python value into its AttributeValue variant.

    Raises
    ------
    TypeError
        If the value has no matching variant.
    """
    # Local import keeps domain.models free to import this module.
    from active_orm.domain.models import Record

    if isinstance(raw, AttributeValue):
        return raw
    if raw is None:
        return NULL
    # bool before int: bool is an int subclass
    if isinstance(raw, bool):
        return BoolValue(value=raw)
    if isinstance(raw, int):
        return IntValue(value=raw)
    if isinstance(raw, (float, Decimal)):
        return FloatValue(value=float(raw))
    if isinstance(raw, str):
        return StringValue(value=raw)
    if isinstance(raw, (datetime, date)):
        return DateValue(value=raw)
    if isinstance(raw, Record):
        return record_ref(raw)
    if isinstance(raw, uuid.UUID):
        return StringValue(value=str(raw))
    if isinstance(raw, (list, tuple)) and raw and all(isinstance(row, dict) for row in raw):
        return RelatedRows(rows=tuple(dict(row) for row in raw))
    if isinstance(raw, (dict, list, tuple)):
        return JsonValue(value=copy.deepcopy(raw if isinstance(raw, dict) else list(raw)))
    raise TypeError(f"Unsupported attribute value {raw!r} ({type(raw).__name__})")


def record_ref(record: "Record") -> RecordRef:
    identity = record.identity
    return RecordRef(
        table=record.table_name,
        identity=None if identity.is_null else identity.native(),
    )


def unwrap(value: AttributeValue) -> Any:
    return value.native()


__all__ = [
    "AttributeValue",
    "NullValue",
    "StringValue",
    "IntValue",
    "FloatValue",
    "BoolValue",
    "DateValue",
    "RecordRef",
    "JsonValue",
    "RelatedRows",
    "NULL",
    "quote",
    "wrap",
    "unwrap",
    "record_ref",
]
