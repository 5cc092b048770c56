"""
Domain package for active-orm.

Exports the record base class, its field declarations, and the attribute
value union used across the relation builder, sessions and change tracking.
"""

from active_orm.domain.models import Action, Field, Phase, Record, RecordSchema
from active_orm.domain.values import (
    NULL,
    AttributeValue,
    BoolValue,
    DateValue,
    FloatValue,
    IntValue,
    JsonValue,
    NullValue,
    RecordRef,
    RelatedRows,
    StringValue,
    wrap,
)

__all__ = [
    "Action",
    "Field",
    "Phase",
    "Record",
    "RecordSchema",
    "NULL",
    "AttributeValue",
    "BoolValue",
    "DateValue",
    "FloatValue",
    "IntValue",
    "JsonValue",
    "NullValue",
    "RecordRef",
    "RelatedRows",
    "StringValue",
    "wrap",
]
