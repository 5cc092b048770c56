"""
active-orm - an object-relational mapping layer for PostgreSQL.

Application code declares records as typed entities and lets the package
persist, query and migrate them without hand-written SQL:

- A chainable relation builder compiling WHERE/ORDER/LIMIT/OFFSET/pluck
  chains into statements, with eager loading of related tables
- Snapshot-based change tracking reporting dirty attributes per record
- Lifecycle callbacks dispatched around every write
- A migration ledger applying ordered schema changes exactly once
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from active_orm.config import Settings, get_settings
from active_orm.domain import (
    NULL,
    Action,
    AttributeValue,
    BoolValue,
    DateValue,
    Field,
    FloatValue,
    IntValue,
    JsonValue,
    NullValue,
    Phase,
    Record,
    RecordRef,
    RecordSchema,
    RelatedRows,
    StringValue,
    wrap,
)
from active_orm.errors import (
    ActiveRecordError,
    AttributeMissing,
    InvalidAttributeType,
    ParametersMissing,
    RecordNotFound,
    RecordNotValid,
    StatementError,
)
from active_orm.infrastructure.connection import (
    ColumnDescriptor,
    Connection,
    Result,
    SchemaAdapter,
    open_connection,
)
from active_orm.migrations import Migration, MigrationLedger, SqlMigration
from active_orm.relation import Direction, RelationBuilder
from active_orm.session import Session
from active_orm.tracking import CallbackRegistry, SnapshotStore
from active_orm.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Records and values
    "Action",
    "AttributeValue",
    "BoolValue",
    "DateValue",
    "Field",
    "FloatValue",
    "IntValue",
    "JsonValue",
    "NULL",
    "NullValue",
    "Phase",
    "Record",
    "RecordRef",
    "RecordSchema",
    "RelatedRows",
    "StringValue",
    "wrap",
    # Errors
    "ActiveRecordError",
    "AttributeMissing",
    "InvalidAttributeType",
    "ParametersMissing",
    "RecordNotFound",
    "RecordNotValid",
    "StatementError",
    # Connectivity
    "ColumnDescriptor",
    "Connection",
    "Result",
    "SchemaAdapter",
    "open_connection",
    # Querying and tracking
    "Direction",
    "RelationBuilder",
    "Session",
    "CallbackRegistry",
    "SnapshotStore",
    # Migrations
    "Migration",
    "MigrationLedger",
    "SqlMigration",
    # Logging
    "configure_logging",
    "get_logger",
]
