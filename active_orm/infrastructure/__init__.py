"""
Infrastructure package for active-orm.

Centralizes database connectivity concerns (connection capability, schema
introspection, pooling). Keep this layer focused on I/O and resource
management, decoupled from query building and change tracking.
"""

from active_orm.infrastructure.connection import (
    ColumnDescriptor,
    Connection,
    PsycopgConnection,
    PsycopgSchemaAdapter,
    Result,
    SchemaAdapter,
    open_connection,
)
from active_orm.infrastructure.db_factory import close_pool, get_sync_connection, get_sync_pool

__all__ = [
    "ColumnDescriptor",
    "Connection",
    "PsycopgConnection",
    "PsycopgSchemaAdapter",
    "Result",
    "SchemaAdapter",
    "open_connection",
    "close_pool",
    "get_sync_connection",
    "get_sync_pool",
]
