"""
Migrations package for active-orm.

Re-exports the migration interfaces and the ledger that applies them.
"""

from active_orm.migrations.base import Migration, MigrationReport, SchemaMigration, SqlMigration
from active_orm.migrations.ledger import MigrationLedger, load_migrations

__all__ = [
    "Migration",
    "MigrationLedger",
    "MigrationReport",
    "SchemaMigration",
    "SqlMigration",
    "load_migrations",
]
