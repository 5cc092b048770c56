"""
Migration ledger: orders registered migrations, diffs them against the
applied set stored in the ledger table, and applies the pending ones.

Usage:
    from active_orm.migrations import MigrationLedger, SqlMigration

    ledger = MigrationLedger(session)
    ledger.register(
        SqlMigration("create_tickets", 20240101000000,
                     "CREATE TABLE tickets (id SERIAL PRIMARY KEY, status TEXT);",
                     "DROP TABLE tickets;"),
    )
    ledger.setup()
    report = ledger.migrate()
    if ledger.failed:
        raise SystemExit(1)

Application is strictly sequential. The first failure stops the run; every
migration applied before it stays applied and recorded.
"""

from __future__ import annotations

import importlib
import time
from typing import Iterable, List, Optional, Set, Tuple, Type

from active_orm.config import get_settings
from active_orm.migrations.base import Migration, MigrationReport, SchemaMigration
from active_orm.session import Session
from active_orm.utils.logging import get_logger

log = get_logger(__name__)


def _ledger_record_type(table_name: str) -> Type[SchemaMigration]:
    if table_name == SchemaMigration.table_name:
        return SchemaMigration
    return type(
        "SchemaMigration",
        (SchemaMigration,),
        {"table_name": table_name, "model_name": "schema_migration"},
    )


def load_migrations(module_path: str) -> List[Migration]:
    """
    Import `module_path` and return its `MIGRATIONS` sequence.

    Raises
    ------
    ValueError
        If the module does not expose MIGRATIONS.
    """
    module = importlib.import_module(module_path)
    migrations = getattr(module, "MIGRATIONS", None)
    if migrations is None:
        raise ValueError(f"Module '{module_path}' does not define MIGRATIONS")
    return list(migrations)


class MigrationLedger:
    def __init__(
        self,
        session: Session,
        migrations: Optional[Iterable[Migration]] = None,
        table_name: Optional[str] = None,
    ) -> None:
        self.session = session
        self.table_name = table_name or get_settings().migrations_table
        self._record_type = _ledger_record_type(self.table_name)
        self._migrations: List[Migration] = []
        self._failed = False
        if migrations:
            self.register(*migrations)

    @property
    def connection(self):
        return self.session.connection

    @property
    def failed(self) -> bool:
        """True when the most recent `migrate()` run stopped on a failure."""
        return self._failed

    @property
    def migrations(self) -> List[Migration]:
        """Registered migrations by ascending timestamp; registration order breaks ties."""
        return sorted(self._migrations, key=lambda migration: migration.timestamp)

    def register(self, *migrations: Migration) -> None:
        known = {migration.id for migration in self._migrations}
        for migration in migrations:
            if migration.id in known:
                raise ValueError(f"Migration '{migration.id}' is already registered")
            known.add(migration.id)
            self._migrations.append(migration)

    def get(self, migration_id: str) -> Migration:
        for migration in self._migrations:
            if migration.id == migration_id:
                return migration
        raise KeyError(f"Unknown migration '{migration_id}'")

    # Ledger table

    def setup(self) -> None:
        """Create the ledger table if it does not exist yet."""
        self.connection.execute(
            f"CREATE TABLE IF NOT EXISTS {self.table_name} (name VARCHAR(255) PRIMARY KEY);"
        )

    def applied(self) -> Set[str]:
        """Names of migrations recorded in the ledger table."""
        rows = self.session.query(self._record_type).pluck(["name"]).execute()
        return {row.name for row in rows}

    def pending(self) -> List[Migration]:
        applied = self.applied()
        return [migration for migration in self.migrations if migration.id not in applied]

    def status(self) -> List[Tuple[Migration, bool]]:
        """Every registered migration in order, paired with whether it is applied."""
        applied = self.applied()
        return [(migration, migration.id in applied) for migration in self.migrations]

    # Application

    def migrate(self) -> MigrationReport:
        """
        Apply pending migrations in order, stopping at the first failure.

        A failure is logged and reported, never raised; check `failed` (or the
        report's `failed` entry) to detect it.
        """
        self._failed = False
        start = time.perf_counter()
        pending = self.pending()
        report = MigrationReport(applied=[], pending=[], failed=None, error=None)

        log.info(
            f"[MIGRATE] {len(pending)} pending migration(s)",
            extra={"pending": [migration.id for migration in pending], "table": self.table_name},
        )

        for migration in pending:
            log.info(f"[MIGRATION START] {migration.id}", extra={"migration": migration.id})
            try:
                migration.up(self.connection)
                self.session.save(self._record_type({"name": migration.id}))
            except Exception as exc:  # noqa: BLE001 - a failed migration halts the run
                log.exception(
                    f"[MIGRATION FAILED] {migration.id}", extra={"migration": migration.id}
                )
                self._failed = True
                report["failed"] = migration.id
                report["error"] = str(exc)
                break
            report["applied"].append(migration.id)
            log.info(f"[MIGRATION APPLIED] {migration.id}", extra={"migration": migration.id})

        applied_now = set(report["applied"])
        report["pending"] = [m.id for m in pending if m.id not in applied_now]
        report["duration_seconds"] = round(time.perf_counter() - start, 3)

        log.info(
            "[MIGRATE COMPLETE]" if not self._failed else "[MIGRATE HALTED]",
            extra={
                "applied": report["applied"],
                "failed": report["failed"],
                "duration": report["duration_seconds"],
            },
        )
        return report

    def up(self, migration: Migration) -> None:
        """Run `migration.up` directly, without consulting or updating the ledger."""
        log.info(f"[MIGRATION UP] {migration.id}", extra={"migration": migration.id})
        migration.up(self.connection)

    def down(self, migration: Migration) -> None:
        """Run `migration.down` directly, without consulting or updating the ledger."""
        log.info(f"[MIGRATION DOWN] {migration.id}", extra={"migration": migration.id})
        migration.down(self.connection)


__all__ = ["MigrationLedger", "load_migrations"]
