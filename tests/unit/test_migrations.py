from __future__ import annotations

import re
from typing import List, Optional

import pytest

from active_orm.infrastructure.connection import Result
from active_orm.migrations.base import Migration, SqlMigration
from active_orm.migrations.ledger import MigrationLedger, load_migrations
from active_orm.session import Session
from tests.support import FakeConnection, FakeSchemaAdapter

INSERT_PATTERN = re.compile(r"^INSERT INTO (\w+) \(name\) VALUES \('([^']*)'\);$")


class LedgerConnection(FakeConnection):
    """FakeConnection that keeps ledger tables in memory."""

    def __init__(self) -> None:
        super().__init__()
        self.tables = {}

    def execute(self, statement: str, timeout: Optional[float] = None) -> None:
        super().execute(statement, timeout)
        match = INSERT_PATTERN.match(statement)
        if match:
            self.tables.setdefault(match.group(1), []).append(match.group(2))

    def execute_query(self, statement: str, timeout: Optional[float] = None) -> Result:
        self._record(statement, timeout)
        match = re.match(r"^SELECT name FROM (\w+);$", statement)
        if match:
            names = self.tables.get(match.group(1), [])
            return Result(columns=["name"], rows=[[name] for name in names])
        return Result()


class RecordingMigration(Migration):
    def __init__(self, id: str, timestamp: int, calls: List[str], fail: bool = False) -> None:
        super().__init__(id=id, timestamp=timestamp)
        self.calls = calls
        self.fail = fail

    def up(self, connection) -> None:
        self.calls.append(f"up {self.id}")
        if self.fail:
            raise RuntimeError(f"{self.id} exploded")

    def down(self, connection) -> None:
        self.calls.append(f"down {self.id}")


@pytest.fixture
def ledger_connection() -> LedgerConnection:
    return LedgerConnection()


@pytest.fixture
def ledger_session(ledger_connection: LedgerConnection) -> Session:
    return Session(ledger_connection, adapter=FakeSchemaAdapter())


def _ledger(session: Session, *migrations: Migration) -> MigrationLedger:
    return MigrationLedger(session, migrations, table_name="schema_migrations")


def test_setup_creates_ledger_table(ledger_session, ledger_connection):
    _ledger(ledger_session).setup()

    assert ledger_connection.statements == [
        "CREATE TABLE IF NOT EXISTS schema_migrations (name VARCHAR(255) PRIMARY KEY);"
    ]


def test_migrate_applies_pending_in_timestamp_order(ledger_session, ledger_connection):
    calls: List[str] = []
    ledger = _ledger(
        ledger_session,
        RecordingMigration("add_index", 3, calls),
        RecordingMigration("create_tickets", 1, calls),
        RecordingMigration("create_comments", 2, calls),
    )

    report = ledger.migrate()

    assert calls == ["up create_tickets", "up create_comments", "up add_index"]
    assert report["applied"] == ["create_tickets", "create_comments", "add_index"]
    assert report["pending"] == []
    assert report["failed"] is None
    assert ledger_connection.tables["schema_migrations"] == report["applied"]
    assert not ledger.failed


def test_equal_timestamps_keep_registration_order(ledger_session):
    calls: List[str] = []
    ledger = _ledger(
        ledger_session,
        RecordingMigration("b", 1, calls),
        RecordingMigration("a", 1, calls),
    )

    ledger.migrate()

    assert calls == ["up b", "up a"]


def test_migrate_twice_applies_each_migration_once(ledger_session, ledger_connection):
    calls: List[str] = []
    ledger = _ledger(
        ledger_session,
        RecordingMigration("m1", 1, calls),
        RecordingMigration("m2", 2, calls),
    )

    ledger.migrate()
    second = ledger.migrate()

    assert calls == ["up m1", "up m2"]
    assert second["applied"] == []
    assert ledger_connection.tables["schema_migrations"] == ["m1", "m2"]


def test_failure_halts_run_and_keeps_earlier_migrations(ledger_session, ledger_connection):
    calls: List[str] = []
    ledger = _ledger(
        ledger_session,
        RecordingMigration("m1", 1, calls),
        RecordingMigration("m2", 2, calls, fail=True),
        RecordingMigration("m3", 3, calls),
    )

    report = ledger.migrate()

    assert calls == ["up m1", "up m2"]
    assert ledger.failed
    assert report["applied"] == ["m1"]
    assert report["failed"] == "m2"
    assert report["error"] == "m2 exploded"
    assert report["pending"] == ["m2", "m3"]
    assert ledger_connection.tables["schema_migrations"] == ["m1"]
    assert [migration.id for migration in ledger.pending()] == ["m2", "m3"]


def test_failed_flag_resets_on_next_run(ledger_session):
    calls: List[str] = []
    broken = RecordingMigration("m1", 1, calls, fail=True)
    ledger = _ledger(ledger_session, broken)

    ledger.migrate()
    assert ledger.failed

    broken.fail = False
    report = ledger.migrate()

    assert not ledger.failed
    assert report["applied"] == ["m1"]


def test_ledger_write_failure_halts_run(ledger_session, ledger_connection):
    calls: List[str] = []
    ledger_connection.fail_on("VALUES ('m1')")
    ledger = _ledger(
        ledger_session,
        RecordingMigration("m1", 1, calls),
        RecordingMigration("m2", 2, calls),
    )

    report = ledger.migrate()

    assert calls == ["up m1"]
    assert ledger.failed
    assert report["failed"] == "m1"
    assert "schema_migrations" not in ledger_connection.tables


def test_pending_is_computed_by_id(ledger_session, ledger_connection):
    ledger_connection.tables["schema_migrations"] = ["m2", "unknown_elsewhere"]
    calls: List[str] = []
    ledger = _ledger(
        ledger_session,
        RecordingMigration("m1", 1, calls),
        RecordingMigration("m2", 2, calls),
        RecordingMigration("m3", 3, calls),
    )

    assert [migration.id for migration in ledger.pending()] == ["m1", "m3"]
    assert [(m.id, applied) for m, applied in ledger.status()] == [
        ("m1", False),
        ("m2", True),
        ("m3", False),
    ]


def test_direct_up_and_down_leave_ledger_untouched(ledger_session, ledger_connection):
    calls: List[str] = []
    migration = RecordingMigration("m1", 1, calls)
    ledger = _ledger(ledger_session, migration)

    ledger.up(migration)
    ledger.down(migration)

    assert calls == ["up m1", "down m1"]
    assert ledger_connection.statements == []
    assert [m.id for m in ledger.pending()] == ["m1"]


def test_custom_table_name(ledger_session, ledger_connection):
    ledger = MigrationLedger(
        ledger_session, [RecordingMigration("m1", 1, [])], table_name="app_migrations"
    )

    ledger.setup()
    ledger.migrate()

    assert ledger_connection.statements[0] == (
        "CREATE TABLE IF NOT EXISTS app_migrations (name VARCHAR(255) PRIMARY KEY);"
    )
    assert "INSERT INTO app_migrations (name) VALUES ('m1');" in ledger_connection.statements
    assert ledger.applied() == {"m1"}


def test_duplicate_registration_raises(ledger_session):
    ledger = _ledger(ledger_session, RecordingMigration("m1", 1, []))

    with pytest.raises(ValueError):
        ledger.register(RecordingMigration("m1", 2, []))


def test_get_unknown_migration_raises_key_error(ledger_session):
    with pytest.raises(KeyError):
        _ledger(ledger_session).get("missing")


def test_sql_migration_runs_statements_in_order():
    connection = FakeConnection()
    migration = SqlMigration(
        "create_tickets",
        20240101000000,
        ["CREATE TABLE tickets (id SERIAL PRIMARY KEY);", "CREATE INDEX tickets_id ON tickets (id);"],
        "DROP TABLE tickets;",
    )

    migration.up(connection)
    migration.down(connection)

    assert connection.statements == [
        "CREATE TABLE tickets (id SERIAL PRIMARY KEY);",
        "CREATE INDEX tickets_id ON tickets (id);",
        "DROP TABLE tickets;",
    ]


def test_sql_migration_failure_is_reported(ledger_session, ledger_connection):
    ledger_connection.fail_on("CREATE TABLE tickets", "syntax error")
    ledger = _ledger(
        ledger_session, SqlMigration("create_tickets", 1, "CREATE TABLE tickets ();")
    )

    report = ledger.migrate()

    assert ledger.failed
    assert "syntax error" in report["error"]


def test_migration_requires_id():
    with pytest.raises(ValueError):
        RecordingMigration("", 1, [])


def test_load_migrations_requires_migrations_attribute():
    with pytest.raises(ValueError):
        load_migrations("tests.support")
