from __future__ import annotations

from rich.console import Console

from active_orm.migrations.base import MigrationReport, SqlMigration
from active_orm.reporter import build_status_table, print_report, print_status


def _console() -> Console:
    return Console(record=True, width=120, color_system=None)


def test_status_table_lists_every_migration():
    statuses = [
        (SqlMigration("create_tickets", 1, "SELECT 1;"), True),
        (SqlMigration("create_comments", 2, "SELECT 1;"), False),
    ]

    table = build_status_table(statuses, "schema_migrations")

    assert table.row_count == 2
    assert table.caption == "1 applied, 1 pending"


def test_print_status_without_migrations():
    console = _console()

    print_status([], "schema_migrations", console=console)

    assert "No migrations registered." in console.export_text()


def test_print_report_for_halted_run():
    console = _console()
    report = MigrationReport(
        applied=["m1"],
        pending=["m2", "m3"],
        failed="m2",
        error="m2 exploded",
        duration_seconds=0.25,
    )

    print_report(report, console=console)

    text = console.export_text()
    assert "m1" in text
    assert "m2: m2 exploded" in text
    assert "Not attempted: m3" in text
    assert "Finished in 0.250s" in text


def test_print_report_without_applied_migrations():
    console = _console()

    print_report(MigrationReport(applied=[], pending=[], failed=None), console=console)

    assert "No migrations applied." in console.export_text()
