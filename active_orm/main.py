from __future__ import annotations

import sys
from typing import Optional

import typer

from active_orm.config import get_settings
from active_orm.migrations.base import Migration
from active_orm.migrations.ledger import MigrationLedger, load_migrations
from active_orm.reporter import print_report, print_status
from active_orm.session import Session
from active_orm.utils.logging import configure_logging

app = typer.Typer(help="active-orm migration CLI.")

ModuleOption = typer.Option(
    None,
    "--module",
    "-m",
    help="Dotted path of a module exposing MIGRATIONS (default from MIGRATIONS_MODULE).",
)


def _ledger(module: Optional[str]) -> MigrationLedger:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    module_path = module or settings.migrations_module
    if not module_path:
        typer.echo("No migrations module given (use --module or MIGRATIONS_MODULE).", err=True)
        raise typer.Exit(code=2)
    session = Session.from_settings(pooled=False)
    ledger = MigrationLedger(session, load_migrations(module_path))
    ledger.setup()
    return ledger


def _find(ledger: MigrationLedger, migration_id: str) -> Migration:
    try:
        return ledger.get(migration_id)
    except KeyError:
        ledger.session.close()
        typer.echo(f"Unknown migration '{migration_id}'.", err=True)
        raise typer.Exit(code=2) from None


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"statement_timeout_ms={settings.db_statement_timeout_ms} "
        f"pool=({settings.db_pool_min_size},{settings.db_pool_max_size}) | "
        f"ledger={settings.migrations_table} module={settings.migrations_module or '-'}"
    )


@app.command()
def status(module: Optional[str] = ModuleOption) -> None:
    """
    List registered migrations and whether each one is applied.
    """
    ledger = _ledger(module)
    try:
        print_status(ledger.status(), ledger.table_name)
    finally:
        ledger.session.close()


@app.command()
def migrate(module: Optional[str] = ModuleOption) -> None:
    """
    Apply pending migrations in timestamp order, stopping at the first failure.
    """
    ledger = _ledger(module)
    try:
        report = ledger.migrate()
        print_report(report)
    finally:
        ledger.session.close()
    if ledger.failed:
        raise typer.Exit(code=1)


@app.command()
def up(migration_id: str, module: Optional[str] = ModuleOption) -> None:
    """
    Run one migration's up procedure without touching the ledger.
    """
    ledger = _ledger(module)
    migration = _find(ledger, migration_id)
    try:
        ledger.up(migration)
    finally:
        ledger.session.close()
    typer.echo(f"Ran up for {migration_id}.")


@app.command()
def down(migration_id: str, module: Optional[str] = ModuleOption) -> None:
    """
    Run one migration's down procedure without touching the ledger.
    """
    ledger = _ledger(module)
    migration = _find(ledger, migration_id)
    try:
        ledger.down(migration)
    finally:
        ledger.session.close()
    typer.echo(f"Ran down for {migration_id}.")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
