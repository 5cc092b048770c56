from __future__ import annotations

from typing import List, Optional, Tuple

from rich import box
from rich.console import Console
from rich.table import Table

from active_orm.migrations.base import Migration, MigrationReport


def build_status_table(statuses: List[Tuple[Migration, bool]], table_name: str) -> Table:
    """
    Build a rich table listing registered migrations in application order.
    """
    applied = sum(1 for _, is_applied in statuses if is_applied)
    table = Table(
        title=f"Migrations ({table_name})",
        box=box.ROUNDED,
        caption=f"{applied} applied, {len(statuses) - applied} pending",
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("Migration", style="cyan", no_wrap=True)
    table.add_column("Timestamp", justify="right", style="magenta")
    table.add_column("Status", justify="center")

    for index, (migration, is_applied) in enumerate(statuses, start=1):
        status = "[green]applied[/green]" if is_applied else "[yellow]pending[/yellow]"
        table.add_row(str(index), migration.id, str(migration.timestamp), status)
    return table


def print_status(
    statuses: List[Tuple[Migration, bool]],
    table_name: str,
    console: Optional[Console] = None,
) -> None:
    console = console or Console()
    if not statuses:
        console.print("[yellow]No migrations registered.[/yellow]")
        return
    console.print(build_status_table(statuses, table_name))


def print_report(report: MigrationReport, console: Optional[Console] = None) -> None:
    """
    Render the outcome of a migrate() run.
    """
    console = console or Console()
    applied = report.get("applied", [])
    if applied:
        for migration_id in applied:
            console.print(f"[green]✔[/green] {migration_id}")
    else:
        console.print("[dim]No migrations applied.[/dim]")

    if report.get("failed"):
        console.print(f"[red]✘ {report['failed']}[/red]: {report.get('error')}")
        skipped = [m for m in report.get("pending", []) if m != report["failed"]]
        if skipped:
            console.print(f"[yellow]Not attempted:[/yellow] {', '.join(skipped)}")
    console.print(f"[dim]Finished in {report.get('duration_seconds', 0.0):.3f}s[/dim]")


__all__ = ["build_status_table", "print_report", "print_status"]
