# context_rollback/cli/rollback_commands.py
"""
CLI commands for inspecting and recovering rollback transactions.
"""
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from context_rollback.api import get_config_manager, get_rollback_manager
from context_rollback.constants import APP_DESCRIPTION, APP_NAME, APP_VERSION, TRIGGER_MANUAL
from context_rollback.utils.async_utils import run_async
from context_rollback.utils.logging import setup_logging

console = Console()

app = typer.Typer(help=APP_DESCRIPTION, no_args_is_help=True)

_state = {"state_dir": None}


def _version_callback(value: bool):
    if value:
        console.print(f"{APP_NAME} {APP_VERSION}")
        raise typer.Exit()


def _manager():
    return get_rollback_manager(_state["state_dir"])


@app.callback()
def main(
    state_dir: Optional[Path] = typer.Option(None, "--state-dir", help="Rollback state directory"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Directory for log files"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit"
    ),
):
    """Inspect, roll back and clean up holistic update snapshots."""
    config = get_config_manager().config
    setup_logging(debug=debug or config.debug, log_dir=log_dir)
    _state["state_dir"] = state_dir


@app.command("list", help="List pending rollbacks")
def list_pending():
    """Show every rollback that is still pending."""
    pending = run_async(_manager().get_pending_rollbacks())

    if not pending:
        console.print("[yellow]No pending rollbacks found.[/yellow]")
        return

    table = Table(title="Pending Rollbacks")
    table.add_column("Update ID", style="cyan")
    table.add_column("Timestamp", style="green")
    table.add_column("Domains", style="white")
    table.add_column("Status", style="yellow")

    for rollback in pending:
        table.add_row(
            rollback.context_update_id,
            rollback.timestamp.isoformat(),
            ", ".join(rollback.affected_domains),
            rollback.status.value
        )

    console.print(table)
    console.print("\n[bold]Use the following command to roll back an update:[/bold]")
    console.print("  [blue]context-rollback rollback <UPDATE ID>[/blue]")


@app.command("stats", help="Show cleanup statistics")
def show_statistics():
    stats = run_async(_manager().get_cleanup_statistics())
    by_age = stats.rollbacks_by_age

    console.print(Panel(
        f"[bold]Records:[/bold] {stats.total_records}\n"
        f"[bold]Pending:[/bold] {stats.total_pending_rollbacks}\n"
        f"[bold]Completed:[/bold] {stats.completed_rollbacks}\n"
        f"[bold]Failed:[/bold] {stats.failed_rollbacks}\n"
        f"[bold]Oldest pending (hours):[/bold] {stats.oldest_rollback_age:.1f}\n"
        f"[bold]Pending by age:[/bold] <1h {by_age.less_than_1_hour}, "
        f"<24h {by_age.less_than_24_hours}, >=24h {by_age.more_than_24_hours}\n"
        f"[bold]Max age / count:[/bold] {stats.cleanup_config.get('max_age')}h / "
        f"{stats.cleanup_config.get('max_count')}",
        title="Rollback Statistics",
        expand=False
    ))


@app.command("validate", help="Check that a snapshot can be used for rollback")
def validate(update_id: str = typer.Argument(..., help="ID of the update")):
    if run_async(_manager().validate_rollback_data(update_id)):
        console.print(f"[green]Rollback data for {update_id} is valid.[/green]")
    else:
        console.print(f"[red]Rollback data for {update_id} is invalid or missing.[/red]")
        raise typer.Exit(code=1)


@app.command("rollback", help="Restore all domains of an update to their snapshot")
def rollback(
    update_id: str = typer.Argument(..., help="ID of the update to roll back"),
    force: bool = typer.Option(False, help="Skip confirmation prompt"),
    validate_first: bool = typer.Option(True, "--validate/--no-validate", help="Validate the snapshot first"),
):
    """Roll back a holistic update."""
    manager = _manager()

    if validate_first and not run_async(manager.validate_rollback_data(update_id)):
        console.print(f"[red]Cannot roll back {update_id}: rollback data is invalid or missing.[/red]")
        raise typer.Exit(code=1)

    if not force and not Confirm.ask(f"Restore every domain of update {update_id} to its snapshot?"):
        console.print("[yellow]Rollback cancelled.[/yellow]")
        return

    with console.status("[bold green]Rolling back update...[/bold green]"):
        success = run_async(manager.execute_holistic_rollback(update_id))

    if success:
        console.print(f"[green]Successfully rolled back holistic update {update_id}.[/green]")
    else:
        console.print(f"[red]Failed to roll back holistic update {update_id}. See the log for details.[/red]")
        raise typer.Exit(code=1)


@app.command("mark-failed", help="Record that an update failed")
def mark_failed(
    update_id: str = typer.Argument(..., help="ID of the update"),
    reason: str = typer.Argument(..., help="Why the update failed"),
):
    if run_async(_manager().mark_rollback_failed(update_id, reason, {"source": "cli"})):
        console.print(f"[green]Marked {update_id} as failed.[/green]")
    else:
        console.print(f"[red]Could not mark {update_id} as failed.[/red]")
        raise typer.Exit(code=1)


@app.command("cleanup", help="Run the retention sweep")
def cleanup(
    trigger: str = typer.Option(TRIGGER_MANUAL, help="Cleanup trigger to fire"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Only list what an age sweep would remove"),
    older_than: float = typer.Option(168, "--older-than", help="Age in hours used by --dry-run"),
):
    """Clean up rollback records, or preview an age-based sweep."""
    manager = _manager()

    if dry_run:
        candidates = run_async(manager.preview_cleanup(older_than))
        console.print(f"Dry run: would clean up {len(candidates)} old rollback records")
        for candidate in candidates:
            console.print(f"  - {candidate.context_update_id} ({candidate.timestamp.isoformat()})")
        return

    result = run_async(manager.trigger_cleanup(trigger))
    console.print(
        f"[green]Removed {result.removed_count} records[/green] "
        f"(trigger: {result.cleanup_trigger}, {result.execution_time:.1f}ms)"
    )
    if result.transactions_removed:
        console.print(f"Removed {result.transactions_removed} stale atomic backup directories")
    for error in result.errors:
        console.print(f"[red]- {error}[/red]")
    if result.errors:
        raise typer.Exit(code=1)
