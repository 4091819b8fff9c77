"""Kill command - terminate the process on a port."""

import typer
from rich.markup import escape

from ..actions import KillOutcome
from ..errors import PortNotInUse, QueryError
from .common import console, error, error_console, get_actions


def kill(
    number: int = typer.Argument(..., min=1, max=65535, metavar="PORT", help="Port number"),
    force: bool = typer.Option(False, "-f", "--force", help="Kill instead of dry run"),
) -> None:
    """Kill the process(es) listening on a port.

    Without --force only shows what would be killed.

    Examples:
        porty kill 3000
        porty kill 3000 --force
    """
    actions = get_actions()
    try:
        report = actions.kill(number, force=force)
    except PortNotInUse:
        console.print(f"No process found on port {number}")
        return
    except QueryError as e:
        error(str(e))
        raise typer.Exit(1)

    console.print(f"Process(es) on port {number}:")
    for target in report.targets:
        console.print(f"  {target.name} (PID {target.pid})", markup=False)

    if report.dry_run:
        console.print("\n[dim]Dry run mode. Use --force to actually kill the process(es).[/dim]")
        console.print(f"[dim]Example: porty kill {number} --force[/dim]")
        return

    console.print("\nKilling process(es)...")
    for target in report.targets:
        label = escape(f"{target.name} (PID {target.pid})")
        if target.outcome is KillOutcome.ALREADY_EXITED:
            console.print(f"[yellow]{label}: already exited[/yellow]")
        elif target.outcome.ok:
            console.print(f"[green]{label}: {target.outcome.value}[/green]")
        else:
            error_console.print(f"[red]Failed to kill {label}:[/red] {target.outcome.value}")

    if not report.succeeded:
        raise typer.Exit(1)
