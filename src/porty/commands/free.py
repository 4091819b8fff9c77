"""Free command - check if a port is available."""

import typer

from ..errors import QueryError
from .common import console, error, get_actions


def free(
    number: int = typer.Argument(..., min=1, max=65535, metavar="PORT", help="Port number"),
) -> None:
    """Check if a port is available.

    Examples:
        porty free 8080
    """
    actions = get_actions()
    try:
        status = actions.check_free(number)
    except QueryError as e:
        error(str(e))
        raise typer.Exit(1)

    if status.is_free:
        console.print(f"[green]Port {number} is free[/green]")
        return

    console.print(f"[yellow]Port {number} is in use:[/yellow]")
    if not status.listeners:
        console.print("  by a process not visible to the current user")
        return

    for entry in status.listeners:
        console.print(f"  {entry.name} (PID {entry.pid})", markup=False)
        console.print(f"  Hint: kill {entry.pid} or use 'porty kill {number}'", markup=False)
