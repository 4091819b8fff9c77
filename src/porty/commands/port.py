"""Port command - show process details for a port."""

import typer

from ..errors import PortNotInUse, QueryError
from ..render import detail_view
from .common import console, error, get_inspector, resolve_options
from .listing import COLORS_OPTION, VERBOSE_OPTION


def port(
    ctx: typer.Context,
    number: int = typer.Argument(..., min=1, max=65535, metavar="PORT", help="Port number"),
    verbose: bool = VERBOSE_OPTION,
    colors: bool = COLORS_OPTION,
) -> None:
    """Show process info for a specific port.

    Examples:
        porty port 3000
        porty port 5432 --colors
    """
    opts = resolve_options(ctx, verbose, colors)
    inspector = get_inspector()

    try:
        detail = inspector.inspect_port(number)
    except PortNotInUse:
        console.print(f"No listener found on port {number}")
        return
    except QueryError as e:
        error(str(e))
        raise typer.Exit(1)

    console.print(detail_view(detail, colors=opts.colors))

    if detail.is_empty:
        error(f"Could not read any details of process {detail.pid}")
        raise typer.Exit(1)
