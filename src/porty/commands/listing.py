"""List commands - show listening ports by category."""

import typer

from ..classifier import View
from ..errors import QueryError
from ..render import ports_table
from .common import console, debug, error, get_inspector, resolve_options

VERBOSE_OPTION = typer.Option(False, "-v", "--verbose", help="Show executable paths")
COLORS_OPTION = typer.Option(False, "-c", "--colors", help="Color categories")


def show_ports(view: View, verbose: bool, colors: bool) -> None:
    """Print the port table for a view."""
    inspector = get_inspector()
    try:
        entries = inspector.list_ports(view, verbose=verbose)
    except QueryError as e:
        error(str(e))
        raise typer.Exit(1)

    debug(f"{len(entries)} port(s) in view '{view.value}'")
    if not entries:
        console.print("No ports found.")
        return

    console.print(ports_table(entries, verbose=verbose, colors=colors))


def all_cmd(
    ctx: typer.Context,
    verbose: bool = VERBOSE_OPTION,
    colors: bool = COLORS_OPTION,
) -> None:
    """Show all listening ports.

    Examples:
        porty all
        porty all --verbose
    """
    opts = resolve_options(ctx, verbose, colors)
    show_ports(View.ALL, opts.verbose, opts.colors)


def dev(
    ctx: typer.Context,
    verbose: bool = VERBOSE_OPTION,
    colors: bool = COLORS_OPTION,
) -> None:
    """Show only dev servers (node, python, vite etc.)."""
    opts = resolve_options(ctx, verbose, colors)
    show_ports(View.DEV, opts.verbose, opts.colors)


def prod(
    ctx: typer.Context,
    verbose: bool = VERBOSE_OPTION,
    colors: bool = COLORS_OPTION,
) -> None:
    """Show dev servers and containers."""
    opts = resolve_options(ctx, verbose, colors)
    show_ports(View.PROD, opts.verbose, opts.colors)
