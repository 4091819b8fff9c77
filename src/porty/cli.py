"""Typer CLI for Porty - Main entry point."""

import typer

from . import __version__
from .classifier import View
from .commands import all_cmd, dev, free, kill, port, prod, show_ports
from .commands.common import GlobalOptions

app = typer.Typer(
    name="porty",
    help="A fast, intelligent local port inspector",
    no_args_is_help=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"porty version {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False, "-v", "--verbose", help="Show verbose output including executable paths"
    ),
    colors: bool = typer.Option(
        False,
        "-c",
        "--colors",
        help="Enable colored output (green for dev, red for unknown, yellow for system)",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Local port inspector. Without a command, shows dev servers and unknown listeners."""
    ctx.obj = GlobalOptions(verbose=verbose, colors=colors)
    if ctx.invoked_subcommand is None:
        show_ports(View.DEFAULT, verbose, colors)


# Register all commands
app.command(name="all")(all_cmd)
app.command()(dev)
app.command()(prod)
app.command()(port)
app.command()(free)
app.command()(kill)


def main() -> None:
    """Main entry point."""
    app()
