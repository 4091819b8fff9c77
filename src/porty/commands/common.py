"""Common utilities for CLI commands."""

from dataclasses import dataclass

import typer

from ..actions import PortActions
from ..config import load_settings
from ..console import console, debug, error, error_console, info, success, warning
from ..docker import DockerClient
from ..inspector import PortInspector
from ..system import SystemInventory

# Re-export console utilities
__all__ = [
    "console",
    "error_console",
    "debug",
    "info",
    "success",
    "warning",
    "error",
    "GlobalOptions",
    "resolve_options",
    "get_inspector",
    "get_actions",
]


@dataclass
class GlobalOptions:
    """Flags given before the subcommand."""

    verbose: bool = False
    colors: bool = False


def resolve_options(ctx: typer.Context, verbose: bool, colors: bool) -> GlobalOptions:
    """Merge subcommand flags with the global ones."""
    parent = ctx.obj if isinstance(ctx.obj, GlobalOptions) else GlobalOptions()
    return GlobalOptions(verbose=verbose or parent.verbose, colors=colors or parent.colors)


def get_inspector() -> PortInspector:
    """Get inspector instance for the local host."""
    settings = load_settings()
    return PortInspector(SystemInventory(), containers=DockerClient(), settings=settings)


def get_actions() -> PortActions:
    """Get port actions for the local host."""
    return PortActions(get_inspector())
