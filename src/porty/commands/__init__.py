"""Command modules for porty CLI."""

from .free import free
from .kill import kill
from .listing import all_cmd, dev, prod, show_ports
from .port import port

__all__ = [
    "all_cmd",
    "dev",
    "free",
    "kill",
    "port",
    "prod",
    "show_ports",
]
