"""Rich renderables for porty output."""

from collections.abc import Sequence
from datetime import timedelta

from rich import box
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .inspector import PortDetail, Section
from .models import AddressFamily, Category, ClassifiedPort

CATEGORY_STYLES: dict[Category, str] = {
    Category.DEV_SERVER: "green",
    Category.DATABASE: "cyan",
    Category.CONTAINER: "blue",
    Category.SYSTEM: "yellow",
    Category.UNKNOWN: "red",
}

MAX_ENV_VARS = 10
MAX_PATH_LENGTH = 100


def category_text(category: Category, colors: bool) -> Text:
    """Category label, colored when requested."""
    return Text(category.label, style=CATEGORY_STYLES[category] if colors else "")


def ports_table(entries: Sequence[ClassifiedPort], verbose: bool, colors: bool) -> Table:
    """Build the port list table.

    Args:
        entries: Classified ports, already sorted
        verbose: Add the executable path column
        colors: Color the category column

    Returns:
        Rich table
    """
    table = Table(box=box.ROUNDED, header_style="bold")
    table.add_column("PORT", justify="right")
    table.add_column("PROCESS")
    table.add_column("CATEGORY")
    table.add_column("PID", justify="right")
    if verbose:
        table.add_column("EXEC PATH", overflow="fold")

    for entry in entries:
        row: list[RenderableType] = [
            Text(str(entry.port)),
            Text(entry.name or "-"),
            category_text(entry.category, colors),
            Text(str(entry.pid)),
        ]
        if verbose:
            row.append(Text(entry.exec_path or "-"))
        table.add_row(*row)

    return table


def format_mb(num_bytes: int) -> str:
    """Format a byte count as megabytes with one decimal."""
    return f"{num_bytes / (1024 * 1024):.1f}"


def format_duration(delta: timedelta) -> str:
    """Format a duration like ``2d 3h 4m`` or ``5m 12s``."""
    seconds = max(0, int(delta.total_seconds()))
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


class _DetailWriter:
    """Accumulates the lines of the detail view."""

    def __init__(self, colors: bool) -> None:
        self.colors = colors
        self.lines: list[RenderableType] = []

    def heading(self, title: str) -> None:
        self.lines.append(Text(title, style="bold blue" if self.colors else "bold"))

    def field(self, label: str, value: str | Text) -> None:
        line = Text("  ")
        line.append(f"{label}:", style="bold")
        line.append(" ")
        line.append(value if isinstance(value, Text) else Text(value))
        self.lines.append(line)

    def text(self, value: str) -> None:
        self.lines.append(Text(f"  {value}"))

    def unavailable(self, section: Section) -> None:
        self.lines.append(Text(f"  unavailable ({section.error})", style="dim"))

    def blank(self) -> None:
        self.lines.append(Text(""))


def detail_view(detail: PortDetail, colors: bool) -> Group:
    """Build the detailed view of one port.

    Args:
        detail: Report from PortInspector.inspect_port
        colors: Use colors

    Returns:
        Rich group with a header panel and one block per section
    """
    out = _DetailWriter(colors)
    _process_section(out, detail)
    _tree_section(out, detail)
    _resources_section(out, detail)
    _network_section(out, detail)
    _environment_section(out, detail)
    _container_section(out, detail)

    header = Panel(
        Text(f"Port {detail.port} - Process Details", style="bold cyan" if colors else "bold"),
        box=box.ROUNDED,
        border_style="cyan" if colors else "",
    )
    return Group(header, Text(""), *out.lines)


def _process_section(out: _DetailWriter, detail: PortDetail) -> None:
    out.heading("PROCESS INFORMATION")
    out.field("Name", detail.process_name)
    out.field("PID", str(detail.pid))
    out.field("Category", category_text(detail.category, out.colors))

    if not detail.process.available or detail.process.value is None:
        out.unavailable(detail.process)
    else:
        proc = detail.process.value
        out.field("Command", proc.command_line)
        if proc.cwd:
            out.field("Directory", proc.cwd)
        if proc.exe:
            out.field("Exec Path", proc.exe)
        user = proc.username or "unknown"
        out.field("User", f"{user} ({proc.uid})" if proc.uid is not None else user)
        uptime = detail.uptime()
        if uptime is not None and proc.start_time is not None:
            started = proc.start_time.strftime("%a %b %d %H:%M:%S %Y")
            out.field("Uptime", f"{format_duration(uptime)} (started {started})")

    if detail.other_pids:
        out.field("Also listening", ", ".join(f"PID {pid}" for pid in detail.other_pids))
    out.blank()


def _tree_section(out: _DetailWriter, detail: PortDetail) -> None:
    out.heading("PROCESS TREE")
    if not detail.tree.available or detail.tree.value is None:
        out.unavailable(detail.tree)
        out.blank()
        return

    tree = detail.tree.value
    if tree.ancestors:
        chain = [f"{p.name} ({p.pid})" for p in reversed(tree.ancestors)]
        chain.append(f"{detail.process_name} ({detail.pid})")
        out.field("Parents", " → ".join(chain))
    else:
        out.field("Parents", "None")

    if tree.children:
        out.field("Children", ", ".join(f"{c.name} ({c.pid})" for c in tree.children))
    else:
        out.field("Children", "None")
    out.blank()


def _resources_section(out: _DetailWriter, detail: PortDetail) -> None:
    out.heading("RESOURCES")
    if not detail.resources.available or detail.resources.value is None:
        out.unavailable(detail.resources)
        out.blank()
        return

    usage = detail.resources.value
    out.field(
        "Memory",
        f"{format_mb(usage.memory_rss)} MB (RSS), {format_mb(usage.memory_vms)} MB (Virtual)",
    )
    out.field("CPU", f"{usage.cpu_percent:.1f}%")
    out.field("Threads", str(usage.num_threads))
    if usage.num_fds is not None:
        out.field("File Descriptors", f"{usage.num_fds} open")
    out.blank()


def _network_section(out: _DetailWriter, detail: PortDetail) -> None:
    out.heading("NETWORK")

    if not detail.addresses.available:
        out.field("Binding", f"unavailable ({detail.addresses.error})")
    else:
        records = detail.addresses.value or []
        ipv4 = [r.endpoint for r in records if r.family is AddressFamily.IPV4]
        ipv6 = [r.endpoint for r in records if r.family is AddressFamily.IPV6]
        if ipv4 and ipv6:
            out.field("Binding", f"{', '.join(ipv4)} (IPv4) + {', '.join(ipv6)} (IPv6)")
        elif records:
            out.field("Binding", ", ".join(ipv4 + ipv6))
        else:
            out.field("Binding", f"*:{detail.port}")

    out.field("Protocol", "TCP (LISTEN)")

    if detail.connections.available:
        out.field("Connections", f"{len(detail.connections.value or [])} active")
    else:
        out.field("Connections", f"unavailable ({detail.connections.error})")

    if detail.other_ports.available and detail.other_ports.value:
        ports = ", ".join(str(p) for p in detail.other_ports.value)
        out.field("Other Ports", f"Also listening on {ports}")
    elif not detail.other_ports.available:
        out.field("Other Ports", f"unavailable ({detail.other_ports.error})")
    out.blank()


def _environment_section(out: _DetailWriter, detail: PortDetail) -> None:
    section = detail.environment
    if section.available and not section.value:
        return

    out.heading("ENVIRONMENT")
    if not section.available or section.value is None:
        out.unavailable(section)
        out.blank()
        return

    items = list(section.value.items())
    for key, value in items[:MAX_ENV_VARS]:
        # PATH is typically very long
        if key == "PATH" and len(value) > MAX_PATH_LENGTH:
            value = value[: MAX_PATH_LENGTH - 3] + "..."
        out.text(f"{key}={value}")
    if len(items) > MAX_ENV_VARS:
        out.text(f"({len(items) - MAX_ENV_VARS} more environment variables)")
    out.blank()


def _container_section(out: _DetailWriter, detail: PortDetail) -> None:
    section = detail.container
    if section.available and section.value is None:
        return

    out.heading("CONTAINER INFORMATION")
    if not section.available or section.value is None:
        out.unavailable(section)
        out.blank()
        return

    container = section.value
    out.field("Container", container.name)
    out.field("ID", container.id)
    out.field("Image", container.image)
    if container.status:
        out.field("Status", container.status)
    if container.volumes:
        out.field("Volumes", "")
        for volume in container.volumes:
            out.text(f"  - {volume}")
    out.blank()
