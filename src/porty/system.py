"""OS inventory of listening sockets and processes for Porty."""

import re
import signal
import socket
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

import psutil

from .console import debug
from .docker import parse_cgroup_container_id
from .errors import PermissionDenied, ProcessNotFound, QueryError
from .models import (
    AddressFamily,
    ConnectionInfo,
    PortRecord,
    ProcessInfo,
    ResourceUsage,
)

# Environment variables worth showing in the detail view
INTERESTING_ENV_VARS = (
    "NODE_ENV",
    "PORT",
    "DATABASE_URL",
    "RAILS_ENV",
    "FLASK_ENV",
    "DJANGO_SETTINGS_MODULE",
    "PYTHON_ENV",
    "GO_ENV",
    "RUST_ENV",
    "PATH",
    "HOME",
    "USER",
    "PWD",
    "LANG",
)


class ProcessInventory(ABC):
    """Point-in-time queries against the operating system.

    Subclasses provide the raw queries. The helpers defined here derive the
    deduplicated port list and per-process views from ``list_listening_sockets``.
    """

    @abstractmethod
    def list_listening_sockets(self) -> list[PortRecord]:
        """List every TCP socket in LISTEN state, one record per socket.

        Raises:
            QueryError: If the inventory source cannot be queried
        """

    @abstractmethod
    def get_process_info(self, pid: int) -> ProcessInfo:
        """Fetch metadata for one process.

        Raises:
            ProcessNotFound: If the process no longer exists
        """

    @abstractmethod
    def get_resource_usage(self, pid: int) -> ResourceUsage:
        """Fetch memory, CPU, thread and descriptor usage of a process."""

    @abstractmethod
    def get_environment(self, pid: int) -> dict[str, str]:
        """Fetch the interesting environment variables of a process.

        Raises:
            PermissionDenied: If the environment cannot be read
        """

    @abstractmethod
    def list_processes(self) -> list[ProcessInfo]:
        """List all processes with at least pid, name and parent pid."""

    @abstractmethod
    def list_connections_for_port(self, port: int) -> list[ConnectionInfo]:
        """List established TCP connections on a local port."""

    @abstractmethod
    def send_signal(self, pid: int, sig: int) -> None:
        """Send a signal to a process.

        Raises:
            ProcessNotFound: If the process no longer exists
            PermissionDenied: If signalling is not allowed
        """

    @abstractmethod
    def pid_exists(self, pid: int) -> bool:
        """Check whether a process is still alive."""

    @abstractmethod
    def is_port_bindable(self, port: int) -> bool:
        """Test if a port can be bound to."""

    def get_container_id(self, pid: int) -> str | None:
        """Return the id of the container a process runs in, if any."""
        return None

    def list_listening_ports(self) -> list[PortRecord]:
        """List listening ports with one record per (port, pid).

        Dual-stack bindings of the same process collapse into one record.

        Returns:
            Records sorted by port, then pid
        """
        return dedupe_port_records(self.list_listening_sockets())

    def bound_addresses(
        self, pid: int, port: int, sockets: Iterable[PortRecord] | None = None
    ) -> list[PortRecord]:
        """List every address a process listens on for a port.

        Args:
            pid: Process ID
            port: Port number
            sockets: Socket snapshot to use instead of querying again

        Returns:
            Records with IPv4 addresses before IPv6 ones
        """
        if sockets is None:
            sockets = self.list_listening_sockets()
        matches = {r for r in sockets if r.pid == pid and r.port == port}
        return sorted(matches, key=lambda r: (r.family is AddressFamily.IPV6, r.address))

    def list_other_listening_ports(
        self,
        pid: int,
        exclude: int | None = None,
        sockets: Iterable[PortRecord] | None = None,
    ) -> list[int]:
        """List the ports a process listens on, except ``exclude``."""
        if sockets is None:
            sockets = self.list_listening_sockets()
        return sorted({r.port for r in sockets if r.pid == pid and r.port != exclude})


def dedupe_port_records(records: Iterable[PortRecord]) -> list[PortRecord]:
    """Keep one record per (port, pid), preferring the IPv4 socket.

    Args:
        records: Raw socket records

    Returns:
        Unique records sorted by port, then pid
    """
    ordered = sorted(records, key=lambda r: (r.port, r.pid, r.family is AddressFamily.IPV6))
    seen: set[tuple[int, int]] = set()
    unique: list[PortRecord] = []
    for record in ordered:
        key = (record.port, record.pid)
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


def filter_environment(environ: dict[str, str]) -> dict[str, str]:
    """Keep only the interesting variables, sorted by name."""
    return {key: environ[key] for key in sorted(environ) if key in INTERESTING_ENV_VARS}


def split_endpoint(value: str) -> tuple[str, int] | None:
    """Split an lsof address into host and port.

    Handles formats like:
    - ``*:3000``
    - ``127.0.0.1:8080``
    - ``[::1]:5432``
    - ``127.0.0.1:3000->127.0.0.1:52344`` (local side only)

    Returns:
        (address, port) or None if no port is present
    """
    local = value.split("->", 1)[0]
    colon = local.rfind(":")
    if colon < 0:
        return None
    match = re.match(r"\d+", local[colon + 1 :])
    if not match:
        return None
    address = local[:colon]
    if address.startswith("[") and address.endswith("]"):
        address = address[1:-1]
    return address, int(match.group(0))


def parse_lsof_listen(text: str) -> list[PortRecord]:
    """Parse ``lsof -nP -iTCP -sTCP:LISTEN -Fpcnt`` output.

    Field output looks like::

        p1234
        cnode
        f23
        tIPv6
        n*:3000

    Args:
        text: lsof stdout

    Returns:
        One record per listening socket
    """
    records: list[PortRecord] = []
    pid: int | None = None
    command: str | None = None
    family: AddressFamily | None = None

    for line in text.splitlines():
        if not line:
            continue
        tag, value = line[0], line[1:]
        if tag == "p":
            pid = int(value) if value.isdigit() else None
            command = None
            family = None
        elif tag == "c":
            command = value
        elif tag == "f":
            family = None
        elif tag == "t":
            family = {"IPv4": AddressFamily.IPV4, "IPv6": AddressFamily.IPV6}.get(value)
        elif tag == "n" and pid is not None:
            endpoint = split_endpoint(value)
            if endpoint is None:
                continue
            address, port = endpoint
            if family is None:
                family = AddressFamily.IPV6 if ":" in address else AddressFamily.IPV4
            records.append(
                PortRecord(
                    port=port,
                    pid=pid,
                    process_name=command or "?",
                    address=address,
                    family=family,
                )
            )

    return records


def parse_lsof_connections(text: str, port: int) -> list[ConnectionInfo]:
    """Parse ``lsof -nP -iTCP:<port> -sTCP:ESTABLISHED -Fpn`` output.

    Only connections whose local side is ``port`` are kept.
    """
    connections: list[ConnectionInfo] = []
    pid: int | None = None

    for line in text.splitlines():
        if not line:
            continue
        tag, value = line[0], line[1:]
        if tag == "p":
            pid = int(value) if value.isdigit() else None
        elif tag == "n" and "->" in value:
            local, remote = value.split("->", 1)
            local_end = split_endpoint(local)
            remote_end = split_endpoint(remote)
            if local_end is None or remote_end is None or local_end[1] != port:
                continue
            connections.append(
                ConnectionInfo(
                    local_address=local_end[0],
                    local_port=local_end[1],
                    remote_address=remote_end[0],
                    remote_port=remote_end[1],
                    pid=pid,
                )
            )

    return connections


def _attempt(func: Callable[[], Any], default: Any = None) -> Any:
    """Read one process field, returning ``default`` when access is denied."""
    try:
        return func()
    except psutil.AccessDenied:
        return default


class SystemInventory(ProcessInventory):
    """Inventory backed by psutil, with lsof as a fallback.

    psutil cannot enumerate sockets of other processes on macOS without root;
    lsof is used in that case.
    """

    def __init__(self, cpu_interval: float = 0.1) -> None:
        """Initialize inventory.

        Args:
            cpu_interval: Seconds to sample CPU usage over in detail views
        """
        self.cpu_interval = cpu_interval

    def list_listening_sockets(self) -> list[PortRecord]:
        try:
            return self._scan_psutil()
        except psutil.AccessDenied:
            debug("psutil cannot list sockets, falling back to lsof")

        records = self._scan_lsof()
        if records is None:
            raise QueryError("failed to list listening sockets (is lsof installed?)")
        return records

    def _scan_psutil(self) -> list[PortRecord]:
        """Scan listening sockets using psutil.

        Sockets whose owner is hidden from us have no pid and are skipped.
        """
        records: list[PortRecord] = []
        names: dict[int, str | None] = {}

        for conn in psutil.net_connections(kind="tcp"):
            if conn.status != psutil.CONN_LISTEN or not conn.laddr or conn.pid is None:
                continue

            if conn.pid not in names:
                names[conn.pid] = self._process_name(conn.pid)
            name = names[conn.pid]
            if name is None:
                debug(f"Process {conn.pid} exited during discovery")
                continue

            family = AddressFamily.IPV6 if conn.family == socket.AF_INET6 else AddressFamily.IPV4
            records.append(
                PortRecord(
                    port=conn.laddr.port,
                    pid=conn.pid,
                    process_name=name,
                    address=conn.laddr.ip,
                    family=family,
                )
            )

        return records

    def _process_name(self, pid: int) -> str | None:
        try:
            return psutil.Process(pid).name()
        except psutil.AccessDenied:
            return "?"
        except psutil.NoSuchProcess:
            return None

    def _scan_lsof(self) -> list[PortRecord] | None:
        """Scan listening sockets using lsof.

        Returns:
            Records, or None if lsof could not be run
        """
        output = self._run_lsof(["lsof", "-nP", "-iTCP", "-sTCP:LISTEN", "-Fpcnt"])
        if output is None:
            return None
        return parse_lsof_listen(output)

    def _run_lsof(self, args: list[str]) -> str | None:
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=10,
            )
        except (subprocess.SubprocessError, FileNotFoundError) as e:
            debug(f"lsof failed: {e}")
            return None

        # lsof exits 1 when nothing matches
        if result.returncode != 0 and not result.stdout and result.stderr.strip():
            debug(f"lsof exited with status {result.returncode}: {result.stderr.strip()}")
            return None
        return result.stdout

    def get_process_info(self, pid: int) -> ProcessInfo:
        try:
            proc = psutil.Process(pid)
            with proc.oneshot():
                create_time = _attempt(proc.create_time)
                mem = _attempt(proc.memory_info)
                environ = _attempt(proc.environ)
                return ProcessInfo(
                    pid=pid,
                    name=_attempt(proc.name, "?"),
                    parent_pid=_attempt(proc.ppid) or None,
                    exe=_attempt(proc.exe) or None,
                    cmdline=tuple(_attempt(proc.cmdline, []) or []),
                    cwd=_attempt(proc.cwd) or None,
                    username=_attempt(proc.username),
                    uid=_attempt(lambda: proc.uids().real) if hasattr(proc, "uids") else None,
                    start_time=datetime.fromtimestamp(create_time) if create_time else None,
                    memory_rss=mem.rss if mem else 0,
                    memory_vms=mem.vms if mem else 0,
                    num_threads=_attempt(proc.num_threads, 0) or 0,
                    num_fds=_attempt(proc.num_fds) if hasattr(proc, "num_fds") else None,
                    environment=filter_environment(environ) if environ is not None else None,
                )
        except psutil.NoSuchProcess:
            raise ProcessNotFound(pid)

    def get_resource_usage(self, pid: int) -> ResourceUsage:
        try:
            proc = psutil.Process(pid)
            with proc.oneshot():
                mem = proc.memory_info()
                threads = proc.num_threads()
                fds = _attempt(proc.num_fds) if hasattr(proc, "num_fds") else None
            # Sampled outside oneshot() so the two cpu_times() reads differ
            cpu = proc.cpu_percent(interval=self.cpu_interval)
        except psutil.NoSuchProcess:
            raise ProcessNotFound(pid)
        except psutil.AccessDenied:
            raise PermissionDenied(pid, "resource usage")

        return ResourceUsage(
            memory_rss=mem.rss,
            memory_vms=mem.vms,
            cpu_percent=cpu,
            num_threads=threads,
            num_fds=fds,
        )

    def get_environment(self, pid: int) -> dict[str, str]:
        try:
            return filter_environment(psutil.Process(pid).environ())
        except psutil.NoSuchProcess:
            raise ProcessNotFound(pid)
        except psutil.AccessDenied:
            raise PermissionDenied(pid, "environment")

    def list_processes(self) -> list[ProcessInfo]:
        processes: list[ProcessInfo] = []
        for proc in psutil.process_iter(attrs=["pid", "ppid", "name"]):
            try:
                info = proc.info
                processes.append(
                    ProcessInfo(
                        pid=info["pid"],
                        name=info.get("name") or "",
                        parent_pid=info.get("ppid"),
                    )
                )
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        return processes

    def list_connections_for_port(self, port: int) -> list[ConnectionInfo]:
        try:
            conns = psutil.net_connections(kind="tcp")
        except psutil.AccessDenied:
            output = self._run_lsof(["lsof", "-nP", f"-iTCP:{port}", "-sTCP:ESTABLISHED", "-Fpn"])
            if output is None:
                raise QueryError(f"failed to list connections on port {port}")
            return parse_lsof_connections(output, port)

        return [
            ConnectionInfo(
                local_address=conn.laddr.ip,
                local_port=conn.laddr.port,
                remote_address=conn.raddr.ip,
                remote_port=conn.raddr.port,
                pid=conn.pid,
                status=conn.status,
            )
            for conn in conns
            if conn.status == psutil.CONN_ESTABLISHED
            and conn.laddr
            and conn.raddr
            and conn.laddr.port == port
        ]

    def send_signal(self, pid: int, sig: int) -> None:
        try:
            psutil.Process(pid).send_signal(sig)
        except psutil.NoSuchProcess:
            raise ProcessNotFound(pid)
        except psutil.AccessDenied:
            raise PermissionDenied(pid, f"signal {signal.Signals(sig).name}")

    def pid_exists(self, pid: int) -> bool:
        # A zombie is gone for our purposes, its parent just has not reaped it
        try:
            return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return False
        except psutil.AccessDenied:
            return True

    def is_port_bindable(self, port: int) -> bool:
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                s.bind(("127.0.0.1", port))
                return True
        except OSError:
            return False

    def get_container_id(self, pid: int) -> str | None:
        try:
            text = Path(f"/proc/{pid}/cgroup").read_text()
        except OSError:
            return None
        return parse_cgroup_container_id(text)
