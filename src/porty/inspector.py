"""Port discovery, classification and inspection for Porty."""

import os
import threading
import time
from collections.abc import Callable
from concurrent import futures
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Generic, TypeVar

from .classifier import Classifier, View
from .config import Settings
from .console import debug
from .docker import DockerClient, friendly_container_name, guess_service_by_port
from .errors import PermissionDenied, PortNotInUse, PortyError, ProcessNotFound
from .models import (
    Category,
    ClassifiedPort,
    ConnectionInfo,
    ContainerInfo,
    PortRecord,
    ProcessInfo,
    ProcessTree,
    ResourceUsage,
)
from .system import ProcessInventory, dedupe_port_records
from .tree import ProcessTreeResolver

T = TypeVar("T")

# Fixed order of sections in the detail view
SECTION_ORDER = (
    "process",
    "tree",
    "resources",
    "addresses",
    "connections",
    "other_ports",
    "environment",
    "container",
)

# Sections read from the process itself
PROCESS_SECTIONS = ("process", "tree", "resources", "environment")


@dataclass(frozen=True)
class Section(Generic[T]):
    """One independently fetched part of a detail report."""

    value: T | None = None
    error: str | None = None  # Why the section is unavailable

    @property
    def available(self) -> bool:
        return self.error is None


@dataclass
class PortDetail:
    """Detailed report for the process listening on one port."""

    port: int
    pid: int
    process_name: str
    category: Category
    process: Section[ProcessInfo]
    tree: Section[ProcessTree]
    resources: Section[ResourceUsage]
    addresses: Section[list[PortRecord]]
    connections: Section[list[ConnectionInfo]]
    other_ports: Section[list[int]]
    environment: Section[dict[str, str]]
    container: Section[ContainerInfo | None]
    other_pids: list[int] = field(default_factory=list)  # Other listeners on the port

    def sections(self) -> list[tuple[str, Section[Any]]]:
        """Return (name, section) pairs in display order."""
        return [(name, getattr(self, name)) for name in SECTION_ORDER]

    @property
    def is_empty(self) -> bool:
        """True when nothing could be read about the process itself.

        Socket, connection and container sections come from host-wide queries
        and stay available after the process is gone, so they do not count.
        """
        return not any(getattr(self, name).available for name in PROCESS_SECTIONS)

    def uptime(self, now: datetime | None = None) -> timedelta | None:
        """Time since the process started, if known."""
        if not self.process.available or self.process.value is None:
            return None
        started = self.process.value.start_time
        if started is None:
            return None
        return (now or datetime.now()) - started


class PortInspector:
    """Collect, classify and inspect listening ports."""

    def __init__(
        self,
        inventory: ProcessInventory,
        classifier: Classifier | None = None,
        containers: DockerClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize inspector.

        Args:
            inventory: OS inventory to query
            classifier: Classifier to use. Defaults to one built from settings.
            containers: Container lookup. Defaults to the docker CLI.
            settings: Runtime settings
        """
        self.settings = settings or Settings()
        self.inventory = inventory
        self.classifier = classifier or Classifier(self.settings.rules)
        self.containers = containers if containers is not None else DockerClient()
        self.resolver = ProcessTreeResolver(inventory)

    @property
    def max_workers(self) -> int:
        """Size of the enrichment pool."""
        return self.settings.max_workers or os.cpu_count() or 4

    def discover(self) -> list[ClassifiedPort]:
        """Classify every listening port.

        Returns:
            Entries sorted by port, then pid

        Raises:
            QueryError: If the inventory cannot be queried
        """
        entries = [self._classify(record) for record in self.inventory.list_listening_ports()]
        return self._label_containers(entries)

    def list_ports(self, view: View = View.ALL, verbose: bool = False) -> list[ClassifiedPort]:
        """List listening ports shown by a view.

        With ``verbose`` the full process metadata (executable path included) is
        fetched for every entry in parallel. Entries whose process exited in
        the meantime are dropped.

        Args:
            view: Category filter
            verbose: Fetch full process metadata

        Returns:
            Entries sorted by port, then pid
        """
        entries = [entry for entry in self.discover() if view.includes(entry.category)]
        if verbose:
            entries = self._enrich(entries)
        return sorted(entries, key=lambda e: (e.port, e.pid))

    def _classify(self, record: PortRecord) -> ClassifiedPort:
        category = self.classifier.classify(record.process_name, "", record.port)
        process = ProcessInfo(pid=record.pid, name=record.process_name)
        return ClassifiedPort(record=record, process=process, category=category)

    def _label_containers(self, entries: list[ClassifiedPort]) -> list[ClassifiedPort]:
        """Name container runtime entries after the container they forward to."""
        if not any(e.category is Category.CONTAINER for e in entries):
            return entries

        labelled: list[ClassifiedPort] = []
        for entry in entries:
            if entry.category is Category.CONTAINER:
                container = self.containers.find_by_port(entry.port)
                if container is not None:
                    entry = replace(
                        entry,
                        container=container,
                        display_name=friendly_container_name(container),
                    )
                else:
                    service = guess_service_by_port(entry.port)
                    if service:
                        entry = replace(entry, display_name=f"{service} (container)")
            labelled.append(entry)
        return labelled

    def _enrich(self, entries: list[ClassifiedPort]) -> list[ClassifiedPort]:
        """Fetch full process info for every entry concurrently.

        Each worker writes only its own result slot; pool.map keeps input order.
        """
        if not entries:
            return entries

        workers = min(self.max_workers, len(entries))
        with futures.ThreadPoolExecutor(max_workers=workers, thread_name_prefix="porty") as pool:
            results = list(pool.map(self._fetch_process, entries))

        return [
            replace(entry, process=process)
            for entry, process in zip(entries, results)
            if process is not None
        ]

    def _fetch_process(self, entry: ClassifiedPort) -> ProcessInfo | None:
        try:
            return self.inventory.get_process_info(entry.pid)
        except ProcessNotFound:
            debug(f"Process {entry.pid} on port {entry.port} exited, dropping it")
            return None
        except PermissionDenied as e:
            debug(str(e))
            return entry.process

    def inspect_port(self, port: int) -> PortDetail:
        """Build the detail report for the process listening on a port.

        All sections are fetched concurrently. A section that fails or times
        out is marked unavailable without affecting the others.

        Args:
            port: Port number

        Returns:
            PortDetail for the lowest PID listening on the port

        Raises:
            PortNotInUse: If nothing listens on the port
            QueryError: If the inventory cannot be queried
        """
        sockets = self.inventory.list_listening_sockets()
        records = dedupe_port_records(r for r in sockets if r.port == port)
        if not records:
            raise PortNotInUse(port)

        record = records[0]
        pid = record.pid
        inventory = self.inventory

        fetchers: dict[str, Callable[[], Any]] = {
            "process": lambda: inventory.get_process_info(pid),
            "tree": lambda: self.resolver.resolve(pid),
            "resources": lambda: inventory.get_resource_usage(pid),
            "addresses": lambda: inventory.bound_addresses(pid, port, sockets),
            "connections": lambda: inventory.list_connections_for_port(port),
            "other_ports": lambda: inventory.list_other_listening_ports(pid, port, sockets),
            "environment": lambda: inventory.get_environment(pid),
            "container": lambda: self._find_container(record),
        }
        sections = self._gather(fetchers)

        process: Section[ProcessInfo] = sections["process"]
        if process.available and process.value is not None:
            name = process.value.name
            category = self.classifier.classify(name, process.value.command_line, port)
        else:
            name = record.process_name
            category = self.classifier.classify(name, "", port)

        return PortDetail(
            port=port,
            pid=pid,
            process_name=name,
            category=category,
            other_pids=[r.pid for r in records[1:]],
            **sections,
        )

    def _gather(self, fetchers: dict[str, Callable[[], Any]]) -> dict[str, Section[Any]]:
        """Run fetchers concurrently and collect one Section per fetcher.

        Waiting is bounded by settings.fetch_timeout counted from the start.
        Fetchers run on daemon threads that are never joined, so a hung fetch
        stalls neither the report nor interpreter exit.
        """
        started = {name: _start_fetch(name, fetch) for name, fetch in fetchers.items()}
        deadline = time.monotonic() + self.settings.fetch_timeout

        sections: dict[str, Section[Any]] = {}
        for name, future in started.items():
            remaining = max(0.0, deadline - time.monotonic())
            sections[name] = self._collect(name, future, remaining)
        return sections

    def _collect(self, name: str, future: futures.Future, timeout: float) -> Section[Any]:
        try:
            return Section(value=future.result(timeout=timeout))
        except futures.TimeoutError:
            debug(f"Fetching {name} timed out")
            return Section(error="timed out")
        except ProcessNotFound:
            return Section(error="process exited")
        except PermissionDenied as e:
            debug(str(e))
            return Section(error="permission denied")
        except (PortyError, OSError) as e:
            debug(f"Fetching {name} failed: {e}")
            return Section(error=str(e))

    def _find_container(self, record: PortRecord) -> ContainerInfo | None:
        """Find the container behind a listener.

        The process is either a container runtime forwarding the port, or runs
        inside a container itself.
        """
        container_id = self.inventory.get_container_id(record.pid)
        if container_id:
            found = self.containers.find_by_id(container_id)
            if found is not None:
                return found
            return ContainerInfo(id=container_id[:12], name=container_id[:12], image="unknown")

        if self.classifier.classify(record.process_name, "", record.port) is Category.CONTAINER:
            return self.containers.find_by_port(record.port)
        return None


def _start_fetch(name: str, fetch: Callable[[], Any]) -> futures.Future:
    """Run ``fetch`` on a daemon thread and return a future for its result."""
    future: futures.Future = futures.Future()

    def run() -> None:
        try:
            result = fetch()
        except Exception as e:
            future.set_exception(e)
        else:
            future.set_result(result)

    threading.Thread(target=run, name=f"porty-{name}", daemon=True).start()
    return future
