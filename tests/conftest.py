"""Test fixtures and configuration."""

import tempfile
import time
from pathlib import Path

import pytest

from porty.actions import PortActions
from porty.config import Settings
from porty.docker import DockerClient
from porty.errors import PermissionDenied, ProcessNotFound, QueryError
from porty.inspector import PortInspector
from porty.models import (
    AddressFamily,
    ConnectionInfo,
    ContainerInfo,
    PortRecord,
    ProcessInfo,
    ResourceUsage,
)
from porty.system import ProcessInventory


class FakeInventory(ProcessInventory):
    """In-memory inventory that records every signal sent."""

    def __init__(self) -> None:
        self.sockets: list[PortRecord] = []
        self.processes: dict[int, ProcessInfo] = {}
        self.connections: dict[int, list[ConnectionInfo]] = {}
        self.environments: dict[int, dict[str, str]] = {}
        self.container_ids: dict[int, str] = {}
        self.denied_environment: set[int] = set()
        self.denied_signal: set[int] = set()
        self.survivors: set[int] = set()  # PIDs that ignore every signal
        self.bound_ports: set[int] = set()  # Ports held by invisible processes
        self.signals: list[tuple[int, int]] = []
        self.resource_delay = 0.0
        self.fail_query = False

    def add_process(self, pid: int, name: str, **fields) -> ProcessInfo:
        proc = ProcessInfo(pid=pid, name=name, **fields)
        self.processes[pid] = proc
        return proc

    def add_listener(
        self,
        port: int,
        pid: int,
        name: str,
        address: str = "0.0.0.0",
        family: AddressFamily = AddressFamily.IPV4,
        **fields,
    ) -> PortRecord:
        record = PortRecord(port=port, pid=pid, process_name=name, address=address, family=family)
        self.sockets.append(record)
        if pid not in self.processes:
            self.add_process(pid, name, **fields)
        return record

    def list_listening_sockets(self) -> list[PortRecord]:
        if self.fail_query:
            raise QueryError("failed to list listening sockets (is lsof installed?)")
        return list(self.sockets)

    def get_process_info(self, pid: int) -> ProcessInfo:
        try:
            return self.processes[pid]
        except KeyError:
            raise ProcessNotFound(pid)

    def get_resource_usage(self, pid: int) -> ResourceUsage:
        if self.resource_delay:
            time.sleep(self.resource_delay)
        proc = self.get_process_info(pid)
        return ResourceUsage(
            memory_rss=proc.memory_rss,
            memory_vms=proc.memory_vms,
            cpu_percent=proc.cpu_percent,
            num_threads=proc.num_threads,
            num_fds=proc.num_fds,
        )

    def get_environment(self, pid: int) -> dict[str, str]:
        if pid in self.denied_environment:
            raise PermissionDenied(pid, "environment")
        self.get_process_info(pid)
        return dict(self.environments.get(pid, {}))

    def list_processes(self) -> list[ProcessInfo]:
        return list(self.processes.values())

    def list_connections_for_port(self, port: int) -> list[ConnectionInfo]:
        return list(self.connections.get(port, []))

    def send_signal(self, pid: int, sig: int) -> None:
        self.signals.append((pid, sig))
        if pid in self.denied_signal:
            raise PermissionDenied(pid, "signal")
        if pid not in self.processes:
            raise ProcessNotFound(pid)
        if pid not in self.survivors:
            del self.processes[pid]
            self.sockets = [s for s in self.sockets if s.pid != pid]

    def pid_exists(self, pid: int) -> bool:
        return pid in self.processes

    def is_port_bindable(self, port: int) -> bool:
        return port not in self.bound_ports

    def get_container_id(self, pid: int) -> str | None:
        return self.container_ids.get(pid)


class FakeDocker(DockerClient):
    """Docker client with a fixed container list."""

    def __init__(self, containers: list[ContainerInfo] | None = None) -> None:
        super().__init__(executable="docker")
        self._containers = list(containers or [])


@pytest.fixture
def temp_dir():
    """Temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def inventory():
    """Empty fake inventory."""
    return FakeInventory()


@pytest.fixture
def fake_docker():
    """Docker client without containers."""
    return FakeDocker()


@pytest.fixture
def settings():
    """Settings with short timeouts and no kill grace period."""
    return Settings(max_workers=4, fetch_timeout=2.0, kill_grace=0.0)


@pytest.fixture
def inspector(inventory, fake_docker, settings):
    """Inspector over the fake inventory."""
    return PortInspector(inventory, containers=fake_docker, settings=settings)


@pytest.fixture
def actions(inspector):
    """Port actions over the fake inventory."""
    return PortActions(inspector)


@pytest.fixture
def no_config(temp_dir, monkeypatch):
    """Point PORTY_CONFIG at a file that does not exist."""
    path = temp_dir / "missing.yaml"
    monkeypatch.setenv("PORTY_CONFIG", str(path))
    return path
