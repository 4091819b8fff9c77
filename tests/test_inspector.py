"""Tests for inspector module."""

import subprocess
import sys
import textwrap
import time
from pathlib import Path

import pytest

from porty.classifier import View
from porty.errors import PortNotInUse, QueryError
from porty.inspector import PortInspector, SECTION_ORDER
from porty.models import AddressFamily, Category, ConnectionInfo, ContainerInfo
from porty.system import dedupe_port_records

from conftest import FakeDocker


@pytest.fixture
def mixed_inventory(inventory):
    """Inventory with one listener of every category."""
    inventory.add_listener(8080, 300, "python3", exe="/usr/bin/python3")
    inventory.add_listener(3000, 100, "node", exe="/usr/local/bin/node")
    inventory.add_listener(5432, 200, "postgres")
    inventory.add_listener(6379, 400, "com.docker.backend")
    inventory.add_listener(631, 1, "cupsd")
    inventory.add_listener(25565, 500, "java")
    return inventory


def test_dev_view_single_node_server(inventory, inspector):
    """Test that a node server on 3000 is the only dev entry."""
    inventory.add_listener(3000, 100, "node")

    entries = inspector.list_ports(View.DEV)

    assert len(entries) == 1
    assert entries[0].port == 3000
    assert entries[0].pid == 100
    assert entries[0].category == Category.DEV_SERVER


def test_list_sorted_by_port(mixed_inventory, inspector):
    """Test that entries come back sorted by port."""
    ports = [e.port for e in inspector.list_ports(View.ALL)]

    assert ports == sorted(ports)
    assert ports == [631, 3000, 5432, 6379, 8080, 25565]


def test_view_subsets(mixed_inventory, inspector):
    """Test dev ⊆ all, prod = dev ∪ containers."""
    all_entries = inspector.list_ports(View.ALL)
    dev = inspector.list_ports(View.DEV)
    prod = inspector.list_ports(View.PROD)
    default = inspector.list_ports(View.DEFAULT)

    keys = lambda entries: {(e.port, e.pid) for e in entries}  # noqa: E731
    containers = {(e.port, e.pid) for e in all_entries if e.category == Category.CONTAINER}

    assert keys(dev) <= keys(all_entries)
    assert keys(prod) == keys(dev) | containers
    assert keys(dev) == {(3000, 100), (8080, 300)}
    assert keys(default) == {(3000, 100), (8080, 300), (25565, 500)}


def test_dual_stack_listener_is_listed_once(inventory, inspector):
    """Test that IPv4 and IPv6 sockets of one process collapse into one entry."""
    inventory.add_listener(3000, 100, "node", address="::", family=AddressFamily.IPV6)
    inventory.add_listener(3000, 100, "node", address="0.0.0.0")

    entries = inspector.list_ports(View.ALL)

    assert len(entries) == 1
    assert entries[0].record.family == AddressFamily.IPV4


def test_shared_socket_lists_each_pid(inventory, inspector):
    """Test that forked workers sharing a port each get an entry."""
    inventory.add_listener(8000, 12, "gunicorn")
    inventory.add_listener(8000, 11, "gunicorn")

    entries = inspector.list_ports(View.ALL)

    assert [(e.port, e.pid) for e in entries] == [(8000, 11), (8000, 12)]


def test_dedupe_key_is_port_and_pid():
    """Test the dedupe key on a raw socket fixture."""
    from porty.models import PortRecord

    records = [
        PortRecord(3000, 100, "node", "::", AddressFamily.IPV6),
        PortRecord(3000, 100, "node", "0.0.0.0", AddressFamily.IPV4),
        PortRecord(3000, 101, "node", "127.0.0.1", AddressFamily.IPV4),
        PortRecord(80, 5, "nginx", "0.0.0.0", AddressFamily.IPV4),
    ]

    unique = dedupe_port_records(records)

    assert [(r.port, r.pid, r.address) for r in unique] == [
        (80, 5, "0.0.0.0"),
        (3000, 100, "0.0.0.0"),
        (3000, 101, "127.0.0.1"),
    ]


def test_verbose_adds_exec_path(mixed_inventory, inspector):
    """Test that verbose listing fetches executable paths."""
    entries = inspector.list_ports(View.DEV, verbose=True)

    assert [e.exec_path for e in entries] == ["/usr/local/bin/node", "/usr/bin/python3"]


def test_verbose_without_exec_path(mixed_inventory, inspector):
    """Test that non-verbose listing does not fetch process details."""
    entries = inspector.list_ports(View.DEV)

    assert all(e.exec_path is None for e in entries)


def test_verbose_drops_vanished_process(mixed_inventory, inspector):
    """Test that a process exiting before enrichment is dropped."""
    del mixed_inventory.processes[300]

    entries = inspector.list_ports(View.DEV, verbose=True)

    assert [e.pid for e in entries] == [100]


def test_verbose_keeps_port_order(inventory, settings, fake_docker):
    """Test ordering with many entries enriched in parallel."""
    for i in range(50):
        inventory.add_listener(40000 - i, 1000 + i, "node", exe=f"/bin/node{i}")
    inspector = PortInspector(inventory, containers=fake_docker, settings=settings)

    entries = inspector.list_ports(View.ALL, verbose=True)

    assert [e.port for e in entries] == sorted(e.port for e in entries)
    assert all(e.exec_path == f"/bin/node{e.pid - 1000}" for e in entries)


def test_query_error_propagates(inventory, inspector):
    """Test that an unusable inventory fails the listing."""
    inventory.fail_query = True

    with pytest.raises(QueryError):
        inspector.list_ports(View.ALL)


def test_container_entries_get_container_names(inventory, settings):
    """Test labelling container runtime entries."""
    inventory.add_listener(6379, 400, "com.docker.backend")
    inventory.add_listener(5432, 400, "com.docker.backend")
    inventory.add_listener(7777, 400, "com.docker.backend")
    docker = FakeDocker(
        [ContainerInfo(id="abc123", name="cache", image="redis:7", host_ports=frozenset({6379}))]
    )
    inspector = PortInspector(inventory, containers=docker, settings=settings)

    names = {e.port: e.name for e in inspector.list_ports(View.ALL)}

    assert names[6379] == "cache (container)"
    assert names[5432] == "postgresql (container)"
    assert names[7777] == "com.docker.backend"


def test_inspect_port_collects_all_sections(inventory, inspector):
    """Test a detail report where every section succeeds."""
    inventory.add_process(1, "launchd")
    inventory.add_listener(
        3000,
        100,
        "node",
        parent_pid=1,
        cmdline=("node", "server.js"),
        memory_rss=50 * 1024 * 1024,
        num_threads=7,
    )
    inventory.add_listener(3000, 100, "node", address="::", family=AddressFamily.IPV6)
    inventory.add_listener(9229, 100, "node", address="127.0.0.1")
    inventory.add_process(101, "esbuild", parent_pid=100)
    inventory.environments[100] = {"NODE_ENV": "development"}
    inventory.connections[3000] = [ConnectionInfo("127.0.0.1", 3000, "127.0.0.1", 51000)]

    detail = inspector.inspect_port(3000)

    assert detail.pid == 100
    assert detail.category == Category.DEV_SERVER
    assert all(section.available for _, section in detail.sections())
    assert [name for name, _ in detail.sections()] == list(SECTION_ORDER)
    assert detail.process.value.command_line == "node server.js"
    assert [p.pid for p in detail.tree.value.ancestors] == [1]
    assert [c.pid for c in detail.tree.value.children] == [101]
    assert detail.resources.value.num_threads == 7
    assert [r.family for r in detail.addresses.value] == [AddressFamily.IPV4, AddressFamily.IPV6]
    assert len(detail.connections.value) == 1
    assert detail.other_ports.value == [9229]
    assert detail.environment.value == {"NODE_ENV": "development"}
    assert detail.container.value is None
    assert not detail.is_empty


def test_inspect_port_not_in_use(inspector):
    """Test that a port without listener raises PortNotInUse."""
    with pytest.raises(PortNotInUse):
        inspector.inspect_port(4000)


def test_inspect_environment_denied(inventory, inspector):
    """Test that a denied environment only affects its own section."""
    inventory.add_listener(8080, 55, "python3")
    inventory.denied_environment.add(55)

    detail = inspector.inspect_port(8080)

    assert not detail.environment.available
    assert detail.environment.error == "permission denied"
    assert not detail.is_empty
    for name, section in detail.sections():
        if name != "environment":
            assert section.available, name


def test_inspect_slow_section_times_out(inventory, fake_docker):
    """Test that a hung section is reported as timed out."""
    from porty.config import Settings

    inventory.add_listener(8080, 55, "python3")
    inventory.resource_delay = 1.0
    inspector = PortInspector(
        inventory, containers=fake_docker, settings=Settings(fetch_timeout=0.2)
    )

    detail = inspector.inspect_port(8080)

    assert detail.resources.error == "timed out"
    assert detail.process.available


def test_inspect_vanished_process(inventory, inspector):
    """Test a process that exits between discovery and inspection."""
    inventory.add_listener(8080, 55, "python3")
    del inventory.processes[55]

    detail = inspector.inspect_port(8080)

    assert detail.process.error == "process exited"
    assert detail.is_empty
    assert detail.process_name == "python3"
    assert detail.category == Category.DEV_SERVER
    # Socket snapshot based sections still work
    assert detail.addresses.available


def test_inspect_uses_command_line_for_category(inventory, inspector):
    """Test that the detail view classifies with the full command line."""
    inventory.add_listener(9999, 77, "java", cmdline=("java", "-Dvite=1", "-jar", "app.jar"))

    detail = inspector.inspect_port(9999)

    assert detail.category == Category.DEV_SERVER


def test_inspect_reports_other_pids(inventory, inspector):
    """Test that other listeners on the same port are reported."""
    inventory.add_listener(8000, 12, "gunicorn")
    inventory.add_listener(8000, 11, "gunicorn")

    detail = inspector.inspect_port(8000)

    assert detail.pid == 11
    assert detail.other_pids == [12]


def test_inspect_containerized_process(inventory, settings):
    """Test container metadata for a process running inside a container."""
    container_id = "f" * 64
    inventory.add_listener(5000, 42, "python3")
    inventory.container_ids[42] = container_id
    docker = FakeDocker([ContainerInfo(id="ffffffffffff", name="api", image="myorg/api:latest")])
    inspector = PortInspector(inventory, containers=docker, settings=settings)

    detail = inspector.inspect_port(5000)

    assert detail.container.value.name == "api"


def test_inspect_container_runtime(inventory, settings):
    """Test container metadata for a port forwarded by docker."""
    inventory.add_listener(6379, 400, "com.docker.backend")
    docker = FakeDocker(
        [ContainerInfo(id="abc123", name="cache", image="redis:7", host_ports=frozenset({6379}))]
    )
    inspector = PortInspector(inventory, containers=docker, settings=settings)

    detail = inspector.inspect_port(6379)

    assert detail.category == Category.CONTAINER
    assert detail.container.value.image == "redis:7"


def test_hung_section_does_not_delay_exit(tmp_path):
    """Test that the interpreter exits while a timed-out fetch still runs."""
    script = tmp_path / "inspect_script.py"
    script.write_text(
        textwrap.dedent(
            f"""
            import sys
            sys.path.insert(0, {str(Path(__file__).parent)!r})

            from conftest import FakeDocker, FakeInventory
            from porty.config import Settings
            from porty.inspector import PortInspector

            inventory = FakeInventory()
            inventory.add_listener(8080, 55, "python3")
            inventory.resource_delay = 30.0
            inspector = PortInspector(
                inventory, containers=FakeDocker(), settings=Settings(fetch_timeout=0.2)
            )
            print(inspector.inspect_port(8080).resources.error)
            """
        )
    )

    start = time.monotonic()
    result = subprocess.run(
        [sys.executable, str(script)], capture_output=True, text=True, timeout=25
    )
    elapsed = time.monotonic() - start

    assert result.returncode == 0, result.stderr
    assert result.stdout.strip() == "timed out"
    assert elapsed < 15
