"""Data models for Porty."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Protocol(Enum):
    """Transport protocol of a listening socket."""

    TCP = "TCP"


class AddressFamily(Enum):
    """Address family of a bound socket."""

    IPV4 = "IPv4"
    IPV6 = "IPv6"


class Category(Enum):
    """Semantic category of a listening process."""

    DEV_SERVER = "Dev Server"
    DATABASE = "Database"
    CONTAINER = "Container"
    SYSTEM = "System"
    UNKNOWN = "Unknown"

    @property
    def label(self) -> str:
        """Human-readable category name."""
        return self.value


@dataclass(frozen=True)
class PortRecord:
    """A single TCP socket in LISTEN state."""

    port: int
    pid: int
    process_name: str
    address: str = "*"
    family: AddressFamily = AddressFamily.IPV4
    protocol: Protocol = Protocol.TCP

    @property
    def endpoint(self) -> str:
        """Address and port as shown by lsof, e.g. ``[::]:3000``."""
        if self.family is AddressFamily.IPV6 and self.address != "*":
            return f"[{self.address}]:{self.port}"
        return f"{self.address}:{self.port}"


@dataclass(frozen=True)
class ProcessInfo:
    """Metadata of one process.

    Only ``pid`` and ``name`` are guaranteed; every other field is filled on a
    best-effort basis and left at its default when the OS refuses to reveal it.
    """

    pid: int
    name: str
    parent_pid: int | None = None
    exe: str | None = None
    cmdline: tuple[str, ...] = ()
    cwd: str | None = None
    username: str | None = None
    uid: int | None = None
    start_time: datetime | None = None
    memory_rss: int = 0  # Bytes
    memory_vms: int = 0  # Bytes
    cpu_percent: float = 0.0  # Not sampled here, see ResourceUsage
    num_threads: int = 0
    num_fds: int | None = None
    environment: dict[str, str] | None = field(default=None, compare=False)

    @property
    def command_line(self) -> str:
        """Command line joined with spaces, falling back to the name."""
        return " ".join(self.cmdline) if self.cmdline else self.name


@dataclass(frozen=True)
class ResourceUsage:
    """Resource usage of one process."""

    memory_rss: int  # Bytes
    memory_vms: int  # Bytes
    cpu_percent: float
    num_threads: int
    num_fds: int | None = None


@dataclass(frozen=True)
class ConnectionInfo:
    """An active (non-listening) TCP connection."""

    local_address: str
    local_port: int
    remote_address: str
    remote_port: int
    pid: int | None = None
    status: str = "ESTABLISHED"


@dataclass(frozen=True)
class ProcessTree:
    """Ancestry and immediate children of a process.

    ``ancestors`` is ordered closest parent first. ``children`` holds distinct
    processes ordered by PID.
    """

    pid: int
    ancestors: tuple[ProcessInfo, ...] = ()
    children: tuple[ProcessInfo, ...] = ()


@dataclass(frozen=True)
class ContainerInfo:
    """A running container as reported by ``docker ps``."""

    id: str
    name: str
    image: str
    status: str = ""
    volumes: tuple[str, ...] = ()
    host_ports: frozenset[int] = frozenset()


@dataclass(frozen=True)
class ClassifiedPort:
    """A listening port with its owning process and category."""

    record: PortRecord
    process: ProcessInfo
    category: Category
    container: ContainerInfo | None = None
    display_name: str | None = None

    @property
    def port(self) -> int:
        return self.record.port

    @property
    def pid(self) -> int:
        return self.record.pid

    @property
    def name(self) -> str:
        """Name shown to the user (container label when known)."""
        return self.display_name or self.process.name or self.record.process_name

    @property
    def exec_path(self) -> str | None:
        return self.process.exe
