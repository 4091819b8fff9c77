"""Docker container lookup for Porty."""

import re
import subprocess

from .console import debug
from .models import ContainerInfo

DOCKER_PS_FORMAT = "{{.ID}}|{{.Names}}|{{.Image}}|{{.Status}}|{{.Mounts}}|{{.Ports}}"

# Well-known service ports, used to label containers docker did not report
SERVICE_PORTS: dict[int, str] = {
    5432: "postgresql",
    3306: "mysql",
    6379: "redis",
    27017: "mongodb",
    7474: "neo4j-http",
    7473: "neo4j-https",
    7687: "neo4j-bolt",
    9200: "elasticsearch",
    9300: "elasticsearch-cluster",
    5672: "rabbitmq",
    15672: "rabbitmq-mgmt",
    11211: "memcached",
    5984: "couchdb",
    9042: "cassandra",
    8086: "influxdb",
    9092: "kafka",
    9000: "minio",
    9001: "minio-console",
}


class DockerClient:
    """Query running containers through the docker CLI."""

    def __init__(self, executable: str = "docker") -> None:
        self.executable = executable
        self._containers: list[ContainerInfo] | None = None

    def list_containers(self) -> list[ContainerInfo]:
        """List running containers.

        The result is cached for the lifetime of the client, which is one
        command invocation.

        Returns:
            Containers, or an empty list if docker is unavailable
        """
        if self._containers is None:
            self._containers = self._scan()
        return self._containers

    def _scan(self) -> list[ContainerInfo]:
        try:
            result = subprocess.run(
                [self.executable, "ps", "--format", DOCKER_PS_FORMAT],
                capture_output=True,
                text=True,
                timeout=5,
            )
        except (subprocess.SubprocessError, FileNotFoundError) as e:
            debug(f"docker ps failed: {e}")
            return []

        if result.returncode != 0:
            debug(f"docker ps exited with status {result.returncode}")
            return []
        return parse_docker_ps(result.stdout)

    def find_by_port(self, port: int) -> ContainerInfo | None:
        """Find the container publishing a host port."""
        for container in self.list_containers():
            if port in container.host_ports:
                return container
        return None

    def find_by_id(self, container_id: str) -> ContainerInfo | None:
        """Find a container by full or abbreviated id."""
        for container in self.list_containers():
            if container_id.startswith(container.id) or container.id.startswith(container_id):
                return container
        return None


def parse_docker_ps(text: str) -> list[ContainerInfo]:
    """Parse ``docker ps`` output produced with DOCKER_PS_FORMAT.

    Args:
        text: docker stdout

    Returns:
        List of containers
    """
    containers: list[ContainerInfo] = []

    for line in text.splitlines():
        if not line.strip():
            continue
        parts = line.split("|", 5)
        if len(parts) < 6:
            continue

        container_id, name, image, status, mounts, ports = parts
        volumes = tuple(v.strip() for v in mounts.split(",") if v.strip())
        containers.append(
            ContainerInfo(
                id=container_id.strip(),
                name=name.strip(),
                image=image.strip(),
                status=status.strip(),
                volumes=volumes,
                host_ports=parse_host_ports(ports),
            )
        )

    return containers


def parse_host_ports(ports: str) -> frozenset[int]:
    """Extract published host ports from a docker port list.

    Examples:
        "0.0.0.0:8080->80/tcp, :::8080->80/tcp" -> {8080}
        "6379/tcp" -> {} (exposed, not published)
    """
    host_ports: set[int] = set()
    for mapping in ports.split(","):
        mapping = mapping.strip()
        if "->" not in mapping:
            continue
        host_side = mapping.split("->", 1)[0]
        match = re.search(r":(\d+)$", host_side)
        if match:
            host_ports.add(int(match.group(1)))
        else:
            # Ranges like 0.0.0.0:8000-8002->8000-8002/tcp
            range_match = re.search(r":(\d+)-(\d+)$", host_side)
            if range_match:
                start, end = int(range_match.group(1)), int(range_match.group(2))
                host_ports.update(range(start, end + 1))
    return frozenset(host_ports)


def parse_cgroup_container_id(text: str) -> str | None:
    """Extract a container id from ``/proc/<pid>/cgroup`` contents.

    Matches docker, containerd and podman cgroup paths such as
    ``0::/system.slice/docker-<id>.scope`` or ``12:pids:/docker/<id>``.
    """
    match = re.search(r"(?:docker|containerd|libpod)[-/:]([0-9a-f]{64})", text)
    if match:
        return match.group(1)
    return None


def is_generic_name(name: str) -> bool:
    """Check if a container name looks auto-generated or hash-like."""
    return len(name) > 20 or all(c in "0123456789abcdefABCDEF-" for c in name)


def friendly_container_name(container: ContainerInfo) -> str:
    """Label a container for the port list.

    Uses the image base name (``redis`` for ``library/redis:7-alpine``) when the
    container name is generic and the image name is not.
    """
    image_base = container.image.split(":")[0].split("/")[-1]
    if is_generic_name(container.name) and image_base and not is_generic_name(image_base):
        display = image_base
    else:
        display = container.name
    return f"{display} (container)"


def guess_service_by_port(port: int) -> str | None:
    """Guess the service behind a well-known port."""
    return SERVICE_PORTS.get(port)
