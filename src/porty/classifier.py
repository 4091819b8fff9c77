"""Process classification rules for Porty."""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from .models import Category


@dataclass(frozen=True)
class ClassifierRules:
    """Lookup tables used by the classifier.

    Name sets are matched as lowercase substrings of the process name,
    ``dev_markers`` as lowercase substrings of the command line.
    """

    system_names: frozenset[str]
    container_names: frozenset[str]
    database_names: frozenset[str]
    dev_names: frozenset[str]
    dev_markers: frozenset[str]
    dev_ports: frozenset[int]

    def extended(
        self,
        system: Iterable[str] = (),
        container: Iterable[str] = (),
        database: Iterable[str] = (),
        dev: Iterable[str] = (),
        dev_markers: Iterable[str] = (),
        dev_ports: Iterable[int] = (),
    ) -> "ClassifierRules":
        """Return a copy with additional names and ports.

        Args:
            system: Extra system service names
            container: Extra container runtime names
            database: Extra database server names
            dev: Extra dev runtime/tool names
            dev_markers: Extra command line markers for dev servers
            dev_ports: Extra dev server ports

        Returns:
            New ClassifierRules instance
        """
        return ClassifierRules(
            system_names=self.system_names | _lower(system),
            container_names=self.container_names | _lower(container),
            database_names=self.database_names | _lower(database),
            dev_names=self.dev_names | _lower(dev),
            dev_markers=self.dev_markers | _lower(dev_markers),
            dev_ports=self.dev_ports | frozenset(int(p) for p in dev_ports),
        )


def _lower(names: Iterable[str]) -> frozenset[str]:
    return frozenset(str(n).lower() for n in names)


DEFAULT_RULES = ClassifierRules(
    # macOS services first, then the usual Linux daemons
    system_names=frozenset(
        {
            "launchd",
            "mdnsresponder",
            "cups",
            "controlcenter",
            "airplay",
            "systemd",
            "sshd",
            "rpcbind",
            "avahi-daemon",
            "dnsmasq",
        }
    ),
    container_names=frozenset({"docker", "containerd", "colima", "podman"}),
    database_names=frozenset({"postgres", "mysql", "mariadb", "redis", "mongod", "couchdb"}),
    dev_names=frozenset(
        {
            "node",
            "vite",
            "next",
            "python",
            "ruby",
            "rails",
            "django",
            "flask",
            "phoenix",
            "webpack",
            "npm",
            "yarn",
            "puma",
            "unicorn",
            "bun",
            "deno",
        }
    ),
    dev_markers=frozenset(
        {"django", "flask", "runserver", "uvicorn", "rails", "phx.server", "vite", "webpack"}
    ),
    dev_ports=frozenset({3000, 3001, 4200, 5000, 5173, 8000, 8080, 9000}),
)


class Classifier:
    """Map a process to a Category using ordered rules.

    Rules are evaluated in order and the first match wins:
    1. System service names
    2. Container runtime names
    3. Database server names
    4. Dev runtime names, dev command line markers or dev ports
    5. Unknown
    """

    def __init__(self, rules: ClassifierRules = DEFAULT_RULES) -> None:
        """Initialize classifier.

        Args:
            rules: Lookup tables to classify with
        """
        self.rules = rules

    def classify(self, process_name: str, command_line: str = "", port: int = 0) -> Category:
        """Classify a process bound to a port.

        Args:
            process_name: Process name
            command_line: Full command line joined with spaces
            port: Listening port

        Returns:
            The matching Category
        """
        name = (process_name or "").lower()
        cmd = (command_line or "").lower()
        rules = self.rules

        if _contains_any(name, rules.system_names):
            return Category.SYSTEM
        if _contains_any(name, rules.container_names):
            return Category.CONTAINER
        if _contains_any(name, rules.database_names):
            return Category.DATABASE
        if (
            _contains_any(name, rules.dev_names)
            or _contains_any(cmd, rules.dev_markers)
            or port in rules.dev_ports
        ):
            return Category.DEV_SERVER
        return Category.UNKNOWN


def _contains_any(value: str, needles: frozenset[str]) -> bool:
    return bool(value) and any(needle in value for needle in needles)


class View(Enum):
    """Named filters over categories."""

    DEFAULT = "default"
    ALL = "all"
    DEV = "dev"
    PROD = "prod"

    @property
    def categories(self) -> frozenset[Category] | None:
        """Categories shown by this view, or None for no filter."""
        return _VIEW_CATEGORIES[self]

    def includes(self, category: Category) -> bool:
        """Check whether a category is shown by this view."""
        categories = self.categories
        return categories is None or category in categories


_VIEW_CATEGORIES: dict[View, frozenset[Category] | None] = {
    View.ALL: None,
    View.DEV: frozenset({Category.DEV_SERVER}),
    View.PROD: frozenset({Category.DEV_SERVER, Category.CONTAINER}),
    View.DEFAULT: frozenset({Category.DEV_SERVER, Category.UNKNOWN}),
}
