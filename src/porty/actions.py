"""Port availability checks and process termination for Porty."""

import signal
import time
from dataclasses import dataclass, field
from enum import Enum

from .config import Settings
from .console import debug
from .errors import KillFailed, PermissionDenied, PortNotInUse, ProcessNotFound
from .inspector import PortInspector
from .models import ClassifiedPort

DENIED_REASON = "permission denied"
SURVIVED_REASON = "still running"


class KillOutcome(Enum):
    """What happened to one kill target."""

    PLANNED = "would be killed"
    TERMINATED = "terminated"
    KILLED = "killed"
    ALREADY_EXITED = "already exited"
    DENIED = DENIED_REASON
    SURVIVED = SURVIVED_REASON

    @property
    def ok(self) -> bool:
        return self not in (KillOutcome.DENIED, KillOutcome.SURVIVED)


@dataclass
class KillTarget:
    """A process holding the port."""

    pid: int
    name: str
    outcome: KillOutcome


@dataclass
class KillReport:
    """Result of a kill operation."""

    port: int
    dry_run: bool
    targets: list[KillTarget] = field(default_factory=list)

    @property
    def failed(self) -> list[KillTarget]:
        return [t for t in self.targets if not t.outcome.ok]

    @property
    def succeeded(self) -> bool:
        return not self.failed


@dataclass
class PortStatus:
    """Availability of a port."""

    port: int
    listeners: list[ClassifiedPort] = field(default_factory=list)
    bindable: bool = True

    @property
    def is_free(self) -> bool:
        """Free when nothing we can see listens and the port can be bound."""
        return not self.listeners and self.bindable


class PortActions:
    """Check and free ports."""

    def __init__(self, inspector: PortInspector, settings: Settings | None = None) -> None:
        """Initialize actions.

        Args:
            inspector: Inspector used for discovery
            settings: Runtime settings. Defaults to the inspector's.
        """
        self.inspector = inspector
        self.inventory = inspector.inventory
        self.settings = settings or inspector.settings

    def listeners(self, port: int) -> list[ClassifiedPort]:
        """Discover the listeners on one port, ordered by PID."""
        return [entry for entry in self.inspector.discover() if entry.port == port]

    def check_free(self, port: int) -> PortStatus:
        """Check whether a port is available.

        A port with no visible listener is probed with a bind, so sockets of
        processes hidden from us still count as in use.

        Args:
            port: Port number

        Returns:
            PortStatus with the listeners found
        """
        listeners = self.listeners(port)
        bindable = True if listeners else self.inventory.is_port_bindable(port)
        return PortStatus(port=port, listeners=listeners, bindable=bindable)

    def kill(self, port: int, force: bool = False) -> KillReport:
        """Terminate every process listening on a port.

        Without ``force`` nothing is signalled; the report lists what would be
        terminated. A failure on one PID does not stop the others.

        Args:
            port: Port number
            force: Actually send signals

        Returns:
            KillReport with one target per PID

        Raises:
            PortNotInUse: If nothing listens on the port
        """
        listeners = self.listeners(port)
        if not listeners:
            raise PortNotInUse(port)

        # Forked workers may share the socket; signal each PID once
        names: dict[int, str] = {}
        for entry in listeners:
            names.setdefault(entry.pid, entry.name)

        report = KillReport(port=port, dry_run=not force)
        for pid in sorted(names):
            if not force:
                outcome = KillOutcome.PLANNED
            else:
                try:
                    outcome = self._terminate(pid)
                except KillFailed as e:
                    debug(str(e))
                    if e.reason == DENIED_REASON:
                        outcome = KillOutcome.DENIED
                    else:
                        outcome = KillOutcome.SURVIVED
            report.targets.append(KillTarget(pid=pid, name=names[pid], outcome=outcome))

        return report

    def _terminate(self, pid: int) -> KillOutcome:
        """Send SIGTERM, escalating to SIGKILL after the grace period.

        Raises:
            KillFailed: If signalling is denied or the process survives
        """
        try:
            self.inventory.send_signal(pid, signal.SIGTERM)
        except ProcessNotFound:
            return KillOutcome.ALREADY_EXITED
        except PermissionDenied as e:
            raise KillFailed(pid, DENIED_REASON) from e

        if self._wait_gone(pid):
            return KillOutcome.TERMINATED

        try:
            self.inventory.send_signal(pid, getattr(signal, "SIGKILL", signal.SIGTERM))
        except ProcessNotFound:
            return KillOutcome.TERMINATED
        except PermissionDenied as e:
            raise KillFailed(pid, DENIED_REASON) from e

        if self._wait_gone(pid):
            return KillOutcome.KILLED
        raise KillFailed(pid, SURVIVED_REASON)

    def _wait_gone(self, pid: int) -> bool:
        """Poll until the process is gone or the grace period ends."""
        deadline = time.monotonic() + self.settings.kill_grace
        while True:
            if not self.inventory.pid_exists(pid):
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            time.sleep(min(0.05, remaining))
