"""Error taxonomy for Porty."""


class PortyError(Exception):
    """Base class for all Porty errors."""

    pass


class QueryError(PortyError):
    """Raised when the inventory source itself cannot be queried."""

    pass


class ProcessNotFound(PortyError):
    """Raised when a process vanished between discovery and lookup."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"Process {pid} no longer exists")
        self.pid = pid


class PermissionDenied(PortyError):
    """Raised when a field of a process cannot be read."""

    def __init__(self, pid: int, field: str = "process") -> None:
        super().__init__(f"Permission denied reading {field} of process {pid}")
        self.pid = pid
        self.field = field


class PortNotInUse(PortyError):
    """Raised when no process is listening on the requested port."""

    def __init__(self, port: int) -> None:
        super().__init__(f"No listener found on port {port}")
        self.port = port


class KillFailed(PortyError):
    """Raised when a process could not be terminated."""

    def __init__(self, pid: int, reason: str) -> None:
        super().__init__(f"Failed to kill process {pid}: {reason}")
        self.pid = pid
        self.reason = reason
