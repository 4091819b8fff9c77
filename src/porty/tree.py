"""Process tree reconstruction for Porty."""

from collections.abc import Iterable

from .console import debug
from .errors import PermissionDenied, ProcessNotFound
from .models import ProcessInfo, ProcessTree
from .system import ProcessInventory

DEFAULT_MAX_DEPTH = 32


class ProcessTreeResolver:
    """Resolve the ancestry and children of a process."""

    def __init__(self, inventory: ProcessInventory) -> None:
        """Initialize resolver.

        Args:
            inventory: Inventory used to look up processes
        """
        self.inventory = inventory

    def resolve(
        self,
        pid: int,
        max_depth: int = DEFAULT_MAX_DEPTH,
        snapshot: Iterable[ProcessInfo] | None = None,
    ) -> ProcessTree:
        """Build the process tree of a PID.

        Walks parent links upward until a process has no parent, a PID repeats
        or ``max_depth`` ancestors were collected. Children are the processes
        of ``snapshot`` (or of a fresh process listing) whose parent is ``pid``.

        Args:
            pid: Process ID
            max_depth: Maximum number of ancestors to collect
            snapshot: Process list to search for children

        Returns:
            ProcessTree with ancestors ordered closest parent first

        Raises:
            ProcessNotFound: If ``pid`` itself no longer exists
        """
        ancestors = self.ancestors(pid, max_depth)
        children = self.children(pid, snapshot)
        return ProcessTree(pid=pid, ancestors=tuple(ancestors), children=tuple(children))

    def ancestors(self, pid: int, max_depth: int = DEFAULT_MAX_DEPTH) -> list[ProcessInfo]:
        """Collect the parent chain of a process, closest parent first."""
        chain: list[ProcessInfo] = []
        visited = {pid}
        current = self.inventory.get_process_info(pid)

        while len(chain) < max_depth:
            parent_pid = current.parent_pid
            if not parent_pid or parent_pid in visited:
                break
            visited.add(parent_pid)

            try:
                current = self.inventory.get_process_info(parent_pid)
            except (ProcessNotFound, PermissionDenied) as e:
                debug(f"Stopping ancestry of {pid} at {parent_pid}: {e}")
                break
            chain.append(current)

        return chain

    def children(
        self, pid: int, snapshot: Iterable[ProcessInfo] | None = None
    ) -> list[ProcessInfo]:
        """List the immediate children of a process, ordered by PID."""
        if snapshot is None:
            snapshot = self.inventory.list_processes()

        found: dict[int, ProcessInfo] = {}
        for proc in snapshot:
            if proc.parent_pid == pid and proc.pid != pid:
                found.setdefault(proc.pid, proc)
        return [found[child_pid] for child_pid in sorted(found)]
