"""Porty - Local port inspector."""

__version__ = "0.1.3"

from .actions import KillOutcome, KillReport, KillTarget, PortActions, PortStatus
from .classifier import DEFAULT_RULES, Classifier, ClassifierRules, View
from .config import Settings, load_settings
from .errors import (
    KillFailed,
    PermissionDenied,
    PortNotInUse,
    PortyError,
    ProcessNotFound,
    QueryError,
)
from .inspector import PortDetail, PortInspector, Section
from .models import (
    AddressFamily,
    Category,
    ClassifiedPort,
    ConnectionInfo,
    ContainerInfo,
    PortRecord,
    ProcessInfo,
    ProcessTree,
    Protocol,
    ResourceUsage,
)
from .system import ProcessInventory, SystemInventory
from .tree import ProcessTreeResolver

__all__ = [
    "__version__",
    "AddressFamily",
    "Category",
    "ClassifiedPort",
    "Classifier",
    "ClassifierRules",
    "ConnectionInfo",
    "ContainerInfo",
    "DEFAULT_RULES",
    "KillFailed",
    "KillOutcome",
    "KillReport",
    "KillTarget",
    "PermissionDenied",
    "PortActions",
    "PortDetail",
    "PortInspector",
    "PortNotInUse",
    "PortRecord",
    "PortStatus",
    "PortyError",
    "ProcessInfo",
    "ProcessInventory",
    "ProcessNotFound",
    "ProcessTree",
    "ProcessTreeResolver",
    "Protocol",
    "QueryError",
    "ResourceUsage",
    "Section",
    "Settings",
    "SystemInventory",
    "View",
    "load_settings",
]
