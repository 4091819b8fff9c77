"""Configuration management for Porty."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import platformdirs
import yaml

from .classifier import DEFAULT_RULES, ClassifierRules
from .console import debug


@dataclass(frozen=True)
class Settings:
    """Runtime settings for one porty invocation."""

    rules: ClassifierRules = DEFAULT_RULES
    max_workers: int | None = None  # None = one worker per core
    fetch_timeout: float = 5.0  # Seconds per detail section
    kill_grace: float = 0.3  # Seconds between SIGTERM and SIGKILL


def get_config_dir() -> Path:
    """Get the configuration directory for Porty.

    Returns:
        Path to config directory (not created)
    """
    return Path(platformdirs.user_config_dir("porty", "porty"))


def get_config_path() -> Path:
    """Get the config file path, honouring PORTY_CONFIG.

    Returns:
        Path to config file
    """
    override = os.getenv("PORTY_CONFIG")
    if override:
        return Path(override).expanduser()
    return get_config_dir() / "config.yaml"


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from a YAML config file.

    Example file::

        workers: 4
        timeout: 2.5
        rules:
          database: [clickhouse, cockroach]
          dev_ports: [4000, 4321]

    Rule entries extend the built-in tables. A missing or malformed file
    yields the defaults.

    Args:
        path: Config file to read. Defaults to get_config_path().

    Returns:
        Settings instance
    """
    path = path or get_config_path()
    if not path.exists():
        return Settings()

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        debug(f"Ignoring config {path}: {e}")
        return Settings()

    if not data:
        return Settings()
    if not isinstance(data, dict):
        debug(f"Ignoring config {path}: expected a mapping")
        return Settings()

    try:
        return _parse_settings(data)
    except (TypeError, ValueError) as e:
        debug(f"Ignoring config {path}: {e}")
        return Settings()


def _parse_settings(data: dict[str, Any]) -> Settings:
    """Build Settings from parsed YAML.

    Raises:
        TypeError: If a value has the wrong shape
        ValueError: If a number is invalid
    """
    rules_data = data.get("rules") or {}
    if not isinstance(rules_data, dict):
        raise TypeError("'rules' must be a mapping")

    rules = DEFAULT_RULES.extended(
        system=_as_list(rules_data.get("system")),
        container=_as_list(rules_data.get("container")),
        database=_as_list(rules_data.get("database")),
        dev=_as_list(rules_data.get("dev")),
        dev_markers=_as_list(rules_data.get("dev_markers")),
        dev_ports=[_as_port(p) for p in _as_list(rules_data.get("dev_ports"))],
    )

    workers = data.get("workers")
    if workers is not None:
        workers = int(workers)
        if workers < 1:
            raise ValueError("'workers' must be at least 1")

    timeout = float(data.get("timeout", Settings.fetch_timeout))
    if timeout <= 0:
        raise ValueError("'timeout' must be positive")

    kill_grace = float(data.get("kill_grace", Settings.kill_grace))
    if kill_grace < 0:
        raise ValueError("'kill_grace' must not be negative")

    return Settings(
        rules=rules,
        max_workers=workers,
        fetch_timeout=timeout,
        kill_grace=kill_grace,
    )


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (str, int)):
        return [value]
    if isinstance(value, list):
        return value
    raise TypeError(f"expected a list, got {type(value).__name__}")


def _as_port(value: Any) -> int:
    port = int(value)
    if not 0 < port < 65536:
        raise ValueError(f"invalid port {value!r}")
    return port
