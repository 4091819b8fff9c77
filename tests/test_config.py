"""Tests for config module."""

from porty.classifier import DEFAULT_RULES
from porty.config import Settings, get_config_path, load_settings


def test_missing_config_gives_defaults(temp_dir):
    """Test that a missing file yields the default settings."""
    settings = load_settings(temp_dir / "nope.yaml")

    assert settings == Settings()
    assert settings.rules is DEFAULT_RULES


def test_load_settings(temp_dir):
    """Test loading workers, timeouts and extra rules."""
    config_path = temp_dir / "config.yaml"
    config_path.write_text(
        """
workers: 3
timeout: 1.5
kill_grace: 0
rules:
  database: [ClickHouse, cockroach]
  dev: air
  dev_ports: [4000, "4321"]
"""
    )

    settings = load_settings(config_path)

    assert settings.max_workers == 3
    assert settings.fetch_timeout == 1.5
    assert settings.kill_grace == 0.0
    assert {"clickhouse", "cockroach", "postgres"} <= settings.rules.database_names
    assert "air" in settings.rules.dev_names
    assert {4000, 4321, 3000} <= settings.rules.dev_ports


def test_malformed_yaml_gives_defaults(temp_dir):
    """Test that broken YAML is ignored."""
    config_path = temp_dir / "config.yaml"
    config_path.write_text("rules: [unclosed\n")

    assert load_settings(config_path) == Settings()


def test_invalid_values_give_defaults(temp_dir):
    """Test that wrong types and ranges are ignored."""
    config_path = temp_dir / "config.yaml"

    config_path.write_text("rules:\n  dev_ports: [99999]\n")
    assert load_settings(config_path) == Settings()

    config_path.write_text("workers: 0\n")
    assert load_settings(config_path) == Settings()

    config_path.write_text("rules:\n  database: {a: b}\n")
    assert load_settings(config_path) == Settings()

    config_path.write_text("- just\n- a list\n")
    assert load_settings(config_path) == Settings()


def test_empty_config(temp_dir):
    """Test an empty config file."""
    config_path = temp_dir / "config.yaml"
    config_path.write_text("")

    assert load_settings(config_path) == Settings()


def test_config_path_override(temp_dir, monkeypatch):
    """Test PORTY_CONFIG overriding the config location."""
    config_path = temp_dir / "custom.yaml"
    config_path.write_text("timeout: 9\n")
    monkeypatch.setenv("PORTY_CONFIG", str(config_path))

    assert get_config_path() == config_path
    assert load_settings().fetch_timeout == 9.0


def test_default_config_path(monkeypatch):
    """Test the platform config location."""
    monkeypatch.delenv("PORTY_CONFIG", raising=False)

    path = get_config_path()

    assert path.name == "config.yaml"
    assert "porty" in str(path)
