# tests/test_config.py
"""
Tests for configuration loading and environment overrides.
"""
from pathlib import Path

import pytest
from pydantic import ValidationError

from context_rollback.config import ConfigManager, RollbackCleanupConfig

ENV_VARS = [
    "HOLISTIC_ROLLBACK_DIR", "CONTEXT_BASE_PATH",
    "ROLLBACK_MAX_AGE_HOURS", "ROLLBACK_MAX_COUNT", "ROLLBACK_DEBUG",
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, temp_dir):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(temp_dir)


def test_defaults(temp_dir):
    manager = ConfigManager(temp_dir / "missing.toml")
    config = manager.load_config()

    assert config.state_dir == Path(".rollback-state")
    assert config.debug is False
    assert config.cleanup.max_age == 24
    assert config.cleanup.max_count == 10
    assert config.cleanup.cleanup_triggers == {"full-reindex", "startup"}
    assert config.cleanup.aggressive_cleanup is False


def test_load_from_toml(temp_dir):
    config_file = temp_dir / "config.toml"
    config_file.write_text(
        'state_dir = "/var/lib/rollback"\n'
        "debug = true\n"
        "\n"
        "[cleanup]\n"
        "max_age = 12\n"
        "max_count = 3\n"
        'cleanup_triggers = ["manual-only"]\n'
    )

    config = ConfigManager(config_file).load_config()

    assert config.state_dir == Path("/var/lib/rollback")
    assert config.debug is True
    assert config.cleanup.max_age == 12
    assert config.cleanup.max_count == 3
    assert config.cleanup.cleanup_triggers == {"manual-only"}


def test_invalid_toml_falls_back_to_defaults(temp_dir):
    config_file = temp_dir / "config.toml"
    config_file.write_text("this is = = not toml")

    config = ConfigManager(config_file).load_config()

    assert config.cleanup.max_count == 10


def test_invalid_values_fall_back_to_defaults(temp_dir):
    config_file = temp_dir / "config.toml"
    config_file.write_text("[cleanup]\nmax_age = -5\n")

    config = ConfigManager(config_file).load_config()

    assert config.cleanup.max_age == 24


def test_environment_overrides(monkeypatch, temp_dir):
    monkeypatch.setenv("HOLISTIC_ROLLBACK_DIR", str(temp_dir / "custom-state"))
    monkeypatch.setenv("CONTEXT_BASE_PATH", str(temp_dir / "project"))
    monkeypatch.setenv("ROLLBACK_MAX_AGE_HOURS", "6.5")
    monkeypatch.setenv("ROLLBACK_MAX_COUNT", "4")
    monkeypatch.setenv("ROLLBACK_DEBUG", "yes")

    config = ConfigManager(temp_dir / "missing.toml").load_config()

    assert config.state_dir == temp_dir / "custom-state"
    assert config.context_base_path == temp_dir / "project"
    assert config.cleanup.max_age == 6.5
    assert config.cleanup.max_count == 4
    assert config.debug is True


def test_invalid_environment_value_is_ignored(monkeypatch, temp_dir):
    monkeypatch.setenv("ROLLBACK_MAX_COUNT", "many")

    config = ConfigManager(temp_dir / "missing.toml").load_config()

    assert config.cleanup.max_count == 10


def test_save_and_reload(temp_dir):
    config_file = temp_dir / "nested" / "config.toml"
    manager = ConfigManager(config_file)
    manager.load_config()
    manager.config.cleanup.max_count = 7

    manager.save_config()
    reloaded = ConfigManager(config_file).load_config()

    assert config_file.exists()
    assert reloaded.cleanup.max_count == 7
    assert reloaded.cleanup.cleanup_triggers == {"full-reindex", "startup"}


def test_cleanup_config_accepts_comma_separated_triggers():
    config = RollbackCleanupConfig(cleanup_triggers="startup, full-reindex,")

    assert config.cleanup_triggers == {"startup", "full-reindex"}


def test_cleanup_config_validation():
    with pytest.raises(ValidationError):
        RollbackCleanupConfig(max_count=-1)
