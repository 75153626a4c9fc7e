# tests/test_api.py
"""
Tests for the shared service accessors and logging helpers.
"""
import json
import logging

import pytest

from context_rollback.api import get_config_manager, get_rollback_manager, reset_services
from context_rollback.core.registry import ServiceRegistry, registry
from context_rollback.utils.async_utils import run_async, spawn_background
from context_rollback.utils.logging import get_logger


@pytest.fixture
def isolated_config(monkeypatch, temp_dir):
    from context_rollback.config import config_manager

    monkeypatch.setattr(config_manager, "config_file", temp_dir / "missing.toml")
    monkeypatch.delenv("ROLLBACK_MAX_COUNT", raising=False)
    monkeypatch.setenv("HOLISTIC_ROLLBACK_DIR", str(temp_dir / "env-state"))
    return config_manager


def test_rollback_manager_is_shared(isolated_config, temp_dir):
    manager = get_rollback_manager()

    assert get_rollback_manager() is manager
    assert manager.base_dir == temp_dir / "env-state"
    assert (temp_dir / "env-state" / "state").is_dir()
    assert registry.get("config_manager") is isolated_config


def test_reset_services_recreates_manager(isolated_config, temp_dir):
    first = get_rollback_manager(temp_dir / "explicit")
    reset_services()
    second = get_rollback_manager()

    assert first is not second
    assert first.base_dir == temp_dir / "explicit"


def test_config_manager_loaded_once(isolated_config, temp_dir):
    config = get_config_manager().config

    assert config.state_dir == temp_dir / "env-state"
    assert get_config_manager() is isolated_config


def test_registry_get_or_create():
    local = ServiceRegistry()

    first = local.get_or_create("things", list)
    first.append(1)

    assert local.get_or_create("things", list) is first
    assert local.get("things") == [1]

    local.unregister("things")
    assert local.get("things") is None


def test_run_async_inside_loop_is_rejected():
    async def inner():
        async def noop():
            return 1
        with pytest.raises(RuntimeError):
            run_async(noop())

    run_async(inner())


def test_spawn_background_without_loop_logs_errors():
    async def broken():
        raise RuntimeError("boom")

    assert spawn_background(broken(), "broken job") is None


@pytest.mark.asyncio
async def test_spawn_background_in_loop_returns_task():
    async def work():
        return 42

    task = spawn_background(work(), "work")

    assert await task == 42


def test_logger_context(caplog):
    caplog.set_level(logging.INFO)
    log = get_logger("tests.context").with_context(update_id="upd-9")

    log.info("restoring")

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload["message"] == "restoring"
    assert payload["context"] == {"update_id": "upd-9"}
    assert payload["caller"].startswith("test_api.py:test_logger_context")
    assert log.context == {"update_id": "upd-9"}
    assert log.name == "tests.context"
    assert get_logger("tests.context") is get_logger("tests.context")
