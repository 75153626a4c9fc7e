# tests/conftest.py
"""
Common test fixtures for context-rollback.
"""
import json
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from context_rollback.api import reset_services
from context_rollback.rollback.manager import RollbackManager


def write_context(context_root: Path, domain: str, files: dict) -> Path:
    """Create ``<root>/<domain>/.context`` with the given relative files."""
    context_dir = context_root / domain / ".context"
    context_dir.mkdir(parents=True, exist_ok=True)
    for relative_path, content in files.items():
        file_path = context_dir / relative_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")
    return context_dir


def create_test_rollback(state_dir: Path, update_id: str, age_hours: float = 0,
                         status: str = "pending", **extra) -> None:
    """Write a state record and an empty snapshot as if created ``age_hours`` ago."""
    timestamp = (datetime.now(timezone.utc) - timedelta(hours=age_hours)).isoformat()
    snapshot_path = state_dir / "snapshots" / f"{update_id}.snapshot.json"
    state_path = state_dir / "state" / f"{update_id}.rollback.json"
    snapshot_path.parent.mkdir(parents=True, exist_ok=True)
    state_path.parent.mkdir(parents=True, exist_ok=True)

    record = {
        "updateId": update_id,
        "timestamp": timestamp,
        "affectedDomains": ["test-domain"],
        "status": status,
        "snapshotPath": str(snapshot_path),
        **extra,
    }
    snapshot = {
        "updateId": update_id,
        "timestamp": timestamp,
        "affectedDomains": ["test-domain"],
        "snapshots": [],
        "fileOperations": [],
    }
    state_path.write_text(json.dumps(record, indent=2))
    snapshot_path.write_text(json.dumps(snapshot, indent=2))


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def context_root(temp_dir):
    """Directory holding the domain folders."""
    root = temp_dir / "project"
    root.mkdir()
    return root


@pytest.fixture
def state_dir(temp_dir):
    return temp_dir / "rollback-state"


@pytest.fixture
def manager(state_dir):
    """A rollback manager that does not sweep on startup."""
    return RollbackManager(
        base_dir=state_dir,
        cleanup_config={"max_age": 24, "max_count": 10, "cleanup_triggers": ["full-reindex"]}
    )


@pytest.fixture(autouse=True)
def clean_registry():
    """Each test starts without shared service instances."""
    reset_services()
    yield
    reset_services()
