# tests/test_store.py
"""
Tests for the file-backed rollback store.
"""
import json

import pytest

from context_rollback.rollback.models import (
    DomainSnapshot, HolisticRollbackData, RollbackStatus
)
from context_rollback.rollback.store import FileRollbackStore, is_valid_update_id

from .conftest import create_test_rollback


@pytest.fixture
def store(state_dir):
    return FileRollbackStore(state_dir)


def sample_data(update_id="store-1"):
    return HolisticRollbackData(
        update_id=update_id,
        affected_domains=["analysis"],
        snapshots=[DomainSnapshot(
            domain_path="/project/analysis/.context",
            files={"/project/analysis/.context/rules.md": "A"}
        )]
    )


def test_store_creates_layout(store, state_dir):
    assert (state_dir / "state").is_dir()
    assert (state_dir / "snapshots").is_dir()
    assert store.base_dir.is_absolute()


@pytest.mark.asyncio
async def test_save_and_load(store):
    data = sample_data()
    record = await store.save(data)

    assert record.status == RollbackStatus.PENDING
    assert record.snapshot_path == str(store.snapshot_path("store-1"))

    loaded = await store.load_snapshot("store-1")
    assert loaded == data

    loaded_record = await store.load_record("store-1")
    assert loaded_record == record


@pytest.mark.asyncio
async def test_load_missing(store):
    assert await store.load_snapshot("missing") is None
    assert await store.load_record("missing") is None


@pytest.mark.asyncio
async def test_corrupt_state_file_is_skipped(store, state_dir):
    create_test_rollback(state_dir, "good")
    (state_dir / "state" / "bad.rollback.json").write_text("{ broken")
    (state_dir / "state" / "notes.txt").write_text("ignored")

    records = await store.list_records()

    assert [record.update_id for record in records] == ["good"]


@pytest.mark.asyncio
async def test_list_records_sorted_by_timestamp(store, state_dir):
    create_test_rollback(state_dir, "a-newest", age_hours=1)
    create_test_rollback(state_dir, "b-oldest", age_hours=10)
    create_test_rollback(state_dir, "c-middle", age_hours=5)

    records = await store.list_records()

    assert [record.update_id for record in records] == ["b-oldest", "c-middle", "a-newest"]


@pytest.mark.asyncio
async def test_delete_removes_both_documents(store, state_dir):
    await store.save(sample_data())

    await store.delete("store-1")

    assert not store.state_path("store-1").exists()
    assert not store.snapshot_path("store-1").exists()
    assert await store.list_records() == []


@pytest.mark.asyncio
async def test_delete_with_missing_snapshot(store, state_dir):
    create_test_rollback(state_dir, "half")
    (state_dir / "snapshots" / "half.snapshot.json").unlink()

    await store.delete("half")

    assert await store.load_record("half") is None


@pytest.mark.asyncio
async def test_save_record_updates_state_only(store):
    await store.save(sample_data())
    record = await store.load_record("store-1")

    await store.save_record(record.model_copy(update={"status": RollbackStatus.COMPLETED}))

    state = json.loads(store.state_path("store-1").read_text())
    assert state["status"] == "completed"
    assert (await store.load_snapshot("store-1")).update_id == "store-1"


@pytest.mark.asyncio
async def test_naive_timestamps_are_read_as_utc(store, state_dir):
    create_test_rollback(state_dir, "naive")
    path = state_dir / "state" / "naive.rollback.json"
    payload = json.loads(path.read_text())
    payload["timestamp"] = "2024-01-01T00:00:00"
    path.write_text(json.dumps(payload))

    record = await store.load_record("naive")

    assert record.timestamp.tzinfo is not None
    assert record.age_hours() > 24


def test_update_id_validation():
    assert is_valid_update_id("upd-2024.01_x")
    for bad in ["", ".", "..", "../x", "a/b", "a\\b", "nul\x00"]:
        assert not is_valid_update_id(bad)


@pytest.mark.asyncio
async def test_path_like_ids_are_refused(store, state_dir):
    with pytest.raises(ValueError):
        await store.save(sample_data("../outside"))
    with pytest.raises(ValueError):
        await store.delete("../state/other")

    assert await store.load_record("../../x") is None
    assert await store.load_snapshot("../../x") is None
    assert not (state_dir / "outside.rollback.json").exists()


@pytest.mark.asyncio
async def test_delete_keeps_snapshot_outside_store(store, state_dir, temp_dir):
    outside = temp_dir / "precious.json"
    outside.write_text("do not delete")
    create_test_rollback(state_dir, "redirected", snapshotPath=str(outside))

    await store.delete("redirected")

    assert outside.read_text() == "do not delete"
    assert await store.load_record("redirected") is None
    assert not store.snapshot_path("redirected").exists()


@pytest.mark.asyncio
async def test_snapshot_outside_store_is_not_loaded(store, state_dir, temp_dir):
    outside = temp_dir / "foreign.snapshot.json"
    outside.write_text(sample_data("redirected").model_dump_json(by_alias=True))
    create_test_rollback(state_dir, "redirected", snapshotPath=str(outside))

    loaded = await store.load_snapshot("redirected")

    assert loaded.update_id == "redirected"
    assert loaded.snapshots == []
