# context_rollback/rollback/store.py
"""
Persistence for rollback transactions.

Each update is stored as two JSON documents that share its id: a small state
record that status queries read, and the full snapshot payload that only a
rollback or validation needs::

    <base>/state/<update id>.rollback.json
    <base>/snapshots/<update id>.snapshot.json
"""
import json
import os
from pathlib import Path
from typing import List, Optional, Protocol, Union

from pydantic import ValidationError

from context_rollback.constants import (
    JSON_INDENT, SNAPSHOT_FILE_SUFFIX, SNAPSHOT_SUBDIR, STATE_FILE_SUFFIX, STATE_SUBDIR
)
from context_rollback.execution.filesystem import (
    FileSystemError, delete_file, read_text_file, write_text_file
)
from context_rollback.rollback.models import (
    HolisticRollbackData, RollbackRecord, RollbackStatus
)
from context_rollback.utils.logging import get_logger

logger = get_logger(__name__)


def is_valid_update_id(update_id: str) -> bool:
    """
    Whether an update id can be used as a file name inside the state directory.

    Ids are embedded in file names, so path separators, NUL and the special
    names ``.`` and ``..`` are refused.
    """
    if not update_id or update_id in (".", ".."):
        return False
    forbidden = {"/", "\\", "\x00", os.sep}
    if os.altsep:
        forbidden.add(os.altsep)
    return not any(char in update_id for char in forbidden)


def _require_valid(update_id: str) -> None:
    if not is_valid_update_id(update_id):
        raise ValueError(f"Invalid update id: {update_id!r}")


class RollbackStore(Protocol):
    """Load/save/list/delete interface the manager depends on."""

    def snapshot_path(self, update_id: str) -> Path: ...

    async def save(self, data: HolisticRollbackData) -> RollbackRecord: ...

    async def load_snapshot(self, update_id: str) -> Optional[HolisticRollbackData]: ...

    async def load_record(self, update_id: str) -> Optional[RollbackRecord]: ...

    async def save_record(self, record: RollbackRecord) -> None: ...

    async def list_records(self) -> List[RollbackRecord]: ...

    async def delete(self, update_id: str) -> None: ...


class FileRollbackStore:
    """RollbackStore backed by JSON files on the local file system."""

    def __init__(self, base_dir: Union[str, Path]):
        self.base_dir = Path(base_dir).absolute()
        self.state_dir = self.base_dir / STATE_SUBDIR
        self.snapshot_dir = self.base_dir / SNAPSHOT_SUBDIR
        self._ensure_directories()

    def _ensure_directories(self) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.snapshot_dir.mkdir(parents=True, exist_ok=True)

    def _in_snapshot_dir(self, path: Path) -> bool:
        try:
            path.resolve().relative_to(self.snapshot_dir.resolve())
        except ValueError:
            return False
        return True

    def state_path(self, update_id: str) -> Path:
        return self.state_dir / f"{update_id}{STATE_FILE_SUFFIX}"

    def snapshot_path(self, update_id: str) -> Path:
        return self.snapshot_dir / f"{update_id}{SNAPSHOT_FILE_SUFFIX}"

    async def _write_json(self, path: Path, payload: dict) -> None:
        await write_text_file(path, json.dumps(payload, indent=JSON_INDENT, ensure_ascii=False))

    async def save(self, data: HolisticRollbackData) -> RollbackRecord:
        """
        Persist a new transaction: its pending state record and full snapshot.

        Args:
            data: The snapshot payload.

        Returns:
            The state record that was written.

        Raises:
            ValueError: If the update id cannot be used as a file name.
        """
        _require_valid(data.update_id)
        snapshot_path = self.snapshot_path(data.update_id)
        record = RollbackRecord(
            update_id=data.update_id,
            timestamp=data.timestamp,
            affected_domains=list(data.affected_domains),
            status=RollbackStatus.PENDING,
            snapshot_path=str(snapshot_path)
        )

        await self._write_json(self.state_path(data.update_id), record.to_dict())
        await self._write_json(snapshot_path, data.to_dict())

        logger.debug(f"Saved rollback data for update {data.update_id}")
        return record

    async def load_snapshot(self, update_id: str) -> Optional[HolisticRollbackData]:
        """
        Load the full snapshot for an update.

        Returns:
            The snapshot, or None if it is missing, cannot be parsed, or the
            id is not a valid update id.
        """
        if not is_valid_update_id(update_id):
            logger.warning(f"Refusing to load snapshot for invalid update id {update_id!r}")
            return None

        path = self.snapshot_path(update_id)
        record = await self.load_record(update_id)
        if record is not None and record.snapshot_path:
            recorded = Path(record.snapshot_path)
            if recorded.exists() and self._in_snapshot_dir(recorded):
                path = recorded

        if not path.exists():
            return None

        try:
            content = await read_text_file(path)
            return HolisticRollbackData.model_validate(json.loads(content))
        except (FileSystemError, json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Failed to load rollback data for update {update_id}: {str(e)}")
            return None

    async def load_record(self, update_id: str) -> Optional[RollbackRecord]:
        if not is_valid_update_id(update_id):
            logger.warning(f"Refusing to load state for invalid update id {update_id!r}")
            return None

        path = self.state_path(update_id)
        if not path.exists():
            return None

        try:
            content = await read_text_file(path)
            return RollbackRecord.model_validate(json.loads(content))
        except (FileSystemError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Failed to parse rollback state file {path.name}: {str(e)}")
            return None

    async def save_record(self, record: RollbackRecord) -> None:
        _require_valid(record.update_id)
        await self._write_json(self.state_path(record.update_id), record.to_dict())

    async def list_records(self) -> List[RollbackRecord]:
        """Return every readable state record, oldest first."""
        records: List[RollbackRecord] = []

        if not self.state_dir.exists():
            return records

        for state_file in sorted(self.state_dir.iterdir()):
            if not state_file.name.endswith(STATE_FILE_SUFFIX):
                continue
            update_id = state_file.name[:-len(STATE_FILE_SUFFIX)]
            record = await self.load_record(update_id)
            if record is not None:
                records.append(record)

        records.sort(key=lambda item: item.timestamp)
        return records

    async def delete(self, update_id: str) -> None:
        """
        Remove both documents of a transaction.

        Only snapshot files inside the snapshot directory are removed, whatever
        path the state record names.

        Raises:
            ValueError: If the update id cannot be used as a file name.
            FileSystemError: If either file exists but cannot be removed.
        """
        _require_valid(update_id)
        record = await self.load_record(update_id)
        snapshot_paths = {self.snapshot_path(update_id)}
        if record is not None and record.snapshot_path:
            recorded = Path(record.snapshot_path)
            if self._in_snapshot_dir(recorded):
                snapshot_paths.add(recorded)
            else:
                logger.warning(f"Not deleting snapshot outside {self.snapshot_dir}: {recorded}")

        # Snapshot first so a failed removal leaves a record to retry from
        for snapshot_path in snapshot_paths:
            await delete_file(snapshot_path, missing_ok=True)
        await delete_file(self.state_path(update_id), missing_ok=True)

        logger.debug(f"Deleted rollback data for update {update_id}")
