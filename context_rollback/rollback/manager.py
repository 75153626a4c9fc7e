# context_rollback/rollback/manager.py
"""
Rollback coordination for holistic context updates.

A caller about to change several domains' context documents first takes a
holistic snapshot. If the update fails, the snapshot is restored across all
domains in one atomic batch. Records are pruned by the retention policy on
configured lifecycle events.
"""
import asyncio
import traceback
from pathlib import Path
from typing import List, Optional, Sequence, Union

from context_rollback.config import RollbackCleanupConfig
from context_rollback.constants import (
    ATOMIC_SUBDIR, COMPLETED_ROLLBACK_MAX_AGE_HOURS, DEFAULT_STATE_DIR,
    FAILED_ROLLBACK_MAX_AGE_HOURS, TRIGGER_STARTUP
)
from context_rollback.execution.atomic import AtomicFileManager
from context_rollback.rollback.cleanup import CleanupManager
from context_rollback.rollback.executor import HolisticRollbackExecutor
from context_rollback.rollback.models import (
    CleanupResult, CleanupStatistics, ContextDetails, HolisticRollbackData,
    RollbackStatus, RollbackSummary, utc_now
)
from context_rollback.rollback.snapshot import SnapshotBuilder
from context_rollback.rollback.store import FileRollbackStore, RollbackStore, is_valid_update_id
from context_rollback.utils.async_utils import spawn_background
from context_rollback.utils.logging import get_logger

logger = get_logger(__name__)


class RollbackManager:
    """Manager for holistic snapshots, rollbacks and their retention."""

    def __init__(
        self,
        base_dir: Union[str, Path] = DEFAULT_STATE_DIR,
        cleanup_config: Optional[Union[RollbackCleanupConfig, dict]] = None,
        store: Optional[RollbackStore] = None,
        atomic_manager: Optional[AtomicFileManager] = None
    ):
        """
        Initialize the rollback manager.

        Args:
            base_dir: Directory holding ``state/``, ``snapshots/`` and ``atomic/``.
            cleanup_config: Retention settings; a dict is merged over the defaults.
            store: Storage for records, defaults to JSON files under ``base_dir``.
            atomic_manager: Executor for file batches, defaults to one under
                ``base_dir/atomic``.
        """
        self.base_dir = Path(base_dir)
        if isinstance(cleanup_config, dict):
            cleanup_config = RollbackCleanupConfig(**cleanup_config)
        self.cleanup_config = cleanup_config or RollbackCleanupConfig()

        self._store: RollbackStore = store or FileRollbackStore(self.base_dir)
        self._atomic_manager = atomic_manager or AtomicFileManager(self.base_dir / ATOMIC_SUBDIR)
        self._snapshot_builder = SnapshotBuilder()
        self._executor = HolisticRollbackExecutor(
            self._store, self._atomic_manager, self.mark_rollback_completed
        )
        self._cleanup = CleanupManager(
            self._store,
            self.cleanup_config,
            is_in_flight=self._executor.is_in_flight,
            sweep_transactions=self._atomic_manager.cleanup_old_transactions
        )

        self._startup_cleanup: Optional["asyncio.Task[CleanupResult]"] = None
        if TRIGGER_STARTUP in self.cleanup_config.cleanup_triggers:
            self._startup_cleanup = spawn_background(
                self._run_startup_cleanup(), "startup rollback cleanup"
            )

    @property
    def store(self) -> RollbackStore:
        return self._store

    @property
    def atomic_manager(self) -> AtomicFileManager:
        return self._atomic_manager

    async def _run_startup_cleanup(self) -> CleanupResult:
        try:
            return await self._cleanup.perform_automatic_cleanup(TRIGGER_STARTUP)
        except Exception as e:
            logger.exception(f"Startup rollback cleanup failed: {str(e)}")
            return CleanupResult(cleanup_trigger=TRIGGER_STARTUP, errors=[str(e)])

    async def wait_for_startup_cleanup(self) -> Optional[CleanupResult]:
        """Wait for the startup sweep scheduled by the constructor, if any."""
        if self._startup_cleanup is None:
            return None
        return await self._startup_cleanup

    # --- Snapshots and rollback ---

    async def create_holistic_snapshot(
        self,
        update_id: str,
        affected_domains: Sequence[str],
        context_base_path: Union[str, Path] = "."
    ) -> HolisticRollbackData:
        """
        Create a comprehensive snapshot before a holistic update.

        Args:
            update_id: Unique identifier of the update attempt.
            affected_domains: Domains whose ``.context`` directories are captured.
            context_base_path: Directory that contains the domain folders.

        Returns:
            The persisted snapshot payload.

        Raises:
            ValueError: If no domains are given or the update id contains a
                path separator.
        """
        if not is_valid_update_id(update_id):
            raise ValueError(f"Invalid update id: {update_id!r}")
        if not affected_domains:
            raise ValueError("affected_domains must contain at least one domain")

        logger.info(
            f"Creating holistic snapshot for update {update_id} "
            f"affecting {len(affected_domains)} domains"
        )

        rollback_data = await self._snapshot_builder.build(update_id, affected_domains, context_base_path)
        await self._store.save(rollback_data)

        logger.info(
            f"Created holistic snapshot with {len(rollback_data.snapshots)} domain snapshots "
            f"and {len(rollback_data.file_operations)} file operations"
        )
        return rollback_data

    async def execute_holistic_rollback(self, update_id: str) -> bool:
        """
        Restore every affected domain to its snapshot.

        Returns:
            True if the rollback was applied, False otherwise. Never raises.
        """
        return await self._executor.execute(update_id)

    async def get_pending_rollbacks(self) -> List[RollbackSummary]:
        """List all rollbacks still in the pending state, oldest first."""
        try:
            records = await self._store.list_records()
        except Exception as e:
            logger.exception(f"Failed to list rollback records: {str(e)}")
            return []
        return [record.to_summary() for record in records if record.status == RollbackStatus.PENDING]

    # --- Status transitions ---

    async def _transition(self, update_id: str, status: RollbackStatus, **fields) -> bool:
        """
        Move a pending record to a terminal status.

        Repeating the current terminal status is a no-op; any other change to
        a terminal record is refused.
        """
        record = await self._store.load_record(update_id)
        if record is None:
            logger.warning(f"No rollback state found for update {update_id}")
            return False

        if record.status == status:
            logger.debug(f"Rollback {update_id} already {status.value}")
            return True

        if record.status.is_terminal:
            logger.warning(
                f"Refusing to mark rollback {update_id} {status.value}: "
                f"it is already {record.status.value}"
            )
            return False

        updated = record.model_copy(update={"status": status, **fields})
        await self._store.save_record(updated)
        return True

    async def mark_rollback_completed(self, update_id: str) -> bool:
        """Mark a rollback as completed."""
        try:
            return await self._transition(update_id, RollbackStatus.COMPLETED, completed_at=utc_now())
        except Exception as e:
            logger.exception(f"Failed to mark rollback {update_id} completed: {str(e)}")
            return False

    async def mark_rollback_failed(
        self,
        update_id: str,
        error: Union[str, BaseException],
        context_details: Optional[ContextDetails] = None
    ) -> bool:
        """
        Mark a rollback as failed and record diagnostics.

        Args:
            update_id: The update whose record is marked.
            error: The failure, as an exception or a message.
            context_details: Diagnostic values stored with the record.

        Returns:
            True if the record is now failed.
        """
        if isinstance(error, BaseException):
            failure_reason = str(error) or type(error).__name__
            error_stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        else:
            failure_reason = str(error)
            error_stack = None

        try:
            marked = await self._transition(
                update_id,
                RollbackStatus.FAILED,
                failed_at=utc_now(),
                failure_reason=failure_reason,
                error_stack=error_stack,
                context_details=dict(context_details) if context_details else None,
                cleanup_eligible=True
            )
        except Exception as e:
            logger.exception(f"Failed to mark rollback {update_id} failed: {str(e)}")
            return False

        if marked:
            logger.error(f"Rollback {update_id} marked failed: {failure_reason}")
        return marked

    # --- Retention ---

    async def cleanup_by_age(self, max_age_hours: float) -> CleanupResult:
        return await self._cleanup.cleanup_by_age(max_age_hours)

    async def cleanup_by_count(self, max_count: int) -> CleanupResult:
        return await self._cleanup.cleanup_by_count(max_count)

    async def cleanup_failed_rollbacks(self, max_age_hours: float = FAILED_ROLLBACK_MAX_AGE_HOURS) -> CleanupResult:
        return await self._cleanup.cleanup_failed_rollbacks(max_age_hours)

    async def cleanup_completed_rollbacks(
        self,
        older_than_hours: float = COMPLETED_ROLLBACK_MAX_AGE_HOURS
    ) -> CleanupResult:
        return await self._cleanup.cleanup_completed_rollbacks(older_than_hours)

    async def perform_automatic_cleanup(self, trigger: str) -> CleanupResult:
        return await self._cleanup.perform_automatic_cleanup(trigger)

    async def trigger_cleanup(self, trigger: str) -> CleanupResult:
        return await self._cleanup.trigger_cleanup(trigger)

    async def preview_cleanup(self, older_than_hours: float) -> List[RollbackSummary]:
        return await self._cleanup.preview_cleanup(older_than_hours)

    async def get_cleanup_statistics(self) -> CleanupStatistics:
        return await self._cleanup.get_cleanup_statistics()

    # --- Validation ---

    async def validate_rollback_data(self, update_id: str) -> bool:
        """
        Check that a stored snapshot can be loaded and uses absolute paths only.

        Returns:
            True if the snapshot is usable for a rollback.
        """
        try:
            rollback_data = await self._store.load_snapshot(update_id)
        except Exception as e:
            logger.exception(f"Failed to load rollback data for validation of {update_id}: {str(e)}")
            return False

        if rollback_data is None:
            logger.warning(f"No rollback data to validate for update {update_id}")
            return False

        for snapshot in rollback_data.snapshots:
            for file_path in snapshot.files:
                if not Path(file_path).is_absolute():
                    logger.warning(f"Invalid relative path in snapshot: {file_path}")
                    return False

        logger.debug(f"Rollback data validation passed for update {update_id}")
        return True
