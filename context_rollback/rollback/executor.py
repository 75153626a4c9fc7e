# context_rollback/rollback/executor.py
"""
Restoration of all affected domains to their snapshot state.

The restore plan is a diff of the current tree against the snapshot: files
added since the snapshot are deleted, snapshotted files are rewritten or
recreated. The whole plan goes to the atomic executor as one batch, so a
rollback is either applied to every domain or to none.
"""
from pathlib import Path
from typing import Awaitable, Callable, List, Set

from context_rollback.execution.atomic import AtomicFileManager
from context_rollback.execution.filesystem import list_files_recursive
from context_rollback.rollback.errors import RollbackNotFoundError, RollbackValidationError
from context_rollback.rollback.models import FileOperation, HolisticRollbackData, OperationType
from context_rollback.rollback.store import RollbackStore
from context_rollback.utils.logging import get_logger

logger = get_logger(__name__)


async def plan_restore_operations(rollback_data: HolisticRollbackData) -> List[FileOperation]:
    """
    Compute the operations that bring every domain back to its snapshot.

    Files the snapshot could not read are neither deleted nor rewritten.

    Args:
        rollback_data: The stored snapshot payload.

    Returns:
        Deletes for files that appeared after the snapshot, followed per domain
        by an update or create for every snapshotted file.

    Raises:
        RollbackValidationError: If a snapshotted path is not absolute.
    """
    operations: List[FileOperation] = []

    for snapshot in rollback_data.snapshots:
        domain_path = Path(snapshot.domain_path)
        skipped = set(snapshot.skipped_files)

        if domain_path.is_dir():
            for current_file in await list_files_recursive(domain_path):
                if str(current_file) not in snapshot.files and str(current_file) not in skipped:
                    operations.append(FileOperation(
                        operation_type=OperationType.DELETE,
                        target_path=str(current_file)
                    ))

        for file_path, content in snapshot.files.items():
            if not Path(file_path).is_absolute():
                raise RollbackValidationError(f"Invalid relative path in snapshot: {file_path}")
            operation_type = OperationType.UPDATE if Path(file_path).is_file() else OperationType.CREATE
            operations.append(FileOperation(
                operation_type=operation_type,
                target_path=file_path,
                content=content
            ))

    return operations


class HolisticRollbackExecutor:
    """Loads a snapshot, plans the restore and applies it atomically."""

    def __init__(
        self,
        store: RollbackStore,
        atomic_manager: AtomicFileManager,
        on_completed: Callable[[str], Awaitable[bool]]
    ):
        self._store = store
        self._atomic_manager = atomic_manager
        self._on_completed = on_completed
        self._in_flight: Set[str] = set()

    def is_in_flight(self, update_id: str) -> bool:
        """Whether a rollback for this update is currently running."""
        return update_id in self._in_flight

    async def execute(self, update_id: str) -> bool:
        """
        Execute a holistic rollback.

        Args:
            update_id: The update whose snapshot should be restored.

        Returns:
            True if every domain was restored, False otherwise.
        """
        log = logger.with_context(update_id=update_id)
        log.info(f"Executing holistic rollback for update {update_id}")

        self._in_flight.add(update_id)
        try:
            rollback_data = await self._store.load_snapshot(update_id)
            if rollback_data is None:
                raise RollbackNotFoundError(update_id)

            restore_operations = await plan_restore_operations(rollback_data)
            result = await self._atomic_manager.execute_atomic_operations(restore_operations)

            if not result.success:
                log.error(f"Failed to execute atomic rollback for update {update_id}: {result.error}")
                return False

            log.info(
                f"Successfully rolled back holistic update {update_id} "
                f"with {len(restore_operations)} operations"
            )
            await self._on_completed(update_id)
            return True

        except (RollbackNotFoundError, RollbackValidationError) as e:
            log.error(f"Holistic rollback failed for update {update_id}: {str(e)}")
            return False
        except Exception as e:
            log.exception(f"Holistic rollback failed for update {update_id}: {str(e)}")
            return False
        finally:
            self._in_flight.discard(update_id)
