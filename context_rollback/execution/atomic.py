# context_rollback/execution/atomic.py
"""
All-or-nothing execution of file operation batches.

A batch is validated up front, every existing target is backed up under
``<base>/backup/<transaction id>/``, and the operations are applied in order.
If any operation fails, the ones already applied are reverted from the backups
in reverse order, so callers observe either the whole batch or none of it.
"""
import hashlib
import os
import time
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Sequence, Union

from context_rollback.constants import STALE_ATOMIC_TRANSACTION_HOURS
from context_rollback.execution.filesystem import (
    FileSystemError, copy_file, create_directory, delete_directory, delete_file,
    write_text_file
)
from context_rollback.rollback.errors import AtomicOperationError
from context_rollback.rollback.models import (
    AtomicOperationResult, FileOperation, OperationType
)
from context_rollback.utils.logging import get_logger

logger = get_logger(__name__)


class AtomicFileManager:
    """Executes batches of file operations with full revert on failure."""

    def __init__(self, base_dir: Union[str, Path] = ".atomic-ops"):
        self.base_dir = Path(base_dir)
        self.backup_dir = self.base_dir / "backup"
        self._ensure_directories()

    def _ensure_directories(self) -> None:
        self.backup_dir.mkdir(parents=True, exist_ok=True)

    async def execute_atomic_operations(self, operations: Sequence[FileOperation]) -> AtomicOperationResult:
        """
        Execute multiple file operations atomically.

        Args:
            operations: The operations to apply, in order.

        Returns:
            The result; on failure ``error`` names the failing operation and
            nothing from the batch remains applied.
        """
        transaction_id = self._generate_transaction_id()
        executed: List[FileOperation] = []
        backups: Dict[str, Path] = {}

        logger.info(f"Starting atomic operation transaction {transaction_id} with {len(operations)} operations")

        try:
            self._validate_operations(operations)
            backups = await self._create_backups(operations, transaction_id)

            for operation in operations:
                await self._execute_operation(operation)
                executed.append(operation)
                logger.debug(f"Executed operation: {operation.describe()}")

            await delete_directory(self.backup_dir / transaction_id)

            logger.info(f"Atomic operation transaction {transaction_id} completed successfully")
            return AtomicOperationResult(
                success=True,
                transaction_id=transaction_id,
                operations_executed=executed
            )

        except (AtomicOperationError, FileSystemError, OSError) as e:
            logger.error(f"Atomic operation transaction {transaction_id} failed: {str(e)}")
            error_message = str(e)

            try:
                await self._revert_operations(executed, backups, transaction_id)
                await delete_directory(self.backup_dir / transaction_id)
                if executed:
                    logger.info(f"Successfully reverted {len(executed)} operations")
            except (FileSystemError, OSError) as revert_error:
                logger.exception(f"Revert failed for transaction {transaction_id}, backups kept: {revert_error}")
                error_message = f"{error_message}; revert failed: {revert_error}"

            return AtomicOperationResult(
                success=False,
                transaction_id=transaction_id,
                operations_executed=[],
                error=error_message
            )

    def _validate_operations(self, operations: Sequence[FileOperation]) -> None:
        """Check that every operation can be performed before touching disk."""
        for operation in operations:
            target = Path(operation.target_path)
            op_type = operation.operation_type.value

            if not target.is_absolute():
                raise AtomicOperationError(
                    f"Target path must be absolute for {op_type}: {operation.target_path}",
                    op_type, operation.target_path
                )

            if operation.operation_type in (OperationType.CREATE, OperationType.UPDATE):
                if operation.content is None:
                    raise AtomicOperationError(
                        f"Content required for {op_type} operation on {operation.target_path}",
                        op_type, operation.target_path
                    )
                if target.is_dir():
                    raise AtomicOperationError(
                        f"Cannot {op_type} file - path is a directory: {operation.target_path}",
                        op_type, operation.target_path
                    )

            if operation.operation_type == OperationType.CREATE and target.exists():
                logger.warning(f"Create operation requested but file already exists, overwriting: {target}")

            elif operation.operation_type == OperationType.UPDATE:
                if not target.is_file():
                    raise AtomicOperationError(
                        f"Cannot update file - does not exist: {operation.target_path}",
                        op_type, operation.target_path
                    )
                if not os.access(target, os.W_OK):
                    raise AtomicOperationError(
                        f"No write permission for file: {operation.target_path}",
                        op_type, operation.target_path
                    )

            elif operation.operation_type == OperationType.DELETE:
                if not target.is_file():
                    raise AtomicOperationError(
                        f"Cannot delete file - does not exist: {operation.target_path}",
                        op_type, operation.target_path
                    )

    async def _create_backups(
        self,
        operations: Sequence[FileOperation],
        transaction_id: str
    ) -> Dict[str, Path]:
        """
        Back up every existing target once, before any operation runs.

        Backups are byte copies, so targets that are not UTF-8 text are
        restored exactly.

        Returns:
            Backup file paths keyed by target path.
        """
        backup_transaction_dir = self.backup_dir / transaction_id
        await create_directory(backup_transaction_dir)

        backups: Dict[str, Path] = {}
        for operation in operations:
            target = operation.target_path
            if target in backups or not Path(target).is_file():
                continue

            backup_path = backup_transaction_dir / self._generate_backup_file_name(target)
            await copy_file(target, backup_path)
            backups[target] = backup_path

        return backups

    async def _execute_operation(self, operation: FileOperation) -> None:
        try:
            if operation.operation_type in (OperationType.CREATE, OperationType.UPDATE):
                await write_text_file(operation.target_path, operation.content)
            elif operation.operation_type == OperationType.DELETE:
                await delete_file(operation.target_path)
        except FileSystemError as e:
            raise AtomicOperationError(
                f"Failed to {operation.describe()}: {str(e)}",
                operation.operation_type.value, operation.target_path
            ) from e

    async def _revert_operations(
        self,
        executed: List[FileOperation],
        backups: Dict[str, Path],
        transaction_id: str
    ) -> None:
        """Restore every touched path to its pre-batch state, newest first."""
        if not executed:
            return

        logger.info(f"Reverting {len(executed)} operations for transaction {transaction_id}")

        for operation in reversed(executed):
            backup_path = backups.get(operation.target_path)
            if backup_path is not None:
                await copy_file(backup_path, operation.target_path)
            else:
                # The path did not exist before the batch
                await delete_file(operation.target_path, missing_ok=True)
            logger.debug(f"Reverted operation: {operation.describe()}")

    def _generate_transaction_id(self) -> str:
        timestamp = int(time.time() * 1000)
        return f"tx_{timestamp}_{uuid.uuid4().hex[:6]}"

    def _generate_backup_file_name(self, target_path: str) -> str:
        digest = hashlib.md5(target_path.encode('utf-8')).hexdigest()[:8]
        return f"{Path(target_path).name}_{digest}"

    async def get_pending_transactions(self) -> List[str]:
        """
        List transactions whose backups were left behind.

        A backup directory outlives its batch only if the process stopped
        mid-batch or a revert failed; its contents allow manual recovery.
        """
        if not self.backup_dir.exists():
            return []

        return sorted(
            entry.name for entry in self.backup_dir.iterdir()
            if entry.is_dir() and entry.name.startswith("tx_")
        )

    async def cleanup_old_transactions(self, older_than_hours: float = STALE_ATOMIC_TRANSACTION_HOURS) -> int:
        """
        Remove leftover transaction backups older than the given age.

        Returns:
            Number of transaction directories removed.
        """
        cutoff = datetime.now() - timedelta(hours=older_than_hours)
        removed = 0

        for transaction_id in await self.get_pending_transactions():
            transaction_path = self.backup_dir / transaction_id
            modified = datetime.fromtimestamp(transaction_path.stat().st_mtime)
            if modified < cutoff:
                await delete_directory(transaction_path)
                removed += 1
                logger.info(f"Cleaned up old transaction: {transaction_id}")

        return removed

