# context_rollback/rollback/snapshot.py
"""
Capture of domain context directories before a holistic update.
"""
from pathlib import Path
from typing import List, Sequence, Union

from context_rollback.constants import CONTEXT_DIR_NAME
from context_rollback.execution.filesystem import FileSystemError, list_files_recursive, read_text_file
from context_rollback.rollback.models import (
    DomainSnapshot, FileOperation, HolisticRollbackData, OperationType, utc_now
)
from context_rollback.utils.logging import get_logger

logger = get_logger(__name__)


def domain_context_path(context_base_path: Union[str, Path], domain: str) -> Path:
    """Absolute path of ``<base>/<domain>/.context``."""
    return Path(context_base_path).absolute() / domain / CONTEXT_DIR_NAME


class SnapshotBuilder:
    """Builds the snapshot payload for a set of domains."""

    async def create_domain_snapshot(self, context_path: Union[str, Path]) -> DomainSnapshot:
        """
        Capture every file under one domain's context directory.

        Files that cannot be read as text are listed in ``skipped_files``
        with a warning; rollback leaves them untouched. A directory that does
        not exist yet produces an empty snapshot.

        Args:
            context_path: The domain's ``.context`` directory.

        Returns:
            The domain snapshot.
        """
        context_path = Path(context_path).absolute()
        files = {}
        skipped: List[str] = []

        if not context_path.is_dir():
            logger.warning(f"Domain context path does not exist: {context_path}")
            return DomainSnapshot(domain_path=str(context_path), files=files)

        for file_path in await list_files_recursive(context_path):
            try:
                files[str(file_path)] = await read_text_file(file_path)
            except FileSystemError as e:
                logger.warning(f"Failed to read context file {file_path}, it will not be restored: {str(e)}")
                skipped.append(str(file_path))

        return DomainSnapshot(domain_path=str(context_path), files=files, skipped_files=skipped)

    async def build(
        self,
        update_id: str,
        affected_domains: Sequence[str],
        context_base_path: Union[str, Path] = "."
    ) -> HolisticRollbackData:
        """
        Snapshot all affected domains.

        Args:
            update_id: Identifier of the holistic update.
            affected_domains: Domain names, in the order they should be kept.
            context_base_path: Directory that contains the domain folders.

        Returns:
            The snapshot payload, not yet persisted.
        """
        snapshots: List[DomainSnapshot] = []
        file_operations: List[FileOperation] = []

        for domain in affected_domains:
            snapshot = await self.create_domain_snapshot(domain_context_path(context_base_path, domain))
            snapshots.append(snapshot)

            for file_path, content in snapshot.files.items():
                file_operations.append(FileOperation(
                    operation_type=OperationType.UPDATE,
                    target_path=file_path,
                    content=content,
                    original_content=content
                ))

        return HolisticRollbackData(
            update_id=update_id,
            timestamp=utc_now(),
            affected_domains=list(affected_domains),
            snapshots=snapshots,
            file_operations=file_operations
        )
