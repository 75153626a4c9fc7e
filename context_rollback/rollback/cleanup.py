# context_rollback/rollback/cleanup.py
"""
Retention of rollback records.

Records are pruned by age, by count of pending records, and by failure age.
Every strategy reports what it removed in a CleanupResult and collects
per-record errors instead of raising, so one bad record never stops a sweep.
"""
import time
from typing import Awaitable, Callable, List, Optional

from context_rollback.config import RollbackCleanupConfig
from context_rollback.constants import (
    COMPLETED_ROLLBACK_MAX_AGE_HOURS, FAILED_ROLLBACK_MAX_AGE_HOURS, TRIGGER_MANUAL
)
from context_rollback.rollback.models import (
    CleanupResult, CleanupStatistics, RollbackRecord, RollbackStatus,
    RollbacksByAge, RollbackSummary, utc_now
)
from context_rollback.rollback.store import RollbackStore
from context_rollback.utils.logging import get_logger

logger = get_logger(__name__)


class CleanupManager:
    """Applies the retention policy to a rollback store."""

    def __init__(
        self,
        store: RollbackStore,
        config: RollbackCleanupConfig,
        is_in_flight: Optional[Callable[[str], bool]] = None,
        sweep_transactions: Optional[Callable[[], Awaitable[int]]] = None
    ):
        self._store = store
        self.config = config
        self._is_in_flight = is_in_flight or (lambda update_id: False)
        self._sweep_transactions = sweep_transactions

    async def _remove_records(self, records: List[RollbackRecord], reason: str) -> CleanupResult:
        """Delete records one by one, collecting errors."""
        result = CleanupResult()

        for record in records:
            if self._is_in_flight(record.update_id):
                logger.info(f"Skipping cleanup of {record.update_id}: rollback in progress")
                continue
            try:
                await self._store.delete(record.update_id)
                result.removed_count += 1
                logger.info(f"Cleaned up {reason} rollback data for update {record.update_id}")
            except Exception as e:
                message = f"Failed to remove rollback {record.update_id}: {str(e)}"
                logger.warning(message)
                result.errors.append(message)

        return result

    async def _list_records(self, result: CleanupResult) -> List[RollbackRecord]:
        try:
            return await self._store.list_records()
        except Exception as e:
            message = f"Failed to list rollback records: {str(e)}"
            logger.exception(message)
            result.errors.append(message)
            return []

    async def cleanup_by_age(self, max_age_hours: float) -> CleanupResult:
        """
        Remove every record older than the given age, whatever its status.

        Args:
            max_age_hours: Maximum age in hours.
        """
        started = time.perf_counter()
        result = CleanupResult()
        now = utc_now()

        expired = [
            record for record in await self._list_records(result)
            if record.age_hours(now) > max_age_hours
        ]
        result.merge(await self._remove_records(expired, "expired"))

        result.execution_time = (time.perf_counter() - started) * 1000
        logger.debug(f"Age cleanup removed {result.removed_count} records older than {max_age_hours}h")
        return result

    async def cleanup_by_count(self, max_count: int) -> CleanupResult:
        """
        Keep at most ``max_count`` pending records, removing the oldest.

        Completed and failed records are not counted here; age and failure
        cleanup handle them.

        Args:
            max_count: Number of pending records to keep.
        """
        started = time.perf_counter()
        result = CleanupResult()

        pending = [
            record for record in await self._list_records(result)
            if record.status == RollbackStatus.PENDING
        ]
        if len(pending) > max_count:
            pending.sort(key=lambda record: record.timestamp)
            excess = pending[:len(pending) - max_count]
            result.merge(await self._remove_records(excess, "excess"))

        result.execution_time = (time.perf_counter() - started) * 1000
        return result

    async def cleanup_failed_rollbacks(self, max_age_hours: float = FAILED_ROLLBACK_MAX_AGE_HOURS) -> CleanupResult:
        """
        Remove failed records older than a short grace period.

        Args:
            max_age_hours: Grace period in hours.
        """
        started = time.perf_counter()
        result = CleanupResult()
        now = utc_now()

        failed = [
            record for record in await self._list_records(result)
            if record.status == RollbackStatus.FAILED and record.age_hours(now) > max_age_hours
        ]
        result.merge(await self._remove_records(failed, "failed"))

        result.execution_time = (time.perf_counter() - started) * 1000
        return result

    async def cleanup_completed_rollbacks(
        self,
        older_than_hours: float = COMPLETED_ROLLBACK_MAX_AGE_HOURS
    ) -> CleanupResult:
        """Remove completed records older than the given age (one week by default)."""
        started = time.perf_counter()
        result = CleanupResult()
        now = utc_now()

        completed = [
            record for record in await self._list_records(result)
            if record.status == RollbackStatus.COMPLETED and record.age_hours(now) > older_than_hours
        ]
        result.merge(await self._remove_records(completed, "completed"))

        result.execution_time = (time.perf_counter() - started) * 1000
        return result

    async def _cleanup_eligible(self) -> CleanupResult:
        result = CleanupResult()
        eligible = [
            record for record in await self._list_records(result)
            if record.cleanup_eligible
        ]
        result.merge(await self._remove_records(eligible, "cleanup-eligible"))
        return result

    async def perform_automatic_cleanup(self, trigger: str) -> CleanupResult:
        """
        Run the age, count and failure strategies in sequence, then remove
        stale backups left behind by interrupted atomic batches.

        Args:
            trigger: The lifecycle event that started the sweep.

        Returns:
            The combined result; errors are collected, never raised.
        """
        started = time.perf_counter()
        result = CleanupResult(cleanup_trigger=trigger)
        logger.info(f"Starting automatic rollback cleanup (trigger: {trigger})")

        strategies = [
            ("age", lambda: self.cleanup_by_age(self.config.max_age)),
            ("count", lambda: self.cleanup_by_count(self.config.max_count)),
            ("failed", lambda: self.cleanup_failed_rollbacks(FAILED_ROLLBACK_MAX_AGE_HOURS)),
        ]
        if self.config.aggressive_cleanup:
            strategies.append(("cleanup-eligible", self._cleanup_eligible))

        for name, strategy in strategies:
            try:
                result.merge(await strategy())
            except Exception as e:
                message = f"{name} cleanup failed: {str(e)}"
                logger.exception(message)
                result.errors.append(message)

        if self._sweep_transactions is not None:
            try:
                result.transactions_removed += await self._sweep_transactions()
            except Exception as e:
                message = f"atomic backup cleanup failed: {str(e)}"
                logger.exception(message)
                result.errors.append(message)

        result.execution_time = (time.perf_counter() - started) * 1000
        logger.info(
            f"Automatic cleanup ({trigger}) removed {result.removed_count} records "
            f"with {len(result.errors)} errors in {result.execution_time:.1f}ms"
        )
        return result

    def should_trigger(self, trigger: str) -> bool:
        return trigger == TRIGGER_MANUAL or trigger in self.config.cleanup_triggers

    async def trigger_cleanup(self, trigger: str) -> CleanupResult:
        """
        Run the automatic sweep if the trigger is configured.

        ``manual`` is always honoured. Any other unconfigured trigger is a
        no-op that returns an empty result.
        """
        if not self.should_trigger(trigger):
            logger.debug(f"Cleanup trigger '{trigger}' not configured, skipping")
            return CleanupResult(cleanup_trigger=trigger)

        return await self.perform_automatic_cleanup(trigger)

    async def preview_cleanup(self, older_than_hours: float) -> List[RollbackSummary]:
        """Pending records an age sweep would remove, without removing them."""
        now = utc_now()
        return [
            record.to_summary() for record in await self._list_records(CleanupResult())
            if record.status == RollbackStatus.PENDING and record.age_hours(now) > older_than_hours
        ]

    async def get_cleanup_statistics(self) -> CleanupStatistics:
        """Counts by status and an age histogram of pending records."""
        now = utc_now()
        records = await self._list_records(CleanupResult())
        pending = [record for record in records if record.status == RollbackStatus.PENDING]

        by_age = RollbacksByAge()
        for record in pending:
            age = record.age_hours(now)
            if age < 1:
                by_age.less_than_1_hour += 1
            elif age < 24:
                by_age.less_than_24_hours += 1
            else:
                by_age.more_than_24_hours += 1

        return CleanupStatistics(
            total_records=len(records),
            total_pending_rollbacks=len(pending),
            completed_rollbacks=sum(1 for record in records if record.status == RollbackStatus.COMPLETED),
            failed_rollbacks=sum(1 for record in records if record.status == RollbackStatus.FAILED),
            oldest_rollback_age=max((record.age_hours(now) for record in pending), default=0.0),
            rollbacks_by_age=by_age,
            cleanup_config=self.config.model_dump(mode="json"),
        )
