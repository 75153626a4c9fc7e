# context_rollback/rollback/models.py
"""
Data models for rollback transactions.

Attribute names are snake_case in Python. Every model serialises with
camelCase aliases so the persisted JSON reads ``updateId``,
``affectedDomains`` and so on.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Diagnostic payload attached to failed records, never inspected by the manager
ContextValue = Union[str, int, float, bool, None]
ContextDetails = Dict[str, ContextValue]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so ages can be compared."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class OperationType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class RollbackStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not RollbackStatus.PENDING


class CamelModel(BaseModel):
    """Base model using camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the model to a JSON-ready dictionary for storage."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FileOperation(CamelModel):
    """A single create, update or delete on one file."""
    operation_type: OperationType = Field(..., alias="type", description="Kind of change")
    target_path: str = Field(..., description="Absolute path of the file")
    content: Optional[str] = Field(None, description="New content for create and update")
    original_content: Optional[str] = Field(None, description="Content captured before the change")
    backup_path: Optional[str] = Field(None, description="Where the atomic executor kept a backup")

    def describe(self) -> str:
        return f"{self.operation_type.value} {self.target_path}"


class DomainSnapshot(CamelModel):
    """Complete capture of one domain's context directory."""
    domain_path: str = Field(..., description="Absolute path of the domain context directory")
    files: Dict[str, str] = Field(default_factory=dict, description="Absolute file path to text content")
    skipped_files: List[str] = Field(
        default_factory=list, description="Files present at snapshot time that could not be read as text"
    )
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class HolisticRollbackData(CamelModel):
    """The full snapshot payload persisted for one update."""
    update_id: str
    timestamp: datetime = Field(default_factory=utc_now)
    affected_domains: List[str]
    snapshots: List[DomainSnapshot] = Field(default_factory=list)
    file_operations: List[FileOperation] = Field(default_factory=list)

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def file_count(self) -> int:
        return sum(len(snapshot.files) for snapshot in self.snapshots)


class RollbackRecord(CamelModel):
    """Lightweight state record kept apart from the snapshot payload."""
    update_id: str
    timestamp: datetime
    affected_domains: List[str] = Field(default_factory=list)
    status: RollbackStatus = RollbackStatus.PENDING
    snapshot_path: str
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    error_stack: Optional[str] = None
    context_details: Optional[ContextDetails] = None
    cleanup_eligible: Optional[bool] = None

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def age_hours(self, now: Optional[datetime] = None) -> float:
        """Hours elapsed since the snapshot was taken."""
        now = now or utc_now()
        return (now - self.timestamp).total_seconds() / 3600

    def to_summary(self) -> "RollbackSummary":
        return RollbackSummary(
            transaction_id=self.update_id,
            context_update_id=self.update_id,
            timestamp=self.timestamp,
            status=self.status,
            affected_domains=list(self.affected_domains),
        )


class RollbackSummary(CamelModel):
    """Entry returned when listing pending rollbacks."""
    transaction_id: str
    context_update_id: str
    timestamp: datetime
    status: RollbackStatus
    affected_domains: List[str] = Field(default_factory=list)


class AtomicOperationResult(CamelModel):
    """Outcome of an atomic batch of file operations."""
    success: bool
    transaction_id: str
    operations_executed: List[FileOperation] = Field(default_factory=list)
    error: Optional[str] = None


class CleanupResult(CamelModel):
    """Summary of a cleanup sweep."""
    removed_count: int = 0
    errors: List[str] = Field(default_factory=list)
    cleanup_trigger: Optional[str] = None
    transactions_removed: int = Field(0, description="Leftover atomic backup directories swept")
    execution_time: float = Field(0.0, description="Milliseconds spent in the sweep")

    def merge(self, other: "CleanupResult") -> None:
        self.removed_count += other.removed_count
        self.transactions_removed += other.transactions_removed
        self.errors.extend(other.errors)


class RollbacksByAge(CamelModel):
    less_than_1_hour: int = Field(0, alias="lessThan1Hour")
    less_than_24_hours: int = Field(0, alias="lessThan24Hours")
    more_than_24_hours: int = Field(0, alias="moreThan24Hours")


class CleanupStatistics(CamelModel):
    """Snapshot of the retention state, mostly over pending records."""
    total_records: int = 0
    total_pending_rollbacks: int = 0
    completed_rollbacks: int = 0
    failed_rollbacks: int = 0
    oldest_rollback_age: float = Field(0.0, description="Hours since the oldest pending snapshot")
    rollbacks_by_age: RollbacksByAge = Field(default_factory=RollbacksByAge)
    cleanup_config: Dict[str, Any] = Field(default_factory=dict)
