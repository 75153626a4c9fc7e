# context_rollback/rollback/errors.py
"""
Exceptions raised inside the rollback subsystem.

The public manager methods convert these into boolean or result values; they
are visible to callers that use the lower-level components directly.
"""


class RollbackError(Exception):
    """Base class for rollback errors."""
    pass


class RollbackNotFoundError(RollbackError):
    """No snapshot is stored for the requested update id."""

    def __init__(self, update_id: str):
        super().__init__(f"No rollback data found for update {update_id}")
        self.update_id = update_id


class RollbackValidationError(RollbackError):
    """Stored rollback data failed an integrity check."""
    pass


class AtomicOperationError(RollbackError):
    """A file operation inside an atomic batch failed."""

    def __init__(self, message: str, operation_type: str = "", target_path: str = ""):
        super().__init__(message)
        self.operation_type = operation_type
        self.target_path = target_path
