# context_rollback/rollback/__init__.py
"""
Holistic snapshot and rollback of domain context directories.

The manager lives in ``context_rollback.rollback.manager``; this package
namespace only re-exports the data models and errors.
"""
from .errors import (
    RollbackError, RollbackNotFoundError, RollbackValidationError, AtomicOperationError
)
from .models import (
    AtomicOperationResult, CleanupResult, CleanupStatistics, ContextDetails,
    DomainSnapshot, FileOperation, HolisticRollbackData, OperationType,
    RollbackRecord, RollbackStatus, RollbackSummary
)

__all__ = [
    'RollbackError', 'RollbackNotFoundError', 'RollbackValidationError', 'AtomicOperationError',
    'AtomicOperationResult', 'CleanupResult', 'CleanupStatistics', 'ContextDetails',
    'DomainSnapshot', 'FileOperation', 'HolisticRollbackData', 'OperationType',
    'RollbackRecord', 'RollbackStatus', 'RollbackSummary',
]
