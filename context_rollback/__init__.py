"""
context-rollback: snapshot and rollback coordination for holistic context
updates spanning several domains.
"""

from context_rollback.constants import APP_VERSION

__version__ = APP_VERSION

from context_rollback.rollback.manager import RollbackManager
from context_rollback.config import RollbackCleanupConfig
from context_rollback.api import get_rollback_manager

__all__ = ['RollbackManager', 'RollbackCleanupConfig', 'get_rollback_manager', '__version__']
