# context_rollback/utils/__init__.py
"""
Utility functions for the context rollback package.

This package provides logging setup and helpers for running the async API
from synchronous callers.
"""

from .logging import setup_logging, get_logger

__all__ = ['setup_logging', 'get_logger']
