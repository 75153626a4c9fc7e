# context_rollback/cli/__init__.py
"""
Command-line interface for manual rollback recovery.
"""
from .rollback_commands import app

__all__ = ['app']
