# context_rollback/execution/__init__.py
"""
File system execution layer: async file helpers and the all-or-nothing
executor for batches of file operations.
"""
from .filesystem import FileSystemError
from .atomic import AtomicFileManager

__all__ = ['AtomicFileManager', 'FileSystemError']
