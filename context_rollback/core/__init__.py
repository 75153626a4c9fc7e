# context_rollback/core/__init__.py
"""
Core infrastructure shared by the package components.
"""
from .registry import registry, ServiceRegistry

__all__ = ['registry', 'ServiceRegistry']
