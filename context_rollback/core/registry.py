# context_rollback/core/registry.py
"""
Service registry holding the shared component instances of a process.

The rollback manager and the configuration are registered here so that every
caller in a process works against the same state directory.
"""
from typing import Dict, Any, Type, Optional, TypeVar
import logging
import threading

T = TypeVar('T')


class ServiceRegistry:
    """Thread-safe name to instance map."""

    _instance: Optional['ServiceRegistry'] = None
    _instance_lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> 'ServiceRegistry':
        """Get the process-wide registry."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def __init__(self):
        self._lock = threading.RLock()
        self._services: Dict[str, Any] = {}
        self._logger = logging.getLogger(__name__)

    def register(self, name: str, service: Any) -> Any:
        """
        Store a service under a name, replacing any previous one.

        Returns:
            The service, so callers can register and use it in one step.
        """
        with self._lock:
            self._services[name] = service
        self._logger.debug(f"Registered service {name!r} ({type(service).__name__})")
        return service

    def get(self, name: str) -> Optional[Any]:
        """Return the named service, or None if it was never registered."""
        with self._lock:
            return self._services.get(name)

    def get_or_create(self, name: str, cls: Type[T], *args, **kwargs) -> T:
        """
        Return the named service, constructing ``cls(*args, **kwargs)`` if absent.

        Args:
            name: Service name
            cls: Class to instantiate when the service does not exist yet
        """
        with self._lock:
            service = self.get(name)
            if service is None:
                service = self.register(name, cls(*args, **kwargs))
            elif not isinstance(service, cls):
                self._logger.warning(
                    f"Service {name!r} is a {type(service).__name__}, expected {cls.__name__}"
                )
            return service

    def unregister(self, name: str) -> None:
        """Forget a service."""
        with self._lock:
            self._services.pop(name, None)


registry = ServiceRegistry.get_instance()
