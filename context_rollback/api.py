# context_rollback/api.py
"""
Public access points for the shared component instances.

Components are created lazily through the service registry, so a process
that only imports the package does not touch the file system.
"""
from pathlib import Path
from typing import Optional, Union

from context_rollback.core.registry import registry


def get_config_manager():
    """Get the configuration manager, loading the configuration on first use."""
    from context_rollback.config import config_manager

    manager = registry.get("config_manager")
    if manager is None:
        config_manager.load_config()
        manager = registry.register("config_manager", config_manager)
    return manager


def get_rollback_manager(base_dir: Optional[Union[str, Path]] = None):
    """
    Get the process-wide rollback manager.

    Args:
        base_dir: State directory to use when the manager is first created.
            Defaults to the configured ``state_dir``.
    """
    from context_rollback.rollback.manager import RollbackManager

    existing = registry.get("rollback_manager")
    if existing is not None:
        return existing

    config = get_config_manager().config
    return registry.get_or_create(
        "rollback_manager",
        RollbackManager,
        base_dir or config.state_dir,
        config.cleanup
    )


def reset_services() -> None:
    """Forget the shared instances so the next access recreates them."""
    registry.unregister("rollback_manager")
    registry.unregister("config_manager")
