# context_rollback/config.py
"""
Configuration management for the context rollback package.
Uses TOML format for configuration files.
"""
import os
import sys
from pathlib import Path
from typing import Optional, Set, Union

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w
from pydantic import BaseModel, Field, ValidationError, field_validator
from dotenv import load_dotenv

from context_rollback.constants import (
    CONFIG_FILE, DEFAULT_STATE_DIR, DEFAULT_MAX_AGE_HOURS,
    DEFAULT_MAX_COUNT, DEFAULT_CLEANUP_TRIGGERS
)
from context_rollback.utils.logging import get_logger

logger = get_logger(__name__)

# --- Configuration Models ---

class RollbackCleanupConfig(BaseModel):
    """Retention settings for rollback records."""
    max_age: float = Field(DEFAULT_MAX_AGE_HOURS, gt=0, description="Remove records older than this many hours")
    max_count: int = Field(DEFAULT_MAX_COUNT, ge=0, description="Maximum number of pending records to keep")
    cleanup_triggers: Set[str] = Field(
        default_factory=lambda: set(DEFAULT_CLEANUP_TRIGGERS),
        description="Lifecycle events that run an automatic cleanup"
    )
    aggressive_cleanup: bool = Field(False, description="Remove cleanup-eligible records regardless of age")

    @field_validator("cleanup_triggers", mode="before")
    @classmethod
    def _split_triggers(cls, value):
        if isinstance(value, str):
            return {part.strip() for part in value.split(",") if part.strip()}
        return value


class AppConfig(BaseModel):
    """Application configuration settings."""
    state_dir: Path = Field(Path(DEFAULT_STATE_DIR), description="Base directory for rollback state")
    context_base_path: Path = Field(Path("."), description="Directory that holds the domain folders")
    debug: bool = Field(False, description="Enable debug logging")
    cleanup: RollbackCleanupConfig = Field(default_factory=RollbackCleanupConfig, description="Retention settings")


# --- Configuration Manager ---

class ConfigManager:
    """Loads and saves the configuration, applying environment overrides."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        self._config: AppConfig = AppConfig()
        self.config_file = Path(config_file) if config_file else CONFIG_FILE

    def _load_environment(self) -> None:
        """Apply overrides from environment variables and a .env file."""
        load_dotenv()

        state_dir = os.getenv("HOLISTIC_ROLLBACK_DIR")
        if state_dir:
            self._config.state_dir = Path(state_dir)

        context_base_path = os.getenv("CONTEXT_BASE_PATH")
        if context_base_path:
            self._config.context_base_path = Path(context_base_path)

        max_age = os.getenv("ROLLBACK_MAX_AGE_HOURS")
        max_count = os.getenv("ROLLBACK_MAX_COUNT")
        try:
            if max_age:
                self._config.cleanup.max_age = float(max_age)
            if max_count:
                self._config.cleanup.max_count = int(max_count)
        except ValueError as e:
            logger.warning(f"Ignoring invalid retention override from environment: {e}")

        debug = os.getenv("ROLLBACK_DEBUG")
        if debug:
            self._config.debug = debug.strip().lower() in ("1", "true", "yes", "on")

    def load_config(self) -> AppConfig:
        """Load configuration from the TOML file, then apply the environment."""
        if not self.config_file.exists():
            logger.debug(f"Configuration file not found at '{self.config_file}'. Using defaults.")
            self._config = AppConfig()
            self._load_environment()
            return self._config

        try:
            logger.debug(f"Loading configuration from: {self.config_file}")
            with open(self.config_file, "rb") as f:
                config_data = tomllib.load(f)

            self._config = AppConfig(**config_data)

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Error decoding TOML configuration file ({self.config_file}): {e}")
            self._config = AppConfig()
        except ValidationError as e:
            logger.error(f"Invalid configuration in {self.config_file}: {e}")
            self._config = AppConfig()
        except PermissionError as e:
            logger.error(f"Permission error accessing configuration file: {e}")
            self._config = AppConfig()
        except OSError as e:
            logger.error(f"I/O error accessing configuration file: {e}")
            self._config = AppConfig()

        self._load_environment()
        return self._config

    def save_config(self) -> None:
        """Save the current configuration to the config file as TOML."""
        config_dict = self._config.model_dump(mode="json")
        config_dict["cleanup"]["cleanup_triggers"] = sorted(config_dict["cleanup"]["cleanup_triggers"])

        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "wb") as f:
            tomli_w.dump(config_dict, f)
        logger.info(f"Configuration saved to {self.config_file}")

    @property
    def config(self) -> AppConfig:
        """Provides read-only access to the current application configuration."""
        return self._config


# --- Global Instance ---

config_manager = ConfigManager()
