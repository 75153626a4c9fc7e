"""
Constants for the context rollback package.
"""
from pathlib import Path
import os

# Application information
APP_NAME = "context-rollback"
APP_VERSION = "0.1.0"
APP_DESCRIPTION = "Snapshot and rollback coordination for multi-domain context updates"

# Paths
CONFIG_DIR = Path(os.path.expanduser("~/.config/context-rollback"))
CONFIG_FILE = CONFIG_DIR / "config.toml"
LOG_DIR = CONFIG_DIR / "logs"

# Persisted state layout
DEFAULT_STATE_DIR = ".rollback-state"
STATE_SUBDIR = "state"
SNAPSHOT_SUBDIR = "snapshots"
ATOMIC_SUBDIR = "atomic"
STATE_FILE_SUFFIX = ".rollback.json"
SNAPSHOT_FILE_SUFFIX = ".snapshot.json"
CONTEXT_DIR_NAME = ".context"
JSON_INDENT = 2

# Cleanup triggers
TRIGGER_STARTUP = "startup"
TRIGGER_MANUAL = "manual"
TRIGGER_FULL_REINDEX = "full-reindex"

# Cleanup defaults
DEFAULT_MAX_AGE_HOURS = 24
DEFAULT_MAX_COUNT = 10
DEFAULT_CLEANUP_TRIGGERS = (TRIGGER_FULL_REINDEX, TRIGGER_STARTUP)
FAILED_ROLLBACK_MAX_AGE_HOURS = 1
COMPLETED_ROLLBACK_MAX_AGE_HOURS = 168  # one week
STALE_ATOMIC_TRANSACTION_HOURS = 24

# Logging
LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {name} | {message}"
LOG_ROTATION = "10 MB"
LOG_RETENTION = "7 days"
