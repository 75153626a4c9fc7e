# context_rollback/utils/logging.py
"""
Logging configuration for the context rollback package.

Module code logs through standard library loggers (wrapped by
``EnhancedLogger``); ``setup_logging`` hands those records to loguru, which
owns the console and file sinks.
"""
import sys
import logging
from pathlib import Path
from typing import Dict, Optional, Union

from loguru import logger

from context_rollback.constants import LOG_DIR, LOG_FORMAT, LOG_ROTATION, LOG_RETENTION
from context_rollback.utils.enhanced_logging import EnhancedLogger

_loggers: Dict[str, EnhancedLogger] = {}


class InterceptHandler(logging.Handler):
    """Forward standard library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Report the frame that called logging, not the logging module itself
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(debug: bool = False, log_dir: Optional[Union[str, Path]] = None) -> None:
    """
    Route all package logging through loguru.

    Args:
        debug: Lower the console threshold to DEBUG.
        log_dir: Where the plain and JSON log files go, defaults to
            ``~/.config/context-rollback/logs``.
    """
    log_path = Path(log_dir) if log_dir else LOG_DIR
    log_path.mkdir(parents=True, exist_ok=True)

    text_log = log_path / "context-rollback.log"
    json_log = log_path / "context-rollback_structured.log"
    file_options = dict(level="INFO", rotation=LOG_ROTATION, retention=LOG_RETENTION, compression="zip")

    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level="DEBUG" if debug else "INFO", diagnose=debug)
    logger.add(text_log, format=LOG_FORMAT, **file_options)
    logger.add(json_log, serialize=True, **file_options)

    logging.basicConfig(handlers=[InterceptHandler()], level=logging.DEBUG if debug else logging.INFO, force=True)

    logger.debug(f"Rollback logging configured, files in {log_path}")


def get_logger(name: str = "context_rollback") -> EnhancedLogger:
    """
    Get the structured logger for a module.

    Args:
        name: Usually the module's ``__name__``.

    Returns:
        A cached ``EnhancedLogger``; repeated calls return the same object.
    """
    if name not in _loggers:
        _loggers[name] = EnhancedLogger(name)
    return _loggers[name]
