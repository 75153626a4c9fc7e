# context_rollback/utils/enhanced_logging.py
"""
Structured log messages for rollback operations.

Every message is rendered as one JSON object so the structured log file can
be filtered by update id or transaction id without parsing free text.
"""
import json
import inspect
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Union


class EnhancedLogger:
    """Standard library logger that carries bound context into every message."""

    def __init__(self, name: str, context: Optional[Dict[str, Any]] = None):
        self._logger = logging.getLogger(name)
        self._context: Dict[str, Any] = dict(context or {})

    @property
    def context(self) -> Dict[str, Any]:
        return dict(self._context)

    def with_context(self, **context) -> 'EnhancedLogger':
        """Return a logger for the same name with extra bound context."""
        return EnhancedLogger(self._logger.name, {**self._context, **context})

    @staticmethod
    def _caller(depth: int) -> str:
        frame = inspect.currentframe()
        for _ in range(depth):
            frame = frame.f_back
        filename = frame.f_code.co_filename.replace("\\", "/").rsplit("/", 1)[-1]
        return f"{filename}:{frame.f_code.co_name}:{frame.f_lineno}"

    def _render(self, msg: str, extra: Optional[Dict[str, Any]], depth: int = 4) -> str:
        return json.dumps({
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "message": msg,
            "context": {**self._context, **(extra or {})},
            "caller": self._caller(depth),
        }, default=str)

    def _log(self, level: int, msg: str, args, kwargs) -> None:
        if not self._logger.isEnabledFor(level):
            return
        extra = kwargs.pop("extra", None)
        self._logger.log(level, self._render(msg, extra), *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.DEBUG, msg, args, kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.INFO, msg, args, kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.WARNING, msg, args, kwargs)

    def error(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.ERROR, msg, args, kwargs)

    def exception(self, msg: str, exc_info: Union[bool, BaseException] = True, **kwargs) -> None:
        """
        Log an error together with the exception being handled.

        Args:
            msg: The message.
            exc_info: The exception to describe, or True for the active one.
        """
        error = exc_info if isinstance(exc_info, BaseException) else None
        if error is None and exc_info:
            error = sys.exc_info()[1]

        extra = dict(kwargs.pop("extra", None) or {})
        if error is not None:
            extra["exception"] = {
                "exception_type": type(error).__name__,
                "exception_message": str(error),
                "traceback": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
            }

        self._logger.error(self._render(msg, extra, depth=3), exc_info=exc_info, **kwargs)

    @property
    def name(self) -> str:
        return self._logger.name

