"""
Structured logging utilities

Provides JSON-formatted log events alongside the plain module loggers:

- StructuredLogger for key=value style events
- log_duration context manager for timing operations
- log_security_event for authentication and authorization events
"""
import logging
import json
import time
from typing import Any, Dict, Optional
from contextlib import contextmanager


class StructuredLogger:
    """
    Logger that outputs structured JSON for important events.

    Usage:
        logger = StructuredLogger(__name__)
        logger.info("Game imported", game_id="123", folder="mathgame")
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.default_fields: Dict[str, Any] = {}

    def _log(self, log_level: int, message: str, **fields):
        data = {
            **self.default_fields,
            **fields,
            "message": message,
            "timestamp": time.time()
        }
        self.logger.log(log_level, json.dumps(data, default=str))

    def info(self, message: str, **fields):
        self._log(logging.INFO, message, level="info", **fields)

    def warning(self, message: str, **fields):
        self._log(logging.WARNING, message, level="warning", **fields)

    def error(self, message: str, **fields):
        self._log(logging.ERROR, message, level="error", **fields)

    def debug(self, message: str, **fields):
        self._log(logging.DEBUG, message, level="debug", **fields)

    def with_fields(self, **fields) -> "StructuredLogger":
        """
        Create a child logger with additional default fields.

            import_logger = logger.with_fields(archive="games.zip")
            import_logger.info("Folder skipped", folder="broken")

        Returns:
            New StructuredLogger with inherited fields
        """
        child = StructuredLogger(self.logger.name)
        child.default_fields = {**self.default_fields, **fields}
        return child


@contextmanager
def log_duration(operation: str, logger: Optional[StructuredLogger] = None, **extra_fields):
    """
    Context manager to log operation duration.

    Usage:
        with log_duration("game_import", archive=path.name):
            result = await service.import_archive(db, path)
    """
    if logger is None:
        logger = get_logger("timing")

    start = time.perf_counter()
    error_occurred = None
    try:
        yield
    except Exception as e:
        error_occurred = str(e)
        raise
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        if error_occurred:
            logger.error(
                f"{operation} failed",
                operation=operation,
                duration_ms=round(duration_ms, 2),
                error=error_occurred,
                **extra_fields
            )
        else:
            logger.info(
                f"{operation} completed",
                operation=operation,
                duration_ms=round(duration_ms, 2),
                **extra_fields
            )


def log_security_event(
    event_type: str,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    success: bool = True,
    logger: Optional[StructuredLogger] = None,
    **extra_fields
):
    """
    Log security-related events (logins, role changes, unlocks).

    Failed events are logged at WARNING, successful ones at INFO.
    """
    if logger is None:
        logger = get_logger("security")

    log_level = logging.INFO if success else logging.WARNING
    logger._log(
        log_level,
        f"Security event: {event_type}",
        event="security",
        event_type=event_type,
        user_id=user_id,
        ip_address=ip_address,
        success=success,
        **extra_fields
    )


def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger instance.

        from app.core.logging import get_logger
        logger = get_logger(__name__)
        logger.info("Something happened", game_id="123")
    """
    return StructuredLogger(name)
