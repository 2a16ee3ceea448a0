"""
Structured logging configuration for req-drift.

Provides consistent, machine-readable logging of collection and
comparison runs, so CI jobs can archive what a drift check looked at.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_RESERVED_ATTRS = frozenset(
    [
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "getMessage",
        "exc_info",
        "exc_text",
        "stack_info",
        "taskName",
    ]
)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
        }
        message = record.getMessage()
        if message:
            log_entry["message"] = message

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class DriftLogger:
    """Structured logger for drift check events."""

    def __init__(self, name: str = "req_drift"):
        self.logger = logging.getLogger(name)
        self._setup_logger()
        self.run_context: Dict[str, Any] = {}

    def _setup_logger(self) -> None:
        """Setup logger with structured formatting."""
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.WARNING)
            self.logger.propagate = False

    def set_run_context(
        self,
        run_id: Optional[str] = None,
        directory: Optional[str] = None,
    ) -> None:
        """Set run context for logging."""
        self.run_context = {}
        if run_id:
            self.run_context["run_id"] = run_id
        if directory:
            self.run_context["directory"] = directory

    def clear_run_context(self) -> None:
        self.run_context.clear()

    def _log(self, level: str, event_type: str, **kwargs) -> None:
        log_data = {"event_type": event_type, **self.run_context, **kwargs}
        getattr(self.logger, level.lower())("", extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        self._log("info", event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        self._log("debug", event_type, **kwargs)


# Global logger instances
_collector_logger = DriftLogger("req_drift.collector")
_reconciler_logger = DriftLogger("req_drift.reconciler")


def get_collector_logger() -> DriftLogger:
    """Get dependency collection logger."""
    return _collector_logger


def get_reconciler_logger() -> DriftLogger:
    """Get comparison logger."""
    return _reconciler_logger


def log_source_read(source: str, kind: str, entries: int) -> None:
    """Log that a requirement file, manifest or freeze output was folded in."""
    get_collector_logger().debug(
        "source_read", source=source, source_kind=kind, entries=entries
    )


def log_check_start(run_id: str, directory: str, declared: int, installed: int) -> None:
    """Log check start event."""
    logger = get_reconciler_logger()
    logger.set_run_context(run_id, directory)
    logger.info(
        "check_started",
        declared_dependencies=declared,
        installed_dependencies=installed,
    )


def log_check_complete(run_id: str, direction: str, findings_count: int) -> None:
    """Log the outcome of one comparison direction."""
    logger = get_reconciler_logger()
    event = "drift_detected" if findings_count else "check_completed"
    logger.info(event, run_id=run_id, direction=direction, total_findings=findings_count)


def set_run_context(run_id: Optional[str] = None, directory: Optional[str] = None) -> None:
    """Set global run context for all loggers."""
    for logger in [_collector_logger, _reconciler_logger]:
        logger.set_run_context(run_id, directory)


def clear_run_context() -> None:
    """Clear global run context."""
    for logger in [_collector_logger, _reconciler_logger]:
        logger.clear_run_context()


def configure_logging(log_level: str = "WARNING") -> None:
    """Configure logging for the application."""
    level = getattr(logging, log_level.upper(), logging.WARNING)

    for logger in [_collector_logger, _reconciler_logger]:
        logger.logger.setLevel(level)
