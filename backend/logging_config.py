"""
Duplicate Account Cleanup - Logging

Provides plain or structured JSON console logging plus the timestamped audit
log file that records every step of a cleanup run.
"""

import logging
import json
import sys
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from cleanup.audit import AUDIT_LOGGER_NAME

AUDIT_FILE_PREFIX = "cleanup_log"
AUDIT_LINE_FORMAT = "[%(asctime)s] %(message)s"
AUDIT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


# LogRecord attributes that are not caller-supplied extras
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "run_id"}


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line for log aggregation.

    Every record carries the cleanup run id at the top level so a run's lines
    can be pulled out of a shared stream. Failures from a store also name the
    store that failed.
    """

    def __init__(self, service_name: str = "account-cleanup"):
        super().__init__()
        self.service_name = service_name
        self.environment = os.environ.get("ENVIRONMENT", "development")

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "environment": self.environment,
            "run_id": getattr(record, "run_id", None),
        }

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            log_data["exception"] = {
                "type": type(exc).__name__,
                "message": str(exc),
                "traceback": self.formatException(record.exc_info),
            }
            store = getattr(exc, "store", None)
            if store:
                log_data["store"] = store

        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str)


class RunContextFilter(logging.Filter):
    """
    Adds the cleanup run id to log records.
    """

    def __init__(self):
        super().__init__()
        self._run_id: Optional[str] = None

    def set_run_context(self, run_id: Optional[str] = None):
        self._run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = self._run_id
        return True


# Global run context filter instance
_run_context_filter: Optional[RunContextFilter] = None


def audit_log_filename(now: Optional[datetime] = None) -> str:
    """File name for a run's audit log, e.g. cleanup_log_20250101_093000.txt"""
    now = now or datetime.now()
    return f"{AUDIT_FILE_PREFIX}_{now:%Y%m%d_%H%M%S}.txt"


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    service_name: str = "account-cleanup",
    audit_dir: Optional[str] = None
) -> Optional[Path]:
    """
    Configure logging for a cleanup run.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON format on the console
        service_name: Service name for log aggregation
        audit_dir: Directory for the audit log file (None = no file)

    Returns:
        Path of the audit log file, if one was created
    """
    global _run_context_filter

    log_level = getattr(logging, level.upper(), logging.INFO)

    # Get root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    _run_context_filter = RunContextFilter()

    # Console handler
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    if json_format:
        handler.setFormatter(JSONFormatter(service_name=service_name))
    else:
        handler.setFormatter(logging.Formatter(AUDIT_LINE_FORMAT, AUDIT_DATE_FORMAT))
    handler.addFilter(_run_context_filter)
    root_logger.addHandler(handler)

    # Audit file handler: audit lines only, always in the plain timestamped form
    audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
    for existing in audit_logger.handlers[:]:
        audit_logger.removeHandler(existing)
        existing.close()

    audit_path: Optional[Path] = None
    if audit_dir is not None:
        audit_path = Path(audit_dir) / audit_log_filename()
        audit_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(audit_path, encoding="utf-8")
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter(AUDIT_LINE_FORMAT, AUDIT_DATE_FORMAT))
        file_handler.addFilter(logging.Filter(AUDIT_LOGGER_NAME))
        audit_logger.addHandler(file_handler)

    # Audit lines are always INFO, whatever the root level
    audit_logger.setLevel(logging.INFO)

    # Suppress noisy loggers
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    return audit_path


# Convenience function to get logger with context
def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name."""
    return logging.getLogger(name)


def set_run_context(run_id: Optional[str] = None):
    """Set run context for logging."""
    if _run_context_filter:
        _run_context_filter.set_run_context(run_id)
