"""
Cleanup Audit Trail

Human-readable progress lines for a cleanup run. Lines go through the
``cleanup.audit`` logger so the handlers installed by logging_config decide
where they land (console, timestamped audit file, JSON).
"""

import logging
import sys
from typing import List, Protocol

AUDIT_LOGGER_NAME = "cleanup.audit"


class AuditSink(Protocol):
    """Accepts progress lines. Must never raise into the caller."""

    def emit(self, line: str) -> None:
        ...


class LoggingAuditSink:
    """Audit sink backed by the standard logging module."""

    def __init__(self, logger: logging.Logger = None):
        self._logger = logger or logging.getLogger(AUDIT_LOGGER_NAME)

    def emit(self, line: str) -> None:
        try:
            self._logger.info(line)
        except Exception as e:
            # A broken sink must not abort a cleanup in progress
            sys.stderr.write(f"audit sink failure: {e}: {line}\n")


class MemoryAuditSink:
    """Collects lines in memory (dry-run previews and tests)."""

    def __init__(self):
        self.lines: List[str] = []

    def emit(self, line: str) -> None:
        self.lines.append(line)

    def contains(self, fragment: str) -> bool:
        return any(fragment in line for line in self.lines)
