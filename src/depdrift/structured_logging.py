"""
Structured logging configuration for depdrift.

Emits machine-readable JSON events for drift decisions, staleness record
updates and preflight installs so the "why did it reinstall" question can be
answered from logs.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, List, Optional

_RESERVED_RECORD_KEYS = {
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
    "taskName",
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class EventLogger:
    """Structured logger for a single depdrift component."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(f"depdrift.{name}")
        self.logger.propagate = False
        self._setup_logger()

    def _setup_logger(self) -> None:
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.WARNING)

    def _log(self, level: str, event_type: str, **kwargs) -> None:
        log_data = {"event_type": event_type, **kwargs}
        getattr(self.logger, level)(event_type, extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        self._log("info", event_type, **kwargs)

    def warning(self, event_type: str, **kwargs) -> None:
        self._log("warning", event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        self._log("debug", event_type, **kwargs)


_drift_logger = EventLogger("drift")
_store_logger = EventLogger("store")
_preflight_logger = EventLogger("preflight")

_ALL_LOGGERS = [_drift_logger, _store_logger, _preflight_logger]


def get_drift_logger() -> EventLogger:
    return _drift_logger


def get_store_logger() -> EventLogger:
    return _store_logger


def get_preflight_logger() -> EventLogger:
    return _preflight_logger


def short_hash(value: Optional[str]) -> str:
    """First 8 characters of a digest; digests are never logged in full."""
    if not value:
        return ""
    return value[:8]


def log_hash_comparison(ecosystem: str, stored: Optional[str], current: str, mismatch: bool) -> None:
    """Log the stored/current digest comparison."""
    _drift_logger.debug(
        "hash_comparison",
        ecosystem=ecosystem,
        stored=short_hash(stored),
        current=short_hash(current),
        mismatch=mismatch,
    )


def log_drift_decision(root: str, ecosystem: str, should_install: bool, reasons: List[str]) -> None:
    """Log the final decision; installs are logged at info level."""
    log = _drift_logger.info if should_install else _drift_logger.debug
    log(
        "drift_decision",
        root=root,
        ecosystem=ecosystem,
        should_install=should_install,
        reasons=reasons,
    )


def log_import_probe_failed(locator: str) -> None:
    _drift_logger.debug("import_probe_failed", locator=locator)


def log_record_written(root: str, ecosystem: str, digest: str) -> None:
    _store_logger.debug(
        "staleness_record_written", root=root, ecosystem=ecosystem, hash=short_hash(digest)
    )


def log_record_skipped(root: str, ecosystem: str, reason: str) -> None:
    _store_logger.debug("staleness_record_skipped", root=root, ecosystem=ecosystem, reason=reason)


def log_install_started(root: str, command: List[str], reason: str) -> None:
    _preflight_logger.info("install_started", root=root, command=" ".join(command), reason=reason)


def log_install_completed(root: str, command: List[str], duration_ms: int, **kwargs: Any) -> None:
    _preflight_logger.info(
        "install_completed",
        root=root,
        command=" ".join(command),
        duration_ms=duration_ms,
        **kwargs,
    )


def configure_logging(log_level: str = "WARNING", enable_json: bool = True) -> None:
    """Configure level and format of the depdrift event loggers."""
    level = getattr(logging, log_level.upper(), logging.WARNING)

    for event_logger in _ALL_LOGGERS:
        event_logger.logger.setLevel(level)
        for handler in event_logger.logger.handlers:
            if enable_json:
                handler.setFormatter(StructuredFormatter())
            else:
                handler.setFormatter(
                    logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
                )
