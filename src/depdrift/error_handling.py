"""
Error handling for depdrift.

Defines the exception taxonomy raised by the staleness subsystem and the
structured, sanitizing error handler used for non-fatal diagnostics
(skipped manifest entries, failed resolution probes).
"""

import logging
import re
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional


class DepDriftError(Exception):
    """Base class for all depdrift errors."""


class ManifestNotFound(DepDriftError):
    """No manifest file exists for the project root."""

    def __init__(self, root: Path, candidates: Optional[List[str]] = None):
        self.root = Path(root)
        self.candidates = candidates or []
        names = " or ".join(self.candidates) if self.candidates else "manifest"
        super().__init__(f"failed to find {names} in {self.root}")


class ManifestParseError(DepDriftError):
    """The manifest exists but is not a usable JSON object."""

    def __init__(self, path: Path, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"failed to parse {self.path}: {reason}")


class StorageUnavailable(DepDriftError):
    """
    The location that would hold the staleness record does not exist.

    Not fatal: callers treat it as "assume stale", since a missing install
    directory already implies an install is needed.
    """

    def __init__(self, location: Path):
        self.location = Path(location)
        super().__init__(f"dependency hash storage unavailable: {self.location}")


class FileAccessError(DepDriftError):
    """An I/O failure other than the sentinel conditions (permissions, disk errors)."""

    def __init__(self, path: Path, operation: str, cause: OSError):
        self.path = Path(path)
        self.operation = operation
        self.cause = cause
        super().__init__(f"failed to {operation} {self.path}: {cause}")


class InstallFailedError(DepDriftError):
    """The install command run by the preflight exited unsuccessfully."""

    def __init__(self, command: List[str], returncode: Optional[int], stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"failed to install dependencies: `{' '.join(self.command)}` "
            f"exited with {returncode}"
        )


class ErrorLevel(Enum):
    """Error severity levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorCategory(Enum):
    """Error categories for better classification."""

    PARSING = "PARSING"
    PROCESS = "PROCESS"


@dataclass
class ErrorContext:
    """Structured error context information."""

    level: ErrorLevel
    category: ErrorCategory
    message: str
    module: str
    function: str
    details: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[Exception] = None
    traceback_info: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)


class SecureLogger:
    """Logger that masks credentials before anything reaches a handler."""

    # Import map locators are URLs and may carry basic-auth credentials or tokens.
    SENSITIVE_PATTERNS = [
        (r"(https?://[^@\s/]+:)[^@\s/]+@", r"\1[REDACTED]@"),
        (r'token["\s]*[:=]["\s]*([a-zA-Z0-9_\-+=/.]{8,})', 'token="[REDACTED]"'),
        (r'password["\s]*[:=]["\s]*([^\s"\']+)', 'password="[REDACTED]"'),
        (r"Authorization:\s*\w+\s+([^\s]+)", "Authorization: [REDACTED]"),
    ]

    def __init__(self, name: str, level: int = logging.WARNING):
        """
        Initialize secure logger.

        Args:
            name: Logger name
            level: Logging level
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
            self.logger.addHandler(handler)

    def _sanitize_message(self, message: str) -> str:
        sanitized = message
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)
        return sanitized

    def _sanitize_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Sanitize dictionary values to remove sensitive info."""
        sanitized = {}
        sensitive_keys = {"token", "password", "secret", "credential", "auth"}

        for key, value in data.items():
            if any(sensitive_key in key.lower() for sensitive_key in sensitive_keys):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_dict(value)
            elif isinstance(value, str):
                sanitized[key] = self._sanitize_message(value)
            else:
                sanitized[key] = value

        return sanitized

    def log_error_context(self, context: ErrorContext):
        """
        Log error context with appropriate level.

        Args:
            context: Error context to log
        """
        log_data = {
            "category": context.category.value,
            "module": context.module,
            "function": context.function,
            "details": self._sanitize_dict(context.details),
        }

        if context.exception:
            log_data["exception"] = type(context.exception).__name__

        if context.suggestions:
            log_data["suggestions"] = context.suggestions

        log_message = f"{self._sanitize_message(context.message)} | {log_data}"
        self.logger.log(getattr(logging, context.level.value), log_message)


# Error callback type
ErrorCallback = Callable[[ErrorContext], None]


class ErrorHandler:
    """
    Centralized handler for non-fatal diagnostics.

    Fatal conditions are raised as DepDriftError subclasses; everything the
    engine chooses to tolerate is routed through here so it is logged and
    reported to callbacks instead of silently dropped.
    """

    def __init__(
        self,
        logger_name: str = "depdrift",
        log_level: int = logging.WARNING,
        enable_callbacks: bool = True,
    ):
        self.logger = SecureLogger(logger_name, log_level)
        self.enable_callbacks = enable_callbacks
        self.error_callbacks: Dict[ErrorCategory, List[ErrorCallback]] = {}
        self.global_callbacks: List[ErrorCallback] = []

    def register_callback(
        self, callback: ErrorCallback, category: Optional[ErrorCategory] = None
    ):
        """
        Register error callback.

        Args:
            callback: Function to call on errors
            category: Error category to filter, None for all errors
        """
        if not self.enable_callbacks:
            return

        if category is None:
            self.global_callbacks.append(callback)
        else:
            self.error_callbacks.setdefault(category, []).append(callback)

    def handle_error(
        self,
        level: ErrorLevel,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        exception: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ) -> ErrorContext:
        """Log an error context and fire callbacks."""
        context = ErrorContext(
            level=level,
            category=category,
            message=message,
            module=module,
            function=function,
            details=details or {},
            exception=exception,
            traceback_info=traceback.format_exc() if exception else None,
            suggestions=suggestions or [],
        )

        self.logger.log_error_context(context)

        if self.enable_callbacks:
            callbacks = self.error_callbacks.get(category, []) + self.global_callbacks
            for callback in callbacks:
                try:
                    callback(context)
                except Exception as cb_error:
                    # Don't let callback errors break the main flow
                    self.logger.logger.error(f"Error in callback: {cb_error}")

        return context

    def warning(self, category: ErrorCategory, message: str, module: str, function: str, **kwargs) -> ErrorContext:
        """Handle warning level error."""
        return self.handle_error(ErrorLevel.WARNING, category, message, module, function, **kwargs)


# Global error handler instance
_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance."""
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def setup_error_handling(
    log_level: int = logging.WARNING,
    enable_callbacks: bool = True,
    logger_name: str = "depdrift",
) -> ErrorHandler:
    """
    Setup global error handling configuration.

    Args:
        log_level: Logging level
        enable_callbacks: Whether to enable callbacks
        logger_name: Logger name

    Returns:
        ErrorHandler: Configured error handler
    """
    global _global_error_handler
    _global_error_handler = ErrorHandler(logger_name, log_level, enable_callbacks)
    return _global_error_handler


def log_parsing_error(
    message: str,
    module: str,
    function: str,
    file_path: Optional[Path] = None,
    exception: Optional[Exception] = None,
    **details: Any,
):
    """Convenience function for logging tolerated manifest problems."""
    if file_path is not None:
        # Only the file name, not the full path
        details["file_path"] = Path(file_path).name

    get_error_handler().warning(
        ErrorCategory.PARSING,
        message,
        module,
        function,
        details=details,
        exception=exception,
        suggestions=["Check that manifest entries map names to version strings"],
    )


def log_process_error(
    message: str,
    module: str,
    function: str,
    command: Optional[List[str]] = None,
    returncode: Optional[int] = None,
    exception: Optional[Exception] = None,
):
    """Convenience function for logging failed subprocess probes."""
    details: Dict[str, Any] = {}
    if command is not None:
        details["command"] = " ".join(command)
    if returncode is not None:
        details["returncode"] = returncode

    get_error_handler().warning(
        ErrorCategory.PROCESS,
        message,
        module,
        function,
        details=details,
        exception=exception,
        suggestions=["Check that the executable is installed and on PATH"],
    )
