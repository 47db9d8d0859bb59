"""Logging setup and environment helpers for the plugin release tool."""

import json
import logging
import os
import sys
import time
from datetime import UTC, datetime
from typing import Any

from plugin_release.errors import ConfigurationError

LOGGER_NAME = "plugin_release"

# Working-directory layout
CONFIG_FILE_NAME = "update.config"
LOG_FILE_NAME = "update.log"
UPDATES_DIR_NAME = "Updates"
DESCRIPTOR_FILE_NAME = "update_info.json"
CHANGELOG_FILE_NAME = "CHANGELOG.md"

# Environment variable names
ENV_LOG_LEVEL = "LOG_LEVEL"
ENV_SSH_PASSWORD = "WP_RELEASE_SSH_PASSWORD"
ENV_SKIP_CHANGELOG_INPUT = "SKIP_CHANGELOG_INPUT"
ENV_AUTO_CHANGELOG = "AUTO_CHANGELOG"
ENV_AUTO_GITHUB_UPDATE = "AUTO_GITHUB_UPDATE"
ENV_SKIP_GITHUB_UPDATE = "SKIP_GITHUB_UPDATE"

_RESERVED_RECORD_ATTRS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


class StructuredFormatter(logging.Formatter):
    """Render each record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_ATTRS and not key.startswith("_"):
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class OperationLogger:
    """Logs the start, completion, and failure of pipeline stages."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self._started: dict[str, float] = {}

    def start_operation(self, operation: str, **context: Any) -> None:
        self._started[operation] = time.monotonic()
        self.logger.info(
            f"Starting operation: {operation}",
            extra={"operation": operation, "component": "operation_tracker", **context},
        )

    def complete_operation(self, operation: str, success: bool = True, **context: Any) -> None:
        started = self._started.pop(operation, None)
        duration_ms = (
            int((time.monotonic() - started) * 1000) if started is not None else None
        )
        level = logging.INFO if success else logging.WARNING
        status = "Operation completed" if success else "Operation failed"
        self.logger.log(
            level,
            f"{status}: {operation}",
            extra={
                "operation": operation,
                "component": "operation_tracker",
                "success": success,
                "duration_ms": duration_ms,
                **context,
            },
        )

    def log_error(self, operation: str, error: BaseException) -> None:
        self.logger.error(
            f"Error in operation {operation}: {error}",
            extra={
                "operation": operation,
                "component": "operation_tracker",
                "error_type": type(error).__name__,
            },
        )


class SystemLogger:
    """Run-level logger with simple counters."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.metrics: dict[str, Any] = {}
        self._operation_logger = OperationLogger(logger)

    def get_operation_logger(self) -> OperationLogger:
        return self._operation_logger

    def log_system_start(self, **context: Any) -> None:
        self.logger.info(
            "Release run started", extra={"component": "system", **context}
        )

    def log_system_termination(self, success: bool) -> None:
        self.logger.info(
            "Release run finished successfully" if success else "Release run failed",
            extra={"component": "system", "success": success, "metrics": dict(self.metrics)},
        )

    def increment_metric(self, name: str, value: int = 1) -> None:
        self.metrics[name] = self.metrics.get(name, 0) + value

    def set_metric(self, name: str, value: Any) -> None:
        self.metrics[name] = value


def setup_logging(
    level: str | None = None,
    log_file: str | None = None,
    log_format: str = "text",
) -> SystemLogger:
    """Set up console and run-log logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to the
            LOG_LEVEL environment variable, then INFO.
        log_file: Optional path of a log file that is appended to.
        log_format: "text" for human readable lines, "json" for one JSON
            object per line.

    Returns:
        SystemLogger wrapping the package logger.
    """
    log_level = level or os.getenv(ENV_LOG_LEVEL, "INFO")
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ConfigurationError(f"Unsupported log level: {log_level!r}")

    if log_format == "json":
        formatter: logging.Formatter = StructuredFormatter()
    elif log_format == "text":
        formatter = logging.Formatter(TEXT_FORMAT)
    else:
        raise ConfigurationError(f"Unsupported log format: {log_format!r}")

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(numeric_level)
    logger.propagate = False

    # Reduce noise from transport libraries
    for noisy in ("paramiko", "boto3", "botocore", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return SystemLogger(logger)


def close_logging() -> None:
    """Flush and detach the handlers installed by setup_logging."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def get_env_var(name: str, default: str | None = None, required: bool = False) -> str:
    """Get environment variable with optional default and validation.

    Args:
        name: Environment variable name
        default: Default value if not set
        required: Whether the variable is required

    Returns:
        Environment variable value

    Raises:
        ConfigurationError: If required variable is not set
    """
    value = os.getenv(name, default)

    if required and not value:
        raise ConfigurationError(f"Required environment variable {name} is not set")

    return value or ""
