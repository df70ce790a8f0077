"""Structured logging infrastructure for proofwatch.

Provides structured logging using structlog with proofwatch-specific context
such as the batch number and the command being run. Log output always goes
to stderr or a file, never stdout, so report text stays clean.

Example usage:
    from proofwatch.core.logging import get_logger, configure_logging, with_context

    # Configure once at startup
    configure_logging(level="DEBUG", format="console")

    # Get a component-specific logger
    logger = get_logger("store")

    # Log with auto-context
    logger.info("stage_records_fetched", table="prover_jobs_fri", count=12)

    # Correlate all entries for one batch
    ctx = BatchContext(command="status", l1_batch_number=4021)
    with with_context(ctx):
        logger.info("batch_data_assembled")  # includes l1_batch_number, run_id
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal
from urllib.parse import urlsplit, urlunsplit

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Field names whose values are never logged
SENSITIVE_PATTERNS = frozenset({
    "password",
    "passwd",
    "secret",
    "token",
    "credential",
    "authorization",
})

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console", "both"]


def redact_dsn(dsn: str) -> str:
    """Strip the password from a database or RPC URL for display.

    Args:
        dsn: A URL such as ``postgres://user:pw@host:5432/prover``.

    Returns:
        The same URL with the password replaced by ``***``. Strings that are
        not URLs are returned unchanged.
    """
    parts = urlsplit(dsn)
    if not parts.password:
        return dsn
    netloc = parts.netloc.replace(f":{parts.password}@", ":***@", 1)
    return urlunsplit(parts._replace(netloc=netloc))


@dataclass(frozen=True)
class BatchContext:
    """Immutable context for correlating log entries of one command run.

    Attributes:
        command: CLI command being executed (e.g. "status", "stuck").
        run_id: Unique id per invocation.
        l1_batch_number: Batch currently being processed, if any.
    """

    command: str
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    l1_batch_number: int | None = None

    def with_batch(self, l1_batch_number: int) -> BatchContext:
        """Create a new context scoped to one batch."""
        return replace(self, l1_batch_number=l1_batch_number)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for logging (excludes None values)."""
        result: dict[str, Any] = {"command": self.command, "run_id": self.run_id}
        if self.l1_batch_number is not None:
            result["l1_batch_number"] = self.l1_batch_number
        return result


# ContextVar keeps contexts isolated between asyncio tasks
_current_context: ContextVar[BatchContext | None] = ContextVar(
    "proofwatch_context", default=None
)


def get_current_context() -> BatchContext | None:
    """Get the current BatchContext if set."""
    return _current_context.get()


@contextmanager
def with_context(ctx: BatchContext) -> Iterator[BatchContext]:
    """Set BatchContext for the duration of a block.

    All log calls within the block include the context fields.
    """
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def _sanitize_value(key: str, value: Any) -> Any:
    key_lower = key.lower()
    for pattern in SENSITIVE_PATTERNS:
        if pattern in key_lower:
            return "[REDACTED]"
    if key_lower.endswith(("dsn", "url")) and isinstance(value, str):
        return redact_dsn(value)
    return value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that redacts sensitive fields."""
    sanitized: EventDict = {}
    for key, value in event_dict.items():
        if isinstance(value, dict):
            sanitized[key] = {k: _sanitize_value(k, v) for k, v in value.items()}
        else:
            sanitized[key] = _sanitize_value(key, value)
    return sanitized


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds an ISO8601 UTC timestamp."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds BatchContext fields to log entries.

    Explicitly bound fields take precedence over context fields.
    """
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            if key not in event_dict:
                event_dict[key] = value
    return event_dict


class ProofwatchLogger:
    """Component-bound wrapper around a structlog logger.

    The underlying structlog logger is fetched lazily on every call so that
    loggers created at import time still honour configure_logging() calls
    made later by the CLI.
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._component = component
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    def bind(self, **context: Any) -> ProofwatchLogger:
        """Create a new logger with additional bound context."""
        new_logger = ProofwatchLogger.__new__(ProofwatchLogger)
        new_logger._component = self._component
        new_logger._context = {**self._context, **context}
        return new_logger

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log an exception with traceback; call from an except block."""
        self._get_logger().exception(event, **kw)


def _build_processors(include_timestamps: bool) -> list[Processor]:
    """Shared chain; rendering happens per handler in _formatter()."""
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,  # Filter before processing
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
        _add_context,
    ]
    if include_timestamps:
        processors.append(_add_timestamp)
    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ])
    return processors


def _formatter(renderer: Processor) -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def configure_logging(
    level: LogLevel = "WARNING",
    format: LogFormat = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 20,
    backup_count: int = 3,
    include_timestamps: bool = True,
) -> None:
    """Configure proofwatch structured logging.

    Call once at startup, before any logging occurs.

    Args:
        level: Minimum log level to capture.
        format: "console" for human-readable stderr output, "json" for
            structured output (to file_path if given, else stderr), "both"
            for console on stderr plus JSON to file_path.
        file_path: Log file for "json"/"both" formats.
        max_file_size_mb: Maximum log file size before rotation (MB).
        backup_count: Number of rotated log files to keep.
        include_timestamps: Whether to include ISO8601 timestamps.

    Raises:
        ValueError: If format="both" but file_path is not provided.
    """
    if format == "both" and file_path is None:
        raise ValueError("file_path is required when format='both'")

    log_level = getattr(logging, level)
    console_formatter = _formatter(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    json_formatter = _formatter(structlog.processors.JSONRenderer())
    handlers: list[logging.Handler] = []

    if format in ("console", "both"):
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(console_formatter)
        handlers.append(stderr_handler)

    if format in ("json", "both"):
        if file_path:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            json_handler: logging.Handler = RotatingFileHandler(
                file_path,
                maxBytes=max_file_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding="utf-8",
            )
        else:
            json_handler = logging.StreamHandler(sys.stderr)
        json_handler.setFormatter(json_formatter)
        handlers.append(json_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    # cache_logger_on_first_use=False so import-time loggers see this config
    structlog.configure(
        processors=_build_processors(include_timestamps),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> ProofwatchLogger:
    """Get a proofwatch logger for a component (e.g. "store", "stuck")."""
    return ProofwatchLogger(component, **initial_context)


__all__ = [
    "BatchContext",
    "ProofwatchLogger",
    "SENSITIVE_PATTERNS",
    "configure_logging",
    "get_current_context",
    "get_logger",
    "redact_dsn",
    "with_context",
]
