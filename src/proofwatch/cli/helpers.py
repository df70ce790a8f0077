"""Shared utilities for proofwatch CLI commands.

This module contains helpers used across multiple CLI command modules:
- Logging configuration state set by the global options
- Config loading with command-line overrides
- Store and RPC client factories
- The command error boundary

★ Insight ─────────────────────────────────────
1. **Module-level state pattern**: Global options (--config, --database-url,
   --log-level, ...) are parsed once in the Typer callback and stored here,
   so commands read them without every signature repeating them.

2. **One error boundary**: `run_command` is the only place that turns a
   ProofwatchError into a formatted message and exit code 1. Commands raise
   freely; whatever they already printed stays on stdout.

3. **Late-bound factories**: `prover_store` looks up `open_store` at call
   time, so tests can patch it with an in-memory store without touching
   the command modules.
─────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine, Iterator
from contextlib import AbstractAsyncContextManager, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import typer
from rich.console import Console

from proofwatch.core.config import LogConfig, ProofwatchConfig, load_config
from proofwatch.core.errors import (
    CircuitIdError,
    ConfigError,
    DataAccessError,
    ProofwatchError,
    RecordDecodeError,
    RpcError,
)
from proofwatch.core.logging import (
    BatchContext,
    configure_logging,
    get_current_context,
    get_logger,
    with_context,
)
from proofwatch.rpc.client import L2RpcClient
from proofwatch.status.stages import StageFlags
from proofwatch.store import open_store
from proofwatch.store.base import JobRecordStore

from .output import console, output_error

# =============================================================================
# Module-level logger
# =============================================================================

_logger = get_logger("cli")


# =============================================================================
# Error message constants
# =============================================================================


class ErrorMessages:
    """Constants for CLI error codes and the hints shown with them.

    Subclasses are listed before their bases; the first match wins.
    """

    CODES: list[tuple[type[ProofwatchError], str, list[str]]] = [
        (
            ConfigError,
            "E101",
            [
                "Pass --database-url or set PROOFWATCH_PROVER_DB_URL",
                "Check ~/.proofwatch/config.yaml or the file given with --config",
            ],
        ),
        (
            RecordDecodeError,
            "E202",
            [
                "A stored row has a value this version does not understand",
                "Check that the prover database schema matches this proofwatch release",
            ],
        ),
        (
            DataAccessError,
            "E201",
            [
                "Check that the prover database is reachable",
                "Verify the credentials in the database URL",
            ],
        ),
        (
            CircuitIdError,
            "E301",
            ["The circuit catalogue may be out of date for this protocol version"],
        ),
        (
            RpcError,
            "E401",
            [
                "Check that the L2 node is reachable",
                "Pass --rpc-url or set PROOFWATCH_L2_RPC_URL",
            ],
        ),
    ]

    @classmethod
    def lookup(cls, error: ProofwatchError) -> tuple[str | None, list[str]]:
        """Error code and hints for an exception."""
        for error_type, code, hints in cls.CODES:
            if isinstance(error, error_type):
                return code, hints
        return None, []


# =============================================================================
# Logging configuration
# =============================================================================


@dataclass
class CliLoggingConfig:
    """CLI logging options.

    None means the option was not given; the config file's ``log`` section
    (or its defaults) fills the gap.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None
    file: Path | None = None
    format: Literal["json", "console", "both"] | None = None
    configured: bool = False


# Single global config instance
_log_config = CliLoggingConfig()

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def set_log_level(level: str) -> None:
    """Set the log level.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR), any case.

    Raises:
        typer.BadParameter: If the level is not one of the above.
    """
    normalized = level.upper()
    if normalized not in LOG_LEVELS:
        raise typer.BadParameter(f"must be one of {', '.join(LOG_LEVELS)}")
    _log_config.level = normalized  # type: ignore[assignment]


def set_log_file(path: Path | None) -> None:
    """Set the log file path.

    A log file switches the format to JSON unless a format was given, so
    report text on stdout and the log stream never mix.

    Args:
        path: Path for log file output, or None to disable file logging.
    """
    _log_config.file = path
    if path and _log_config.format is None:
        _log_config.format = "json"


def set_log_format(fmt: str) -> None:
    """Set the log format.

    Args:
        fmt: Log format string (json, console, both).
    """
    _log_config.format = fmt  # type: ignore[assignment]


def configure_global_logging(console: Console, defaults: LogConfig | None = None) -> None:
    """Configure logging from the CLI options, falling back to ``defaults``.

    Runs once from the global callback with built-in defaults, then once
    more per command when the config file supplies a ``log`` section that
    differs from them.

    Args:
        console: Rich console for error output.
        defaults: Values for options not given on the command line.

    Raises:
        typer.Exit: If logging configuration fails.
    """
    base = defaults or LogConfig()
    if _log_config.configured and defaults is None:
        return

    try:
        configure_logging(
            level=_log_config.level or base.level,
            format=_log_config.format or base.format,
            file_path=_log_config.file or base.file,
        )
        _log_config.configured = True
    except ValueError as e:
        # e.g. format="both" without a log file
        console.print(f"[red]Logging configuration error:[/red] {e}")
        raise typer.Exit(1) from None


def reset_logging_state() -> None:
    """Reset logging state (primarily for testing)."""
    _log_config.level = None
    _log_config.file = None
    _log_config.format = None
    _log_config.configured = False


# =============================================================================
# Config and connection settings
# =============================================================================


@dataclass
class CliSettings:
    """Connection overrides from global options and environment."""

    config_file: Path | None = None
    database_url: str | None = None
    rpc_url: str | None = None


_settings = CliSettings()


def set_config_file(path: Path | None) -> None:
    _settings.config_file = path


def set_database_url(url: str | None) -> None:
    _settings.database_url = url


def set_rpc_url(url: str | None) -> None:
    _settings.rpc_url = url


def reset_cli_settings() -> None:
    """Forget global options (primarily for testing)."""
    _settings.config_file = None
    _settings.database_url = None
    _settings.rpc_url = None


def get_config() -> ProofwatchConfig:
    """Load the config file and apply command-line overrides.

    Raises:
        ConfigError: If the file is invalid or an override fails validation.
    """
    config = load_config(_settings.config_file)
    return config.with_overrides(
        database_url=_settings.database_url,
        rpc_url=_settings.rpc_url,
    )


# =============================================================================
# Store and client factories
# =============================================================================


def prover_store(config: ProofwatchConfig) -> AbstractAsyncContextManager[JobRecordStore]:
    """Open the prover database for one command invocation."""
    return open_store(config.database)


def rpc_client(config: ProofwatchConfig) -> L2RpcClient:
    """Create an L2 JSON-RPC client from the network settings."""
    return L2RpcClient(
        config.network.l2_rpc_url,
        timeout=config.network.request_timeout_seconds,
    )


def stage_flags(
    bwg: bool = False,
    lwg: bool = False,
    nwg: bool = False,
    rtwg: bool = False,
    swg: bool = False,
    compressor: bool = False,
) -> StageFlags:
    """Combine the per-stage options into a bitmask (empty means all)."""
    flags = StageFlags(0)
    for selected, flag in (
        (bwg, StageFlags.BWG),
        (lwg, StageFlags.LWG),
        (nwg, StageFlags.NWG),
        (rtwg, StageFlags.RTWG),
        (swg, StageFlags.SWG),
        (compressor, StageFlags.COMPRESSOR),
    ):
        if selected:
            flags |= flag
    return flags


@contextmanager
def batch_scope(l1_batch_number: int) -> Iterator[BatchContext]:
    """Bind a batch number to the current command's log context."""
    ctx = get_current_context() or BatchContext(command="proofwatch")
    with with_context(ctx.with_batch(l1_batch_number)) as scoped:
        yield scoped


# =============================================================================
# Command error boundary
# =============================================================================

CommandBody = Callable[[ProofwatchConfig], Coroutine[Any, Any, int | None]]


def run_command(command: str, body: CommandBody) -> None:
    """Load config, run an async command body and map failures to exit codes.

    The body receives the effective config and may return a non-zero exit
    code. A ProofwatchError is logged, printed with its error code and hints,
    and ends the command with exit code 1.

    Raises:
        typer.Exit: With the body's exit code, or 1 on ProofwatchError.
    """
    ctx = BatchContext(command=command)
    with with_context(ctx):
        try:
            config = get_config()
            if config.log != LogConfig():
                configure_global_logging(console, config.log)
            _logger.debug("command_started", command=command)
            exit_code = asyncio.run(body(config))
        except ProofwatchError as e:
            _logger.error(
                "command_failed",
                command=command,
                error_type=type(e).__name__,
                error=str(e),
            )
            code, hints = ErrorMessages.lookup(e)
            output_error(str(e), error_code=code, hints=hints)
            raise typer.Exit(1) from None

    if exit_code:
        raise typer.Exit(exit_code)


# =============================================================================
# Public API
# =============================================================================

__all__ = [
    "CliLoggingConfig",
    "CliSettings",
    "ErrorMessages",
    "batch_scope",
    "configure_global_logging",
    "get_config",
    "prover_store",
    "reset_cli_settings",
    "reset_logging_state",
    "rpc_client",
    "run_command",
    "set_config_file",
    "set_database_url",
    "set_log_file",
    "set_log_format",
    "set_log_level",
    "set_rpc_url",
    "stage_flags",
]
