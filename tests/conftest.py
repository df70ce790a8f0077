"""Pytest fixtures for proofwatch tests."""

import logging
from collections.abc import Generator
from io import StringIO
from pathlib import Path

import pytest
import structlog
from rich.console import Console

from tests.helpers import FakeConnection


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset CLI logging state and global options before and after each test.

    This ensures test isolation for logging configuration.
    """
    from proofwatch.cli import helpers as cli_helpers

    cli_helpers.reset_logging_state()
    cli_helpers.reset_cli_settings()

    # Reset structlog to default state
    structlog.reset_defaults()

    # Clear all handlers from root logger
    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    cli_helpers.reset_logging_state()
    cli_helpers.reset_cli_settings()

    # Restore original handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)


@pytest.fixture(autouse=True)
def isolated_config_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the default config path into tmp_path so ~/.proofwatch is never read."""
    path = tmp_path / "home" / "config.yaml"
    monkeypatch.setattr("proofwatch.core.config.DEFAULT_CONFIG_PATH", path)
    for var in (
        "PROOFWATCH_CONFIG",
        "PROOFWATCH_PROVER_DB_URL",
        "PROOFWATCH_L2_RPC_URL",
        "PROOFWATCH_LOG_LEVEL",
        "PROOFWATCH_LOG_FILE",
        "PROOFWATCH_LOG_FORMAT",
    ):
        monkeypatch.delenv(var, raising=False)
    return path


@pytest.fixture
def output() -> StringIO:
    """Buffer behind the `console` fixture."""
    return StringIO()


@pytest.fixture
def console(output: StringIO) -> Console:
    """Plain-text Rich console for rendering assertions."""
    return Console(file=output, color_system=None, width=120)


@pytest.fixture
def conn() -> FakeConnection:
    """Empty in-memory prover database."""
    return FakeConnection()
