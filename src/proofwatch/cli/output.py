"""Rich output formatting for the proofwatch CLI.

This module centralizes the Rich-based formatting utilities shared by the
report renderer and the commands:
- The shared console instance
- Color schemes for derived stage statuses
- Timestamp formatting
- Table builders
- Error output with hints

★ Insight ─────────────────────────────────────
1. **Plain text first**: Report lines are built as plain strings and only
   wrapped in markup at print time, so a Console with color_system=None
   (as in tests) prints exactly the text an operator would grep for.

2. **Escape dynamic values**: Job error strings and custom statuses come
   from the database; they are escaped before being embedded in markup.
─────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from proofwatch.status.classifier import Status, StatusKind

# =============================================================================
# Shared console instance
# =============================================================================

# Reports go to stdout; structured logs go to stderr via core.logging.
console = Console()


# =============================================================================
# Color schemes for status values
# =============================================================================


class StatusColors:
    """Color mappings for derived statuses."""

    STATUS: dict[StatusKind, str] = {
        StatusKind.QUEUED: "yellow",
        StatusKind.IN_PROGRESS: "blue",
        StatusKind.SUCCESSFUL: "green",
        StatusKind.WAITING_FOR_PROOFS: "cyan",
        StatusKind.STUCK: "red",
        StatusKind.JOBS_NOT_FOUND: "dim",
        StatusKind.CUSTOM: "magenta",
    }

    @classmethod
    def get_status_color(cls, status: Status) -> str:
        """Get color for a derived status."""
        return cls.STATUS.get(status.kind, "white")


def format_status(status: Status) -> str:
    """Rich markup for a status, colored by kind."""
    color = StatusColors.get_status_color(status)
    return f"[{color}]{escape(str(status))}[/{color}]"


# =============================================================================
# Timestamp formatting
# =============================================================================


def format_timestamp(dt: datetime | None, include_tz: bool = True) -> str:
    """Format a datetime for display.

    Args:
        dt: datetime to format, or None.
        include_tz: Whether to include timezone suffix.

    Returns:
        Formatted timestamp string, or "-" if None.
    """
    if dt is None:
        return "-"

    fmt = "%Y-%m-%d %H:%M:%S"
    if include_tz:
        fmt += " UTC"
    return dt.strftime(fmt)


# =============================================================================
# Table builders
# =============================================================================


def create_batch_details_table() -> Table:
    """Create a styled two-column table for L1 batch details.

    Returns:
        Rich Table configured for field/value display.
    """
    table = Table(show_header=True, header_style="bold")
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", no_wrap=False)
    return table


# =============================================================================
# Error output
# =============================================================================


def output_error(
    message: str,
    *,
    error_code: str | None = None,
    hints: list[str] | None = None,
    severity: Literal["error", "warning"] = "error",
    console_instance: Console | None = None,
) -> None:
    """Output a formatted error/warning with optional hints.

    Args:
        message: The error message to display.
        error_code: Optional error code (e.g., "E201").
        hints: Optional list of hint strings for the user.
        severity: "error" (red) or "warning" (yellow).
        console_instance: Console to print to. Defaults to module console.
    """
    out = console_instance or console
    color = "red" if severity == "error" else "yellow"
    label = "Error" if severity == "error" else "Warning"

    if error_code:
        prefix = f"[{color}]{label} \\[{error_code}]:[/{color}] "
    else:
        prefix = f"[{color}]{label}:[/{color}] "
    out.print(f"{prefix}{escape(message)}")

    if hints:
        out.print()
        out.print("[dim]Hints:[/dim]")
        for hint in hints:
            out.print(f"  - {escape(hint)}")
