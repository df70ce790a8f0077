"""Batch status commands for proofwatch CLI.

This module implements the per-batch views:
- `proofwatch status <batch>...` - Stage status summary (or -v breakdown)
- `proofwatch proof-time <batch>...` - Per-stage and total proof time

★ Insight ─────────────────────────────────────
1. **Fetch, render, repeat**: Each batch is rendered as soon as its records
   are assembled. A database error on the third batch still leaves the
   first two reports on screen.

2. **Stage flags**: The --bwg/--lwg/... options only filter what is shown.
   Every stage is still fetched because stage status does not depend on
   what is displayed.
─────────────────────────────────────────────────
"""

from __future__ import annotations

import typer

from proofwatch.core.config import ProofwatchConfig
from proofwatch.status.assembler import BatchDataAssembler

from ..helpers import prover_store, run_command, stage_flags
from ..output import console
from ..report import ReportRenderer

# =============================================================================
# CLI Commands
# =============================================================================


def status(
    batches: list[int] = typer.Argument(
        ...,
        min=1,
        help="L1 batch number(s) to report on",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Break stages down per circuit and list stuck prover jobs",
    ),
    bwg: bool = typer.Option(False, "--bwg", help="Show the basic witness generator"),
    lwg: bool = typer.Option(False, "--lwg", help="Show the leaf witness generator"),
    nwg: bool = typer.Option(False, "--nwg", help="Show the node witness generator"),
    rtwg: bool = typer.Option(False, "--rtwg", help="Show the recursion tip"),
    swg: bool = typer.Option(False, "--swg", help="Show the scheduler"),
    compressor: bool = typer.Option(False, "--compressor", help="Show the compressor"),
) -> None:
    """Show the proving status of one or more batches.

    Without stage options every stage is shown.

    Examples:
        proofwatch status 1000
        proofwatch status 1000 1001 -v
        proofwatch status 1000 --bwg --compressor
    """
    flags = stage_flags(bwg, lwg, nwg, rtwg, swg, compressor)

    async def _status(config: ProofwatchConfig) -> None:
        renderer = ReportRenderer(console, config.status.max_attempts)
        async with prover_store(config) as store:
            async for batch in BatchDataAssembler(store).iter_batches(batches):
                if verbose:
                    renderer.render_verbose(batch, flags)
                else:
                    renderer.render_summary(batch, flags)

    run_command("status", _status)


def proof_time(
    batches: list[int] = typer.Argument(
        ...,
        min=1,
        help="L1 batch number(s) to measure",
    ),
    bwg: bool = typer.Option(False, "--bwg", help="Show the basic witness generator"),
    lwg: bool = typer.Option(False, "--lwg", help="Show the leaf witness generator"),
    nwg: bool = typer.Option(False, "--nwg", help="Show the node witness generator"),
    rtwg: bool = typer.Option(False, "--rtwg", help="Show the recursion tip"),
    swg: bool = typer.Option(False, "--swg", help="Show the scheduler"),
    compressor: bool = typer.Option(False, "--compressor", help="Show the compressor"),
) -> None:
    """Show how long each finished stage of a batch took to prove.

    Once the compressor sent the proof to server, the total time from the
    first stage's creation is shown as well.

    Examples:
        proofwatch proof-time 1000
    """
    flags = stage_flags(bwg, lwg, nwg, rtwg, swg, compressor)

    async def _proof_time(config: ProofwatchConfig) -> None:
        renderer = ReportRenderer(console, config.status.max_attempts)
        async with prover_store(config) as store:
            async for batch in BatchDataAssembler(store).iter_batches(batches):
                renderer.render_proof_time(batch, flags)

    run_command("proof-time", _proof_time)
