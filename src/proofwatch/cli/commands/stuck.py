"""Fleet-wide stuck job scan for proofwatch CLI."""

from __future__ import annotations

import typer

from proofwatch.core.config import ProofwatchConfig
from proofwatch.core.rounds import AggregationRound
from proofwatch.status.stuck import StuckJobDetector, StuckReport

from ..helpers import prover_store, run_command
from ..output import console
from ..report import ReportRenderer

# Exit code when --fail-on-stuck is given and something is stuck
EXIT_STUCK = 2


def stuck(
    fail_on_stuck: bool = typer.Option(
        False,
        "--fail-on-stuck",
        help=f"Exit with code {EXIT_STUCK} when any stuck job is found",
    ),
) -> None:
    """Find batches with jobs that exhausted their retry budget.

    Scans witness generator and prover jobs of every aggregation round,
    across all batches.

    Examples:
        proofwatch stuck
        proofwatch stuck --fail-on-stuck
    """

    async def _stuck(config: ProofwatchConfig) -> int:
        renderer = ReportRenderer(console, config.status.max_attempts)
        rounds = []
        async with prover_store(config) as store:
            detector = StuckJobDetector(store, config.status.max_attempts)
            for aggregation_round in AggregationRound:
                with console.status(f"Scanning {aggregation_round.label}..."):
                    report = await detector.scan_round(aggregation_round)
                renderer.render_stuck_round(report)
                rounds.append(report)

        result = StuckReport(rounds=rounds)
        renderer.render_stuck_summary(result)
        return EXIT_STUCK if fail_on_stuck and result.any_stuck else 0

    run_command("stuck", _stuck)
