"""L1 batch details command for proofwatch CLI.

Reads batch details from the L2 node over JSON-RPC rather than from the
prover database, so it works without --database-url.
"""

from __future__ import annotations

import typer

from proofwatch.core.config import ProofwatchConfig

from ..helpers import batch_scope, rpc_client, run_command
from ..output import console
from ..report import ReportRenderer


def batch_details(
    batches: list[int] = typer.Argument(
        ...,
        min=1,
        help="L1 batch number(s) to look up",
    ),
    proof_time: bool = typer.Option(
        False,
        "--proof-time",
        help="Show commit and prove transactions and the time between them",
    ),
) -> None:
    """Show L1 details of batches as reported by the L2 node.

    Stops at the first batch past the node's latest sealed batch.

    Examples:
        proofwatch batch-details 1000
        proofwatch batch-details 1000 1001 --proof-time
    """

    async def _batch_details(config: ProofwatchConfig) -> None:
        renderer = ReportRenderer(console, config.status.max_attempts)
        async with rpc_client(config) as client:
            current_batch = await client.get_l1_batch_number()
            for l1_batch_number in batches:
                if l1_batch_number > current_batch:
                    renderer.render_missing_batch(current_batch)
                    return
                with batch_scope(l1_batch_number):
                    details = await client.get_l1_batch_details(l1_batch_number)
                if details is None:
                    renderer.render_missing_batch(current_batch)
                    return
                renderer.render_batch_details(details, proof_time=proof_time)

    run_command("batch-details", _batch_details)
