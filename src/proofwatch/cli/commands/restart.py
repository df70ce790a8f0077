"""Mutating commands for proofwatch CLI.

- `proofwatch restart <batch>...` - Drop a batch's proving progress and requeue it
- `proofwatch insert-batch <batch>` - Queue witness inputs for a batch

Both ask for confirmation unless --yes is given. Declining is not an error.
"""

from __future__ import annotations

import typer

from proofwatch.core.config import ProofwatchConfig

from ..helpers import batch_scope, prover_store, run_command
from ..output import console


def restart(
    batches: list[int] = typer.Argument(
        ...,
        min=1,
        help="L1 batch number(s) to restart",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip the confirmation prompt",
    ),
) -> None:
    """Restart proof generation for batches from the witness inputs.

    Deletes the batches' prover, aggregation and compression jobs and
    requeues their witness inputs. All proving progress is lost.

    Examples:
        proofwatch restart 1000
        proofwatch restart 1000 1001 --yes
    """
    listed = ", ".join(str(b) for b in batches)
    if not yes and not typer.confirm(
        f"Restart proof generation for batch {listed}? All proving progress will be deleted",
        default=False,
    ):
        console.print("[yellow]Restart cancelled.[/yellow] No batch was modified.")
        raise typer.Exit(0)

    async def _restart(config: ProofwatchConfig) -> None:
        async with prover_store(config) as store:
            for l1_batch_number in batches:
                with batch_scope(l1_batch_number):
                    requeued = await store.restart_batch_proof(l1_batch_number)
                if requeued:
                    console.print(f"[green]✓[/green] Batch {l1_batch_number}: proof restarted")
                else:
                    console.print(
                        f"[yellow]No witness inputs for batch {l1_batch_number}; "
                        "nothing requeued[/yellow]"
                    )

    run_command("restart", _restart)


def insert_batch(
    batch: int = typer.Argument(
        ...,
        min=1,
        help="L1 batch number to insert",
    ),
    protocol_version: int = typer.Option(
        ...,
        "--protocol-version",
        "-p",
        min=0,
        help="Protocol version the batch is proven with",
    ),
    patch: int = typer.Option(
        0,
        "--patch",
        min=0,
        help="Protocol version patch",
    ),
    blob_url: str | None = typer.Option(
        None,
        "--blob-url",
        help="Object store key of the witness inputs blob",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip the confirmation prompt",
    ),
) -> None:
    """Queue witness inputs for a batch that is missing from the prover.

    An existing witness input row is left untouched.

    Examples:
        proofwatch insert-batch 1000 --protocol-version 24
        proofwatch insert-batch 1000 -p 24 --patch 2 --yes
    """
    version = f"{protocol_version}.{patch}"
    if not yes and not typer.confirm(
        f"Insert batch {batch} with protocol version {version}?",
        default=False,
    ):
        console.print("[yellow]Insert cancelled.[/yellow] No batch was modified.")
        raise typer.Exit(0)

    async def _insert(config: ProofwatchConfig) -> None:
        async with prover_store(config) as store:
            with batch_scope(batch):
                inserted = await store.insert_witness_inputs(
                    batch,
                    protocol_version,
                    protocol_version_patch=patch,
                    witness_inputs_blob_url=blob_url,
                )
        if inserted:
            console.print(
                f"[green]✓[/green] Batch {batch} queued with protocol version {version}"
            )
        else:
            console.print(f"[yellow]Batch {batch} already exists; left unchanged[/yellow]")

    run_command("insert-batch", _insert)
