"""Text reports for batch status, proof time and stuck jobs.

ReportRenderer turns BatchData, stuck scan results and L1 batch details
into operator-facing lines on a Rich console. It never fetches data; the
commands fetch a batch and render it before moving on to the next one.

Line prefixes in verbose mode follow a tree convention: ``v`` marks an
expanded entry with detail lines below it, ``>`` a collapsed one.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import timedelta

from rich.console import Console
from rich.markup import escape

from proofwatch.core.circuits import circuit_name
from proofwatch.core.constants import MAX_ATTEMPTS
from proofwatch.core.records import ProverJobRecord, ProverJobStatus
from proofwatch.rpc.client import L1BatchDetails
from proofwatch.status.classifier import (
    IN_PROGRESS,
    JOBS_NOT_FOUND,
    QUEUED,
    SENT_TO_SERVER,
    STUCK,
    SUCCESSFUL,
    WAITING_FOR_PROOFS,
    Status,
    classify,
    is_stuck,
    job_status,
)
from proofwatch.status.proof_time import (
    StageProofTime,
    commit_to_prove,
    format_hms,
    stage_proof_time,
    total_proof_time,
)
from proofwatch.status.stages import (
    BasicWitnessStage,
    BatchData,
    CompressorStage,
    LeafWitnessStage,
    NodeWitnessStage,
    StageFlags,
    StageInfo,
    prover_jobs,
    prover_rollup,
    stage_status,
)
from proofwatch.status.stuck import RoundStuckReport, StuckReport

from .output import create_batch_details_table, format_status, format_timestamp

_HEADER_RULE = "=" * 8


class ReportRenderer:
    """Renders proofwatch reports to a Rich console.

    Args:
        console: Console to print to.
        max_attempts: Retry threshold used when deriving statuses.
    """

    def __init__(self, console: Console, max_attempts: int = MAX_ATTEMPTS) -> None:
        self.console = console
        self.max_attempts = max_attempts

    # =========================================================================
    # Shared pieces
    # =========================================================================

    def _batch_header(self, l1_batch_number: int) -> None:
        self.console.print(
            f"{_HEADER_RULE} [bold cyan]Batch {l1_batch_number:0>5} Status[/bold cyan] "
            f"{_HEADER_RULE}"
        )

    def _stage_header(self, stage: StageInfo) -> None:
        self.console.print()
        if stage.aggregation_round is None:
            self.console.print("-- [bold]Proof Compression[/bold] --")
        else:
            self.console.print(
                f"-- [bold]Aggregation Round {int(stage.aggregation_round)}[/bold] --"
            )

    def _line(self, prefix: str, label: str, status: Status) -> None:
        lead = f"{prefix} " if prefix else ""
        self.console.print(f"{lead}[bold]{escape(label)}[/bold]: {format_status(status)}")

    def _sent_to_server(self, batch: BatchData) -> bool:
        """Print the terminal message for a delivered proof; True if printed."""
        if not batch.compressor.sent_to_server:
            return False
        self.console.print(
            f"> Batch {batch.l1_batch_number}: {format_status(SENT_TO_SERVER)} "
            "[dim](proof delivered, stage details omitted)[/dim]"
        )
        return True

    # =========================================================================
    # Summary status
    # =========================================================================

    def render_summary(self, batch: BatchData, flags: StageFlags = StageFlags(0)) -> None:
        """One line per selected stage plus a prover job rollup when meaningful."""
        self._batch_header(batch.l1_batch_number)
        if self._sent_to_server(batch):
            return
        for stage in batch.stages(flags):
            self._stage_header(stage)
            status = stage_status(stage, self.max_attempts)
            if status.is_custom:
                self.console.print(f"[bold]{stage.name}[/bold]: {escape(str(status))}")
                continue
            self._line("", stage.name, status)
            if status in (IN_PROGRESS, SUCCESSFUL):
                rollup = prover_rollup(stage, self.max_attempts)
                if rollup is not None:
                    self._line(">", "Prover Jobs", rollup)

    # =========================================================================
    # Verbose status
    # =========================================================================

    def render_verbose(self, batch: BatchData, flags: StageFlags = StageFlags(0)) -> None:
        """Per-circuit breakdown of each selected stage.

        Raises:
            CircuitIdError: If a record carries a circuit id with no known name.
        """
        self._batch_header(batch.l1_batch_number)
        if self._sent_to_server(batch):
            return
        for stage in batch.stages(flags):
            self._stage_header(stage)
            self._render_stage_detail(stage)

    def _render_stage_detail(self, stage: StageInfo) -> None:
        status = stage_status(stage, self.max_attempts)
        if status.is_custom:
            self.console.print(f"[bold]{stage.name}[/bold]: {escape(str(status))}")
            return
        if status in (QUEUED, WAITING_FOR_PROOFS, JOBS_NOT_FOUND):
            self._line(" >", stage.name, status)
            return
        if status == SUCCESSFUL:
            self._line(">", stage.name, status)
        else:
            self._line("v", stage.name, status)
            if isinstance(stage, (LeafWitnessStage, NodeWitnessStage)):
                self._render_witness_circuits(stage)

        if isinstance(stage, (BasicWitnessStage, LeafWitnessStage, NodeWitnessStage)):
            self._render_prover_jobs(list(stage.prover_jobs))

    def _render_witness_circuits(self, stage: LeafWitnessStage | NodeWitnessStage) -> None:
        for job in sorted(stage.jobs, key=lambda j: (j.circuit_id or 0, j.depth or 0)):
            name = circuit_name(job.circuit_id or 0)
            self._line("   >", name, job_status(job, self.max_attempts))

    def _render_prover_jobs(self, jobs: list[ProverJobRecord]) -> None:
        rollup = classify(jobs, self.max_attempts)
        if rollup in (SUCCESSFUL, JOBS_NOT_FOUND):
            self._line(">", "Prover Jobs", rollup)
            return

        self._line("v", "Prover Jobs", rollup)
        by_circuit: dict[int, list[ProverJobRecord]] = defaultdict(list)
        for job in jobs:
            by_circuit[job.circuit_id].append(job)

        for circuit_id in sorted(by_circuit):
            circuit_jobs = by_circuit[circuit_id]
            status = classify(circuit_jobs, self.max_attempts)
            self._line("   >", circuit_name(circuit_id), status)
            if status == IN_PROGRESS:
                self._render_job_counts(circuit_jobs)
            elif status == STUCK:
                self._render_stuck_jobs(circuit_jobs)

    def _render_job_counts(self, jobs: list[ProverJobRecord]) -> None:
        counts = {s: 0 for s in ProverJobStatus}
        for job in jobs:
            counts[job.status] += 1
        self.console.print(f"     - Total jobs: {len(jobs)}")
        self.console.print(f"     - Successful: {counts[ProverJobStatus.SUCCESSFUL]}")
        self.console.print(f"     - In Progress: {counts[ProverJobStatus.IN_PROGRESS]}")
        self.console.print(f"     - Queued: {counts[ProverJobStatus.QUEUED]}")
        self.console.print(f"     - Failed: {counts[ProverJobStatus.FAILED]}")

    def _render_stuck_jobs(self, jobs: list[ProverJobRecord]) -> None:
        for job in sorted(jobs, key=lambda j: j.id):
            if is_stuck(job, self.max_attempts):
                self.console.print(
                    f"     - Prover Job: {job.id} stuck after {job.attempts} attempts"
                )

    # =========================================================================
    # Proof time
    # =========================================================================

    def _render_stage_time(self, proof_time: StageProofTime) -> None:
        from_processing = proof_time.from_processing
        self.console.print("🕑 [bold]Proof Time[/bold]")
        self.console.print(
            f"    + CreatedAt: {format_timestamp(proof_time.created_at, include_tz=False)}"
        )
        self.console.print(
            "    + ProcessingStartedAt: "
            f"{format_timestamp(proof_time.processing_started_at, include_tz=False)}"
        )
        self.console.print(
            f"    + UpdatedAt: {format_timestamp(proof_time.updated_at, include_tz=False)}"
        )
        self.console.print(f"    > from creation: {format_hms(proof_time.from_creation)}")
        self.console.print(f"    > from start of processing: {_hms_or_dash(from_processing)}")

    def render_proof_time(self, batch: BatchData, flags: StageFlags = StageFlags(0)) -> None:
        """Per-stage proof times, plus the total once the proof was sent to server."""
        self._batch_header(batch.l1_batch_number)
        compressor_shown = False
        for stage in batch.stages(flags):
            self._stage_header(stage)
            status = stage_status(stage, self.max_attempts)
            proof_time = stage_proof_time(stage, self.max_attempts)

            if isinstance(stage, CompressorStage):
                compressor_shown = True
                if not stage.sent_to_server:
                    self.console.print("Not sent to server yet.")
                    continue
                self.console.print(f"> [bold]{stage.name}[/bold]: sent_to_server")
            elif status == SUCCESSFUL:
                self._line(">", stage.name, status)
                jobs = prover_jobs(stage)
                if jobs is not None:
                    self._line(">", "Prover Jobs", classify(jobs, self.max_attempts))
            else:
                self.console.print("Stage hasn't finished yet.")
                continue

            if proof_time is not None:
                self._render_stage_time(proof_time)

        if not batch.compressor.sent_to_server:
            if not compressor_shown:
                self.console.print()
                self.console.print("Not sent to server yet.")
            return
        total = total_proof_time(batch, self.max_attempts)
        self.console.print()
        self.console.print(f"> [bold]{escape(str(SENT_TO_SERVER))}[/bold]")
        self.console.print("Starting with the CreatedAt timestamp of the first stage,")
        self.console.print("and ending with the UpdatedAt timestamp from the compressor's table.")
        self.console.print("This value represents the total time spent proving a batch.")
        self.console.print(
            "Note that it does not include the transaction time to L1; "
            "for that, use the [yellow]proofwatch batch-details --proof-time[/yellow] command."
        )
        if total is None:
            self.console.print("    > Total proof time from creation: -")
        else:
            self.console.print(
                f"    > [yellow]Total proof time from creation[/yellow]: {format_hms(total)}"
            )

    # =========================================================================
    # Batch details (L1 commit/prove)
    # =========================================================================

    def render_missing_batch(self, current_batch: int) -> None:
        self.console.print(f"Batch doesn't exist, Current batch: {current_batch}")

    def render_batch_details(self, details: L1BatchDetails, proof_time: bool = False) -> None:
        """Commit/prove view (proof_time=True) or a full details table."""
        self._batch_header(details.number)
        if not proof_time:
            table = create_batch_details_table()
            for field_name, value in details.model_dump(exclude_none=True).items():
                table.add_row(field_name, escape(str(value)))
            self.console.print(table)
            return

        if details.committed_at is not None:
            self.console.print(
                f"[yellow]Committed At[/yellow]: {format_timestamp(details.committed_at)}"
            )
        if details.commit_tx_hash is not None:
            self.console.print(f"Commit Tx Hash: [bright_blue]{details.commit_tx_hash}[/]")
        if details.proven_at is not None:
            self.console.print(f"[yellow]Proven At[/yellow]: {format_timestamp(details.proven_at)}")
        if details.prove_tx_hash is not None:
            self.console.print(f"Proven Tx Hash: [bright_blue]{details.prove_tx_hash}[/]")
        duration = commit_to_prove(details.committed_at, details.proven_at)
        if duration is not None:
            self.console.print(
                f"ProofTime from Committed to Proven: [green]{format_hms(duration)}[/green]"
            )

    # =========================================================================
    # Stuck jobs
    # =========================================================================

    def stuck_round_lines(self, report: RoundStuckReport) -> list[str]:
        """Result lines for one scanned round (witness first, then prover)."""
        label = report.aggregation_round.label
        lines = []
        if report.witness_batches:
            lines.append(
                f"[red]✗[/red] Stuck witness generator jobs found in {label}: "
                f"{escape(str(report.witness_batches))}"
            )
        else:
            lines.append(f"[green]✓[/green] No stuck witness generator jobs found in {label}")
        if report.prover_batches:
            lines.append(
                f"[red]✗[/red] Stuck proofs found in {label}: "
                f"{escape(str(report.prover_batches))}"
            )
        else:
            lines.append(f"[green]✓[/green] No stuck proofs found in {label}")
        return lines

    def render_stuck_round(self, report: RoundStuckReport) -> None:
        for line in self.stuck_round_lines(report):
            self.console.print(line)

    def render_stuck_summary(self, report: StuckReport) -> None:
        self.console.print()
        if report.any_stuck:
            stuck_rounds = [r.aggregation_round.label for r in report.rounds if r.any_stuck]
            self.console.print(
                f"[red]Stuck batch proofs found in:[/red] {', '.join(stuck_rounds)}"
            )
        else:
            self.console.print("[green]No stuck batch proofs found.[/green]")


def _hms_or_dash(delta: timedelta | None) -> str:
    """HH:MM:SS for a duration, or "-" when it is unknown."""
    return format_hms(delta) if delta is not None else "-"
