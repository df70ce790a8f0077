"""Proof time calculations.

Per-stage proof time is measured over a finished stage's records: from
the earliest creation (or earliest processing start) to the latest update.
Durations are truncated to whole seconds and shown as HH:MM:SS.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from proofwatch.core.constants import MAX_ATTEMPTS, SECONDS_PER_HOUR, SECONDS_PER_MINUTE
from proofwatch.status.classifier import SENT_TO_SERVER, SUCCESSFUL
from proofwatch.status.stages import (
    BatchData,
    CompressorStage,
    RecursionTipStage,
    SchedulerStage,
    StageInfo,
    prover_jobs,
    prover_rollup,
    stage_status,
)


@dataclass(frozen=True)
class StageProofTime:
    """Timestamps bounding the proving work of one stage."""

    created_at: datetime
    processing_started_at: datetime | None
    updated_at: datetime

    @property
    def from_creation(self) -> timedelta:
        return _whole_seconds(self.updated_at - self.created_at)

    @property
    def from_processing(self) -> timedelta | None:
        if self.processing_started_at is None:
            return None
        return _whole_seconds(self.updated_at - self.processing_started_at)


def _whole_seconds(delta: timedelta) -> timedelta:
    return timedelta(seconds=int(delta.total_seconds()))


def format_hms(delta: timedelta) -> str:
    """Format a duration as HH:MM:SS (hours are not wrapped at 24)."""
    total = int(delta.total_seconds())
    sign = "-" if total < 0 else ""
    total = abs(total)
    hours = total // SECONDS_PER_HOUR
    minutes = (total % SECONDS_PER_HOUR) // SECONDS_PER_MINUTE
    seconds = total % SECONDS_PER_MINUTE
    return f"{sign}{hours:02}:{minutes:02}:{seconds:02}"


def _span(
    created: list[datetime], started: list[datetime | None], updated: list[datetime]
) -> StageProofTime:
    started_known = [s for s in started if s is not None]
    return StageProofTime(
        created_at=min(created),
        processing_started_at=min(started_known) if started_known else None,
        updated_at=max(updated),
    )


def stage_proof_time(stage: StageInfo, max_attempts: int = MAX_ATTEMPTS) -> StageProofTime | None:
    """Proof time of a finished stage, or None if it has not finished.

    Stages with prover jobs are measured over those jobs and only once the
    prover rollup is successful. Recursion tip and scheduler are measured
    over their single witness job. The compressor counts as finished only
    once its proof was sent to server.
    """
    status = stage_status(stage, max_attempts)
    if isinstance(stage, CompressorStage):
        if status != SENT_TO_SERVER or stage.job is None:
            return None
        job = stage.job
        return StageProofTime(job.created_at, job.processing_started_at, job.updated_at)

    if status != SUCCESSFUL:
        return None

    if isinstance(stage, (RecursionTipStage, SchedulerStage)):
        if stage.job is None:
            return None
        witness_job = stage.job
        return StageProofTime(
            witness_job.created_at, witness_job.processing_started_at, witness_job.updated_at
        )

    jobs = prover_jobs(stage) or []
    if not jobs or prover_rollup(stage, max_attempts) != SUCCESSFUL:
        return None
    return _span(
        [j.created_at for j in jobs],
        [j.processing_started_at for j in jobs],
        [j.updated_at for j in jobs],
    )


def total_proof_time(batch: BatchData, max_attempts: int = MAX_ATTEMPTS) -> timedelta | None:
    """Time from the first stage's creation to the compressor's last update.

    Only defined once the compressor sent the proof to server and the basic
    stage has a measurable proof time.
    """
    first = stage_proof_time(batch.basic_witness_generator, max_attempts)
    last = stage_proof_time(batch.compressor, max_attempts)
    if first is None or last is None:
        return None
    return _whole_seconds(last.updated_at - first.created_at)


def commit_to_prove(committed_at: datetime | None, proven_at: datetime | None) -> timedelta | None:
    """Duration between a batch's commit and prove timestamps.

    Returns None when either timestamp is missing.
    """
    if committed_at is None or proven_at is None:
        return None
    return _whole_seconds(proven_at - committed_at)
