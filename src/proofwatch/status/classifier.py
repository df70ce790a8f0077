"""Stage status classification.

Rolls a collection of job records up into one abstract Status. Witness,
prover and compression jobs each have their own status vocabulary; each
vocabulary maps into the shared Status space through a small table, so
the rollup rules below are written once and reused for every stage.

★ Insight ─────────────────────────────────────
1. **First match wins**: classify() evaluates six rules in a fixed order.
   Stuck is checked before the "all X" rules, so one exhausted parallel
   job marks the whole stage stuck even if every sibling succeeded.

2. **Threshold is a parameter**: max_attempts defaults to MAX_ATTEMPTS but
   is threaded explicitly, so callers and tests can move the line.

3. **Failed stays visible per job**: a failed witness job maps to the
   custom "Failed" status in job_status(); in a rollup it is neither
   queued nor successful, so the stage reads as in progress until the
   job exhausts its attempts.
─────────────────────────────────────────────────
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from proofwatch.core.constants import MAX_ATTEMPTS
from proofwatch.core.records import (
    ProofCompressionJobStatus,
    ProverJobStatus,
    WitnessJobStatus,
)

JobStatusValue = WitnessJobStatus | ProverJobStatus | ProofCompressionJobStatus


class StatusKind(str, Enum):
    """Kinds of derived stage status."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    SUCCESSFUL = "successful"
    WAITING_FOR_PROOFS = "waiting_for_proofs"
    STUCK = "stuck"
    JOBS_NOT_FOUND = "jobs_not_found"
    CUSTOM = "custom"


_DISPLAY: dict[StatusKind, str] = {
    StatusKind.QUEUED: "Queued 📥",
    StatusKind.IN_PROGRESS: "In Progress ⌛️",
    StatusKind.SUCCESSFUL: "Successful ✅",
    StatusKind.WAITING_FOR_PROOFS: "Waiting for Proof ⏱️",
    StatusKind.STUCK: "Stuck ⛔️",
    StatusKind.JOBS_NOT_FOUND: "Jobs not found 🚫",
}


@dataclass(frozen=True)
class Status:
    """Derived status of a stage or a single job. Never persisted.

    Attributes:
        kind: Which status this is.
        message: Display text; only set for StatusKind.CUSTOM.
    """

    kind: StatusKind
    message: str | None = None

    @classmethod
    def custom(cls, message: str) -> Status:
        """Create a custom status carrying its own display text."""
        return cls(StatusKind.CUSTOM, message)

    @property
    def is_custom(self) -> bool:
        return self.kind is StatusKind.CUSTOM

    def __str__(self) -> str:
        if self.kind is StatusKind.CUSTOM:
            return self.message or ""
        return _DISPLAY[self.kind]


QUEUED = Status(StatusKind.QUEUED)
IN_PROGRESS = Status(StatusKind.IN_PROGRESS)
SUCCESSFUL = Status(StatusKind.SUCCESSFUL)
WAITING_FOR_PROOFS = Status(StatusKind.WAITING_FOR_PROOFS)
STUCK = Status(StatusKind.STUCK)
JOBS_NOT_FOUND = Status(StatusKind.JOBS_NOT_FOUND)

FAILED = Status.custom("Failed")
SKIPPED = Status.custom("Skipped ⏩")
IGNORED = Status.custom("Ignored")
IN_GPU_PROOF = Status.custom("In GPU Proof")
WAITING_FOR_ARTIFACTS = Status.custom("Waiting for Artifacts ⏱️")
SENT_TO_SERVER = Status.custom("Sent to server 📤")


# =============================================================================
# Per-vocabulary mappings
# =============================================================================

_WITNESS_STATUS: dict[WitnessJobStatus, Status] = {
    WitnessJobStatus.QUEUED: QUEUED,
    WitnessJobStatus.IN_PROGRESS: IN_PROGRESS,
    WitnessJobStatus.SUCCESSFUL: SUCCESSFUL,
    WitnessJobStatus.FAILED: FAILED,
    WitnessJobStatus.WAITING_FOR_ARTIFACTS: WAITING_FOR_ARTIFACTS,
    WitnessJobStatus.SKIPPED: SKIPPED,
    WitnessJobStatus.WAITING_FOR_PROOFS: WAITING_FOR_PROOFS,
}

_PROVER_STATUS: dict[ProverJobStatus, Status] = {
    ProverJobStatus.QUEUED: QUEUED,
    ProverJobStatus.IN_PROGRESS: IN_PROGRESS,
    ProverJobStatus.SUCCESSFUL: SUCCESSFUL,
    ProverJobStatus.FAILED: FAILED,
    ProverJobStatus.SKIPPED: SKIPPED,
    ProverJobStatus.IGNORED: IGNORED,
    ProverJobStatus.IN_GPU_PROOF: IN_GPU_PROOF,
}

_COMPRESSION_STATUS: dict[ProofCompressionJobStatus, Status] = {
    ProofCompressionJobStatus.QUEUED: QUEUED,
    ProofCompressionJobStatus.IN_PROGRESS: IN_PROGRESS,
    ProofCompressionJobStatus.SUCCESSFUL: SUCCESSFUL,
    ProofCompressionJobStatus.FAILED: FAILED,
    ProofCompressionJobStatus.SENT_TO_SERVER: SENT_TO_SERVER,
    ProofCompressionJobStatus.SKIPPED: SKIPPED,
}


def to_status(value: JobStatusValue) -> Status:
    """Map a persisted job status from any vocabulary to a Status."""
    if isinstance(value, WitnessJobStatus):
        return _WITNESS_STATUS[value]
    if isinstance(value, ProverJobStatus):
        return _PROVER_STATUS[value]
    return _COMPRESSION_STATUS[value]


# =============================================================================
# Classification
# =============================================================================


class StallableJob(Protocol):
    """Anything exposing a persisted status and an attempt count."""

    @property
    def status(self) -> JobStatusValue: ...

    @property
    def attempts(self) -> int: ...


def is_stuck(job: StallableJob, max_attempts: int = MAX_ATTEMPTS) -> bool:
    """Whether a job is failed or in progress with its attempts used up."""
    return job.status.is_stallable and job.attempts >= max_attempts


def job_status(job: StallableJob, max_attempts: int = MAX_ATTEMPTS) -> Status:
    """Status of a single job, as shown in per-circuit listings.

    Stuck when the job exhausted its attempts, otherwise the plain
    vocabulary mapping (so Skipped, Failed and similar stay visible).
    """
    if is_stuck(job, max_attempts):
        return STUCK
    return to_status(job.status)


def classify(jobs: Iterable[StallableJob], max_attempts: int = MAX_ATTEMPTS) -> Status:
    """Roll a collection of job records up into one Status.

    Rules, first match wins:

    1. No records: JOBS_NOT_FOUND.
    2. Any record failed or in progress with attempts >= max_attempts: STUCK.
    3. Every record waiting for proofs: WAITING_FOR_PROOFS.
    4. Every record queued or waiting for proofs: QUEUED.
    5. Every record successful: SUCCESSFUL.
    6. Otherwise: IN_PROGRESS.

    Pure: the same records always give the same Status.
    """
    records = list(jobs)
    if not records:
        return JOBS_NOT_FOUND
    if any(is_stuck(job, max_attempts) for job in records):
        return STUCK

    statuses = [to_status(job.status) for job in records]
    if all(s == WAITING_FOR_PROOFS for s in statuses):
        return WAITING_FOR_PROOFS
    if all(s in (QUEUED, WAITING_FOR_PROOFS) for s in statuses):
        return QUEUED
    if all(s == SUCCESSFUL for s in statuses):
        return SUCCESSFUL
    return IN_PROGRESS
