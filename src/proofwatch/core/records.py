"""Job record models read from the prover database.

Records are created and mutated by the proving pipeline; proofwatch only
reads them. Each model mirrors the columns of its table that matter for
status reporting and proof-time calculation. Circuit ids are kept as
stored (``raw_circuit_id``); ``circuit_id`` exposes the logical id.
"""

from datetime import datetime, time
from enum import Enum

from pydantic import BaseModel, ConfigDict

from proofwatch.core.circuits import correct_circuit_id
from proofwatch.core.rounds import AggregationRound


class WitnessJobStatus(str, Enum):
    """Status vocabulary of the five witness generator tables."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    SUCCESSFUL = "successful"
    FAILED = "failed"
    WAITING_FOR_ARTIFACTS = "waiting_for_artifacts"
    SKIPPED = "skipped"
    WAITING_FOR_PROOFS = "waiting_for_proofs"

    @property
    def is_stallable(self) -> bool:
        """Whether a job in this status can exhaust its retry budget."""
        return self in (WitnessJobStatus.FAILED, WitnessJobStatus.IN_PROGRESS)


class ProverJobStatus(str, Enum):
    """Status vocabulary of ``prover_jobs_fri``."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    SUCCESSFUL = "successful"
    FAILED = "failed"
    SKIPPED = "skipped"
    IGNORED = "ignored"
    IN_GPU_PROOF = "in_gpu_proof"

    @property
    def is_stallable(self) -> bool:
        """Whether a job in this status can exhaust its retry budget."""
        return self in (ProverJobStatus.FAILED, ProverJobStatus.IN_PROGRESS)


class ProofCompressionJobStatus(str, Enum):
    """Status vocabulary of ``proof_compression_jobs_fri``."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    SUCCESSFUL = "successful"
    FAILED = "failed"
    SENT_TO_SERVER = "sent_to_server"
    SKIPPED = "skipped"

    @property
    def is_stallable(self) -> bool:
        """Whether a job in this status can exhaust its retry budget."""
        return self in (ProofCompressionJobStatus.FAILED, ProofCompressionJobStatus.IN_PROGRESS)


class WitnessGeneratorJob(BaseModel):
    """One row of a witness generator table.

    The same model serves all five rounds. Basic, recursion tip and
    scheduler tables hold one row per batch and have no circuit id; leaf
    and node tables hold one row per circuit (node also per depth).
    """

    model_config = ConfigDict(frozen=True)

    aggregation_round: AggregationRound
    l1_batch_number: int
    id: int | None = None
    raw_circuit_id: int | None = None
    depth: int | None = None
    status: WitnessJobStatus
    attempts: int
    error: str | None = None
    created_at: datetime
    updated_at: datetime
    processing_started_at: datetime | None = None
    time_taken: time | None = None
    protocol_version: int | None = None
    protocol_version_patch: int | None = None
    picked_by: str | None = None

    @property
    def circuit_id(self) -> int | None:
        """Logical circuit id, corrected for the legacy recursive numbering."""
        if self.raw_circuit_id is None:
            return None
        return correct_circuit_id(self.aggregation_round, self.raw_circuit_id)


class ProverJobRecord(BaseModel):
    """One row of ``prover_jobs_fri``: a single proving task."""

    model_config = ConfigDict(frozen=True)

    id: int
    l1_batch_number: int
    raw_circuit_id: int
    aggregation_round: AggregationRound
    sequence_number: int
    depth: int
    status: ProverJobStatus
    attempts: int
    error: str | None = None
    created_at: datetime
    updated_at: datetime
    processing_started_at: datetime | None = None
    time_taken: time | None = None
    is_node_final_proof: bool = False
    protocol_version: int | None = None
    picked_by: str | None = None

    @property
    def circuit_id(self) -> int:
        """Logical circuit id, corrected for the legacy recursive numbering."""
        return correct_circuit_id(self.aggregation_round, self.raw_circuit_id)


class CompressionJob(BaseModel):
    """One row of ``proof_compression_jobs_fri``: the terminal stage."""

    model_config = ConfigDict(frozen=True)

    l1_batch_number: int
    status: ProofCompressionJobStatus
    attempts: int
    error: str | None = None
    created_at: datetime
    updated_at: datetime
    processing_started_at: datetime | None = None
    time_taken: time | None = None
    fri_proof_blob_url: str | None = None
    l1_proof_blob_url: str | None = None
    picked_by: str | None = None

    @property
    def sent_to_server(self) -> bool:
        """Whether the final proof has been delivered upstream."""
        return self.status is ProofCompressionJobStatus.SENT_TO_SERVER
