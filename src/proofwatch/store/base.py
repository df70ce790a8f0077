"""Abstract base for job record stores."""

from abc import ABC, abstractmethod

from proofwatch.core.constants import MAX_ATTEMPTS
from proofwatch.core.records import CompressionJob, ProverJobRecord, WitnessGeneratorJob
from proofwatch.core.rounds import AggregationRound


class JobRecordStore(ABC):
    """Read/query layer over persisted proving job records.

    Implementations read records owned by the proving pipeline. The only
    mutating operations are restart_batch_proof() and
    insert_witness_inputs(); both must be committed before they return.
    """

    @abstractmethod
    async def fetch_witness_jobs(
        self, l1_batch_number: int, aggregation_round: AggregationRound
    ) -> list[WitnessGeneratorJob]:
        """Fetch every witness generator job of a batch in one round.

        Args:
            l1_batch_number: Batch to look up.
            aggregation_round: Round whose witness table is queried.

        Returns:
            Decoded records, empty when the batch has none in this round.
        """
        ...

    async def fetch_witness_job(
        self, l1_batch_number: int, aggregation_round: AggregationRound
    ) -> WitnessGeneratorJob | None:
        """Fetch the single witness job of a one-row-per-batch round.

        Basic, recursion tip and scheduler tables hold at most one row per
        batch.
        """
        jobs = await self.fetch_witness_jobs(l1_batch_number, aggregation_round)
        return jobs[0] if jobs else None

    @abstractmethod
    async def fetch_prover_jobs(
        self, l1_batch_number: int, aggregation_round: AggregationRound
    ) -> list[ProverJobRecord]:
        """Fetch prover jobs of a batch in one aggregation round."""
        ...

    @abstractmethod
    async def fetch_compression_job(self, l1_batch_number: int) -> CompressionJob | None:
        """Fetch the proof compression job of a batch, if any."""
        ...

    @abstractmethod
    async def fetch_stuck_witness_jobs(
        self, aggregation_round: AggregationRound, max_attempts: int = MAX_ATTEMPTS
    ) -> list[WitnessGeneratorJob]:
        """Fetch witness jobs of any batch that used up their attempts.

        A job is stuck when its attempts equal max_attempts and its status
        is not successful.
        """
        ...

    @abstractmethod
    async def fetch_stuck_prover_jobs(
        self, aggregation_round: AggregationRound, max_attempts: int = MAX_ATTEMPTS
    ) -> list[ProverJobRecord]:
        """Fetch prover jobs of any batch in a round that used up their attempts."""
        ...

    @abstractmethod
    async def restart_batch_proof(self, l1_batch_number: int) -> bool:
        """Reset a batch so proving starts again from basic witness generation.

        Deletes the batch's compression, recursive witness and prover job
        rows, then re-queues its basic witness input.

        Returns:
            True if a witness input row was re-queued, False if the batch
            has no witness inputs (nothing will reprove it).
        """
        ...

    @abstractmethod
    async def insert_witness_inputs(
        self,
        l1_batch_number: int,
        protocol_version: int,
        protocol_version_patch: int = 0,
        witness_inputs_blob_url: str | None = None,
    ) -> bool:
        """Insert a queued basic witness input row for a batch.

        Returns:
            True if a row was inserted, False if the batch already had one.
        """
        ...
