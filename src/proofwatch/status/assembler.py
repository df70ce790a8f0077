"""Builds BatchData for requested batches from a JobRecordStore."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable

from proofwatch.core.logging import get_logger
from proofwatch.core.rounds import AggregationRound
from proofwatch.status.stages import (
    BasicWitnessStage,
    BatchData,
    CompressorStage,
    LeafWitnessStage,
    NodeWitnessStage,
    RecursionTipStage,
    SchedulerStage,
)
from proofwatch.store.base import JobRecordStore

_logger = get_logger("status.assembler")


class BatchDataAssembler:
    """Fetches every stage's records for a batch and packs them into BatchData.

    Stage fetches run one after another on the store's single connection.
    A batch with no records anywhere still yields a complete BatchData in
    which every stage is empty; absence is not an error.
    """

    def __init__(self, store: JobRecordStore) -> None:
        self._store = store

    async def assemble(self, l1_batch_number: int) -> BatchData:
        """Build BatchData for one batch.

        Raises:
            DataAccessError: If any stage fetch or decode fails.
        """
        store = self._store
        basic = BasicWitnessStage(
            job=await store.fetch_witness_job(l1_batch_number, AggregationRound.BASIC_CIRCUITS),
            prover_jobs=tuple(
                await store.fetch_prover_jobs(l1_batch_number, AggregationRound.BASIC_CIRCUITS)
            ),
        )
        leaf = LeafWitnessStage(
            jobs=tuple(
                await store.fetch_witness_jobs(l1_batch_number, AggregationRound.LEAF_AGGREGATION)
            ),
            prover_jobs=tuple(
                await store.fetch_prover_jobs(l1_batch_number, AggregationRound.LEAF_AGGREGATION)
            ),
        )
        node = NodeWitnessStage(
            jobs=tuple(
                await store.fetch_witness_jobs(l1_batch_number, AggregationRound.NODE_AGGREGATION)
            ),
            prover_jobs=tuple(
                await store.fetch_prover_jobs(l1_batch_number, AggregationRound.NODE_AGGREGATION)
            ),
        )
        recursion_tip = RecursionTipStage(
            job=await store.fetch_witness_job(l1_batch_number, AggregationRound.RECURSION_TIP)
        )
        scheduler = SchedulerStage(
            job=await store.fetch_witness_job(l1_batch_number, AggregationRound.SCHEDULER)
        )
        compressor = CompressorStage(job=await store.fetch_compression_job(l1_batch_number))

        _logger.debug("batch_data_assembled", l1_batch_number=l1_batch_number)
        return BatchData(
            l1_batch_number=l1_batch_number,
            basic_witness_generator=basic,
            leaf_witness_generator=leaf,
            node_witness_generator=node,
            recursion_tip=recursion_tip,
            scheduler=scheduler,
            compressor=compressor,
        )

    async def iter_batches(self, l1_batch_numbers: Iterable[int]) -> AsyncIterator[BatchData]:
        """Yield BatchData per batch, in request order.

        Callers render each batch as it arrives, so batches before a failing
        one have already been reported when the error propagates.
        """
        for l1_batch_number in l1_batch_numbers:
            yield await self.assemble(l1_batch_number)
