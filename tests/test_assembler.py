"""Tests for BatchDataAssembler and stage status derivation."""

from __future__ import annotations

import pytest

from proofwatch.core.errors import DataAccessError
from proofwatch.core.records import ProofCompressionJobStatus, WitnessJobStatus
from proofwatch.core.rounds import AggregationRound
from proofwatch.status.assembler import BatchDataAssembler
from proofwatch.status.classifier import (
    IN_PROGRESS,
    JOBS_NOT_FOUND,
    SENT_TO_SERVER,
    STUCK,
    SUCCESSFUL,
)
from proofwatch.status.stages import (
    BasicWitnessStage,
    BatchData,
    CompressorStage,
    LeafWitnessStage,
    RecursionTipStage,
    StageFlags,
    prover_jobs,
    prover_rollup,
    stage_status,
    witness_jobs,
)
from proofwatch.store.postgres import PostgresJobRecordStore
from tests.helpers import (
    FakeConnection,
    make_compression_job,
    make_prover_job,
    make_witness_job,
    prover_row,
    seed_sent_to_server_batch,
    seed_stuck_basic_prover_batch,
    witness_row,
)


@pytest.fixture
def assembler(conn: FakeConnection) -> BatchDataAssembler:
    return BatchDataAssembler(PostgresJobRecordStore(conn))  # type: ignore[arg-type]


class TestAssemble:
    async def test_empty_batch_is_all_jobs_not_found(self, assembler: BatchDataAssembler) -> None:
        batch = await assembler.assemble(1000)

        assert batch.l1_batch_number == 1000
        stages = batch.stages()
        assert len(stages) == 6
        assert all(stage_status(stage) == JOBS_NOT_FOUND for stage in stages)

    async def test_stuck_prover_job_under_successful_stage(
        self, conn: FakeConnection, assembler: BatchDataAssembler
    ) -> None:
        seed_stuck_basic_prover_batch(conn, 2000)

        batch = await assembler.assemble(2000)
        basic = batch.basic_witness_generator

        assert basic.job is not None
        assert len(basic.prover_jobs) == 4
        assert stage_status(basic) == SUCCESSFUL
        assert prover_rollup(basic) == STUCK

    async def test_sent_to_server(self, conn: FakeConnection, assembler: BatchDataAssembler) -> None:
        seed_sent_to_server_batch(conn, 3000)

        batch = await assembler.assemble(3000)

        assert batch.compressor.sent_to_server
        assert stage_status(batch.compressor) == SENT_TO_SERVER

    async def test_prover_jobs_land_in_their_round(
        self, conn: FakeConnection, assembler: BatchDataAssembler
    ) -> None:
        leaf = AggregationRound.LEAF_AGGREGATION
        conn.add_witness(leaf, witness_row(leaf, 5, status="in_progress", attempts=1))
        conn.add_prover(
            prover_row(1, 5, AggregationRound.BASIC_CIRCUITS),
            prover_row(2, 5, leaf, status="queued", attempts=0),
        )

        batch = await assembler.assemble(5)

        assert [j.id for j in batch.basic_witness_generator.prover_jobs] == [1]
        assert [j.id for j in batch.leaf_witness_generator.prover_jobs] == [2]
        assert stage_status(batch.leaf_witness_generator) == IN_PROGRESS

    async def test_iter_batches_in_request_order(
        self, conn: FakeConnection, assembler: BatchDataAssembler
    ) -> None:
        seed_stuck_basic_prover_batch(conn, 2000)

        numbers = [b.l1_batch_number async for b in assembler.iter_batches([2000, 1000, 2000])]

        assert numbers == [2000, 1000, 2000]

    async def test_decode_error_propagates(
        self, conn: FakeConnection, assembler: BatchDataAssembler
    ) -> None:
        conn.add_compression({"l1_batch_number": 7, "status": "sent_to_server"})

        with pytest.raises(DataAccessError):
            await assembler.assemble(7)

    async def test_earlier_batches_survive_failure(
        self, conn: FakeConnection, assembler: BatchDataAssembler
    ) -> None:
        conn.add_prover(prover_row(1, 8, status="bogus"))
        seen: list[int] = []

        with pytest.raises(DataAccessError):
            async for batch in assembler.iter_batches([1000, 8, 1001]):
                seen.append(batch.l1_batch_number)

        assert seen == [1000]


class TestStageHelpers:
    def test_stage_flags_filter(self) -> None:
        batch = BatchData(l1_batch_number=1)

        names = [s.name for s in batch.stages(StageFlags.BWG | StageFlags.COMPRESSOR)]

        assert names == ["Basic Witness Generator", "Compressor"]

    def test_no_flags_selects_all(self) -> None:
        assert len(BatchData(l1_batch_number=1).stages(StageFlags(0))) == 6

    def test_witness_and_prover_jobs(self) -> None:
        job = make_witness_job()
        basic = BasicWitnessStage(job=job, prover_jobs=(make_prover_job(),))

        assert witness_jobs(basic) == [job]
        assert prover_jobs(basic) is not None
        assert prover_jobs(RecursionTipStage(job=job)) is None
        assert witness_jobs(CompressorStage()) == []

    def test_prover_rollup_absent_for_single_job_stages(self) -> None:
        assert prover_rollup(RecursionTipStage(job=make_witness_job())) is None
        assert prover_rollup(CompressorStage(job=make_compression_job())) is None

    def test_leaf_stage_status_from_witness_jobs(self) -> None:
        leaf = AggregationRound.LEAF_AGGREGATION
        stage = LeafWitnessStage(
            jobs=(
                make_witness_job(leaf, raw_circuit_id=1),
                make_witness_job(
                    leaf, raw_circuit_id=2, status=WitnessJobStatus.FAILED, attempts=10
                ),
            )
        )
        assert stage_status(stage) == STUCK

    def test_compressor_stuck(self) -> None:
        stage = CompressorStage(
            job=make_compression_job(status=ProofCompressionJobStatus.FAILED, attempts=10)
        )
        assert not stage.sent_to_server
        assert stage_status(stage) == STUCK

    def test_max_attempts_threaded(self) -> None:
        stage = RecursionTipStage(
            job=make_witness_job(
                AggregationRound.RECURSION_TIP, status=WitnessJobStatus.IN_PROGRESS, attempts=4
            )
        )
        assert stage_status(stage) == IN_PROGRESS
        assert stage_status(stage, max_attempts=4) == STUCK
