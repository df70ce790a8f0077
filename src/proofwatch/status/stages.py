"""Stage payloads and the per-batch aggregate.

StageInfo is a closed union with one variant per proving stage. The
variants carry only records; status derivation lives in the functions at
the bottom of this module, which handle every variant explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntFlag
from typing import ClassVar

from proofwatch.core.constants import MAX_ATTEMPTS
from proofwatch.core.records import CompressionJob, ProverJobRecord, WitnessGeneratorJob
from proofwatch.core.rounds import AggregationRound
from proofwatch.status.classifier import SENT_TO_SERVER, Status, classify


class StageFlags(IntFlag):
    """Stage selection bitmask for reports. An empty mask selects every stage."""

    BWG = 1
    LWG = 2
    NWG = 4
    RTWG = 8
    SWG = 16
    COMPRESSOR = 32

    def selects(self, stage: StageInfo) -> bool:
        """Whether a stage is shown under this mask."""
        return self == 0 or bool(self & stage.flag)


@dataclass(frozen=True)
class BasicWitnessStage:
    """Basic witness generation (round 0): one witness job, many prover jobs."""

    name: ClassVar[str] = "Basic Witness Generator"
    aggregation_round: ClassVar[AggregationRound | None] = AggregationRound.BASIC_CIRCUITS
    flag: ClassVar[StageFlags] = StageFlags.BWG

    job: WitnessGeneratorJob | None = None
    prover_jobs: tuple[ProverJobRecord, ...] = ()


@dataclass(frozen=True)
class LeafWitnessStage:
    """Leaf aggregation (round 1): one witness job and many prover jobs per circuit."""

    name: ClassVar[str] = "Leaf Witness Generator"
    aggregation_round: ClassVar[AggregationRound | None] = AggregationRound.LEAF_AGGREGATION
    flag: ClassVar[StageFlags] = StageFlags.LWG

    jobs: tuple[WitnessGeneratorJob, ...] = ()
    prover_jobs: tuple[ProverJobRecord, ...] = ()


@dataclass(frozen=True)
class NodeWitnessStage:
    """Node aggregation (round 2): witness jobs per circuit and depth."""

    name: ClassVar[str] = "Node Witness Generator"
    aggregation_round: ClassVar[AggregationRound | None] = AggregationRound.NODE_AGGREGATION
    flag: ClassVar[StageFlags] = StageFlags.NWG

    jobs: tuple[WitnessGeneratorJob, ...] = ()
    prover_jobs: tuple[ProverJobRecord, ...] = ()


@dataclass(frozen=True)
class RecursionTipStage:
    name: ClassVar[str] = "Recursion Tip"
    aggregation_round: ClassVar[AggregationRound | None] = AggregationRound.RECURSION_TIP
    flag: ClassVar[StageFlags] = StageFlags.RTWG

    job: WitnessGeneratorJob | None = None


@dataclass(frozen=True)
class SchedulerStage:
    name: ClassVar[str] = "Scheduler"
    aggregation_round: ClassVar[AggregationRound | None] = AggregationRound.SCHEDULER
    flag: ClassVar[StageFlags] = StageFlags.SWG

    job: WitnessGeneratorJob | None = None


@dataclass(frozen=True)
class CompressorStage:
    """Proof compression: follows the scheduler, not an aggregation round."""

    name: ClassVar[str] = "Compressor"
    aggregation_round: ClassVar[AggregationRound | None] = None
    flag: ClassVar[StageFlags] = StageFlags.COMPRESSOR

    job: CompressionJob | None = None

    @property
    def sent_to_server(self) -> bool:
        return self.job is not None and self.job.sent_to_server


StageInfo = (
    BasicWitnessStage
    | LeafWitnessStage
    | NodeWitnessStage
    | RecursionTipStage
    | SchedulerStage
    | CompressorStage
)


@dataclass(frozen=True)
class BatchData:
    """All six stages of one batch. Built fresh per query, never cached."""

    l1_batch_number: int
    basic_witness_generator: BasicWitnessStage = field(default_factory=BasicWitnessStage)
    leaf_witness_generator: LeafWitnessStage = field(default_factory=LeafWitnessStage)
    node_witness_generator: NodeWitnessStage = field(default_factory=NodeWitnessStage)
    recursion_tip: RecursionTipStage = field(default_factory=RecursionTipStage)
    scheduler: SchedulerStage = field(default_factory=SchedulerStage)
    compressor: CompressorStage = field(default_factory=CompressorStage)

    def stages(self, flags: StageFlags = StageFlags(0)) -> list[StageInfo]:
        """Stages in pipeline order, filtered by a selection mask."""
        ordered: list[StageInfo] = [
            self.basic_witness_generator,
            self.leaf_witness_generator,
            self.node_witness_generator,
            self.recursion_tip,
            self.scheduler,
            self.compressor,
        ]
        return [stage for stage in ordered if flags.selects(stage)]


# =============================================================================
# Status derivation
# =============================================================================


def witness_jobs(stage: StageInfo) -> list[WitnessGeneratorJob]:
    """Witness generator records of a stage (empty for the compressor)."""
    if isinstance(stage, (LeafWitnessStage, NodeWitnessStage)):
        return list(stage.jobs)
    if isinstance(stage, (BasicWitnessStage, RecursionTipStage, SchedulerStage)):
        return [stage.job] if stage.job is not None else []
    if isinstance(stage, CompressorStage):
        return []
    raise TypeError(f"Unknown stage type: {type(stage).__name__}")


def prover_jobs(stage: StageInfo) -> list[ProverJobRecord] | None:
    """Prover records of a stage, or None for stages without prover jobs."""
    if isinstance(stage, (BasicWitnessStage, LeafWitnessStage, NodeWitnessStage)):
        return list(stage.prover_jobs)
    if isinstance(stage, (RecursionTipStage, SchedulerStage, CompressorStage)):
        return None
    raise TypeError(f"Unknown stage type: {type(stage).__name__}")


def stage_status(stage: StageInfo, max_attempts: int = MAX_ATTEMPTS) -> Status:
    """Status of a stage, driven by its witness (or compression) records.

    A compression job that was sent to server yields the terminal
    SENT_TO_SERVER status instead of a classified rollup.
    """
    if isinstance(stage, CompressorStage):
        if stage.sent_to_server:
            return SENT_TO_SERVER
        return classify([stage.job] if stage.job is not None else [], max_attempts)
    return classify(witness_jobs(stage), max_attempts)


def prover_rollup(stage: StageInfo, max_attempts: int = MAX_ATTEMPTS) -> Status | None:
    """Rollup of a stage's prover jobs, or None when the stage has none."""
    jobs = prover_jobs(stage)
    if jobs is None:
        return None
    return classify(jobs, max_attempts)
