"""Prover database table layout.

Maps aggregation rounds to their witness generator tables and records which
structural columns each table carries, so decoding can tell a missing
column from one the table never had.
"""

from __future__ import annotations

from dataclasses import dataclass

from proofwatch.core.rounds import AggregationRound

PROVER_JOBS_TABLE = "prover_jobs_fri"
COMPRESSION_JOBS_TABLE = "proof_compression_jobs_fri"


@dataclass(frozen=True)
class WitnessTable:
    """Shape of one witness generator table.

    Attributes:
        name: Table name.
        aggregation_round: Round whose witness jobs the table holds.
        per_circuit: Whether rows are keyed by circuit (``id`` and
            ``circuit_id`` columns present).
        has_depth: Whether rows carry a node ``depth`` column.
    """

    name: str
    aggregation_round: AggregationRound
    per_circuit: bool = False
    has_depth: bool = False


WITNESS_TABLES: dict[AggregationRound, WitnessTable] = {
    AggregationRound.BASIC_CIRCUITS: WitnessTable(
        "witness_inputs_fri", AggregationRound.BASIC_CIRCUITS
    ),
    AggregationRound.LEAF_AGGREGATION: WitnessTable(
        "leaf_aggregation_witness_jobs_fri",
        AggregationRound.LEAF_AGGREGATION,
        per_circuit=True,
    ),
    AggregationRound.NODE_AGGREGATION: WitnessTable(
        "node_aggregation_witness_jobs_fri",
        AggregationRound.NODE_AGGREGATION,
        per_circuit=True,
        has_depth=True,
    ),
    AggregationRound.RECURSION_TIP: WitnessTable(
        "recursion_tip_witness_jobs_fri", AggregationRound.RECURSION_TIP
    ),
    AggregationRound.SCHEDULER: WitnessTable(
        "scheduler_witness_jobs_fri", AggregationRound.SCHEDULER
    ),
}

# Deleted in this order when a batch proof is restarted; the basic witness
# input row is kept and re-queued instead.
RESTART_DELETE_ORDER: tuple[str, ...] = (
    COMPRESSION_JOBS_TABLE,
    WITNESS_TABLES[AggregationRound.SCHEDULER].name,
    WITNESS_TABLES[AggregationRound.RECURSION_TIP].name,
    WITNESS_TABLES[AggregationRound.NODE_AGGREGATION].name,
    WITNESS_TABLES[AggregationRound.LEAF_AGGREGATION].name,
    PROVER_JOBS_TABLE,
)


def witness_table_for(aggregation_round: AggregationRound) -> WitnessTable:
    """Return the witness generator table of a round."""
    return WITNESS_TABLES[aggregation_round]
