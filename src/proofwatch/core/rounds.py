"""Aggregation rounds of the recursive proving pipeline."""

from __future__ import annotations

from enum import IntEnum


class AggregationRound(IntEnum):
    """The five sequential rounds of recursive proof composition.

    Values match the smallint stored in ``prover_jobs_fri.aggregation_round``.
    Compression follows Scheduler but is not an aggregation round.
    """

    BASIC_CIRCUITS = 0
    LEAF_AGGREGATION = 1
    NODE_AGGREGATION = 2
    RECURSION_TIP = 3
    SCHEDULER = 4

    @property
    def label(self) -> str:
        """CamelCase name used in operator-facing messages."""
        return _LABELS[self]


_LABELS: dict[AggregationRound, str] = {
    AggregationRound.BASIC_CIRCUITS: "BasicCircuits",
    AggregationRound.LEAF_AGGREGATION: "LeafAggregation",
    AggregationRound.NODE_AGGREGATION: "NodeAggregation",
    AggregationRound.RECURSION_TIP: "RecursionTip",
    AggregationRound.SCHEDULER: "Scheduler",
}
