"""Fleet-wide stuck job detection.

Scans every aggregation round for witness generator and prover jobs that
used up their retry budget, regardless of batch. Failures are not
correlated across rounds, so all five rounds are always scanned.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from proofwatch.core.constants import MAX_ATTEMPTS
from proofwatch.core.logging import get_logger
from proofwatch.core.rounds import AggregationRound
from proofwatch.store.base import JobRecordStore

_logger = get_logger("status.stuck")


@dataclass(frozen=True)
class RoundStuckReport:
    """Stuck batches found in one aggregation round.

    Attributes:
        aggregation_round: Round that was scanned.
        witness_batches: Sorted, de-duplicated batch numbers with stuck
            witness generator jobs.
        prover_batches: Sorted, de-duplicated batch numbers with stuck
            prover jobs.
    """

    aggregation_round: AggregationRound
    witness_batches: list[int] = field(default_factory=list)
    prover_batches: list[int] = field(default_factory=list)

    @property
    def any_stuck(self) -> bool:
        return bool(self.witness_batches or self.prover_batches)


@dataclass(frozen=True)
class StuckReport:
    """Result of a full fleet scan, one entry per round in pipeline order."""

    rounds: list[RoundStuckReport]

    @property
    def any_stuck(self) -> bool:
        return any(r.any_stuck for r in self.rounds)


class StuckJobDetector:
    """Finds batches whose jobs exhausted their retry budget."""

    def __init__(self, store: JobRecordStore, max_attempts: int = MAX_ATTEMPTS) -> None:
        self._store = store
        self._max_attempts = max_attempts

    async def scan_round(self, aggregation_round: AggregationRound) -> RoundStuckReport:
        """Query stuck witness and prover jobs of one round."""
        witness_jobs = await self._store.fetch_stuck_witness_jobs(
            aggregation_round, self._max_attempts
        )
        prover_jobs = await self._store.fetch_stuck_prover_jobs(
            aggregation_round, self._max_attempts
        )
        report = RoundStuckReport(
            aggregation_round=aggregation_round,
            witness_batches=sorted({job.l1_batch_number for job in witness_jobs}),
            prover_batches=sorted({job.l1_batch_number for job in prover_jobs}),
        )
        _logger.info(
            "stuck_scan_round_complete",
            aggregation_round=aggregation_round.label,
            stuck_witness_batches=len(report.witness_batches),
            stuck_prover_batches=len(report.prover_batches),
        )
        return report

    async def scan(self) -> StuckReport:
        """Scan all five aggregation rounds."""
        return StuckReport(rounds=[await self.scan_round(r) for r in AggregationRound])
