"""Circuit id correction and the base-layer circuit catalogue.

Recursive rounds (node aggregation, recursion tip, scheduler) persisted
circuit ids under an older numbering: ids are shifted by two and the
EIP-4844 circuit was stored as 18. Every id read from those rounds goes
through correct_circuit_id() before it is displayed or looked up.
"""

from __future__ import annotations

from enum import IntEnum

from proofwatch.core.constants import (
    EIP4844_CIRCUIT_ID,
    LEGACY_EIP4844_CIRCUIT_ID,
    RECURSIVE_CIRCUIT_ID_OFFSET,
)
from proofwatch.core.errors import CircuitIdError
from proofwatch.core.rounds import AggregationRound

# Rounds whose stored circuit ids use the legacy numbering
CORRECTED_ROUNDS = frozenset({
    AggregationRound.NODE_AGGREGATION,
    AggregationRound.RECURSION_TIP,
    AggregationRound.SCHEDULER,
})


class BaseLayerCircuit(IntEnum):
    """Base-layer circuit types by logical id."""

    VM = 1
    DecommitmentsFilter = 2
    Decommiter = 3
    LogDemultiplexer = 4
    KeccakPrecompile = 5
    Sha256Precompile = 6
    EcrecoverPrecompile = 7
    RamValidation = 8
    StorageFilter = 9
    StorageApplicator = 10
    EventsRevertsFilter = 11
    L1MessagesRevertsFilter = 12
    L1MessagesHasher = 13
    TransientStorageChecker = 14
    Secp256r1Verify = 15
    EIP4844Repack = 255


def correct_circuit_id(aggregation_round: AggregationRound, raw_circuit_id: int) -> int:
    """Translate a stored circuit id into its logical value.

    Only node aggregation, recursion tip and scheduler ids are translated:
    raw 18 becomes 255, every other raw id is reduced by 2.

    Examples:
        >>> correct_circuit_id(AggregationRound.NODE_AGGREGATION, 18)
        255
        >>> correct_circuit_id(AggregationRound.SCHEDULER, 5)
        3
        >>> correct_circuit_id(AggregationRound.BASIC_CIRCUITS, 5)
        5
    """
    if aggregation_round not in CORRECTED_ROUNDS:
        return raw_circuit_id
    if raw_circuit_id == LEGACY_EIP4844_CIRCUIT_ID:
        return EIP4844_CIRCUIT_ID
    return raw_circuit_id - RECURSIVE_CIRCUIT_ID_OFFSET


def circuit_name(circuit_id: int) -> str:
    """Return the semantic name of a logical circuit id.

    Raises:
        CircuitIdError: If the id is outside the base-layer catalogue.
    """
    try:
        return BaseLayerCircuit(circuit_id).name
    except ValueError:
        raise CircuitIdError(circuit_id, "not a base-layer circuit") from None
