"""Core domain models and configuration."""

from proofwatch.core.circuits import BaseLayerCircuit, circuit_name, correct_circuit_id
from proofwatch.core.config import ProofwatchConfig, load_config
from proofwatch.core.errors import (
    CircuitIdError,
    ConfigError,
    DataAccessError,
    ProofwatchError,
    RecordDecodeError,
    RpcError,
)
from proofwatch.core.records import (
    CompressionJob,
    ProofCompressionJobStatus,
    ProverJobRecord,
    ProverJobStatus,
    WitnessGeneratorJob,
    WitnessJobStatus,
)
from proofwatch.core.rounds import AggregationRound

__all__ = [
    "AggregationRound",
    "BaseLayerCircuit",
    "CircuitIdError",
    "CompressionJob",
    "ConfigError",
    "DataAccessError",
    "ProofCompressionJobStatus",
    "ProofwatchConfig",
    "ProofwatchError",
    "ProverJobRecord",
    "ProverJobStatus",
    "RecordDecodeError",
    "RpcError",
    "WitnessGeneratorJob",
    "WitnessJobStatus",
    "circuit_name",
    "correct_circuit_id",
    "load_config",
]
