"""Exception hierarchy for proofwatch.

All proofwatch exceptions inherit from ProofwatchError, so CLI commands can
catch broadly at their boundary while library callers catch narrowly
(e.g. RecordDecodeError). Follows a flat hierarchy; nothing here is retried.
"""

from __future__ import annotations

from typing import Any


class ProofwatchError(Exception):
    """Base exception for all proofwatch errors."""


class ConfigError(ProofwatchError):
    """Raised when configuration is missing or fails validation."""


class DataAccessError(ProofwatchError):
    """Raised when the prover database cannot be reached or queried.

    Wraps driver errors (connection refused, bad SQL, lost connection).
    Always fatal for the current command.
    """


class RecordDecodeError(DataAccessError):
    """Raised when a persisted row cannot be decoded into a job record.

    A stage's records are decoded all-or-nothing: the first bad column
    aborts the whole fetch.

    Attributes:
        table: Table the row came from.
        column: Column that failed to decode.
        value: The offending raw value (None when the column is missing).
        reason: Short description of what was expected.
    """

    def __init__(self, table: str, column: str, value: Any, reason: str) -> None:
        self.table = table
        self.column = column
        self.value = value
        self.reason = reason
        super().__init__(f"{table}.{column}: {reason} (got {value!r})")


class CircuitIdError(ProofwatchError):
    """Raised when a circuit id has no known semantic name.

    Attributes:
        circuit_id: The logical (already corrected) circuit id.
    """

    def __init__(self, circuit_id: int, detail: str | None = None) -> None:
        self.circuit_id = circuit_id
        message = f"Unknown circuit id {circuit_id}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class RpcError(ProofwatchError):
    """Raised when the L2 JSON-RPC endpoint fails or returns an error object."""
