"""Row decoding for prover database records.

Rows arrive as dicts (psycopg ``dict_row``). Every column is checked
explicitly: a missing column, a value of the wrong type, or an unknown
status string raises RecordDecodeError naming the table and column.
NULL is accepted only for nullable columns. There are no silent defaults.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, time
from enum import Enum
from typing import Any, TypeVar

from proofwatch.core.errors import RecordDecodeError
from proofwatch.core.records import (
    CompressionJob,
    ProofCompressionJobStatus,
    ProverJobRecord,
    ProverJobStatus,
    WitnessGeneratorJob,
    WitnessJobStatus,
)
from proofwatch.core.rounds import AggregationRound
from proofwatch.store.tables import COMPRESSION_JOBS_TABLE, PROVER_JOBS_TABLE, WitnessTable

Row = Mapping[str, Any]
_E = TypeVar("_E", bound=Enum)

_MISSING = object()


class _RowReader:
    """Typed column access over one row of one table."""

    def __init__(self, table: str, row: Row) -> None:
        self.table = table
        self.row = row

    def _raw(self, column: str) -> Any:
        value = self.row.get(column, _MISSING)
        if value is _MISSING:
            raise RecordDecodeError(self.table, column, None, "column missing from row")
        return value

    def _typed(self, column: str, expected: type, label: str, nullable: bool) -> Any:
        value = self._raw(column)
        if value is None:
            if nullable:
                return None
            raise RecordDecodeError(self.table, column, value, f"expected {label}, column is NULL")
        # bool is an int subclass; a boolean in an integer column is a decode error
        if expected is int and isinstance(value, bool):
            raise RecordDecodeError(self.table, column, value, f"expected {label}")
        if not isinstance(value, expected):
            raise RecordDecodeError(self.table, column, value, f"expected {label}")
        return value

    def integer(self, column: str, *, minimum: int = 0) -> int:
        value: int = self._typed(column, int, "integer", nullable=False)
        if value < minimum:
            raise RecordDecodeError(self.table, column, value, f"expected integer >= {minimum}")
        return value

    def optional_integer(self, column: str) -> int | None:
        return self._typed(column, int, "integer", nullable=True)

    def timestamp(self, column: str) -> datetime:
        return self._typed(column, datetime, "timestamp", nullable=False)

    def optional_timestamp(self, column: str) -> datetime | None:
        return self._typed(column, datetime, "timestamp", nullable=True)

    def optional_time(self, column: str) -> time | None:
        return self._typed(column, time, "time", nullable=True)

    def optional_text(self, column: str) -> str | None:
        return self._typed(column, str, "text", nullable=True)

    def boolean(self, column: str) -> bool:
        return self._typed(column, bool, "boolean", nullable=False)

    def enum(self, column: str, enum_type: type[_E]) -> _E:
        value = self._raw(column)
        try:
            return enum_type(value)
        except ValueError:
            raise RecordDecodeError(
                self.table, column, value, f"unknown {enum_type.__name__} value"
            ) from None


def decode_witness_job(table: WitnessTable, row: Row) -> WitnessGeneratorJob:
    """Decode one witness generator row of the given table.

    Raises:
        RecordDecodeError: On the first column that cannot be decoded.
    """
    r = _RowReader(table.name, row)
    return WitnessGeneratorJob(
        aggregation_round=table.aggregation_round,
        l1_batch_number=r.integer("l1_batch_number"),
        id=r.integer("id") if table.per_circuit else None,
        raw_circuit_id=r.integer("circuit_id") if table.per_circuit else None,
        depth=r.integer("depth") if table.has_depth else None,
        status=r.enum("status", WitnessJobStatus),
        attempts=r.integer("attempts"),
        error=r.optional_text("error"),
        created_at=r.timestamp("created_at"),
        updated_at=r.timestamp("updated_at"),
        processing_started_at=r.optional_timestamp("processing_started_at"),
        time_taken=r.optional_time("time_taken"),
        protocol_version=r.optional_integer("protocol_version"),
        protocol_version_patch=r.optional_integer("protocol_version_patch"),
        picked_by=r.optional_text("picked_by"),
    )


def decode_prover_job(row: Row) -> ProverJobRecord:
    """Decode one ``prover_jobs_fri`` row.

    Raises:
        RecordDecodeError: On the first column that cannot be decoded.
    """
    r = _RowReader(PROVER_JOBS_TABLE, row)
    return ProverJobRecord(
        id=r.integer("id"),
        l1_batch_number=r.integer("l1_batch_number"),
        raw_circuit_id=r.integer("circuit_id"),
        aggregation_round=r.enum("aggregation_round", AggregationRound),
        sequence_number=r.integer("sequence_number"),
        depth=r.integer("depth"),
        status=r.enum("status", ProverJobStatus),
        attempts=r.integer("attempts"),
        error=r.optional_text("error"),
        created_at=r.timestamp("created_at"),
        updated_at=r.timestamp("updated_at"),
        processing_started_at=r.optional_timestamp("processing_started_at"),
        time_taken=r.optional_time("time_taken"),
        is_node_final_proof=r.boolean("is_node_final_proof"),
        protocol_version=r.optional_integer("protocol_version"),
        picked_by=r.optional_text("picked_by"),
    )


def decode_compression_job(row: Row) -> CompressionJob:
    """Decode one ``proof_compression_jobs_fri`` row.

    Raises:
        RecordDecodeError: On the first column that cannot be decoded.
    """
    r = _RowReader(COMPRESSION_JOBS_TABLE, row)
    return CompressionJob(
        l1_batch_number=r.integer("l1_batch_number"),
        status=r.enum("status", ProofCompressionJobStatus),
        attempts=r.integer("attempts"),
        error=r.optional_text("error"),
        created_at=r.timestamp("created_at"),
        updated_at=r.timestamp("updated_at"),
        processing_started_at=r.optional_timestamp("processing_started_at"),
        time_taken=r.optional_time("time_taken"),
        fri_proof_blob_url=r.optional_text("fri_proof_blob_url"),
        l1_proof_blob_url=r.optional_text("l1_proof_blob_url"),
        picked_by=r.optional_text("picked_by"),
    )
