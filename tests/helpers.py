"""Shared test helpers for proofwatch tests.

Provides record and row factories plus FakeConnection, an in-memory stand-in
for a psycopg AsyncConnection. FakeConnection understands exactly the
statement shapes PostgresJobRecordStore issues:

- ``SELECT * FROM t WHERE a >= %(p)s [AND b <> 'lit' ...]`` (also ``=``)
- ``DELETE FROM t WHERE a = %(p)s``
- ``UPDATE t SET a = %(p)s, b = 0, c = now() WHERE d = %(q)s``
- ``INSERT INTO t (cols) VALUES (...) ON CONFLICT (key) DO NOTHING``

Anything else raises AssertionError so a changed query shape fails loudly.
"""

from __future__ import annotations

import copy
import re
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import Any

import psycopg

from proofwatch.core.records import (
    CompressionJob,
    ProofCompressionJobStatus,
    ProverJobRecord,
    ProverJobStatus,
    WitnessGeneratorJob,
    WitnessJobStatus,
)
from proofwatch.core.rounds import AggregationRound
from proofwatch.store.postgres import PostgresJobRecordStore
from proofwatch.store.tables import (
    COMPRESSION_JOBS_TABLE,
    PROVER_JOBS_TABLE,
    witness_table_for,
)

# Fixed clock used by every factory
T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)
NOW = datetime(2024, 5, 2, 9, 30, 0, tzinfo=UTC)


# =============================================================================
# Record factories (for classifier, stage and renderer tests)
# =============================================================================


def make_witness_job(
    aggregation_round: AggregationRound = AggregationRound.BASIC_CIRCUITS,
    l1_batch_number: int = 1000,
    status: WitnessJobStatus = WitnessJobStatus.SUCCESSFUL,
    attempts: int = 1,
    **overrides: Any,
) -> WitnessGeneratorJob:
    fields: dict[str, Any] = {
        "aggregation_round": aggregation_round,
        "l1_batch_number": l1_batch_number,
        "status": status,
        "attempts": attempts,
        "created_at": T0,
        "updated_at": T0 + timedelta(minutes=5),
        "processing_started_at": T0 + timedelta(minutes=1),
    }
    fields.update(overrides)
    return WitnessGeneratorJob(**fields)


def make_prover_job(
    id: int = 1,  # noqa: A002
    l1_batch_number: int = 1000,
    status: ProverJobStatus = ProverJobStatus.SUCCESSFUL,
    attempts: int = 1,
    raw_circuit_id: int = 1,
    aggregation_round: AggregationRound = AggregationRound.BASIC_CIRCUITS,
    **overrides: Any,
) -> ProverJobRecord:
    fields: dict[str, Any] = {
        "id": id,
        "l1_batch_number": l1_batch_number,
        "raw_circuit_id": raw_circuit_id,
        "aggregation_round": aggregation_round,
        "sequence_number": 0,
        "depth": 0,
        "status": status,
        "attempts": attempts,
        "created_at": T0,
        "updated_at": T0 + timedelta(minutes=10),
        "processing_started_at": T0 + timedelta(minutes=2),
    }
    fields.update(overrides)
    return ProverJobRecord(**fields)


def make_compression_job(
    l1_batch_number: int = 1000,
    status: ProofCompressionJobStatus = ProofCompressionJobStatus.QUEUED,
    attempts: int = 0,
    **overrides: Any,
) -> CompressionJob:
    fields: dict[str, Any] = {
        "l1_batch_number": l1_batch_number,
        "status": status,
        "attempts": attempts,
        "created_at": T0,
        "updated_at": T0 + timedelta(hours=1),
    }
    fields.update(overrides)
    return CompressionJob(**fields)


# =============================================================================
# Row factories (for store and CLI tests)
# =============================================================================


def witness_row(
    aggregation_round: AggregationRound,
    l1_batch_number: int,
    status: str = "successful",
    attempts: int = 1,
    *,
    id: int = 1,  # noqa: A002
    circuit_id: int = 1,
    depth: int = 0,
    **overrides: Any,
) -> dict[str, Any]:
    """A row as psycopg's dict_row returns it for the round's witness table."""
    table = witness_table_for(aggregation_round)
    row: dict[str, Any] = {
        "l1_batch_number": l1_batch_number,
        "status": status,
        "attempts": attempts,
        "error": None,
        "created_at": T0,
        "updated_at": T0 + timedelta(minutes=5),
        "processing_started_at": T0 + timedelta(minutes=1),
        "time_taken": None,
        "protocol_version": 24,
        "protocol_version_patch": 0,
        "picked_by": "witness-gen-1",
    }
    if table.per_circuit:
        row["id"] = id
        row["circuit_id"] = circuit_id
    if table.has_depth:
        row["depth"] = depth
    row.update(overrides)
    return row


def prover_row(
    id: int,  # noqa: A002
    l1_batch_number: int,
    aggregation_round: AggregationRound = AggregationRound.BASIC_CIRCUITS,
    status: str = "successful",
    attempts: int = 1,
    circuit_id: int = 1,
    **overrides: Any,
) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": id,
        "l1_batch_number": l1_batch_number,
        "circuit_id": circuit_id,
        "aggregation_round": int(aggregation_round),
        "sequence_number": 0,
        "depth": 0,
        "status": status,
        "attempts": attempts,
        "error": None,
        "created_at": T0,
        "updated_at": T0 + timedelta(minutes=10),
        "processing_started_at": T0 + timedelta(minutes=2),
        "time_taken": None,
        "is_node_final_proof": False,
        "protocol_version": 24,
        "picked_by": "prover-1",
    }
    row.update(overrides)
    return row


def compression_row(
    l1_batch_number: int,
    status: str = "queued",
    attempts: int = 0,
    **overrides: Any,
) -> dict[str, Any]:
    row: dict[str, Any] = {
        "l1_batch_number": l1_batch_number,
        "status": status,
        "attempts": attempts,
        "error": None,
        "created_at": T0,
        "updated_at": T0 + timedelta(hours=1),
        "processing_started_at": T0 + timedelta(minutes=50),
        "time_taken": None,
        "fri_proof_blob_url": None,
        "l1_proof_blob_url": None,
        "picked_by": None,
    }
    row.update(overrides)
    return row


# =============================================================================
# In-memory connection
# =============================================================================

_SELECT = re.compile(r"^SELECT \* FROM (\w+) WHERE (.+)$")
_DELETE = re.compile(r"^DELETE FROM (\w+) WHERE (.+)$")
_UPDATE = re.compile(r"^UPDATE (\w+) SET (.+) WHERE (.+)$")
_INSERT = re.compile(
    r"^INSERT INTO (\w+) \((.+?)\) VALUES \((.+)\) ON CONFLICT \((\w+)\) DO NOTHING$"
)
_CONDITION = re.compile(r"^(\w+) (=|<>|>=) (.+)$")
_PARAM = re.compile(r"^%\((\w+)\)s$")


class FakeCursor:
    def __init__(self, conn: FakeConnection) -> None:
        self._conn = conn
        self._rows: list[dict[str, Any]] = []
        self.rowcount = -1

    async def __aenter__(self) -> FakeCursor:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    async def execute(self, query: str, params: dict[str, Any] | None = None) -> None:
        self._rows, self.rowcount = self._conn.run(query, params or {})

    async def fetchall(self) -> list[dict[str, Any]]:
        return self._rows


class FakeConnection:
    """Dict-of-lists tables behind the psycopg AsyncConnection surface we use.

    Attributes:
        tables: Rows per table name.
        executed: Normalized statements in execution order.
        fail_on: When set, any statement containing this text raises
            psycopg.OperationalError.
    """

    def __init__(self, tables: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = tables or {}
        self.executed: list[str] = []
        self.fail_on: str | None = None
        self.transactions = 0

    def add(self, table: str, *rows: dict[str, Any]) -> FakeConnection:
        self.tables.setdefault(table, []).extend(rows)
        return self

    def add_witness(
        self, aggregation_round: AggregationRound, *rows: dict[str, Any]
    ) -> FakeConnection:
        return self.add(witness_table_for(aggregation_round).name, *rows)

    def add_prover(self, *rows: dict[str, Any]) -> FakeConnection:
        return self.add(PROVER_JOBS_TABLE, *rows)

    def add_compression(self, *rows: dict[str, Any]) -> FakeConnection:
        return self.add(COMPRESSION_JOBS_TABLE, *rows)

    def cursor(self, row_factory: object | None = None) -> FakeCursor:
        return FakeCursor(self)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        snapshot = copy.deepcopy(self.tables)
        self.transactions += 1
        try:
            yield
        except BaseException:
            self.tables = snapshot
            raise

    # -------------------------------------------------------------------------
    # Statement interpreter
    # -------------------------------------------------------------------------

    def run(self, query: str, params: dict[str, Any]) -> tuple[list[dict[str, Any]], int]:
        statement = " ".join(query.split())
        self.executed.append(statement)
        if self.fail_on is not None and self.fail_on in statement:
            raise psycopg.OperationalError("server closed the connection unexpectedly")

        if m := _SELECT.match(statement):
            rows = [dict(r) for r in self._where(m.group(1), m.group(2), params)]
            return rows, len(rows)
        if m := _DELETE.match(statement):
            doomed = self._where(m.group(1), m.group(2), params)
            self.tables[m.group(1)] = [
                r for r in self.tables.get(m.group(1), []) if r not in doomed
            ]
            return [], len(doomed)
        if m := _UPDATE.match(statement):
            targets = self._where(m.group(1), m.group(3), params)
            for row in targets:
                for assignment in m.group(2).split(", "):
                    column, expr = assignment.split(" = ", 1)
                    row[column] = self._value(expr, params)
            return [], len(targets)
        if m := _INSERT.match(statement):
            table, columns, values, key = m.groups()
            row = {
                column.strip(): self._value(expr.strip(), params)
                for column, expr in zip(columns.split(","), values.split(", "), strict=True)
            }
            existing = self.tables.setdefault(table, [])
            if any(r.get(key) == row[key] for r in existing):
                return [], 0
            existing.append(row)
            return [], 1
        raise AssertionError(f"FakeConnection cannot interpret: {statement}")

    def _where(
        self, table: str, clause: str, params: dict[str, Any]
    ) -> list[dict[str, Any]]:
        predicates: list[Callable[[dict[str, Any]], bool]] = []
        for condition in clause.split(" AND "):
            m = _CONDITION.match(condition)
            assert m is not None, f"unsupported condition: {condition}"
            column, op, expr = m.groups()
            expected = self._value(expr, params)
            if op == "=":
                predicates.append(lambda r, c=column, v=expected: r.get(c) == v)
            elif op == ">=":
                predicates.append(lambda r, c=column, v=expected: r.get(c, 0) >= v)
            else:
                predicates.append(lambda r, c=column, v=expected: r.get(c) != v)
        return [r for r in self.tables.get(table, []) if all(p(r) for p in predicates)]

    @staticmethod
    def _value(expr: str, params: dict[str, Any]) -> Any:
        if m := _PARAM.match(expr):
            return params[m.group(1)]
        if expr == "now()":
            return NOW
        if expr.startswith("'") and expr.endswith("'"):
            return expr[1:-1]
        return int(expr)


def store_opener(conn: FakeConnection) -> Callable[[Any], Any]:
    """Replacement for proofwatch.store.open_store yielding a store over conn."""

    @asynccontextmanager
    async def _open(config: Any) -> AsyncIterator[PostgresJobRecordStore]:
        yield PostgresJobRecordStore(conn)  # type: ignore[arg-type]

    return _open


# =============================================================================
# Canonical batches
# =============================================================================


def seed_stuck_basic_prover_batch(conn: FakeConnection, l1_batch_number: int = 2000) -> None:
    """Basic witness job done; one of its four prover jobs failed out of attempts."""
    basic = AggregationRound.BASIC_CIRCUITS
    conn.add_witness(basic, witness_row(basic, l1_batch_number))
    conn.add_prover(
        prover_row(1, l1_batch_number, circuit_id=1),
        prover_row(2, l1_batch_number, circuit_id=2),
        prover_row(3, l1_batch_number, circuit_id=3),
        prover_row(4, l1_batch_number, circuit_id=1, status="failed", attempts=10),
    )


def seed_sent_to_server_batch(conn: FakeConnection, l1_batch_number: int = 3000) -> None:
    """Every stage done and the compressed proof delivered."""
    for aggregation_round in AggregationRound:
        conn.add_witness(
            aggregation_round, witness_row(aggregation_round, l1_batch_number, circuit_id=3)
        )
    conn.add_prover(prover_row(10, l1_batch_number))
    conn.add_compression(compression_row(l1_batch_number, status="sent_to_server", attempts=1))
