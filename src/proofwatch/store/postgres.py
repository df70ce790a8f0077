"""Postgres-backed job record store.

Reads the prover database through one pooled async psycopg connection per
command invocation. Driver and pool errors are wrapped in DataAccessError
at this boundary; decode errors propagate as RecordDecodeError. Nothing is
retried.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from proofwatch.core.config import DatabaseConfig
from proofwatch.core.constants import MAX_ATTEMPTS
from proofwatch.core.errors import DataAccessError
from proofwatch.core.logging import get_logger, redact_dsn
from proofwatch.core.records import (
    CompressionJob,
    ProverJobRecord,
    WitnessGeneratorJob,
    WitnessJobStatus,
)
from proofwatch.core.rounds import AggregationRound
from proofwatch.store.base import JobRecordStore
from proofwatch.store.decode import (
    decode_compression_job,
    decode_prover_job,
    decode_witness_job,
)
from proofwatch.store.tables import (
    COMPRESSION_JOBS_TABLE,
    PROVER_JOBS_TABLE,
    RESTART_DELETE_ORDER,
    WITNESS_TABLES,
    witness_table_for,
)

# Module-level logger for store operations
_logger = get_logger("store.postgres")

# Table names below come from store.tables, never from user input.

_SELECT_PROVER_JOBS = f"""
    SELECT *
    FROM {PROVER_JOBS_TABLE}
    WHERE l1_batch_number = %(l1_batch_number)s
      AND aggregation_round = %(aggregation_round)s
"""

_SELECT_COMPRESSION_JOB = f"""
    SELECT *
    FROM {COMPRESSION_JOBS_TABLE}
    WHERE l1_batch_number = %(l1_batch_number)s
"""

_SELECT_STUCK_PROVER_JOBS = f"""
    SELECT *
    FROM {PROVER_JOBS_TABLE}
    WHERE attempts >= %(max_attempts)s
      AND status <> 'successful'
      AND aggregation_round = %(aggregation_round)s
"""

_REQUEUE_WITNESS_INPUT = f"""
    UPDATE {WITNESS_TABLES[AggregationRound.BASIC_CIRCUITS].name}
    SET status = %(status)s, attempts = 0, updated_at = now()
    WHERE l1_batch_number = %(l1_batch_number)s
"""

_INSERT_WITNESS_INPUT = f"""
    INSERT INTO {WITNESS_TABLES[AggregationRound.BASIC_CIRCUITS].name}
        (l1_batch_number, witness_inputs_blob_url, protocol_version,
         protocol_version_patch, status, attempts, created_at, updated_at)
    VALUES
        (%(l1_batch_number)s, %(witness_inputs_blob_url)s, %(protocol_version)s,
         %(protocol_version_patch)s, %(status)s, 0, now(), now())
    ON CONFLICT (l1_batch_number) DO NOTHING
"""


def _select_witness_jobs(table: str) -> str:
    return f"""
    SELECT *
    FROM {table}
    WHERE l1_batch_number = %(l1_batch_number)s
"""


def _select_stuck_witness_jobs(table: str) -> str:
    return f"""
    SELECT *
    FROM {table}
    WHERE attempts >= %(max_attempts)s
      AND status <> 'successful'
"""


def _delete_batch_rows(table: str) -> str:
    return f"""
    DELETE FROM {table}
    WHERE l1_batch_number = %(l1_batch_number)s
"""


class PostgresJobRecordStore(JobRecordStore):
    """Job record store over an async psycopg connection.

    The connection is expected in autocommit mode; the two mutating
    operations open an explicit transaction so their effects are committed
    before they return.
    """

    def __init__(self, conn: psycopg.AsyncConnection[Any]) -> None:
        self._conn = conn

    async def _fetch_all(self, query: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            async with self._conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(query, params)
                return await cur.fetchall()
        except psycopg.Error as e:
            raise DataAccessError(f"Prover database query failed: {e}") from e

    async def _execute(self, query: str, params: dict[str, Any]) -> int:
        """Run a statement and return the affected row count."""
        try:
            async with self._conn.cursor() as cur:
                await cur.execute(query, params)
                return cur.rowcount
        except psycopg.Error as e:
            raise DataAccessError(f"Prover database statement failed: {e}") from e

    async def fetch_witness_jobs(
        self, l1_batch_number: int, aggregation_round: AggregationRound
    ) -> list[WitnessGeneratorJob]:
        table = witness_table_for(aggregation_round)
        rows = await self._fetch_all(
            _select_witness_jobs(table.name), {"l1_batch_number": l1_batch_number}
        )
        jobs = [decode_witness_job(table, row) for row in rows]
        _logger.debug(
            "stage_records_fetched",
            table=table.name,
            l1_batch_number=l1_batch_number,
            count=len(jobs),
        )
        return jobs

    async def fetch_prover_jobs(
        self, l1_batch_number: int, aggregation_round: AggregationRound
    ) -> list[ProverJobRecord]:
        rows = await self._fetch_all(
            _SELECT_PROVER_JOBS,
            {"l1_batch_number": l1_batch_number, "aggregation_round": int(aggregation_round)},
        )
        jobs = [decode_prover_job(row) for row in rows]
        _logger.debug(
            "stage_records_fetched",
            table=PROVER_JOBS_TABLE,
            l1_batch_number=l1_batch_number,
            aggregation_round=aggregation_round.label,
            count=len(jobs),
        )
        return jobs

    async def fetch_compression_job(self, l1_batch_number: int) -> CompressionJob | None:
        rows = await self._fetch_all(
            _SELECT_COMPRESSION_JOB, {"l1_batch_number": l1_batch_number}
        )
        _logger.debug(
            "stage_records_fetched",
            table=COMPRESSION_JOBS_TABLE,
            l1_batch_number=l1_batch_number,
            count=len(rows),
        )
        return decode_compression_job(rows[0]) if rows else None

    async def fetch_stuck_witness_jobs(
        self, aggregation_round: AggregationRound, max_attempts: int = MAX_ATTEMPTS
    ) -> list[WitnessGeneratorJob]:
        table = witness_table_for(aggregation_round)
        rows = await self._fetch_all(
            _select_stuck_witness_jobs(table.name), {"max_attempts": max_attempts}
        )
        return [decode_witness_job(table, row) for row in rows]

    async def fetch_stuck_prover_jobs(
        self, aggregation_round: AggregationRound, max_attempts: int = MAX_ATTEMPTS
    ) -> list[ProverJobRecord]:
        rows = await self._fetch_all(
            _SELECT_STUCK_PROVER_JOBS,
            {"max_attempts": max_attempts, "aggregation_round": int(aggregation_round)},
        )
        return [decode_prover_job(row) for row in rows]

    async def restart_batch_proof(self, l1_batch_number: int) -> bool:
        params = {"l1_batch_number": l1_batch_number}
        try:
            async with self._conn.transaction():
                for table in RESTART_DELETE_ORDER:
                    deleted = await self._execute(_delete_batch_rows(table), params)
                    _logger.debug(
                        "batch_rows_deleted",
                        table=table,
                        l1_batch_number=l1_batch_number,
                        count=deleted,
                    )
                requeued = await self._execute(
                    _REQUEUE_WITNESS_INPUT,
                    {**params, "status": WitnessJobStatus.QUEUED.value},
                )
        except psycopg.Error as e:
            raise DataAccessError(f"Restart of batch {l1_batch_number} failed: {e}") from e
        if requeued:
            _logger.info("batch_proof_restarted", l1_batch_number=l1_batch_number)
        else:
            _logger.warning("witness_inputs_missing", l1_batch_number=l1_batch_number)
        return requeued > 0

    async def insert_witness_inputs(
        self,
        l1_batch_number: int,
        protocol_version: int,
        protocol_version_patch: int = 0,
        witness_inputs_blob_url: str | None = None,
    ) -> bool:
        params = {
            "l1_batch_number": l1_batch_number,
            "witness_inputs_blob_url": witness_inputs_blob_url,
            "protocol_version": protocol_version,
            "protocol_version_patch": protocol_version_patch,
            "status": WitnessJobStatus.QUEUED.value,
        }
        try:
            async with self._conn.transaction():
                inserted = await self._execute(_INSERT_WITNESS_INPUT, params)
        except psycopg.Error as e:
            raise DataAccessError(f"Insert of batch {l1_batch_number} failed: {e}") from e
        _logger.info(
            "witness_inputs_inserted" if inserted else "witness_inputs_exist",
            l1_batch_number=l1_batch_number,
            protocol_version=protocol_version,
            protocol_version_patch=protocol_version_patch,
        )
        return inserted > 0


@asynccontextmanager
async def open_store(config: DatabaseConfig) -> AsyncIterator[PostgresJobRecordStore]:
    """Open a connection pool and yield a store bound to one pooled connection.

    One connection is held for the whole command invocation.

    Raises:
        ConfigError: If no prover database URL is configured.
        DataAccessError: If the pool cannot open or hand out a connection.
    """
    url = config.require_url()
    pool = AsyncConnectionPool(
        url,
        min_size=config.pool_min_size,
        max_size=max(config.pool_max_size, config.pool_min_size),
        timeout=config.connect_timeout_seconds,
        kwargs={"autocommit": True},
        open=False,
    )
    _logger.debug("pool_opening", dsn=redact_dsn(url))
    try:
        try:
            await pool.open(wait=True, timeout=config.connect_timeout_seconds)
            conn = await pool.getconn()
        except psycopg.Error as e:
            raise DataAccessError(
                f"Cannot connect to prover database {redact_dsn(url)}: {e}"
            ) from e
        try:
            yield PostgresJobRecordStore(conn)
        finally:
            await pool.putconn(conn)
    finally:
        await pool.close()
