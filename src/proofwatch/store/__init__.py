"""Job record stores over the prover database."""

from proofwatch.store.base import JobRecordStore
from proofwatch.store.postgres import PostgresJobRecordStore, open_store

__all__ = ["JobRecordStore", "PostgresJobRecordStore", "open_store"]
