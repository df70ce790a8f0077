"""L2 node JSON-RPC client.

Fetches L1 batch details and the latest sealed batch number over HTTP
JSON-RPC using httpx. Only the two methods the batch-details view needs
are wrapped.
"""

from __future__ import annotations

import itertools
from datetime import datetime
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from proofwatch.core.errors import RpcError
from proofwatch.core.logging import get_logger, redact_dsn

_logger = get_logger("rpc")


class L1BatchDetails(BaseModel):
    """Subset of ``zks_getL1BatchDetails`` used for reporting."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    number: int
    timestamp: int | None = None
    status: str | None = None
    l1_tx_count: int | None = Field(default=None, alias="l1TxCount")
    l2_tx_count: int | None = Field(default=None, alias="l2TxCount")
    root_hash: str | None = Field(default=None, alias="rootHash")
    commit_tx_hash: str | None = Field(default=None, alias="commitTxHash")
    committed_at: datetime | None = Field(default=None, alias="committedAt")
    prove_tx_hash: str | None = Field(default=None, alias="proveTxHash")
    proven_at: datetime | None = Field(default=None, alias="provenAt")
    execute_tx_hash: str | None = Field(default=None, alias="executeTxHash")
    executed_at: datetime | None = Field(default=None, alias="executedAt")


class L2RpcClient:
    """Minimal async JSON-RPC client for an L2 node.

    Use as an async context manager so the underlying HTTP client is
    closed when the command finishes.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            url: HTTP endpoint of the L2 node.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (tests pass a MockTransport).
        """
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._ids = itertools.count(1)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client lazily, inside the running loop."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        """Invoke one JSON-RPC method and return its ``result``.

        Raises:
            RpcError: On transport failure, HTTP error status, malformed
                response, or a JSON-RPC error object.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        _logger.debug("rpc_request", url=redact_dsn(self.url), method=method)
        client = await self._get_client()
        try:
            response = await client.post(self.url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            raise RpcError(f"{method} timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise RpcError(f"{method} failed with HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise RpcError(f"{method} request failed: {e}") from e
        except ValueError as e:
            raise RpcError(f"{method} returned a non-JSON response") from e

        if not isinstance(body, dict):
            raise RpcError(f"{method} returned an unexpected payload")
        if body.get("error") is not None:
            error = body["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise RpcError(f"{method} returned an error: {message}")
        if "result" not in body:
            raise RpcError(f"{method} response has no result")
        return body["result"]

    async def get_l1_batch_number(self) -> int:
        """Latest sealed L1 batch number (``zks_L1BatchNumber``)."""
        result = await self.call("zks_L1BatchNumber")
        try:
            return int(result, 16) if isinstance(result, str) else int(result)
        except (TypeError, ValueError) as e:
            raise RpcError(f"zks_L1BatchNumber returned {result!r}") from e

    async def get_l1_batch_details(self, l1_batch_number: int) -> L1BatchDetails | None:
        """Details of one L1 batch (``zks_getL1BatchDetails``), None if unknown."""
        result = await self.call("zks_getL1BatchDetails", [l1_batch_number])
        if result is None:
            return None
        try:
            return L1BatchDetails.model_validate(result)
        except ValidationError as e:
            raise RpcError(f"zks_getL1BatchDetails returned malformed details: {e}") from e

    async def close(self) -> None:
        """Close the HTTP client connection."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> L2RpcClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
