"""L2 node JSON-RPC access."""

from proofwatch.rpc.client import L1BatchDetails, L2RpcClient

__all__ = ["L1BatchDetails", "L2RpcClient"]
