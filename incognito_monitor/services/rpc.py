import logging
from typing import Any, Optional

import requests

from incognito_monitor.errors import RpcError
from incognito_monitor.models import NodeEndpoint

logger = logging.getLogger(__name__)


class RpcClient:
    """JSON-RPC client for a single Incognito full node."""

    def __init__(self, host: str, port: int, scheme: str = "http", timeout: float = 5.0) -> None:
        self.rpc_host = host
        self.rpc_port = port
        self.scheme = scheme
        self.timeout = timeout

    @classmethod
    def for_endpoint(cls, endpoint: NodeEndpoint, scheme: str = "http", timeout: float = 5.0) -> "RpcClient":
        return cls(endpoint.host, endpoint.port, scheme=scheme, timeout=timeout)

    def _rpc_url(self) -> str:
        return f"{self.scheme}://{self.rpc_host}:{self.rpc_port}"

    def _rpc_call(self, method: str, params: Optional[list] = None) -> Any:
        payload = {"jsonrpc": "1.0", "id": 1, "method": method, "params": params or []}
        logger.debug("%s %s %s", self._rpc_url(), method, payload["params"])
        try:
            response = requests.post(self._rpc_url(), json=payload, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as exc:
            raise RpcError(method, str(exc)) from exc
        except ValueError as exc:
            raise RpcError(method, "response is not valid JSON") from exc
        if not isinstance(data, dict):
            raise RpcError(method, "unexpected response shape")
        # Incognito nodes capitalize the envelope keys.
        error = data.get("Error") or data.get("error")
        if error:
            if isinstance(error, dict):
                error = error.get("Message") or error.get("message") or error
            raise RpcError(method, str(error))
        if "Result" in data:
            return data["Result"]
        return data.get("result")

    def get_network_info(self) -> dict[str, Any]:
        return self._rpc_call("getnetworkinfo")

    def get_block_count(self, shard_index: int) -> int:
        return self._rpc_call("getblockcount", [shard_index])

    def get_beacon_best_state(self) -> dict[str, Any]:
        return self._rpc_call("getbeaconbeststate")

    def get_shard_best_state(self, shard_index: int) -> dict[str, Any]:
        return self._rpc_call("getshardbeststate", [shard_index])

    def get_blocks(self, count: int, shard_index: int) -> list[dict[str, Any]]:
        return self._rpc_call("getblocks", [count, shard_index])

    def retrieve_block(self, block_hash: str, verbosity: int = 1) -> dict[str, Any]:
        return self._rpc_call("retrieveblock", [block_hash, str(verbosity)])
