"""Turns stored endpoints plus live RPC calls into display models.

Degradation rules differ per view: a node status degrades field by field
(unreachable means OFFLINE), the chain view is all or nothing, and block
queries raise so the dispatcher can report the failure.
"""

import asyncio
import logging
from typing import Any, Callable, Iterable

from incognito_monitor.errors import MonitorError, RpcError
from incognito_monitor.models import (
    BEACON_INDEX,
    BlockSummary,
    ChainBlocks,
    ChainSummary,
    NodeChains,
    NodeEndpoint,
    NodeState,
    NodeStatus,
    chain_name,
    require_int,
)
from incognito_monitor.services.rpc import RpcClient
from incognito_monitor.services.store import NodeStore

logger = logging.getLogger(__name__)

ClientFactory = Callable[[NodeEndpoint], RpcClient]

# A malformed RPC payload surfaces as one of these while reshaping.
MALFORMED_RESPONSE = (KeyError, TypeError, ValueError)


class StatusAggregator:
    def __init__(
        self,
        store: NodeStore,
        client_factory: ClientFactory = RpcClient.for_endpoint,
        call_deadline: float = 8.0,
        block_count: int = 10,
    ) -> None:
        self.store = store
        self.client_factory = client_factory
        self.call_deadline = call_deadline
        self.block_count = block_count

    async def _call(self, method: str, func: Callable[..., Any], *args: Any) -> Any:
        """Run a blocking RPC call in the executor, bounded by ``call_deadline``."""
        loop = asyncio.get_event_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, func, *args), timeout=self.call_deadline
            )
        except asyncio.TimeoutError:
            raise RpcError(method, f"no answer within {self.call_deadline:g}s") from None

    async def _resolve(self, name: str) -> NodeEndpoint:
        return await asyncio.get_event_loop().run_in_executor(None, self.store.get, name)

    async def status_of(self, endpoint: NodeEndpoint) -> NodeStatus:
        rpc = self.client_factory(endpoint)
        result = NodeStatus(endpoint=endpoint)
        try:
            await self._call("getnetworkinfo", rpc.get_network_info)
            total_blocks = require_int(
                await self._call("getblockcount", rpc.get_block_count, 0), "block count"
            )
            state = await self._call("getbeaconbeststate", rpc.get_beacon_best_state)
            beacon_height = require_int(state["BeaconHeight"], "BeaconHeight")
        except (RpcError, *MALFORMED_RESPONSE) as exc:
            logger.error("Node %s (%s:%s) is offline: %s", endpoint.name, endpoint.host, endpoint.port, exc)
            return result
        result.status = NodeState.ONLINE
        result.total_blocks = total_blocks
        result.beacon_height = beacon_height
        return result

    async def statuses_of(self, endpoints: Iterable[NodeEndpoint]) -> list[NodeStatus]:
        return list(await asyncio.gather(*(self.status_of(endpoint) for endpoint in endpoints)))

    async def _shard_summary(self, rpc: RpcClient, shard_index: int) -> ChainSummary:
        state = await self._call("getshardbeststate", rpc.get_shard_best_state, shard_index)
        return ChainSummary.from_shard_state(shard_index, state)

    async def chains_of(self, name: str) -> NodeChains:
        logger.debug("Getting chains of %s", name)
        try:
            endpoint = await self._resolve(name)
            rpc = self.client_factory(endpoint)
            beacon_state = await self._call("getbeaconbeststate", rpc.get_beacon_best_state)
            chains = [ChainSummary.from_beacon_state(beacon_state)]
            shard_count = int(beacon_state.get("ActiveShards") or 0)
            chains.extend(
                await asyncio.gather(
                    *(self._shard_summary(rpc, index) for index in range(shard_count))
                )
            )
            node = await self.status_of(endpoint)
        except (MonitorError, *MALFORMED_RESPONSE) as exc:
            logger.error("Get chains of %s failed: %s", name, exc)
            return NodeChains.empty(name)
        chains.sort(key=lambda chain: chain.index)
        logger.debug("Get chains of %s success: %d chains", name, len(chains))
        return NodeChains(name=name, node=node, chains=chains)

    async def blocks_of(self, name: str, shard_id: int | str) -> ChainBlocks:
        try:
            shard_index = int(shard_id)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid shard id: {shard_id!r}") from None
        if shard_index < BEACON_INDEX:
            raise ValueError(f"Invalid shard id: {shard_id!r}")
        logger.debug("Getting blocks of shard %s of node %s", shard_index, name)

        endpoint = await self._resolve(name)
        rpc = self.client_factory(endpoint)
        raw_blocks = await self._call("getblocks", rpc.get_blocks, self.block_count, shard_index)
        try:
            blocks = [BlockSummary.from_rpc(block) for block in raw_blocks or []]
        except MALFORMED_RESPONSE as exc:
            raise RpcError("getblocks", f"malformed block: {exc}") from exc

        chain = ChainBlocks(name=chain_name(shard_index), index=shard_index, blocks=blocks)
        if blocks:
            latest = max(blocks, key=lambda block: block.height)
            chain.total_blocks = latest.height
            chain.producer = latest.producer
        return chain

    async def block_of(self, name: str, block_hash: str) -> BlockSummary:
        logger.debug("Getting block %s of node %s", block_hash, name)
        endpoint = await self._resolve(name)
        rpc = self.client_factory(endpoint)
        block = await self._call("retrieveblock", rpc.retrieve_block, block_hash, 1)
        try:
            return BlockSummary.from_rpc(block)
        except MALFORMED_RESPONSE as exc:
            raise RpcError("retrieveblock", f"malformed block: {exc}") from exc
