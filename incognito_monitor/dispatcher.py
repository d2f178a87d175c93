import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from incognito_monitor.errors import MonitorError, UnknownCommandError
from incognito_monitor.models import NodeEndpoint
from incognito_monitor.services.aggregator import StatusAggregator
from incognito_monitor.services.store import NodeStore

logger = logging.getLogger(__name__)

ADD_NODE = "add-node"
DELETE_NODE = "delete-node"
GET_NODES = "get-nodes"
EXPORT_NODES = "export-nodes"
IMPORT_NODES = "import-nodes"
GET_CHAINS = "get-chains"
GET_BLOCKS = "get-blocks"
GET_BLOCK = "get-block"

SUCCESS = "success"
CANCEL = "cancel"


@dataclass
class Reply:
    command: str
    value: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# Called with the command name; returns a path, or None when the user cancels.
PathChooser = Callable[[str], Optional[str]]
ReplyCallback = Callable[[str, Reply], None]


def _no_path(command: str) -> Optional[str]:
    return None


def _require_mapping(command: str, payload: Any, shape: str) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValueError(f"{command} expects {shape}")
    return payload


class CommandDispatcher:
    """Routes named UI commands to the node store and the status aggregator."""

    def __init__(
        self,
        store: NodeStore,
        aggregator: StatusAggregator,
        chooser: PathChooser = _no_path,
    ) -> None:
        self.store = store
        self.aggregator = aggregator
        self.chooser = chooser
        self._routes: dict[str, Callable[[Any], Awaitable[Any]]] = {
            ADD_NODE: self._add_node,
            DELETE_NODE: self._delete_node,
            GET_NODES: self._get_nodes,
            EXPORT_NODES: self._export_nodes,
            IMPORT_NODES: self._import_nodes,
            GET_CHAINS: self._get_chains,
            GET_BLOCKS: self._get_blocks,
            GET_BLOCK: self._get_block,
        }

    @property
    def commands(self) -> list[str]:
        return list(self._routes)

    async def dispatch(
        self,
        command: str,
        payload: Any = None,
        reply: ReplyCallback | None = None,
    ) -> Reply:
        handler = self._routes.get(command)
        if handler is None:
            raise UnknownCommandError(f"Unknown command: {command!r}")
        try:
            result = Reply(command, value=await handler(payload))
        except (MonitorError, ValueError) as exc:
            logger.error("%s failed: %s", command, exc)
            result = Reply(command, error=str(exc))
        if reply is not None:
            reply(command, result)
        return result

    def dispatch_sync(self, command: str) -> str:
        """Serve a file command immediately, returning ``"success"`` or ``"cancel"``."""
        if command == EXPORT_NODES:
            return self._copy_record(command, self.store.export)
        if command == IMPORT_NODES:
            return self._copy_record(command, self.store.import_)
        raise UnknownCommandError(f"{command!r} has no synchronous form")

    def _copy_record(self, command: str, copy: Callable[[Optional[str]], bool]) -> str:
        done = copy(self.chooser(command))
        logger.debug("%s %s", command, SUCCESS if done else CANCEL)
        return SUCCESS if done else CANCEL

    async def _in_executor(self, func: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.get_event_loop().run_in_executor(None, func, *args)

    async def _add_node(self, payload: Any) -> dict[str, Any]:
        endpoint = NodeEndpoint.from_dict(payload)
        logger.debug("Adding node %s", endpoint.to_dict())
        await self._in_executor(self.store.add, endpoint)
        status = await self.aggregator.status_of(endpoint)
        return status.to_dict()

    async def _delete_node(self, name: Any) -> str:
        await self._in_executor(self.store.remove, str(name))
        return str(name)

    async def _get_nodes(self, payload: Any) -> list[dict[str, Any]]:
        nodes = await self._in_executor(self.store.list)
        statuses = await self.aggregator.statuses_of(nodes)
        logger.debug("Get nodes success: %d nodes", len(statuses))
        return [status.to_dict() for status in statuses]

    async def _export_nodes(self, payload: Any) -> str:
        return await self._in_executor(self.dispatch_sync, EXPORT_NODES)

    async def _import_nodes(self, payload: Any) -> str:
        return await self._in_executor(self.dispatch_sync, IMPORT_NODES)

    async def _get_chains(self, name: Any) -> dict[str, Any]:
        chains = await self.aggregator.chains_of(str(name))
        return chains.to_dict()

    async def _get_blocks(self, payload: Any) -> dict[str, Any]:
        payload = _require_mapping(GET_BLOCKS, payload, "{name, shard_id}")
        chain = await self.aggregator.blocks_of(payload.get("name"), payload.get("shard_id"))
        return chain.to_dict()

    async def _get_block(self, payload: Any) -> dict[str, Any]:
        payload = _require_mapping(GET_BLOCK, payload, "{name, hash}")
        block = await self.aggregator.block_of(payload.get("name"), payload.get("hash"))
        return block.to_dict()
