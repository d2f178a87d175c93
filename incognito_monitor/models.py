from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

BEACON_INDEX = -1


def chain_name(index: int) -> str:
    """Display name of a chain: beacon for -1, 1-based shard number otherwise."""
    return "Beacon" if index == BEACON_INDEX else f"Shard {index + 1}"


def require_int(value: Any, field_name: str) -> int:
    """Return ``value`` when it is a plain integer, else raise ValueError."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer, got {value!r}")
    return value


def _tx_count(txs: Any) -> int:
    # retrieveblock returns the transactions themselves, getblocks a count
    if isinstance(txs, list):
        return len(txs)
    return txs or 0


class NodeState(str, Enum):
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"


@dataclass(frozen=True)
class NodeEndpoint:
    name: str
    host: str
    port: int

    @classmethod
    def from_dict(cls, data: Any) -> "NodeEndpoint":
        """Build an endpoint from a ``{name, host, port}`` mapping. Raises ValueError."""
        if not isinstance(data, dict):
            raise ValueError("Node entry must be an object")
        name = str(data.get("name") or "").strip()
        host = str(data.get("host") or "").strip()
        if not name:
            raise ValueError("Node name is required")
        if not host:
            raise ValueError("Node host is required")
        port = data.get("port")
        if isinstance(port, bool):
            raise ValueError("Node port must be an integer")
        try:
            port = int(port)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid port for node {name!r}: {data.get('port')!r}") from None
        if not 0 < port < 65536:
            raise ValueError(f"Port out of range for node {name!r}: {port}")
        return cls(name=name, host=host, port=port)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "host": self.host, "port": self.port}


@dataclass
class NodeStatus:
    endpoint: NodeEndpoint
    status: NodeState = NodeState.OFFLINE
    total_blocks: int | None = None
    beacon_height: int | None = None

    @property
    def name(self) -> str:
        return self.endpoint.name

    @property
    def online(self) -> bool:
        return self.status is NodeState.ONLINE

    def to_dict(self) -> dict[str, Any]:
        data = self.endpoint.to_dict()
        data.update(
            {
                "status": self.status.value,
                "total_blocks": self.total_blocks,
                "beacon_height": self.beacon_height,
            }
        )
        return data


@dataclass
class ChainSummary:
    name: str
    height: int
    hash: str
    epoch: int
    index: int
    total_txs: int | None = None

    @classmethod
    def from_beacon_state(cls, state: dict[str, Any]) -> "ChainSummary":
        return cls(
            name=chain_name(BEACON_INDEX),
            height=state["BeaconHeight"],
            hash=state["BestBlockHash"],
            epoch=state["Epoch"],
            index=BEACON_INDEX,
        )

    @classmethod
    def from_shard_state(cls, index: int, state: dict[str, Any]) -> "ChainSummary":
        return cls(
            name=chain_name(index),
            height=state["ShardHeight"],
            hash=state["BestBlockHash"],
            epoch=state["Epoch"],
            index=index,
            total_txs=state.get("TotalTxns"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class NodeChains:
    name: str
    node: NodeStatus | None = None
    chains: list[ChainSummary] = field(default_factory=list)

    @classmethod
    def empty(cls, name: str) -> "NodeChains":
        return cls(name=name)

    def to_dict(self) -> dict[str, Any]:
        if self.node is None:
            return {"chains": [], "name": self.name}
        data = self.node.to_dict()
        data["chains"] = [chain.to_dict() for chain in self.chains]
        return data


@dataclass
class BlockSummary:
    height: int
    hash: str
    producer: str | None = None
    tx_count: int = 0
    fee: int = 0
    reward: int = 0
    time: int | None = None

    @classmethod
    def from_rpc(cls, block: dict[str, Any]) -> "BlockSummary":
        return cls(
            height=require_int(block["Height"], "Height"),
            hash=block["Hash"],
            producer=block.get("BlockProducer"),
            tx_count=_tx_count(block.get("Txs")),
            fee=block.get("Fee") or 0,
            reward=block.get("Reward") or 0,
            time=block.get("Time"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ChainBlocks:
    name: str
    index: int
    total_blocks: int | None = None
    producer: str | None = None
    blocks: list[BlockSummary] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "index": self.index,
            "total_blocks": self.total_blocks,
            "producer": self.producer,
            "blocks": [block.to_dict() for block in self.blocks],
        }
