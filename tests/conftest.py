"""
Shared fixtures: a node store on a temporary directory and fake RPC nodes.
"""

import json
import time

import pytest

from incognito_monitor.errors import RpcError
from incognito_monitor.services.aggregator import StatusAggregator
from incognito_monitor.services.store import NodeStore


class FakeRpc:
    """Stands in for RpcClient; ``fail`` names the RPC methods that raise."""

    def __init__(
        self,
        beacon_height=100,
        shard_heights=(50, 60),
        block_count=1234,
        blocks=None,
        block=None,
        fail=(),
        delay=0.0,
    ):
        self.beacon_height = beacon_height
        self.shard_heights = list(shard_heights)
        self.block_count = block_count
        self.blocks = blocks or []
        self.block = block
        self.fail = set(fail)
        self.delay = delay
        self.calls = []

    def _check(self, method, *args):
        self.calls.append((method, args))
        if self.delay:
            time.sleep(self.delay)
        if method in self.fail:
            raise RpcError(method, "connection refused")

    def get_network_info(self):
        self._check("getnetworkinfo")
        return {"Version": "incognito/1.0"}

    def get_block_count(self, shard_index):
        self._check("getblockcount", shard_index)
        return self.block_count

    def get_beacon_best_state(self):
        self._check("getbeaconbeststate")
        return {
            "BeaconHeight": self.beacon_height,
            "BestBlockHash": "beaconhash",
            "Epoch": 7,
            "ActiveShards": len(self.shard_heights),
        }

    def get_shard_best_state(self, shard_index):
        self._check("getshardbeststate", shard_index)
        if f"getshardbeststate:{shard_index}" in self.fail:
            raise RpcError("getshardbeststate", "shard unavailable")
        return {
            "ShardHeight": self.shard_heights[shard_index],
            "BestBlockHash": f"shardhash{shard_index}",
            "Epoch": 7,
            "TotalTxns": 10 * (shard_index + 1),
        }

    def get_blocks(self, count, shard_index):
        self._check("getblocks", count, shard_index)
        return self.blocks[:count]

    def retrieve_block(self, block_hash, verbosity=1):
        self._check("retrieveblock", block_hash, verbosity)
        return self.block


def write_nodes(path, nodes):
    path.write_text(json.dumps(nodes, indent=4))
    return path


@pytest.fixture
def sample_file(tmp_path):
    return write_nodes(tmp_path / "nodes.sample.json", [{"name": "A", "host": "h1", "port": 1}])


@pytest.fixture
def store(tmp_path, sample_file):
    return NodeStore(tmp_path / "data" / "incognito-data", sample_file)


@pytest.fixture
def fake_nodes():
    """Name -> FakeRpc; tests register the nodes they need."""
    return {}


@pytest.fixture
def aggregator(store, fake_nodes):
    return StatusAggregator(
        store,
        client_factory=lambda endpoint: fake_nodes[endpoint.name],
        call_deadline=2.0,
        block_count=10,
    )
