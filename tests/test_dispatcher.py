import pytest

from incognito_monitor.dispatcher import (
    ADD_NODE,
    CANCEL,
    DELETE_NODE,
    EXPORT_NODES,
    GET_BLOCK,
    GET_BLOCKS,
    GET_CHAINS,
    GET_NODES,
    IMPORT_NODES,
    SUCCESS,
    CommandDispatcher,
)
from incognito_monitor.errors import UnknownCommandError

from conftest import FakeRpc


@pytest.fixture
def chosen():
    return {}


@pytest.fixture
def dispatcher(store, aggregator, chosen):
    return CommandDispatcher(store, aggregator, chooser=lambda command: chosen.get(command))


def test_routes_every_command(dispatcher):
    assert set(dispatcher.commands) == {
        ADD_NODE,
        DELETE_NODE,
        GET_NODES,
        EXPORT_NODES,
        IMPORT_NODES,
        GET_CHAINS,
        GET_BLOCKS,
        GET_BLOCK,
    }


@pytest.mark.asyncio
async def test_unknown_command(dispatcher):
    with pytest.raises(UnknownCommandError):
        await dispatcher.dispatch("reboot-node")


@pytest.mark.asyncio
async def test_get_nodes_replies_through_callback(dispatcher, fake_nodes):
    fake_nodes["A"] = FakeRpc(beacon_height=100, block_count=7)
    received = []

    reply = await dispatcher.dispatch(GET_NODES, reply=lambda command, r: received.append((command, r)))

    assert received == [(GET_NODES, reply)]
    assert reply.ok
    assert reply.value == [
        {
            "name": "A",
            "host": "h1",
            "port": 1,
            "status": "ONLINE",
            "total_blocks": 7,
            "beacon_height": 100,
        }
    ]


@pytest.mark.asyncio
async def test_add_node_returns_status_and_appends(dispatcher, fake_nodes, store):
    fake_nodes["B"] = FakeRpc(fail=["getnetworkinfo"])

    reply = await dispatcher.dispatch(ADD_NODE, {"name": "B", "host": "h2", "port": "2"})

    assert reply.ok
    assert reply.value["status"] == "OFFLINE"
    assert reply.value["port"] == 2
    assert [node.name for node in store.list()] == ["A", "B"]


@pytest.mark.asyncio
async def test_add_duplicate_node_is_error_reply(dispatcher, store):
    reply = await dispatcher.dispatch(ADD_NODE, {"name": "A", "host": "h9", "port": 9})

    assert not reply.ok
    assert "already exists" in reply.error
    assert len(store.list()) == 1


@pytest.mark.asyncio
async def test_add_invalid_node_is_error_reply(dispatcher):
    reply = await dispatcher.dispatch(ADD_NODE, {"name": "B", "host": "h2", "port": "http"})

    assert not reply.ok


@pytest.mark.asyncio
async def test_delete_node_echoes_name(dispatcher, store):
    reply = await dispatcher.dispatch(DELETE_NODE, "A")
    assert reply.value == "A"
    assert store.list() == []

    reply = await dispatcher.dispatch(DELETE_NODE, "A")
    assert reply.ok
    assert reply.value == "A"


@pytest.mark.asyncio
async def test_get_chains(dispatcher, fake_nodes):
    fake_nodes["A"] = FakeRpc(shard_heights=(50,))

    reply = await dispatcher.dispatch(GET_CHAINS, "A")

    assert reply.ok
    assert [chain["index"] for chain in reply.value["chains"]] == [-1, 0]
    assert reply.value["status"] == "ONLINE"


@pytest.mark.asyncio
async def test_get_chains_degraded(dispatcher, fake_nodes):
    fake_nodes["A"] = FakeRpc(fail=["getbeaconbeststate"])

    reply = await dispatcher.dispatch(GET_CHAINS, "A")

    assert reply.ok
    assert reply.value == {"chains": [], "name": "A"}


@pytest.mark.asyncio
async def test_get_blocks_failure_becomes_error_reply(dispatcher, fake_nodes):
    fake_nodes["A"] = FakeRpc(fail=["getblocks"])

    reply = await dispatcher.dispatch(GET_BLOCKS, {"name": "A", "shard_id": 0})

    assert not reply.ok
    assert "getblocks" in reply.error


@pytest.mark.asyncio
async def test_get_blocks(dispatcher, fake_nodes):
    fake_nodes["A"] = FakeRpc(blocks=[{"Height": 4, "Hash": "h4", "BlockProducer": "p"}])

    reply = await dispatcher.dispatch(GET_BLOCKS, {"name": "A", "shard_id": "-1"})

    assert reply.value["name"] == "Beacon"
    assert reply.value["total_blocks"] == 4
    assert reply.value["blocks"][0]["tx_count"] == 0


@pytest.mark.asyncio
async def test_get_block(dispatcher, fake_nodes):
    fake_nodes["A"] = FakeRpc(block={"Height": 4, "Hash": "h4", "BlockProducer": "p", "Txs": 2})

    reply = await dispatcher.dispatch(GET_BLOCK, {"name": "A", "hash": "h4"})

    assert reply.value["hash"] == "h4"
    assert reply.value["tx_count"] == 2


@pytest.mark.asyncio
async def test_get_block_unknown_node(dispatcher):
    reply = await dispatcher.dispatch(GET_BLOCK, {"name": "nobody", "hash": "h4"})

    assert not reply.ok


def test_export_cancel_and_success(dispatcher, chosen, tmp_path, store):
    assert dispatcher.dispatch_sync(EXPORT_NODES) == CANCEL

    chosen[EXPORT_NODES] = str(tmp_path / "out.json")
    assert dispatcher.dispatch_sync(EXPORT_NODES) == SUCCESS
    assert (tmp_path / "out.json").read_bytes() == store.data_path.read_bytes()


@pytest.mark.asyncio
async def test_import_through_dispatch(dispatcher, chosen, tmp_path, store):
    source = tmp_path / "in.json"
    source.write_text('[{"name": "Z", "host": "hz", "port": 26}]')

    reply = await dispatcher.dispatch(IMPORT_NODES)
    assert reply.value == CANCEL

    chosen[IMPORT_NODES] = str(source)
    reply = await dispatcher.dispatch(IMPORT_NODES)
    assert reply.value == SUCCESS
    assert [node.name for node in store.list()] == ["Z"]


def test_sync_form_only_for_file_commands(dispatcher):
    with pytest.raises(UnknownCommandError):
        dispatcher.dispatch_sync(GET_NODES)


@pytest.mark.asyncio
async def test_get_blocks_with_null_height_is_error_reply(dispatcher, fake_nodes):
    fake_nodes["A"] = FakeRpc(
        blocks=[{"Height": None, "Hash": "h0"}, {"Height": 3, "Hash": "h3", "BlockProducer": "p"}]
    )

    reply = await dispatcher.dispatch(GET_BLOCKS, {"name": "A", "shard_id": 0})

    assert not reply.ok
    assert "Height" in reply.error


@pytest.mark.asyncio
@pytest.mark.parametrize("command", [GET_BLOCKS, GET_BLOCK])
@pytest.mark.parametrize("payload", ["A", ["A", 0], None])
async def test_block_commands_reject_non_mapping_payload(dispatcher, command, payload):
    received = []

    reply = await dispatcher.dispatch(command, payload, reply=lambda c, r: received.append(r))

    assert not reply.ok
    assert command in reply.error
    assert received == [reply]
