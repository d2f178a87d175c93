from datetime import datetime
from typing import Any

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widgets import DataTable, Footer, Header, Input, Static
from rich.text import Text

from incognito_monitor import __version__
from incognito_monitor.config import Settings
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
    CommandDispatcher,
    Reply,
)
from incognito_monitor.formatting import format_number, format_optional, format_time, short_hash
from incognito_monitor.logging_setup import setup_logging
from incognito_monitor.services.aggregator import StatusAggregator
from incognito_monitor.services.rpc import RpcClient
from incognito_monitor.services.store import NodeStore


class StatusBar(Static):
    def __init__(self) -> None:
        super().__init__()
        self.online = 0
        self.total = 0
        self.last_update = "-"
        self.message = ""

    def render(self) -> str:
        return (
            f"Nodes: {self.online}/{self.total} online | Updated: {self.last_update}"
            f"{' | ' + self.message if self.message else ''}"
        )


class CardPanel(Static):
    def __init__(self, title: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.border_title = title
        self.lines: list[str] = []
        self.add_class("card")

    def update_lines(self, lines: list[str]) -> None:
        self.lines = lines
        self.update("\n".join(lines) if lines else "-")


def parse_node_input(text: str) -> dict[str, Any]:
    """``"name host port"``; the name may contain spaces, host and port are the last two words."""
    parts = text.strip().split()
    if len(parts) < 3:
        raise ValueError("Expected: <name> <host> <port>")
    return {"name": " ".join(parts[:-2]), "host": parts[-2], "port": parts[-1]}


class IncognitoMonitorApp(App):
    TITLE = "Incognito Monitor"
    SUB_TITLE = f"v{__version__}"

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh_nodes", "Refresh"),
        ("a", "focus_add", "Add"),
        ("d", "delete_node", "Delete"),
        ("e", "export_nodes", "Export"),
        ("i", "import_nodes", "Import"),
    ]

    CSS = """
    #body {
        layout: vertical;
        height: 1fr;
    }
    #nodes-table {
        height: 1fr;
    }
    #detail-row {
        height: 2fr;
    }
    #chains-table, #blocks-table {
        width: 1fr;
    }
    .card {
        border: round $primary;
        padding: 0 1;
    }
    #block-detail {
        width: 40;
    }
    #path-input {
        display: none;
    }
    #path-input.visible {
        display: block;
    }
    """

    def __init__(self, dispatcher: CommandDispatcher, refresh_interval: float = 30.0) -> None:
        super().__init__()
        self.dispatcher = dispatcher
        self.dispatcher.chooser = self._choose_path
        self.refresh_interval = refresh_interval
        self.status_bar = StatusBar()
        self.block_detail = CardPanel("Block", id="block-detail")
        # nodes-table row key -> node name
        self._row_names: dict[str, str] = {}
        self._selected_node: str | None = None
        self._path_command: str | None = None
        self._chosen_path: str | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        with Container(id="body"):
            yield DataTable(id="nodes-table", cursor_type="row")
            with Horizontal(id="detail-row"):
                yield DataTable(id="chains-table", cursor_type="row")
                yield DataTable(id="blocks-table", cursor_type="row")
                yield self.block_detail
            yield Input(placeholder="Add node: <name> <host> <port>", id="add-input")
            yield Input(placeholder="File path (empty to cancel)", id="path-input")
        yield self.status_bar
        yield Footer()

    async def on_mount(self) -> None:
        self.query_one("#nodes-table", DataTable).add_columns(
            "Name", "Host", "Port", "Status", "Total blocks", "Beacon height"
        )
        self.query_one("#chains-table", DataTable).add_columns("Chain", "Height", "Epoch", "Txs", "Hash")
        self.query_one("#blocks-table", DataTable).add_columns(
            "Height", "Hash", "Producer", "Txs", "Fee", "Reward", "Time"
        )
        self.block_detail.update_lines([])
        self.set_timer(0.1, self.refresh_nodes)
        self.set_timer(1.0, lambda: self.set_interval(self.refresh_interval, self.refresh_nodes))

    def _choose_path(self, command: str) -> str | None:
        return self._chosen_path if command == self._path_command else None

    def _on_reply(self, command: str, reply: Reply) -> None:
        if not reply.ok:
            self.notify(f"{command}: {reply.error}", severity="error", timeout=6)
            return
        if command == GET_NODES:
            self.render_nodes(reply.value)
        elif command == ADD_NODE:
            self.append_node(reply.value)
        elif command == DELETE_NODE:
            self.remove_node(reply.value)
        elif command == GET_CHAINS:
            self.render_chains(reply.value)
        elif command == GET_BLOCKS:
            self.render_blocks(reply.value)
        elif command == GET_BLOCK:
            self.render_block(reply.value)

    async def refresh_nodes(self) -> None:
        self.status_bar.message = "Refreshing..."
        self.status_bar.refresh()
        await self.dispatcher.dispatch(GET_NODES, reply=self._on_reply)

    @staticmethod
    def _node_row(node: dict[str, Any]) -> tuple[Any, ...]:
        style = "bold green" if node["status"] == "ONLINE" else "bold red"
        return (
            node["name"],
            node["host"],
            str(node["port"]),
            Text(node["status"], style=style),
            format_optional(node.get("total_blocks")),
            format_optional(node.get("beacon_height")),
        )

    def _add_node_row(self, table: DataTable, node: dict[str, Any]) -> None:
        # A hand-edited record may repeat a name; row keys must stay unique.
        key = node["name"]
        suffix = 2
        while key in self._row_names:
            key = f"{node['name']}#{suffix}"
            suffix += 1
        self._row_names[key] = node["name"]
        table.add_row(*self._node_row(node), key=key)

    def render_nodes(self, nodes: list[dict[str, Any]]) -> None:
        table = self.query_one("#nodes-table", DataTable)
        table.clear()
        self._row_names.clear()
        duplicates = set()
        for node in nodes:
            if node["name"] in self._row_names.values():
                duplicates.add(node["name"])
            self._add_node_row(table, node)
        if duplicates:
            self.notify(f"Duplicate node names: {', '.join(sorted(duplicates))}", severity="warning")
        self.status_bar.total = len(nodes)
        self.status_bar.online = sum(1 for node in nodes if node["status"] == "ONLINE")
        self.status_bar.last_update = datetime.now().strftime("%I:%M:%S %p")
        self.status_bar.message = ""
        self.status_bar.refresh()

    def append_node(self, node: dict[str, Any]) -> None:
        self._add_node_row(self.query_one("#nodes-table", DataTable), node)
        self.status_bar.total += 1
        if node["status"] == "ONLINE":
            self.status_bar.online += 1
        self.status_bar.refresh()
        self.notify(f"Added {node['name']} ({node['status']})")

    def remove_node(self, name: str) -> None:
        table = self.query_one("#nodes-table", DataTable)
        for key in [key for key, row_name in self._row_names.items() if row_name == name]:
            table.remove_row(key)
            del self._row_names[key]
        if self._selected_node == name:
            self._selected_node = None
            self._clear_detail()
        self.notify(f"Deleted {name}")

    def render_chains(self, data: dict[str, Any]) -> None:
        table = self.query_one("#chains-table", DataTable)
        table.clear()
        self.query_one("#blocks-table", DataTable).clear()
        chains = data.get("chains") or []
        for chain in chains:
            table.add_row(
                chain["name"],
                format_number(chain["height"]),
                format_number(chain["epoch"]),
                format_optional(chain.get("total_txs")),
                short_hash(chain["hash"]),
                key=str(chain["index"]),
            )
        if not chains:
            self.notify(f"No chain data for {data.get('name')}", severity="warning")

    def render_blocks(self, data: dict[str, Any]) -> None:
        table = self.query_one("#blocks-table", DataTable)
        table.clear()
        for block in data.get("blocks") or []:
            table.add_row(
                format_number(block["height"]),
                short_hash(block["hash"], 8),
                short_hash(block.get("producer"), 6),
                format_number(block["tx_count"]),
                format_number(block["fee"]),
                format_number(block["reward"]),
                format_time(block.get("time")),
                key=block["hash"],
            )
        self.block_detail.border_title = (
            f"{data['name']} | {format_optional(data.get('total_blocks'))} blocks"
        )

    def render_block(self, block: dict[str, Any]) -> None:
        self.block_detail.update_lines(
            [
                f"Height: {format_number(block['height'])}",
                f"Hash: {block['hash']}",
                f"Producer: {block.get('producer') or '-'}",
                f"Txs: {format_number(block['tx_count'])}",
                f"Fee: {format_number(block['fee'])}",
                f"Reward: {format_number(block['reward'])}",
            ]
        )

    def _clear_detail(self) -> None:
        self.query_one("#chains-table", DataTable).clear()
        self.query_one("#blocks-table", DataTable).clear()
        self.block_detail.update_lines([])

    async def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        if event.data_table.id == "nodes-table" and event.row_key is not None:
            self._selected_node = self._row_names.get(event.row_key.value)

    async def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        key = event.row_key.value
        table_id = event.data_table.id
        if table_id == "nodes-table":
            self._selected_node = self._row_names.get(key)
            self._clear_detail()
            if self._selected_node is None:
                return
            await self.dispatcher.dispatch(GET_CHAINS, self._selected_node, reply=self._on_reply)
        elif table_id == "chains-table" and self._selected_node:
            payload = {"name": self._selected_node, "shard_id": int(key)}
            await self.dispatcher.dispatch(GET_BLOCKS, payload, reply=self._on_reply)
        elif table_id == "blocks-table" and self._selected_node:
            payload = {"name": self._selected_node, "hash": key}
            await self.dispatcher.dispatch(GET_BLOCK, payload, reply=self._on_reply)

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "add-input":
            try:
                payload = parse_node_input(event.value)
            except ValueError as exc:
                self.notify(str(exc), severity="error")
                return
            event.input.value = ""
            await self.dispatcher.dispatch(ADD_NODE, payload, reply=self._on_reply)
        elif event.input.id == "path-input":
            await self._finish_path_command(event.value)

    def action_focus_add(self) -> None:
        self.query_one("#add-input", Input).focus()

    async def action_delete_node(self) -> None:
        if not self._selected_node:
            self.notify("Select a node first", severity="warning")
            return
        await self.dispatcher.dispatch(DELETE_NODE, self._selected_node, reply=self._on_reply)

    async def action_refresh_nodes(self) -> None:
        await self.refresh_nodes()

    def _ask_path(self, command: str) -> None:
        self._path_command = command
        path_input = self.query_one("#path-input", Input)
        path_input.value = ""
        path_input.add_class("visible")
        path_input.focus()

    def action_export_nodes(self) -> None:
        self._ask_path(EXPORT_NODES)

    def action_import_nodes(self) -> None:
        self._ask_path(IMPORT_NODES)

    async def _finish_path_command(self, value: str) -> None:
        command = self._path_command
        self.query_one("#path-input", Input).remove_class("visible")
        if command is None:
            return
        self._chosen_path = value.strip() or None
        try:
            reply = await self.dispatcher.dispatch(command)
        finally:
            self._path_command = None
            self._chosen_path = None
        if not reply.ok:
            self.notify(f"{command}: {reply.error}", severity="error")
            return
        if reply.value == CANCEL:
            self.notify(f"{command} cancelled", severity="warning")
            return
        self.notify(f"{command} {reply.value}")
        if command == IMPORT_NODES:
            await self.refresh_nodes()


def build_dispatcher(settings: Settings) -> CommandDispatcher:
    store = NodeStore(settings.data_path, settings.sample_path)

    def client_factory(endpoint):
        return RpcClient.for_endpoint(endpoint, scheme=settings.rpc_scheme, timeout=settings.rpc_timeout)

    aggregator = StatusAggregator(
        store,
        client_factory=client_factory,
        call_deadline=settings.call_deadline,
        block_count=settings.block_count,
    )
    return CommandDispatcher(store, aggregator)


def run() -> None:
    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_file)
    IncognitoMonitorApp(build_dispatcher(settings), refresh_interval=settings.refresh_interval).run()
