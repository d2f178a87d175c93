"""Persisted list of registered node endpoints."""

from __future__ import annotations

import json
import logging
import shutil
import threading
from pathlib import Path

from incognito_monitor.errors import DuplicateNodeError, NotFoundError, PersistenceError
from incognito_monitor.models import NodeEndpoint

logger = logging.getLogger(__name__)


def _parse_nodes(text: str, source: Path) -> list[NodeEndpoint]:
    try:
        raw = json.loads(text or "[]")
    except json.JSONDecodeError as exc:
        raise PersistenceError(f"{source} is not valid JSON: {exc}") from exc
    if not isinstance(raw, list):
        raise PersistenceError(f"{source} must hold a JSON array of nodes")
    try:
        return [NodeEndpoint.from_dict(item) for item in raw]
    except ValueError as exc:
        raise PersistenceError(f"{source}: {exc}") from exc


class NodeStore:
    """JSON array of ``{name, host, port}`` objects kept in a single file.

    The file is seeded from the bundled sample the first time it is needed.
    """

    def __init__(self, data_path: str | Path, sample_path: str | Path) -> None:
        self.data_path = Path(data_path)
        self.sample_path = Path(sample_path)
        self._lock = threading.RLock()

    def _ensure_record(self) -> None:
        if self.data_path.exists():
            return
        logger.debug("Data file %s does not exist, seeding from %s", self.data_path, self.sample_path)
        try:
            self.data_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(self.sample_path, self.data_path)
        except OSError as exc:
            raise PersistenceError(f"Unable to create {self.data_path}: {exc}") from exc

    def _read(self) -> list[NodeEndpoint]:
        self._ensure_record()
        try:
            text = self.data_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise PersistenceError(f"Unable to read {self.data_path}: {exc}") from exc
        return _parse_nodes(text, self.data_path)

    def _write(self, nodes: list[NodeEndpoint]) -> None:
        payload = json.dumps([node.to_dict() for node in nodes], indent=4)
        try:
            self.data_path.parent.mkdir(parents=True, exist_ok=True)
            self.data_path.write_text(payload, encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Unable to write {self.data_path}: {exc}") from exc

    def list(self) -> list[NodeEndpoint]:
        with self._lock:
            return self._read()

    def get(self, name: str) -> NodeEndpoint:
        for node in self.list():
            if node.name == name:
                return node
        raise NotFoundError(name)

    def add(self, endpoint: NodeEndpoint) -> NodeEndpoint:
        with self._lock:
            nodes = self._read()
            if any(node.name == endpoint.name for node in nodes):
                raise DuplicateNodeError(endpoint.name)
            self._write([*nodes, endpoint])
        logger.info("Added node %s (%s:%s)", endpoint.name, endpoint.host, endpoint.port)
        return endpoint

    def remove(self, name: str) -> int:
        """Remove every node called ``name``. Returns how many were removed."""
        with self._lock:
            nodes = self._read()
            kept = [node for node in nodes if node.name != name]
            removed = len(nodes) - len(kept)
            if removed:
                self._write(kept)
        if removed:
            logger.info("Deleted node %s", name)
        else:
            logger.debug("Delete of %s skipped, not registered", name)
        return removed

    def export(self, destination: str | Path | None) -> bool:
        """Copy the record to ``destination``. Returns False when no destination was chosen."""
        if not destination:
            return False
        with self._lock:
            self._ensure_record()
            try:
                shutil.copyfile(self.data_path, destination)
            except OSError as exc:
                raise PersistenceError(f"Unable to export to {destination}: {exc}") from exc
        logger.debug("Export to %s success", destination)
        return True

    def import_(self, source: str | Path | None) -> bool:
        """Replace the record with ``source``. Returns False when no source was chosen."""
        if not source:
            return False
        source = Path(source)
        try:
            text = source.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise PersistenceError(f"Unable to read {source}: {exc}") from exc
        # Refuse a file the store could not read back.
        _parse_nodes(text, source)
        with self._lock:
            try:
                self.data_path.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(source, self.data_path)
            except OSError as exc:
                raise PersistenceError(f"Unable to import {source}: {exc}") from exc
        logger.debug("Import from %s success", source)
        return True
