"""In-memory store for Cockpit Graph.

Keeps records, parent/child links and the cache in plain dicts.  Files are
registered by URL without being downloaded.  Used for dry runs and tests;
reusing one instance across passes exercises the change-detection cache.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from cockpit_graph.core.graph.model import generate_node_id, node_type_name

logger = logging.getLogger(__name__)

class MemoryStore:
    """NodeStore implementation backed by dicts."""

    def __init__(self, type_prefix: str = "Cockpit") -> None:
        self.type_prefix = type_prefix
        self.nodes: dict[str, dict[str, Any]] = {}
        self.links: list[tuple[str, str]] = []
        self.cache: dict[str, dict[str, Any]] = {}
        self.files: dict[str, str] = {}

        self.created: list[str] = []
        self.touched: list[str] = []
        self.downloads: list[str] = []
        self._live: set[str] = set()

    def begin_pass(self) -> None:
        self.created = []
        self.touched = []
        self.downloads = []
        self._live = set()

    def finish_pass(self) -> int:
        stale = [node_id for node_id in self.nodes if node_id not in self._live]
        for node_id in stale:
            del self.nodes[node_id]
        if stale:
            live = set(self.nodes)
            gone = set(stale)
            self.links = [(p, c) for p, c in self.links if p in live and c in live]
            self.files = {url: fid for url, fid in self.files.items() if fid in live}
            self.cache = {
                key: value
                for key, value in self.cache.items()
                if not gone.intersection(value.get("node_ids") or [])
            }
        return len(stale)

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def create_node(self, record: dict[str, Any]) -> None:
        node_id = record["id"]
        self.nodes[node_id] = copy.deepcopy(record)
        self.created.append(node_id)
        self._live.add(node_id)

    def create_parent_child_link(self, parent_id: str, child_id: str) -> None:
        link = (parent_id, child_id)
        if link not in self.links:
            self.links.append(link)

    def touch_node(self, node_id: str) -> None:
        if node_id not in self.nodes:
            logger.debug("Touching unknown node %s", node_id)
            return
        self.touched.append(node_id)
        self._live.add(node_id)

    def cache_get(self, key: str) -> dict[str, Any] | None:
        value = self.cache.get(key)
        return copy.deepcopy(value) if value is not None else None

    def cache_set(self, key: str, value: dict[str, Any]) -> None:
        self.cache[key] = copy.deepcopy(value)

    def materialize_remote_file(self, url: str) -> str:
        file_id = generate_node_id(node_type_name(self.type_prefix, "file"), url)
        self.downloads.append(url)
        self.files[url] = file_id
        self.create_node(
            {
                "id": file_id,
                "parent": None,
                "children": [],
                "url": url,
                "internal": {"type": node_type_name(self.type_prefix, "file")},
            }
        )
        return file_id

    def close(self) -> None:
        """Nothing to release."""
