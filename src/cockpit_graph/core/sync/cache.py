"""Change-detection cache gate for Cockpit Graph.

Entries and assets carry a remote ``_modified`` / ``modified`` timestamp.
Before recomputing one, the gate compares that timestamp with the one stored
on the previous pass.  On a match every node produced last time is touched
so the host store keeps it, and the computation is skipped entirely.

Stored value shape::

    {"modified": <timestamp>, "variant": <any>, "node_ids": [...], "root_ids": [...]}

``root_ids`` are the nodes owned directly by a type list node (entry nodes
for entries, the file node for assets); ``node_ids`` is the complete set.
``variant`` captures the configuration the nodes were built under (the
language set for entries); a different variant is a miss.  So is a record
listing any node the store no longer holds.

Fresh records are staged and only written by :meth:`CacheGate.flush`, once the
nodes they name have been committed.  A pass that fails halfway leaves the
cache as it was.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from cockpit_graph.core.storage.base import NodeStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

ASSET_CACHE_TYPE = "Asset"

def entry_cache_key(type_prefix: str, type_name: str, node_id: str) -> str:
    return f"{type_prefix}:{type_name}:{node_id}"

def asset_cache_key(type_prefix: str, asset_id: str) -> str:
    return f"{type_prefix}:{ASSET_CACHE_TYPE}:{asset_id}"

@dataclass
class Computed(Generic[T]):
    """What a compute function hands back to the gate."""

    value: T
    node_ids: list[str]
    root_ids: list[str]

@dataclass
class GateResult(Generic[T]):
    """Outcome of :meth:`CacheGate.get_or_compute`.

    ``value`` is ``None`` on a hit: nothing was recomputed.
    """

    hit: bool
    node_ids: list[str] = field(default_factory=list)
    root_ids: list[str] = field(default_factory=list)
    value: T | None = None

class CacheGate:
    """Get-or-compute with revalidation against a :class:`NodeStore` cache."""

    def __init__(self, store: NodeStore) -> None:
        self._store = store
        self._pending: dict[str, dict[str, Any]] = {}
        self.hits = 0
        self.misses = 0

    def lookup(self, key: str, modified: Any, variant: Any = None) -> dict[str, Any] | None:
        """Return the cached record for *key* if it is still fresh."""
        if modified is None:
            return None
        record = self._store.cache_get(key)
        if not isinstance(record, dict) or record.get("modified") != modified:
            return None
        if record.get("variant") != variant:
            logger.debug("Cache record %s was built under another configuration", key)
            return None
        node_ids = record.get("node_ids")
        if not node_ids:
            return None
        missing = [node_id for node_id in node_ids if not self._store.has_node(node_id)]
        if missing:
            logger.debug("Cache record %s lists %d missing nodes", key, len(missing))
            return None
        return record

    def get_or_compute(
        self,
        key: str,
        modified: Any,
        compute: Callable[[], Computed[T]],
        variant: Any = None,
    ) -> GateResult[T]:
        """Revalidate the nodes cached under *key*, or run *compute*.

        Sources without a *modified* timestamp are always recomputed and
        never cached.  *variant* must be JSON-shaped (lists, not tuples) so
        that it compares equal after a round trip through the store.
        """
        record = self.lookup(key, modified, variant)
        if record is not None:
            node_ids = list(record.get("node_ids") or [])
            for node_id in node_ids:
                self._store.touch_node(node_id)
            self.hits += 1
            logger.debug("Cache hit for %s (%d nodes touched)", key, len(node_ids))
            return GateResult(
                hit=True,
                node_ids=node_ids,
                root_ids=list(record.get("root_ids") or node_ids),
            )

        computed = compute()
        self.misses += 1
        if modified is not None:
            self._pending[key] = {
                "modified": modified,
                "variant": variant,
                "node_ids": list(computed.node_ids),
                "root_ids": list(computed.root_ids),
            }
        return GateResult(
            hit=False,
            node_ids=list(computed.node_ids),
            root_ids=list(computed.root_ids),
            value=computed.value,
        )

    def flush(self) -> int:
        """Write every staged record to the store and return how many."""
        for key, value in self._pending.items():
            self._store.cache_set(key, value)
        count = len(self._pending)
        self._pending.clear()
        return count
