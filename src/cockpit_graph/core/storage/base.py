"""Host store abstraction for Cockpit Graph.

Defines the :class:`NodeStore` protocol that every concrete store
(in-memory, KuzuDB) must satisfy.  The sync engine only ever talks to this
interface: it declares nodes, links parents to children, revalidates cached
nodes, reads and writes the change-detection cache, and asks the store to
materialize remote binaries.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

@runtime_checkable
class NodeStore(Protocol):
    """Protocol that every Cockpit Graph store must implement.

    Relation fields (``*___NODE``) may reference ids that are declared later
    in the same pass, or that were only touched.
    """

    def begin_pass(self) -> None:
        """Start a sync pass; nodes not created or touched before
        :meth:`finish_pass` are considered stale."""
        ...

    def finish_pass(self) -> int:
        """End the pass and drop stale nodes.

        Cache records naming a dropped node are deleted with it.

        Returns:
            The number of nodes removed.
        """
        ...

    def has_node(self, node_id: str) -> bool:
        """Return whether *node_id* is currently stored."""
        ...

    def create_node(self, record: dict[str, Any]) -> None:
        """Declare (or re-declare) a fully-formed node record."""
        ...

    def create_parent_child_link(self, parent_id: str, child_id: str) -> None:
        """Record that *parent_id* owns *child_id*."""
        ...

    def touch_node(self, node_id: str) -> None:
        """Keep a node from a previous pass alive without recreating it."""
        ...

    def cache_get(self, key: str) -> dict[str, Any] | None:
        """Return the cached value under *key*, or ``None``."""
        ...

    def cache_set(self, key: str, value: dict[str, Any]) -> None:
        """Persist *value* under *key* across passes."""
        ...

    def materialize_remote_file(self, url: str) -> str:
        """Download *url*, register it as a file node and return its id."""
        ...

    def close(self) -> None:
        """Release resources held by the store."""
        ...
