"""In-memory content graph for Cockpit Graph.

Provides a lightweight, dict-backed graph that stores :class:`ContentNode`
and :class:`GraphRelationship` instances with O(1) lookups by ID.  Secondary
indexes on node kind and relationship type keep queries
proportional to the *result* set rather than the total graph size.

Insertion order is preserved everywhere: the emission driver commits nodes
in the order they were added, which keeps passes deterministic.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterator

from cockpit_graph.core.graph.model import (
    ContentNode,
    GraphRelationship,
    NodeKind,
    RelType,
)

class ContentGraph:
    """An in-memory directed graph of content nodes and their relationships."""

    def __init__(self) -> None:
        self._nodes: dict[str, ContentNode] = {}
        self._relationships: dict[str, GraphRelationship] = {}

        # Secondary indexes, kept in sync by the add helpers.
        self._by_kind: dict[NodeKind, dict[str, ContentNode]] = defaultdict(dict)
        self._by_rel_type: dict[RelType, dict[str, GraphRelationship]] = defaultdict(dict)

    def iter_nodes(self) -> Iterator[ContentNode]:
        """Yield all nodes in insertion order."""
        return iter(self._nodes.values())

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def relationship_count(self) -> int:
        return len(self._relationships)

    def count_nodes_by_kind(self, kind: NodeKind) -> int:
        """Return the count of nodes of *kind* without list materialization."""
        return len(self._by_kind.get(kind, {}))

    def add_node(self, node: ContentNode) -> None:
        """Add *node* to the graph, replacing any existing node with the same id."""
        old = self._nodes.get(node.id)
        if old is not None and old.kind != node.kind:
            self._by_kind[old.kind].pop(node.id, None)
        self._nodes[node.id] = node
        self._by_kind[node.kind][node.id] = node

    def get_node(self, node_id: str) -> ContentNode | None:
        """Return the node with *node_id*, or ``None`` if it does not exist."""
        return self._nodes.get(node_id)

    def add_relationship(self, rel: GraphRelationship) -> None:
        """Add *rel* to the graph, replacing any existing relationship with the same id.

        Endpoints are not required to exist: entries revalidated from the
        cache are owned by their type node without being rebuilt.
        """
        old = self._relationships.get(rel.id)
        if old is not None:
            self._by_rel_type[old.type].pop(rel.id, None)
        self._relationships[rel.id] = rel
        self._by_rel_type[rel.type][rel.id] = rel

    def add_child(self, parent_id: str, child_id: str) -> None:
        """Record a CONTAINS edge from *parent_id* to *child_id*."""
        self.add_relationship(
            GraphRelationship(
                id=f"contains:{parent_id}->{child_id}",
                type=RelType.CONTAINS,
                source=parent_id,
                target=child_id,
            )
        )

    def get_nodes_by_kind(self, kind: NodeKind) -> list[ContentNode]:
        """Return all nodes whose kind matches *kind*."""
        return list(self._by_kind.get(kind, {}).values())

    def get_relationships_by_type(self, rel_type: RelType) -> list[GraphRelationship]:
        """Return all relationships whose type matches *rel_type*."""
        return list(self._by_rel_type.get(rel_type, {}).values())
