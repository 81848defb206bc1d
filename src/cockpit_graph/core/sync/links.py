"""Forward-link accumulation and reverse-link resolution for Cockpit Graph.

Each freshly transformed entry returns its own :class:`LinkTable` fragment;
the driver merges fragments in processing order.  Once every entry of the
pass has been processed, :func:`resolve_reverse_links` walks the merged
table and appends ``<relation>_set`` relations onto the target nodes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from cockpit_graph.core.graph.graph import ContentGraph
from cockpit_graph.core.graph.model import GraphRelationship, RelType

logger = logging.getLogger(__name__)

REVERSE_SUFFIX = "_set"

class LinkTable:
    """Mapping of target node id to ordered ``(relation, source id)`` pairs."""

    def __init__(self) -> None:
        self._links: dict[str, list[tuple[str, str]]] = {}

    def __len__(self) -> int:
        return sum(len(pairs) for pairs in self._links.values())

    def __contains__(self, target_id: object) -> bool:
        return target_id in self._links

    def __iter__(self) -> Iterator[str]:
        return iter(self._links)

    def get(self, target_id: str) -> list[tuple[str, str]]:
        return list(self._links.get(target_id, []))

    def items(self) -> Iterator[tuple[str, list[tuple[str, str]]]]:
        return iter(self._links.items())

    def record(self, relation: str, source_id: str, targets: Iterable[str]) -> None:
        """Record that *source_id* points at every id in *targets*."""
        for target_id in targets:
            self._links.setdefault(target_id, []).append((relation, source_id))

    def merge(self, other: LinkTable) -> LinkTable:
        """Append every pair of *other* after the pairs already held."""
        for target_id, pairs in other.items():
            self._links.setdefault(target_id, []).extend(pairs)
        return self

def resolve_reverse_links(graph: ContentGraph, links: LinkTable) -> int:
    """Attach reverse relation arrays onto every target node in *graph*.

    Per distinct relation name a ``<relation>_set`` relation is built on the
    target, in processing order, holding each source id once.  Targets that
    are not in the graph (revalidated from the cache, or never synchronized)
    are skipped.

    Returns:
        The number of reverse links attached.
    """
    attached = 0
    for target_id, pairs in links.items():
        target = graph.get_node(target_id)
        if target is None:
            logger.debug(
                "Skipping %d reverse links to %s: target not built this pass",
                len(pairs),
                target_id,
            )
            continue

        for relation, source_id in pairs:
            reverse = target.relations.setdefault(f"{relation}{REVERSE_SUFFIX}", [])
            if source_id in reverse:
                continue
            reverse.append(source_id)
            attached += 1
            graph.add_relationship(
                GraphRelationship(
                    id=f"links_to:{source_id}->{target_id}:{relation}",
                    type=RelType.LINKS_TO,
                    source=source_id,
                    target=target_id,
                    properties={"relation": relation},
                )
            )
    return attached
