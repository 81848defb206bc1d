"""Sync pass orchestrator for Cockpit Graph.

Runs every stage of a pass in sequence, accumulates the resulting nodes in
an in-memory content graph, commits it to a store, and returns a summary.

Stages executed:
    1. Configuration validation (before any I/O)
    2. Asset map construction (materialize or revalidate eligible assets)
    3. Content types, per kind in fixed order (collection, singleton, asset):
       schema fetch, type list node, cache gate + localized transform per
       entry, link merge
    4. Reverse-link resolution (``<type>_set`` relations)
    5. Commit: type list nodes, then entry and value nodes, then
       parent/child links, then staged cache records
    6. Stale node pruning
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from cockpit_graph.client.base import CMSClient
from cockpit_graph.config.settings import KIND_ORDER, ContentConfig, ContentKind, SyncConfig
from cockpit_graph.core.graph.graph import ContentGraph
from cockpit_graph.core.graph.model import ContentNode, GraphRelationship, NodeKind, RelType
from cockpit_graph.core.storage.base import NodeStore
from cockpit_graph.core.sync.assets import AssetMap, build_asset_map
from cockpit_graph.core.sync.cache import CacheGate, Computed, entry_cache_key
from cockpit_graph.core.sync.fields import ContentType, build_content_type
from cockpit_graph.core.sync.ids import NodeIds, slug
from cockpit_graph.core.sync.links import LinkTable, resolve_reverse_links
from cockpit_graph.core.sync.localization import EntryExpansion, expand_entry, language_contexts
from cockpit_graph.core.sync.transform import entry_key

logger = logging.getLogger(__name__)

ASSET_TYPE_NAME = "assets"

@dataclass
class SyncResult:
    """Summary of a sync pass."""

    types: int = 0
    entries: int = 0
    cached_entries: int = 0
    nodes: int = 0
    assets: int = 0
    reverse_links: int = 0
    pruned: int = 0
    duration_seconds: float = 0.0

def resolve_type_names(client: CMSClient, content: ContentConfig) -> list[str]:
    """Whitelist minus blacklist, or the remote listing minus blacklist."""
    if content.whitelist is not None:
        return content.select(list(content.whitelist))
    return content.select(client.list_types(content.kind))

class _Pass:
    """State of one sync pass; see :func:`run_sync`."""

    def __init__(
        self,
        config: SyncConfig,
        client: CMSClient,
        store: NodeStore,
        report: Callable[[str, float], None],
    ) -> None:
        self.config = config
        self.client = client
        self.store = store
        self.report = report
        self.ids = NodeIds(config.type_prefix)
        self.gate = CacheGate(store)
        self.graph = ContentGraph()
        self.links = LinkTable()
        self.result = SyncResult()
        self.asset_map = AssetMap(upload_path=config.upload_path)
        self.languages = [
            [ctx.language, ctx.is_default] for ctx in language_contexts(config.l10n)
        ]

    def build_assets(self) -> None:
        content = self.config.asset_content
        if content is None:
            return
        self.asset_map = build_asset_map(
            self.client.list_assets(),
            content,
            upload_path=self.config.upload_path,
            type_prefix=self.config.type_prefix,
            gate=self.gate,
            store=self.store,
            download_url=self.client.download_url,
        )
        self.result.assets = len(self.asset_map)

    def type_node(self, kind: ContentKind, name: str, **fields: object) -> ContentNode:
        node = ContentNode(
            id=self.ids.type_node(kind, name),
            kind=NodeKind.TYPE,
            type_name=self.ids.list_type(kind),
            fields={"name": name, "slug": slug(kind, name), **fields},
        )
        self.graph.add_node(node)
        self.result.types += 1
        return node

    def process_kind(self, kind: ContentKind) -> None:
        if kind is ContentKind.ASSET:
            if self.config.asset_content is not None:
                self.emit_assets()
            return
        for content in self.config.contents_of(kind):
            names = resolve_type_names(self.client, content)
            for index, name in enumerate(names):
                self.report(f"Syncing {kind.value} {name}", index / max(len(names), 1))
                self.process_type(kind, name)

    def emit_assets(self) -> None:
        parent = self.type_node(ContentKind.ASSET, ASSET_TYPE_NAME, label="Assets")
        for file_id in self.asset_map.file_ids:
            if file_id not in parent.children:
                parent.children.append(file_id)
            self.graph.add_child(parent.id, file_id)

    def process_type(self, kind: ContentKind, name: str) -> None:
        schema = self.client.fetch_schema(kind, name)
        content_type = build_content_type(kind, name, schema)
        entries = self.client.fetch_entries(kind, name)

        parent = self.type_node(
            kind,
            name,
            label=content_type.label,
            cockpit_id=content_type.cockpit_id,
            schema=[
                {
                    "name": spec.name,
                    "label": spec.label,
                    "type": spec.source_type,
                    "localize": spec.localize,
                }
                for spec in content_type.fields.values()
            ],
        )
        parent.fields["localize"] = content_type.localized_fields

        for index, entry in enumerate(entries):
            for entry_id in self.process_entry(entry, content_type, index):
                if entry_id not in parent.children:
                    parent.children.append(entry_id)
                self.graph.add_child(parent.id, entry_id)

        logger.info("Synced %s %s: %d entries", kind.value, name, len(entries))

    def process_entry(self, entry: dict, content_type: ContentType, index: int) -> list[str]:
        """Run the cache gate for one entry; return the entry node ids it owns."""
        entry_id = entry_key(entry, content_type, index)
        base_id = self.ids.entry(content_type.kind, content_type.name, entry_id)

        def compute() -> Computed[EntryExpansion]:
            expansion = expand_entry(
                entry,
                content_type,
                self.asset_map,
                self.config.l10n,
                self.ids,
                entry_id=entry_id,
            )
            return Computed(
                value=expansion,
                node_ids=expansion.node_ids,
                root_ids=expansion.entry_ids,
            )

        outcome = self.gate.get_or_compute(
            entry_cache_key(self.config.type_prefix, content_type.name, base_id),
            entry.get("_modified"),
            compute,
            variant=self.languages,
        )
        self.result.entries += 1
        if outcome.hit or outcome.value is None:
            self.result.cached_entries += 1
            return outcome.root_ids

        expansion = outcome.value
        for node in expansion.nodes:
            self.graph.add_node(node)
            for child_id in node.children:
                self.graph.add_child(node.id, child_id)
        for node in expansion.entry_nodes:
            for other in node.alternates:
                self.graph.add_relationship(
                    GraphRelationship(
                        id=f"alternate_of:{node.id}->{other}",
                        type=RelType.ALTERNATE_OF,
                        source=node.id,
                        target=other,
                    )
                )
        self.links.merge(expansion.links)
        return expansion.entry_ids

    def commit(self) -> None:
        """Declare every node, type list nodes first, then link parents."""
        type_nodes = self.graph.get_nodes_by_kind(NodeKind.TYPE)
        for node in type_nodes:
            self.store.create_node(node.to_record())
        for node in self.graph.iter_nodes():
            if node.kind is not NodeKind.TYPE:
                self.store.create_node(node.to_record())
        for rel in self.graph.get_relationships_by_type(RelType.CONTAINS):
            self.store.create_parent_child_link(rel.source, rel.target)
        self.gate.flush()
        self.result.nodes = self.graph.node_count

def run_sync(
    config: SyncConfig,
    client: CMSClient,
    store: NodeStore,
    progress_callback: Callable[[str, float], None] | None = None,
) -> tuple[ContentGraph, SyncResult]:
    """Run one full sync pass and commit the resulting graph to *store*.

    Nothing is committed when a fatal error interrupts the pass: nodes are
    declared only after the whole graph has been built.

    Args:
        config: Validated before any request is made.
        client: Source of schemas, entries and assets.
        store: Host store receiving nodes, links and cache records.
        progress_callback: Optional ``(phase_name, progress)`` callback
            where *progress* is a float in ``[0.0, 1.0]``.

    Returns:
        A tuple of (graph, result): the in-memory graph built this pass and
        a summary of counts and timings.
    """
    start = time.monotonic()
    config.validate()

    def report(phase: str, pct: float) -> None:
        if progress_callback is not None:
            progress_callback(phase, pct)

    state = _Pass(config, client, store, report)
    store.begin_pass()

    report("Building asset map", 0.0)
    state.build_assets()
    report("Building asset map", 1.0)

    for kind in KIND_ORDER:
        state.process_kind(kind)

    report("Resolving reverse links", 0.0)
    state.result.reverse_links = resolve_reverse_links(state.graph, state.links)
    report("Resolving reverse links", 1.0)

    report("Committing nodes", 0.0)
    state.commit()
    state.result.pruned = store.finish_pass()
    report("Committing nodes", 1.0)

    state.result.duration_seconds = time.monotonic() - start
    logger.info(
        "Sync finished: %d types, %d entries (%d cached), %d nodes in %.2fs",
        state.result.types,
        state.result.entries,
        state.result.cached_entries,
        state.result.nodes,
        state.result.duration_seconds,
    )
    return state.graph, state.result
