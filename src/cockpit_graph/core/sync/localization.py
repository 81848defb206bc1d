"""Localization expansion for Cockpit Graph.

Runs the transformer once per configured language (or once, unsuffixed,
when localization is off) and links the resulting nodes of one entry to
each other as language alternates.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from cockpit_graph.config.settings import L10nConfig
from cockpit_graph.core.graph.model import ContentNode
from cockpit_graph.core.sync.assets import AssetMap
from cockpit_graph.core.sync.fields import ContentType
from cockpit_graph.core.sync.ids import LanguageContext, NodeIds
from cockpit_graph.core.sync.links import LinkTable
from cockpit_graph.core.sync.transform import transform_entry

@dataclass
class EntryExpansion:
    """All nodes produced for one entry, plus its forward links."""

    entry_nodes: list[ContentNode] = field(default_factory=list)
    value_nodes: list[ContentNode] = field(default_factory=list)
    links: LinkTable = field(default_factory=LinkTable)

    @property
    def nodes(self) -> list[ContentNode]:
        return [*self.entry_nodes, *self.value_nodes]

    @property
    def node_ids(self) -> list[str]:
        return [node.id for node in self.nodes]

    @property
    def entry_ids(self) -> list[str]:
        return [node.id for node in self.entry_nodes]

def language_contexts(l10n: L10nConfig) -> list[LanguageContext]:
    """One context per configured language, or a single unlocalized one."""
    if not l10n.enabled:
        return [LanguageContext()]
    default = l10n.default_language
    return [
        LanguageContext(language=language, is_default=language == default)
        for language in l10n.languages
    ]

def link_alternates(group: list[ContentNode]) -> None:
    """Give every node of *group* the ids of every other node of *group*."""
    ids = [node.id for node in group]
    for node in group:
        node.alternates = [other for other in ids if other != node.id]

def expand_entry(
    entry: Mapping[str, Any],
    content_type: ContentType,
    asset_map: AssetMap,
    l10n: L10nConfig,
    ids: NodeIds,
    entry_id: str | None = None,
) -> EntryExpansion:
    """Transform *entry* for every language and link the language group."""
    expansion = EntryExpansion()
    for ctx in language_contexts(l10n):
        result = transform_entry(
            entry,
            content_type,
            asset_map,
            ctx,
            ids,
            languages=l10n.languages,
            entry_id=entry_id,
        )
        expansion.entry_nodes.append(result.node)
        expansion.value_nodes.extend(result.extra_nodes)
        expansion.links.record(content_type.name, result.node.id, result.outbound_links)

    if l10n.enabled:
        link_alternates(expansion.entry_nodes)
    return expansion
