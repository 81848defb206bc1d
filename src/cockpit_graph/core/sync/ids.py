"""Node naming for Cockpit Graph.

Every id emitted during a pass is derived here so that a relation target
computed from a link payload equals the id the target entry receives when
its own collection is synchronized.
"""

from __future__ import annotations

from dataclasses import dataclass

from cockpit_graph.config.settings import ContentKind
from cockpit_graph.core.graph.model import generate_node_id, node_type_name

@dataclass(frozen=True)
class LanguageContext:
    """The language a transformer run produces a node for.

    ``language`` is empty when no localization is configured.
    """

    language: str = ""
    is_default: bool = True

    @property
    def entry_suffix(self) -> str:
        """Suffix of entry node ids: ``-de``."""
        return f"-{self.language}" if self.language else ""

    @property
    def value_suffix(self) -> str:
        """Suffix of sub-node ids: ``_de``."""
        return f"_{self.language}" if self.language else ""

@dataclass(frozen=True)
class NodeIds:
    """Id and type-name factory bound to one type prefix."""

    type_prefix: str

    def list_type(self, kind: ContentKind) -> str:
        return node_type_name(self.type_prefix, kind.value)

    def entry_type(self, kind: ContentKind, name: str) -> str:
        return node_type_name(self.type_prefix, kind.value, name)

    def value_type(self, value_kind: str) -> str:
        return node_type_name(self.type_prefix, "content", value_kind)

    @property
    def file_type(self) -> str:
        return node_type_name(self.type_prefix, "file")

    def type_node(self, kind: ContentKind, name: str) -> str:
        return generate_node_id(self.list_type(kind), name)

    def entry(
        self,
        kind: ContentKind,
        name: str,
        entry_id: str,
        ctx: LanguageContext | None = None,
    ) -> str:
        """Id of the node for entry *entry_id* of content type *name*."""
        suffix = ctx.entry_suffix if ctx is not None else ""
        return generate_node_id(self.entry_type(kind, name), f"{entry_id}{suffix}")

    def link_target(self, collection: str, entry_id: str, ctx: LanguageContext) -> str:
        """Id of a ``collectionlink`` target; links only ever point at collections."""
        return self.entry(ContentKind.COLLECTION, collection, entry_id, ctx)

    def file(self, url: str) -> str:
        return generate_node_id(self.file_type, url)

def slug(kind: ContentKind, name: str, local_id: str = "") -> str:
    """Site path of a type list node or entry: ``/collection/posts/abc-de``."""
    parts = [kind.value, name]
    if local_id:
        parts.append(local_id)
    return "/" + "/".join(parts)
