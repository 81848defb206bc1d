"""Content graph data model for Cockpit Graph.

Defines the node and relationship types that represent synchronized CMS
content (content type lists, entries, and the value nodes derived from
entry fields) and the edges between them (containment, relations,
language alternates).

A node moves through explicit stages during a pass: the transformer builds
it from a raw entry, the localization expander links its language
alternates, the reverse-link resolver appends ``*_set`` relations, and
:meth:`ContentNode.to_record` freezes it into the record handed to the
host store.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

RELATION_SUFFIX = "___NODE"

RESERVED_FIELDS: frozenset[str] = frozenset({"id", "parent", "children", "internal", "fields"})

class NodeKind(Enum):
    """Kinds of nodes emitted into the content graph."""

    TYPE = "type"
    ENTRY = "entry"
    MARKDOWN = "markdown"
    PLAIN = "plain"
    ASSET = "asset"
    FILE = "file"

class RelType(Enum):
    """Relationship types connecting content nodes."""

    CONTAINS = "contains"
    LINKS_TO = "links_to"
    ALTERNATE_OF = "alternate_of"

def capitalize(value: str) -> str:
    """Upper-case the first character only (``blog_posts`` -> ``Blog_posts``)."""
    return value[:1].upper() + value[1:]

def node_type_name(type_prefix: str, *parts: str) -> str:
    """Build a host-side node type name such as ``CockpitCollectionPosts``."""
    return type_prefix + "".join(capitalize(p) for p in parts)

def generate_node_id(type_name: str, local_id: str) -> str:
    """Produce a deterministic node ID.

    Format: ``{type_name}__{local_id}``

    Because *type_name* embeds the prefix, the content kind and the content
    type name, two entries of different collections never share an id even
    when their remote ids are equal.
    """
    return f"{type_name}__{local_id}"

def relation_field(name: str) -> str:
    """Return the host relation field name for *name*."""
    return f"{name}{RELATION_SUFFIX}"

def content_digest(payload: Any) -> str:
    """Return the md5 digest of the canonical JSON encoding of *payload*."""
    encoded = json.dumps(payload, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.md5(encoded.encode("utf-8")).hexdigest()

@dataclass
class ContentNode:
    """A node in the content graph.

    ``id``, ``kind`` and ``type_name`` are required.  Plain data lives in
    ``fields``; references to other nodes live in ``relations`` and are
    serialized with the host's ``___NODE`` naming convention.
    """

    id: str
    kind: NodeKind
    type_name: str

    fields: dict[str, Any] = field(default_factory=dict)
    relations: dict[str, Any] = field(default_factory=dict)

    parent: str | None = None
    children: list[str] = field(default_factory=list)

    language: str = ""
    alternates: list[str] = field(default_factory=list)

    media_type: str = ""
    content: str = ""

    def add_child(self, child: ContentNode) -> None:
        """Adopt *child*: set its parent and append it to ``children``."""
        child.parent = self.id
        if child.id not in self.children:
            self.children.append(child.id)

    def to_record(self) -> dict[str, Any]:
        """Serialize the node into the record passed to ``create_node``."""
        record: dict[str, Any] = {
            "id": self.id,
            "parent": self.parent,
            "children": list(self.children),
        }
        record.update(self.fields)
        for name, value in self.relations.items():
            record[relation_field(name)] = list(value) if isinstance(value, list) else value
        if self.language:
            record["language"] = self.language
            record[relation_field("alternates")] = list(self.alternates)

        internal: dict[str, Any] = {"type": self.type_name}
        if self.media_type:
            internal["mediaType"] = self.media_type
            internal["content"] = self.content
        internal["contentDigest"] = content_digest({"record": record, "internal": internal})
        record["internal"] = internal
        return record

@dataclass
class GraphRelationship:
    """A directed edge in the content graph.

    ``id``, ``type``, ``source``, and ``target`` are required.
    """

    id: str
    type: RelType
    source: str
    target: str

    properties: dict[str, Any] = field(default_factory=dict)
