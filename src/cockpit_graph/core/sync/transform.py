"""Entry field transformation for Cockpit Graph.

Turns one raw Cockpit entry into an entry :class:`ContentNode` for one
language.  Each schema field is read (with language fallback), transformed
according to its :class:`FieldClassification`, and either stored as plain
data or rewritten into a relation.  Markdown fields and repeater items
spawn value sub-nodes that become children of the entry node.

The transformer never mutates the raw entry and never touches shared
state: its outbound links are returned to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from cockpit_graph.config.settings import ContentKind
from cockpit_graph.core.graph.model import RESERVED_FIELDS, ContentNode, NodeKind
from cockpit_graph.core.sync.assets import AssetMap
from cockpit_graph.core.sync.fields import (
    ContentType,
    FieldClassification,
    FieldSpec,
    resolve_field_spec,
)
from cockpit_graph.core.sync.ids import LanguageContext, NodeIds, slug

logger = logging.getLogger(__name__)

MARKDOWN_MEDIA_TYPE = "text/markdown"

_TIMESTAMP_FIELDS: dict[str, str] = {
    "_created": "created",
    "_modified": "modified",
}

@dataclass
class TransformResult:
    """Output of :func:`transform_entry`."""

    node: ContentNode
    extra_nodes: list[ContentNode] = field(default_factory=list)
    outbound_links: list[str] = field(default_factory=list)

@dataclass
class _FieldOutcome:
    """Transformed value of one field plus its side effects."""

    value: Any
    relation: bool = False
    nodes: list[ContentNode] = field(default_factory=list)
    links: list[str] = field(default_factory=list)

@dataclass(frozen=True)
class _Scope:
    """Everything a field handler needs besides the field itself."""

    source: str
    parent: ContentNode
    ctx: LanguageContext
    ids: NodeIds
    asset_map: AssetMap

def is_empty(value: Any) -> bool:
    """``None``, empty strings and empty containers count as absent."""
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) == 0
    return False

def entry_key(
    entry: Mapping[str, Any],
    content_type: ContentType,
    index: int | None = None,
) -> str:
    """Remote id of *entry*.

    Singletons without ``_id`` use the type name.  Collection entries
    without one are keyed by their *index* in the listing, when given.
    """
    remote_id = entry.get("_id")
    if remote_id:
        return str(remote_id)
    if index is None or content_type.kind is ContentKind.SINGLETON:
        return content_type.name
    logger.warning(
        "Entry %d of %s has no _id, keying it by position", index, content_type.name
    )
    return str(index)

def stringify(value: Any) -> str:
    """Render a scalar as text; booleans become ``true`` / ``false``."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)

def _timestamp(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()
    return value

def read_field(entry: Mapping[str, Any], spec: FieldSpec, ctx: LanguageContext) -> Any:
    """Read the raw value of *spec* for the language in *ctx*.

    A localized field on a non-default language reads ``<name>_<lang>`` and
    falls back to ``<name>`` when the localized value is absent or empty.
    """
    if spec.localize and ctx.language and not ctx.is_default:
        localized = entry.get(f"{spec.name}_{ctx.language}")
        if not is_empty(localized):
            return localized
    return entry.get(spec.name)

# ---------------------------------------------------------------------------
# Classification handlers
# ---------------------------------------------------------------------------

def _plain(spec: FieldSpec, raw: Any, scope: _Scope, node_id: str) -> _FieldOutcome:
    return _FieldOutcome(value=stringify(raw) if spec.stringify else raw)

def _markdown_node(spec: FieldSpec, raw: Any, scope: _Scope, node_id: str) -> ContentNode:
    text = spec.default_value() if is_empty(raw) else stringify(raw)
    node = ContentNode(
        id=node_id,
        kind=NodeKind.MARKDOWN,
        type_name=scope.ids.value_type("remark"),
        fields={"label": spec.label},
        language=scope.ctx.language,
        media_type=MARKDOWN_MEDIA_TYPE,
        content=text,
    )
    scope.parent.add_child(node)
    return node

def _markdown(spec: FieldSpec, raw: Any, scope: _Scope, node_id: str) -> _FieldOutcome:
    node = _markdown_node(spec, raw, scope, node_id)
    return _FieldOutcome(value=node.id, relation=True, nodes=[node])

def _link_target(spec: FieldSpec, payload: Any, scope: _Scope) -> str | None:
    if not isinstance(payload, Mapping) or not payload.get("_id"):
        logger.debug("Ignoring malformed link payload %r in field %s", payload, spec.name)
        return None
    collection = payload.get("link") or spec.options.get("link")
    if not collection:
        logger.debug("Link payload in field %s names no collection", spec.name)
        return None
    return scope.ids.link_target(str(collection), str(payload["_id"]), scope.ctx)

def _link(spec: FieldSpec, raw: Any, scope: _Scope, node_id: str) -> _FieldOutcome:
    if spec.multiple or isinstance(raw, list):
        payloads = raw if isinstance(raw, list) else [raw]
        targets = [t for t in (_link_target(spec, p, scope) for p in payloads) if t]
        if not spec.multiple:
            target = targets[0] if targets else spec.default_value()
            return _FieldOutcome(value=target, relation=True, links=targets[:1])
        return _FieldOutcome(value=targets, relation=True, links=targets)

    target = _link_target(spec, raw, scope)
    if target is None:
        return _FieldOutcome(value=spec.default_value(), relation=True)
    return _FieldOutcome(value=target, relation=True, links=[target])

def _asset(spec: FieldSpec, raw: Any, scope: _Scope, node_id: str) -> _FieldOutcome:
    return _FieldOutcome(value=scope.asset_map.resolve(raw), relation=True)

def _item_spec(spec: FieldSpec, item: Any) -> tuple[FieldSpec, Any]:
    """Nested spec and value of one repeater element."""
    if isinstance(item, Mapping) and "value" in item:
        descriptor = item.get("field") or spec.options.get("field") or {}
        value = item["value"]
    else:
        descriptor = spec.options.get("field") or {}
        value = item
    if not isinstance(descriptor, Mapping):
        descriptor = {}
    nested = resolve_field_spec(
        {
            "type": "text",
            **descriptor,
            "name": descriptor.get("name") or spec.name,
            "label": descriptor.get("label") or spec.label,
        }
    )
    return nested, value

def _value_node(spec: FieldSpec, raw: Any, scope: _Scope, node_id: str) -> _FieldOutcome:
    """Build the sub-node holding one repeater element."""
    classification = spec.classification

    if classification is FieldClassification.MARKDOWN:
        node = _markdown_node(spec, raw, scope, node_id)
        return _FieldOutcome(value=node.id, nodes=[node])

    kind = NodeKind.ASSET if classification is FieldClassification.ASSET else NodeKind.PLAIN
    node = ContentNode(
        id=node_id,
        kind=kind,
        type_name=scope.ids.value_type(kind.value),
        fields={"label": spec.label},
        language=scope.ctx.language,
    )
    scope.parent.add_child(node)
    outcome = _FieldOutcome(value=node.id, nodes=[node])

    if is_empty(raw):
        inner = _FieldOutcome(
            value=spec.default_value(),
            relation=classification is not FieldClassification.PLAIN,
        )
    else:
        inner_scope = _Scope(
            source=node_id.removesuffix(scope.ctx.value_suffix),
            parent=node,
            ctx=scope.ctx,
            ids=scope.ids,
            asset_map=scope.asset_map,
        )
        inner = _HANDLERS[classification](spec, raw, inner_scope, node_id)

    if inner.relation:
        node.relations["content"] = inner.value
    else:
        node.fields["content"] = inner.value
    outcome.nodes.extend(inner.nodes)
    outcome.links.extend(inner.links)
    return outcome

def _repeater(spec: FieldSpec, raw: Any, scope: _Scope, node_id: str) -> _FieldOutcome:
    items = raw if isinstance(raw, list) else [raw]
    outcome = _FieldOutcome(value=[], relation=True)
    for index, item in enumerate(items):
        item_spec, item_value = _item_spec(spec, item)
        item_id = f"{scope.source}_{spec.label}_{index}{scope.ctx.value_suffix}"
        item_outcome = _value_node(item_spec, item_value, scope, item_id)
        outcome.value.append(item_outcome.value)
        outcome.nodes.extend(item_outcome.nodes)
        outcome.links.extend(item_outcome.links)
    return outcome

_Handler = Callable[[FieldSpec, Any, _Scope, str], _FieldOutcome]

_HANDLERS: dict[FieldClassification, _Handler] = {
    FieldClassification.PLAIN: _plain,
    FieldClassification.MARKDOWN: _markdown,
    FieldClassification.LINK: _link,
    FieldClassification.REPEATER: _repeater,
    FieldClassification.ASSET: _asset,
}

def transform_field(
    spec: FieldSpec,
    raw: Any,
    scope: _Scope,
) -> _FieldOutcome:
    """Transform one field value; empty values skip the transform.

    Markdown fields spawn their fragment even when empty so that the field
    always references a node.
    """
    node_id = f"{scope.source}_{spec.label}{scope.ctx.value_suffix}"
    if is_empty(raw):
        if spec.classification is FieldClassification.MARKDOWN:
            return _markdown(spec, raw, scope, node_id)
        return _FieldOutcome(
            value=spec.default_value(),
            relation=spec.classification is not FieldClassification.PLAIN,
        )
    return _HANDLERS[spec.classification](spec, raw, scope, node_id)

# ---------------------------------------------------------------------------
# Entry transformation
# ---------------------------------------------------------------------------

def _consumed_keys(content_type: ContentType, languages: tuple[str, ...]) -> set[str]:
    keys = set(content_type.fields)
    for name in content_type.localized_fields:
        keys.update(f"{name}_{language}" for language in languages)
    return keys

def transform_entry(
    entry: Mapping[str, Any],
    content_type: ContentType,
    asset_map: AssetMap,
    ctx: LanguageContext,
    ids: NodeIds,
    *,
    languages: tuple[str, ...] = (),
    entry_id: str | None = None,
) -> TransformResult:
    """Build the entry node of *entry* for the language in *ctx*.

    Args:
        entry: The raw remote entry.  Left untouched.
        content_type: The entry's schema with resolved field specs.
        asset_map: Lookup for ``asset`` / ``image`` fields.
        ctx: Language of this run.
        ids: Id factory of the pass.
        languages: Every configured language; their ``<field>_<lang>``
            variants of localized fields are consumed rather than passed
            through.
        entry_id: Remote id to key the entry by.  Defaults to
            :func:`entry_key` of *entry*.

    Returns:
        The entry node, every sub-node it spawned (in creation order), and
        the ids of the entry nodes it links to.
    """
    if entry_id is None:
        entry_id = entry_key(entry, content_type)

    local_id = f"{entry_id}{ctx.entry_suffix}"
    node = ContentNode(
        id=ids.entry(content_type.kind, content_type.name, entry_id, ctx),
        kind=NodeKind.ENTRY,
        type_name=ids.entry_type(content_type.kind, content_type.name),
        parent=ids.type_node(content_type.kind, content_type.name),
        language=ctx.language,
    )
    result = TransformResult(node=node)
    scope = _Scope(
        source=f"{content_type.name}_{entry_id}",
        parent=node,
        ctx=ctx,
        ids=ids,
        asset_map=asset_map,
    )

    node.fields["cockpit_id"] = entry_id
    for raw_key, key in _TIMESTAMP_FIELDS.items():
        if raw_key in entry:
            node.fields[key] = _timestamp(entry[raw_key])
    node.fields["slug"] = slug(content_type.kind, content_type.name, local_id)

    for spec in content_type.fields.values():
        outcome = transform_field(spec, read_field(entry, spec, ctx), scope)
        target = node.relations if outcome.relation else node.fields
        target[_output_key(spec.name)] = outcome.value
        result.extra_nodes.extend(outcome.nodes)
        result.outbound_links.extend(outcome.links)

    consumed = _consumed_keys(content_type, languages)
    for key, value in entry.items():
        if key in consumed or key.startswith("_"):
            continue
        node.fields[_output_key(key)] = value

    return result

def _output_key(key: str) -> str:
    return f"field_{key}" if key in RESERVED_FIELDS else key
