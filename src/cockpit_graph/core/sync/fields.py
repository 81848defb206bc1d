"""Field specification resolution for Cockpit Graph.

Maps a raw Cockpit field descriptor (``{name, type, label, default,
localize, options}``) to a :class:`FieldSpec` that tells the transformer how
to default, transform and classify the field's value.  The field type
string is inspected exactly once, here; everything downstream dispatches
on :class:`FieldClassification`.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cockpit_graph.config.settings import ContentKind

logger = logging.getLogger(__name__)

class FieldClassification(Enum):
    """How a field's value is transformed and which side-effect nodes it spawns."""

    PLAIN = "plain"
    MARKDOWN = "markdown"
    LINK = "link"
    REPEATER = "repeater"
    ASSET = "asset"

_STRING_TYPES: frozenset[str] = frozenset({"text", "textarea"})

# Cockpit field types that are plain data by nature; anything outside this
# set and the classified types is logged as unknown before degrading.
_PASSTHROUGH_TYPES: frozenset[str] = frozenset(
    {
        "boolean",
        "code",
        "color",
        "colortag",
        "date",
        "gallery",
        "html",
        "layout",
        "location",
        "multipleselect",
        "number",
        "object",
        "password",
        "rating",
        "select",
        "set",
        "tags",
        "time",
        "wysiwyg",
    }
)

@dataclass(frozen=True)
class FieldSpec:
    """Resolved processing rule for one schema field."""

    name: str
    label: str
    source_type: str
    classification: FieldClassification
    localize: bool = False
    multiple: bool = False
    stringify: bool = False
    default: Any = ""
    options: Mapping[str, Any] = field(default_factory=dict)

    def default_value(self) -> Any:
        """Return a fresh copy of the default so callers may mutate it."""
        return copy.deepcopy(self.default)

def resolve_field_spec(descriptor: Mapping[str, Any]) -> FieldSpec:
    """Resolve one raw field descriptor into a :class:`FieldSpec`.

    Unrecognized types never raise; they degrade to a plain pass-through.
    """
    name = str(descriptor.get("name") or "")
    source_type = str(descriptor.get("type") or "text").lower()
    options = descriptor.get("options") or {}
    if not isinstance(options, Mapping):
        options = {}

    base: dict[str, Any] = {
        "name": name,
        "label": str(descriptor.get("label") or name),
        "source_type": source_type,
        "localize": bool(descriptor.get("localize", False)),
        "options": dict(options),
    }
    schema_default = descriptor.get("default")

    if source_type in _STRING_TYPES:
        return FieldSpec(
            classification=FieldClassification.PLAIN,
            stringify=True,
            default=schema_default if schema_default is not None else "",
            **base,
        )

    if source_type == "markdown":
        return FieldSpec(classification=FieldClassification.MARKDOWN, default="", **base)

    if source_type in ("collectionlink", "repeater"):
        multiple = bool(options.get("multiple", False))
        classification = (
            FieldClassification.LINK
            if source_type == "collectionlink"
            else FieldClassification.REPEATER
        )
        return FieldSpec(
            classification=classification,
            multiple=multiple,
            default=[] if multiple else None,
            **base,
        )

    if source_type in ("asset", "image"):
        return FieldSpec(classification=FieldClassification.ASSET, default=None, **base)

    if source_type not in _PASSTHROUGH_TYPES:
        logger.debug("Unknown field type %r for field %r, treating as plain", source_type, name)

    return FieldSpec(
        classification=FieldClassification.PLAIN,
        default=schema_default if schema_default is not None else "",
        **base,
    )

def resolve_field_specs(descriptors: list[Mapping[str, Any]]) -> dict[str, FieldSpec]:
    """Resolve a schema's field list into ``{field name: FieldSpec}``.

    Descriptors without a name cannot be matched against entry keys and are
    skipped.
    """
    specs: dict[str, FieldSpec] = {}
    for descriptor in descriptors:
        if not isinstance(descriptor, Mapping) or not descriptor.get("name"):
            logger.debug("Skipping unnamed field descriptor %r", descriptor)
            continue
        spec = resolve_field_spec(descriptor)
        specs[spec.name] = spec
    return specs

@dataclass(frozen=True)
class ContentType:
    """One remote schema, immutable for the duration of a pass."""

    kind: ContentKind
    name: str
    fields: Mapping[str, FieldSpec] = field(default_factory=dict)
    label: str = ""
    cockpit_id: str = ""

    @property
    def localized_fields(self) -> list[str]:
        return [name for name, spec in self.fields.items() if spec.localize]

def build_content_type(kind: ContentKind, name: str, schema: Mapping[str, Any]) -> ContentType:
    """Build a :class:`ContentType` from a fetched schema payload."""
    return ContentType(
        kind=kind,
        name=name,
        fields=resolve_field_specs(list(schema.get("fields") or [])),
        label=str(schema.get("label") or name),
        cockpit_id=str(schema.get("_id") or ""),
    )
