"""CMS client abstraction for Cockpit Graph.

The sync engine pulls everything it needs through :class:`CMSClient`.
Implementations normalize remote shapes at this boundary: entries always
arrive as a list (singletons included), assets always arrive as a list.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from cockpit_graph.config.settings import ContentKind
from cockpit_graph.errors import RemoteFetchError

@runtime_checkable
class CMSClient(Protocol):
    """Pull interface to a Cockpit-compatible content API."""

    def list_types(self, kind: ContentKind) -> list[str]:
        """Return the names of every content type of *kind*."""
        ...

    def fetch_schema(self, kind: ContentKind, name: str) -> dict[str, Any]:
        """Return ``{fields: [...], label?, _id?, _created?, _modified?}``."""
        ...

    def fetch_entries(self, kind: ContentKind, name: str) -> list[dict[str, Any]]:
        """Return every raw entry of content type *name*."""
        ...

    def list_assets(self) -> list[dict[str, Any]]:
        """Return every raw asset."""
        ...

    def download_url(self, path: str) -> str:
        """Return the absolute URL of the binary stored at *path*."""
        ...

def normalize_entries(payload: Any, kind: ContentKind, name: str) -> list[dict[str, Any]]:
    """Coerce an entries payload into a list of entry mappings.

    Collections answer ``{"entries": [...]}``; singletons answer with the
    bare data object.
    """
    if isinstance(payload, Mapping) and "entries" in payload:
        entries = payload["entries"]
    elif kind is ContentKind.SINGLETON and isinstance(payload, Mapping):
        entries = [payload]
    else:
        entries = payload

    if not isinstance(entries, list) or not all(isinstance(e, Mapping) for e in entries):
        raise RemoteFetchError(f"Malformed entries payload for {kind.value} {name!r}")
    return [dict(e) for e in entries]

def normalize_schema(payload: Any, kind: ContentKind, name: str) -> dict[str, Any]:
    """Validate a schema payload: it must carry a ``fields`` list."""
    if not isinstance(payload, Mapping) or not isinstance(payload.get("fields"), list):
        raise RemoteFetchError(f"Malformed schema payload for {kind.value} {name!r}")
    return dict(payload)

def normalize_assets(payload: Any) -> list[dict[str, Any]]:
    """Coerce an asset listing (``{"assets": [...]}`` or ``{"entries": [...]}``)."""
    assets = payload
    if isinstance(payload, Mapping):
        assets = payload.get("assets", payload.get("entries"))
    if not isinstance(assets, list) or not all(isinstance(a, Mapping) for a in assets):
        raise RemoteFetchError("Malformed asset listing payload")
    return [dict(a) for a in assets]

def normalize_names(payload: Any, kind: ContentKind) -> list[str]:
    """Coerce a type listing (list of names, or name-keyed mapping)."""
    if isinstance(payload, Mapping):
        return [str(name) for name in payload]
    if not isinstance(payload, list):
        raise RemoteFetchError(f"Malformed {kind.value} listing payload")
    return [str(name) for name in payload]
