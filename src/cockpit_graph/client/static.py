"""Offline CMS client replaying a JSON dump.

Dump layout::

    {
      "host": "https://cms.example.org",
      "uploadPath": "/storage/uploads",
      "collection": {"posts": {"schema": {...}, "entries": [...]}},
      "singleton": {"settings": {"schema": {...}, "entries": {...}}},
      "assets": [...]
    }

``dump_content`` writes this layout from any live client, which lets a
site be rebuilt without network access.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from cockpit_graph.client.base import (
    CMSClient,
    normalize_assets,
    normalize_entries,
    normalize_schema,
)
from cockpit_graph.client.cockpit import trim_slashes
from cockpit_graph.config.settings import DEFAULT_UPLOAD_PATH, ContentKind
from cockpit_graph.errors import RemoteFetchError

logger = logging.getLogger(__name__)

_TYPED_KINDS: tuple[ContentKind, ...] = (ContentKind.COLLECTION, ContentKind.SINGLETON)

class StaticClient:
    """CMSClient implementation serving content from an in-memory dump."""

    def __init__(self, data: Mapping[str, Any]) -> None:
        self._data = data
        self.host = trim_slashes(str(data.get("host") or "http://localhost"))
        self.upload_path = str(data.get("uploadPath") or DEFAULT_UPLOAD_PATH)

    @classmethod
    def from_file(cls, path: Path) -> StaticClient:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise RemoteFetchError(f"Cannot read content dump {path}: {exc}") from exc
        if not isinstance(data, Mapping):
            raise RemoteFetchError(f"Content dump {path} must hold a JSON object")
        return cls(data)

    def _type(self, kind: ContentKind, name: str) -> Mapping[str, Any]:
        types = self._data.get(kind.value) or {}
        if name not in types:
            raise RemoteFetchError(f"Unknown {kind.value} {name!r}", path=f"{kind.value}/{name}")
        return types[name]

    def list_types(self, kind: ContentKind) -> list[str]:
        return [str(name) for name in self._data.get(kind.value) or {}]

    def fetch_schema(self, kind: ContentKind, name: str) -> dict[str, Any]:
        return normalize_schema(self._type(kind, name).get("schema"), kind, name)

    def fetch_entries(self, kind: ContentKind, name: str) -> list[dict[str, Any]]:
        return normalize_entries(self._type(kind, name).get("entries", []), kind, name)

    def list_assets(self) -> list[dict[str, Any]]:
        return normalize_assets(self._data.get("assets", []))

    def download_url(self, path: str) -> str:
        if not path.startswith(self.upload_path):
            path = self.upload_path + "/" + trim_slashes(path)
        return f"{self.host}/{trim_slashes(path)}"

def dump_content(client: CMSClient, host: str, upload_path: str) -> dict[str, Any]:
    """Fetch every content type and asset from *client* into a dump mapping."""
    data: dict[str, Any] = {"host": host, "uploadPath": upload_path}
    for kind in _TYPED_KINDS:
        types: dict[str, Any] = {}
        for name in client.list_types(kind):
            types[name] = {
                "schema": client.fetch_schema(kind, name),
                "entries": client.fetch_entries(kind, name),
            }
            logger.debug("Dumped %s %s (%d entries)", kind.value, name, len(types[name]["entries"]))
        data[kind.value] = types
    data["assets"] = client.list_assets()
    return data
