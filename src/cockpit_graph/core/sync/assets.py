"""Asset resolution map for Cockpit Graph.

Builds a ``storage path -> file node id`` lookup from the full remote asset
listing before any entry is processed.  Eligible assets are materialized
through the host store (or revalidated from the cache gate) exactly once
per pass; the transformer then resolves every ``asset`` / ``image`` field
value against the map.

Lookup is loose: the value's path is stripped of the upload
root and matched by substring containment against the map keys, and the
first matching key in listing order wins.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from cockpit_graph.config.settings import ContentConfig
from cockpit_graph.core.sync.cache import CacheGate, Computed, asset_cache_key

if TYPE_CHECKING:
    from cockpit_graph.core.storage.base import NodeStore

logger = logging.getLogger(__name__)

def normalize_asset_path(path: str, upload_path: str) -> str:
    """Strip the first occurrence of the upload root from *path*."""
    if upload_path:
        return path.replace(upload_path, "", 1)
    return path

def asset_value_path(value: Any) -> str:
    """Extract the storage path from an asset/image field value."""
    if isinstance(value, Mapping):
        return str(value.get("path") or "")
    if isinstance(value, str):
        return value
    return ""

def is_eligible(asset: Mapping[str, Any], content: ContentConfig) -> bool:
    """Apply the filetype and tag policy to one remote asset.

    1. Reject unless one of the asset's category flags is an enabled filetype.
    2. With a tag allow-list, require at least one allowed tag.
    3. Otherwise, with a tag deny-list, reject any denied tag.
    """
    if not any(enabled and asset.get(category) for category, enabled in content.filetypes.items()):
        return False

    tags = set(asset.get("tags") or [])
    if content.tags.whitelist:
        return bool(tags.intersection(content.tags.whitelist))
    if content.tags.blacklist:
        return not tags.intersection(content.tags.blacklist)
    return True

class AssetMap:
    """Ordered storage path to file node id mapping."""

    def __init__(self, upload_path: str = "", entries: Mapping[str, str] | None = None) -> None:
        self.upload_path = upload_path
        self._files: dict[str, str] = dict(entries or {})

    def __len__(self) -> int:
        return len(self._files)

    def add(self, path: str, file_id: str) -> None:
        """Register *file_id* under *path*; the first registration wins."""
        self._files.setdefault(path, file_id)

    @property
    def file_ids(self) -> list[str]:
        """Distinct file ids in registration order."""
        return list(dict.fromkeys(self._files.values()))

    def resolve(self, value: Any) -> str | None:
        """Return the file id for an asset field *value*, or ``None``.

        Empty paths never match: an empty string is contained in every key.
        """
        path = normalize_asset_path(asset_value_path(value), self.upload_path)
        if not path:
            return None

        matches = [key for key in self._files if path in key]
        if not matches:
            logger.info("Asset %r is not in the asset map, resolving to null", path)
            return None
        if len(matches) > 1:
            logger.debug("Asset %r matches %d paths, using %r", path, len(matches), matches[0])
        return self._files[matches[0]]

def build_asset_map(
    assets: list[Mapping[str, Any]],
    content: ContentConfig | None,
    *,
    upload_path: str,
    type_prefix: str,
    gate: CacheGate,
    store: NodeStore,
    download_url: Callable[[str], str],
) -> AssetMap:
    """Materialize every eligible asset and return the resulting map.

    Args:
        assets: The full remote asset listing, in remote order.
        content: The ``asset`` entry of the configuration.  ``None`` yields
            an empty map: no asset field can resolve.
        download_url: Turns an asset storage path into an absolute URL.
    """
    asset_map = AssetMap(upload_path=upload_path)
    if content is None:
        return asset_map

    for asset in assets:
        path = str(asset.get("path") or "")
        asset_id = str(asset.get("_id") or path)
        if not path:
            logger.debug("Skipping asset %s without a storage path", asset_id)
            continue
        if not is_eligible(asset, content):
            logger.debug("Asset %s filtered out by filetype/tag policy", path)
            continue

        def materialize(path: str = path) -> Computed[str]:
            file_id = store.materialize_remote_file(download_url(path))
            return Computed(value=file_id, node_ids=[file_id], root_ids=[file_id])

        result = gate.get_or_compute(
            asset_cache_key(type_prefix, asset_id),
            asset.get("modified"),
            materialize,
        )
        file_id = result.value if result.value is not None else result.root_ids[0]
        asset_map.add(path, file_id)

    logger.info("Asset map built with %d of %d assets", len(asset_map), len(assets))
    return asset_map
