"""HTTP client for the Cockpit CMS REST API.

Every call is a blocking GET authenticated with the ``token`` query
parameter.  Transport failures, non-2xx statuses, undecodable bodies and
Cockpit ``{"error": ...}`` payloads all raise :class:`RemoteFetchError`.
No retries are performed.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from cockpit_graph.client.base import (
    normalize_assets,
    normalize_entries,
    normalize_names,
    normalize_schema,
)
from cockpit_graph.config.settings import DEFAULT_UPLOAD_PATH, ContentKind, SyncConfig
from cockpit_graph.errors import RemoteFetchError

logger = logging.getLogger(__name__)

_LIST_PATHS: dict[ContentKind, str] = {
    ContentKind.COLLECTION: "/api/collections/listCollections",
    ContentKind.SINGLETON: "/api/singletons/listSingletons",
}

_ENTRIES_PATHS: dict[ContentKind, str] = {
    ContentKind.COLLECTION: "/api/collections/get/{name}",
    ContentKind.SINGLETON: "/api/singletons/get/{name}",
}

_ASSETS_PATH = "/api/cockpit/assets"

def trim_slashes(value: str) -> str:
    """Strip one leading and one trailing slash."""
    if value.startswith("/"):
        value = value[1:]
    if value.endswith("/"):
        value = value[:-1]
    return value

class CockpitClient:
    """CMSClient implementation for Cockpit v1 over httpx.

    Usage::

        with CockpitClient("https://cms.example.org", token) as client:
            names = client.list_types(ContentKind.COLLECTION)
    """

    def __init__(
        self,
        host: str,
        token: str,
        upload_path: str = DEFAULT_UPLOAD_PATH,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.host = trim_slashes(host.strip())
        self.upload_path = "/" + trim_slashes(upload_path.strip()) if upload_path.strip("/") else ""
        self._client = httpx.Client(
            base_url=self.host,
            params={"token": token},
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    @classmethod
    def from_config(cls, config: SyncConfig, **kwargs: Any) -> CockpitClient:
        return cls(config.host, config.access_token, upload_path=config.upload_path, **kwargs)

    def __enter__(self) -> CockpitClient:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        """GET *path* and return the decoded JSON body."""
        logger.debug("GET %s", path)
        try:
            response = self._client.get(path, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise RemoteFetchError(
                f"GET {path} returned {exc.response.status_code}", path=path
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteFetchError(f"GET {path} failed: {exc}", path=path) from exc
        except ValueError as exc:
            raise RemoteFetchError(f"GET {path} returned invalid JSON", path=path) from exc

        if isinstance(payload, Mapping) and payload.get("error"):
            raise RemoteFetchError(f"GET {path} failed: {payload['error']}", path=path)
        return payload

    def list_types(self, kind: ContentKind) -> list[str]:
        if kind not in _LIST_PATHS:
            raise ValueError(f"{kind.value} content has no type listing")
        return normalize_names(self._get(_LIST_PATHS[kind]), kind)

    def fetch_schema(self, kind: ContentKind, name: str) -> dict[str, Any]:
        if kind is ContentKind.COLLECTION:
            payload = self._get(f"/api/collections/collection/{name}")
        elif kind is ContentKind.SINGLETON:
            listing = self._get(_LIST_PATHS[kind], params={"extended": 1})
            if not isinstance(listing, Mapping) or name not in listing:
                raise RemoteFetchError(f"Singleton {name!r} not found", path=_LIST_PATHS[kind])
            payload = listing[name]
        else:
            raise ValueError(f"{kind.value} content has no schema")
        return normalize_schema(payload, kind, name)

    def fetch_entries(self, kind: ContentKind, name: str) -> list[dict[str, Any]]:
        if kind not in _ENTRIES_PATHS:
            raise ValueError(f"{kind.value} content has no entries")
        payload = self._get(_ENTRIES_PATHS[kind].format(name=name))
        return normalize_entries(payload, kind, name)

    def list_assets(self) -> list[dict[str, Any]]:
        return normalize_assets(self._get(_ASSETS_PATH))

    def download_url(self, path: str) -> str:
        """Absolute URL of an uploaded file; *path* may include the upload root."""
        if self.upload_path and not path.startswith(self.upload_path):
            path = self.upload_path + "/" + trim_slashes(path)
        return f"{self.host}/{trim_slashes(path)}"
