"""Tests for the asset resolution map."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from cockpit_graph.config.settings import ContentConfig, ContentKind, TagFilter
from cockpit_graph.core.storage.memory import MemoryStore
from cockpit_graph.core.sync.assets import (
    AssetMap,
    asset_value_path,
    build_asset_map,
    is_eligible,
    normalize_asset_path,
)
from cockpit_graph.core.sync.cache import CacheGate

UPLOADS = "/storage/uploads"


def _asset(
    path: str,
    asset_id: str | None = None,
    modified: int | None = 100,
    tags: list[str] | None = None,
    **categories: bool,
) -> dict[str, Any]:
    """Helper to build a raw Cockpit asset; defaults to an image."""
    asset: dict[str, Any] = {
        "_id": asset_id or path.strip("/").replace("/", "-"),
        "path": path,
        "tags": tags or [],
        "image": True,
    }
    if modified is not None:
        asset["modified"] = modified
    asset.update(categories)
    return asset


def _download_url(path: str) -> str:
    return f"https://cms.test{UPLOADS}{path}"


def _build(
    assets: list[dict[str, Any]],
    content: ContentConfig | None = None,
    store: MemoryStore | None = None,
) -> tuple[AssetMap, MemoryStore]:
    store = store or MemoryStore()
    content = content or ContentConfig(kind=ContentKind.ASSET)
    gate = CacheGate(store)
    asset_map = build_asset_map(
        assets,
        content,
        upload_path=UPLOADS,
        type_prefix="Cockpit",
        gate=gate,
        store=store,
        download_url=_download_url,
    )
    gate.flush()
    return asset_map, store


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


class TestPaths:
    def test_normalize_strips_first_occurrence(self) -> None:
        assert normalize_asset_path("/storage/uploads/a/storage/uploads.png", UPLOADS) == "/a/storage/uploads.png"

    def test_normalize_without_upload_root(self) -> None:
        assert normalize_asset_path("/a.png", "") == "/a.png"

    def test_value_path_from_mapping(self) -> None:
        assert asset_value_path({"path": "/a.png"}) == "/a.png"

    def test_value_path_from_string(self) -> None:
        assert asset_value_path("/a.png") == "/a.png"

    def test_value_path_from_other(self) -> None:
        assert asset_value_path(42) == ""
        assert asset_value_path({"title": "no path"}) == ""


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------


class TestEligibility:
    def test_enabled_filetype_accepted(self) -> None:
        assert is_eligible(_asset("/a.png"), ContentConfig(kind=ContentKind.ASSET))

    def test_disabled_filetype_rejected(self) -> None:
        content = ContentConfig(kind=ContentKind.ASSET, filetypes={"image": False, "document": True})
        assert not is_eligible(_asset("/a.png"), content)

    def test_no_category_rejected(self) -> None:
        asset = _asset("/a.bin", image=False)
        assert not is_eligible(asset, ContentConfig(kind=ContentKind.ASSET))

    def test_tag_allow_list_requires_tag(self) -> None:
        content = ContentConfig(kind=ContentKind.ASSET, tags=TagFilter(whitelist=("public",)))
        assert is_eligible(_asset("/a.png", tags=["public"]), content)
        assert not is_eligible(_asset("/b.png", tags=["draft"]), content)
        assert not is_eligible(_asset("/c.png"), content)

    def test_tag_deny_list_rejects_tag(self) -> None:
        content = ContentConfig(kind=ContentKind.ASSET, tags=TagFilter(blacklist=("private",)))
        assert not is_eligible(_asset("/a.png", tags=["private", "x"]), content)
        assert is_eligible(_asset("/b.png", tags=["x"]), content)

    def test_allow_list_shadows_deny_list(self) -> None:
        content = ContentConfig(
            kind=ContentKind.ASSET,
            tags=TagFilter(whitelist=("public",), blacklist=("public",)),
        )
        assert is_eligible(_asset("/a.png", tags=["public"]), content)


# ---------------------------------------------------------------------------
# AssetMap lookup
# ---------------------------------------------------------------------------


class TestAssetMapResolve:
    def test_exact_path(self) -> None:
        asset_map = AssetMap(UPLOADS, {"/2024/a.png": "file-a"})
        assert asset_map.resolve({"path": "/2024/a.png"}) == "file-a"

    def test_upload_root_is_stripped(self) -> None:
        asset_map = AssetMap(UPLOADS, {"/2024/a.png": "file-a"})
        assert asset_map.resolve({"path": "/storage/uploads/2024/a.png"}) == "file-a"

    def test_substring_match(self) -> None:
        asset_map = AssetMap(UPLOADS, {"/2024/01/a.png": "file-a"})
        assert asset_map.resolve("01/a.png") == "file-a"

    def test_first_match_wins(self, caplog: pytest.LogCaptureFixture) -> None:
        asset_map = AssetMap(UPLOADS, {"/x/a.png": "first", "/y/a.png": "second"})
        with caplog.at_level(logging.DEBUG, logger="cockpit_graph.core.sync.assets"):
            assert asset_map.resolve("a.png") == "first"
        assert "matches 2 paths" in caplog.text

    def test_miss_is_none_and_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        asset_map = AssetMap(UPLOADS, {"/a.png": "file-a"})
        with caplog.at_level(logging.INFO, logger="cockpit_graph.core.sync.assets"):
            assert asset_map.resolve({"path": "/missing.png"}) is None
        assert "missing.png" in caplog.text

    def test_empty_path_never_matches(self) -> None:
        asset_map = AssetMap(UPLOADS, {"/a.png": "file-a"})
        assert asset_map.resolve({"path": ""}) is None
        assert asset_map.resolve({"path": UPLOADS}) is None
        assert asset_map.resolve(None) is None

    def test_first_registration_wins(self) -> None:
        asset_map = AssetMap(UPLOADS)
        asset_map.add("/a.png", "one")
        asset_map.add("/a.png", "two")
        assert len(asset_map) == 1
        assert asset_map.resolve("/a.png") == "one"

    def test_file_ids_distinct_in_order(self) -> None:
        asset_map = AssetMap(UPLOADS, {"/a.png": "f1", "/b.png": "f2", "/c.png": "f1"})
        assert asset_map.file_ids == ["f1", "f2"]


# ---------------------------------------------------------------------------
# build_asset_map
# ---------------------------------------------------------------------------


class TestBuildAssetMap:
    def test_materializes_eligible_assets(self) -> None:
        asset_map, store = _build([_asset("/a.png"), _asset("/b.png")])
        assert asset_map.file_ids == [store.files[_download_url(p)] for p in ("/a.png", "/b.png")]
        assert store.downloads == [_download_url("/a.png"), _download_url("/b.png")]
        assert asset_map.resolve("/a.png") == store.files[_download_url("/a.png")]

    def test_no_asset_content_yields_empty_map(self) -> None:
        store = MemoryStore()
        asset_map = build_asset_map(
            [_asset("/a.png")],
            None,
            upload_path=UPLOADS,
            type_prefix="Cockpit",
            gate=CacheGate(store),
            store=store,
            download_url=_download_url,
        )
        assert len(asset_map) == 0
        assert store.downloads == []

    def test_ineligible_assets_are_skipped(self) -> None:
        content = ContentConfig(kind=ContentKind.ASSET, tags=TagFilter(blacklist=("private",)))
        asset_map, store = _build(
            [_asset("/a.png"), _asset("/secret.png", tags=["private"])],
            content,
        )
        assert asset_map.resolve("/secret.png") is None
        assert store.downloads == [_download_url("/a.png")]

    def test_assets_without_path_are_skipped(self) -> None:
        asset_map, store = _build([{"_id": "x", "image": True}])
        assert len(asset_map) == 0

    def test_cached_asset_is_not_downloaded_again(self) -> None:
        store = MemoryStore()
        store.begin_pass()
        first, _ = _build([_asset("/a.png")], store=store)
        store.finish_pass()

        store.begin_pass()
        second, _ = _build([_asset("/a.png")], store=store)
        assert store.downloads == []
        assert store.touched == [first.resolve("/a.png")]
        assert second.resolve("/a.png") == first.resolve("/a.png")

    def test_modified_asset_is_downloaded_again(self) -> None:
        store = MemoryStore()
        _build([_asset("/a.png", modified=1)], store=store)
        store.begin_pass()
        _build([_asset("/a.png", modified=2)], store=store)
        assert store.downloads == [_download_url("/a.png")]

    def test_asset_without_timestamp_is_never_cached(self) -> None:
        store = MemoryStore()
        _build([_asset("/a.png", modified=None)], store=store)
        assert store.cache == {}
