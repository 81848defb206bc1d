"""End-to-end tests for sync passes persisted in KuzuDB.

Replays a small content dump through the full pipeline into a real KuzuDB
database in a temp directory, with file downloads served by an httpx mock
transport, and verifies records, containment, relation edges, file
materialization, change detection and pruning across passes.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import httpx
import pytest

from cockpit_graph.client.static import StaticClient
from cockpit_graph.config.settings import ContentConfig, ContentKind, SyncConfig
from cockpit_graph.core.storage.base import NodeStore
from cockpit_graph.core.storage.kuzu_backend import KuzuStore
from cockpit_graph.core.sync.pipeline import SyncResult, run_sync
from cockpit_graph.errors import RemoteFetchError

P1 = "CockpitCollectionPosts__p1"
P2 = "CockpitCollectionPosts__p2"
A1 = "CockpitCollectionAuthors__a1"
COVER_URL = "https://cms.test/storage/uploads/2024/cover.png"
COVER = f"CockpitFile__{COVER_URL}"
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"

_DUMP: dict[str, Any] = {
    "host": "https://cms.test",
    "collection": {
        "posts": {
            "schema": {
                "fields": [
                    {"name": "title", "type": "text"},
                    {"name": "body", "type": "markdown"},
                    {"name": "author", "type": "collectionlink", "options": {"link": "authors"}},
                    {"name": "cover", "type": "image"},
                ]
            },
            "entries": [
                {
                    "_id": "p1",
                    "_modified": 1,
                    "title": "First",
                    "body": "# One",
                    "author": {"_id": "a1"},
                    "cover": {"path": "/storage/uploads/2024/cover.png"},
                },
                {"_id": "p2", "_modified": 1, "title": "Second", "author": {"_id": "a1"}},
            ],
        },
        "authors": {
            "schema": {"fields": [{"name": "name", "type": "text"}]},
            "entries": [{"_id": "a1", "_modified": 1, "name": "Ann"}],
        },
    },
    "assets": [{"_id": "as1", "path": "/2024/cover.png", "image": True, "modified": 1}],
}

CONFIG = SyncConfig(
    host="https://cms.test",
    access_token="token",
    contents=(ContentConfig(kind=ContentKind.COLLECTION), ContentConfig(kind=ContentKind.ASSET)),
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


class _Files:
    """Mock file server counting downloads."""

    def __init__(self) -> None:
        self.requests: list[str] = []
        self.status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(str(request.url))
        return httpx.Response(self.status, content=PNG_BYTES)


@pytest.fixture()
def files() -> _Files:
    return _Files()


@pytest.fixture()
def store(tmp_path: Path, files: _Files) -> Iterator[KuzuStore]:
    store = KuzuStore(
        type_prefix="Cockpit",
        http_client=httpx.Client(transport=httpx.MockTransport(files)),
    )
    store.initialize(tmp_path / "kuzu")
    yield store
    store.close()


def _sync(store: KuzuStore, data: dict[str, Any] | None = None) -> SyncResult:
    _, result = run_sync(CONFIG, StaticClient(data or copy.deepcopy(_DUMP)), store)
    return result


# ---------------------------------------------------------------------------
# First pass
# ---------------------------------------------------------------------------


class TestFirstPass:
    def test_store_satisfies_protocol(self, store: KuzuStore) -> None:
        assert isinstance(store, NodeStore)

    def test_counts(self, store: KuzuStore) -> None:
        result = _sync(store)
        # graph nodes plus the materialized file node
        assert store.node_count() == result.nodes + 1
        assert result.entries == 3
        assert result.assets == 1

    def test_entry_record(self, store: KuzuStore) -> None:
        _sync(store)
        record = store.get_record(P1)
        assert record is not None
        assert record["title"] == "First"
        assert record["author___NODE"] == A1
        assert record["cover___NODE"] == COVER

    def test_containment(self, store: KuzuStore) -> None:
        _sync(store)
        assert store.get_children("CockpitCollection__posts") == [P1, P2]
        assert store.get_children(P1) == ["posts_p1_body"]
        assert store.get_children("CockpitAsset__assets") == [COVER]

    def test_relation_edges(self, store: KuzuStore) -> None:
        _sync(store)
        assert store.get_related(P1, "author") == [A1]
        assert store.get_related(A1, "posts_set") == [P1, P2]
        assert store.get_related(P1, "cover") == [COVER]

    def test_file_is_materialized(self, store: KuzuStore, files: _Files) -> None:
        _sync(store)
        assert files.requests == [COVER_URL]
        record = store.get_record(COVER)
        assert record is not None
        assert record["extension"] == "png"
        assert record["size"] == len(PNG_BYTES)
        assert Path(record["absolutePath"]).read_bytes() == PNG_BYTES

    def test_type_counts(self, store: KuzuStore) -> None:
        _sync(store)
        counts = store.type_counts()
        assert counts["CockpitCollectionPosts"] == 2
        assert counts["CockpitCollectionAuthors"] == 1
        assert counts["CockpitContentRemark"] == 2
        assert counts["CockpitFile"] == 1

    def test_download_failure_is_fatal(self, store: KuzuStore, files: _Files) -> None:
        files.status = 500
        with pytest.raises(RemoteFetchError, match="cover.png"):
            _sync(store)
        assert store.get_record(P1) is None


# ---------------------------------------------------------------------------
# Repeated passes
# ---------------------------------------------------------------------------


class TestRepeatedPasses:
    def test_unchanged_pass_reuses_everything(self, store: KuzuStore, files: _Files) -> None:
        first = _sync(store)
        count = store.node_count()

        second = _sync(store)

        assert second.cached_entries == 3
        assert second.pruned == 0
        assert store.node_count() == count
        assert files.requests == [COVER_URL]
        assert second.nodes < first.nodes

    def test_relations_survive_cached_pass(self, store: KuzuStore) -> None:
        _sync(store)
        _sync(store)
        assert store.get_related(A1, "posts_set") == [P1, P2]
        assert store.get_children("CockpitCollection__posts") == [P1, P2]

    def test_removed_entry_is_pruned(self, store: KuzuStore) -> None:
        _sync(store)
        data = copy.deepcopy(_DUMP)
        del data["collection"]["posts"]["entries"][1]

        result = _sync(store, data)

        assert result.pruned == 2
        assert store.get_record(P2) is None
        assert store.get_record("posts_p2_body") is None
        assert store.get_children("CockpitCollection__posts") == [P1]

    def test_entry_returning_after_prune_is_rebuilt(self, store: KuzuStore) -> None:
        _sync(store)
        data = copy.deepcopy(_DUMP)
        del data["collection"]["posts"]["entries"][1]
        _sync(store, data)
        assert store.has_node(P2) is False

        result = _sync(store)

        assert result.cached_entries == 2
        assert store.get_record(P2)["title"] == "Second"
        assert store.get_children("CockpitCollection__posts") == [P1, P2]

    def test_modified_entry_is_rewritten(self, store: KuzuStore) -> None:
        _sync(store)
        data = copy.deepcopy(_DUMP)
        p1 = data["collection"]["posts"]["entries"][0]
        p1["_modified"] = 2
        p1["title"] = "First, edited"

        result = _sync(store, data)

        assert result.cached_entries == 2
        assert store.get_record(P1)["title"] == "First, edited"

    def test_reopen_read_only(self, store: KuzuStore, tmp_path: Path) -> None:
        _sync(store)
        store.close()

        reader = KuzuStore()
        reader.initialize(tmp_path / "kuzu", read_only=True)
        try:
            assert reader.get_record(P1)["title"] == "First"
        finally:
            reader.close()
