"""Tests for the offline dump client."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from cockpit_graph.client.base import CMSClient
from cockpit_graph.client.static import StaticClient, dump_content
from cockpit_graph.config.settings import ContentKind
from cockpit_graph.errors import RemoteFetchError

DUMP = {
    "host": "https://cms.test/",
    "uploadPath": "/storage/uploads",
    "collection": {
        "posts": {
            "schema": {"fields": [{"name": "title"}]},
            "entries": {"entries": [{"_id": "p1", "title": "Hi"}]},
        }
    },
    "singleton": {
        "settings": {"schema": {"fields": []}, "entries": {"site_name": "Blog"}},
    },
    "assets": {"assets": [{"_id": "as1", "path": "/a.png"}]},
}


@pytest.fixture()
def client() -> StaticClient:
    return StaticClient(DUMP)


class TestStaticClient:
    def test_satisfies_protocol(self, client: StaticClient) -> None:
        assert isinstance(client, CMSClient)

    def test_list_types(self, client: StaticClient) -> None:
        assert client.list_types(ContentKind.COLLECTION) == ["posts"]
        assert client.list_types(ContentKind.SINGLETON) == ["settings"]

    def test_entries_are_normalized(self, client: StaticClient) -> None:
        assert client.fetch_entries(ContentKind.COLLECTION, "posts") == [{"_id": "p1", "title": "Hi"}]
        assert client.fetch_entries(ContentKind.SINGLETON, "settings") == [{"site_name": "Blog"}]

    def test_assets(self, client: StaticClient) -> None:
        assert client.list_assets() == [{"_id": "as1", "path": "/a.png"}]

    def test_unknown_type(self, client: StaticClient) -> None:
        with pytest.raises(RemoteFetchError, match="Unknown collection 'pages'"):
            client.fetch_schema(ContentKind.COLLECTION, "pages")

    def test_download_url(self, client: StaticClient) -> None:
        assert client.download_url("/a.png") == "https://cms.test/storage/uploads/a.png"

    def test_empty_dump(self) -> None:
        client = StaticClient({})
        assert client.list_types(ContentKind.COLLECTION) == []
        assert client.list_assets() == []
        assert client.host == "http://localhost"


class TestFromFile:
    def test_reads_json(self, tmp_path: Path) -> None:
        path = tmp_path / "dump.json"
        path.write_text(json.dumps(DUMP), encoding="utf-8")
        client = StaticClient.from_file(path)
        assert client.list_types(ContentKind.COLLECTION) == ["posts"]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(RemoteFetchError, match="Cannot read"):
            StaticClient.from_file(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "dump.json"
        path.write_text("{nope", encoding="utf-8")
        with pytest.raises(RemoteFetchError, match="Cannot read"):
            StaticClient.from_file(path)

    def test_non_object(self, tmp_path: Path) -> None:
        path = tmp_path / "dump.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(RemoteFetchError, match="JSON object"):
            StaticClient.from_file(path)


class TestDumpContent:
    def test_dump_replays_identically(self, client: StaticClient) -> None:
        data = dump_content(client, "https://cms.test", "/storage/uploads")
        replay = StaticClient(data)

        assert data["host"] == "https://cms.test"
        assert data["collection"]["posts"]["entries"] == [{"_id": "p1", "title": "Hi"}]
        assert replay.fetch_entries(ContentKind.SINGLETON, "settings") == [{"site_name": "Blog"}]
        assert replay.list_assets() == client.list_assets()
