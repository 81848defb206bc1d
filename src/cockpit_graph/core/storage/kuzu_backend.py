"""KuzuDB store for Cockpit Graph.

Implements the :class:`NodeStore` protocol on top of KuzuDB, an embedded
graph database that speaks Cypher.  Every node record lives in a single
``ContentNode`` table (the record itself is kept as a JSON payload), edges
live in the ``ContentRelation`` table, and the change-detection cache lives
in ``CacheEntry``.  Remote files are downloaded with httpx next to the
database.

Each pass stamps the nodes it creates or touches with a pass number; on
:meth:`KuzuStore.finish_pass` nodes carrying an older stamp are removed and
``links_to`` edges are rebuilt from the surviving payloads.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path, PurePosixPath
from typing import Any
from urllib.parse import urlparse

import httpx
import kuzu

from cockpit_graph.core.graph.model import (
    RELATION_SUFFIX,
    RelType,
    generate_node_id,
    node_type_name,
)
from cockpit_graph.errors import RemoteFetchError

logger = logging.getLogger(__name__)

_NODE_PROPERTIES = (
    "id STRING, "
    "type STRING, "
    "parent STRING, "
    "payload STRING, "
    "digest STRING, "
    "pass_id INT64, "
    "PRIMARY KEY (id)"
)

_REL_PROPERTIES = "rel_type STRING, name STRING"

_CACHE_PROPERTIES = "key STRING, value STRING, PRIMARY KEY (key)"

_PASS_KEY = "__pass__"

def _relation_targets(record: dict[str, Any]) -> list[tuple[str, str]]:
    """Return ``(relation name, target id)`` pairs declared by *record*."""
    pairs: list[tuple[str, str]] = []
    for key, value in record.items():
        if not key.endswith(RELATION_SUFFIX) or value is None:
            continue
        name = key[: -len(RELATION_SUFFIX)]
        targets = value if isinstance(value, list) else [value]
        pairs.extend((name, str(t)) for t in targets if t)
    return pairs

class KuzuStore:
    """NodeStore implementation backed by KuzuDB.

    Usage::

        store = KuzuStore(type_prefix="Cockpit")
        store.initialize(Path(".cockpit-graph/kuzu"))
        run_sync(config, client, store)
        store.close()
    """

    def __init__(
        self,
        type_prefix: str = "Cockpit",
        files_dir: Path | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.type_prefix = type_prefix
        self.files_dir = files_dir
        self._http = http_client
        self._owns_http = http_client is None
        self._db: kuzu.Database | None = None
        self._conn: kuzu.Connection | None = None
        self._pass_id = 0

    def initialize(self, path: Path, *, read_only: bool = False) -> None:
        """Open or create the KuzuDB database at *path* and set up the schema.

        Args:
            path: Filesystem path to the KuzuDB database.
            read_only: If ``True``, open the database in read-only mode.
                Schema creation is skipped since the database must already
                exist.
        """
        if self.files_dir is None:
            self.files_dir = path.parent / "files"
        self._db = kuzu.Database(str(path), read_only=read_only)
        self._conn = kuzu.Connection(self._db)
        if not read_only:
            self._create_schema()

    def close(self) -> None:
        """Release the connection, database and HTTP handles."""
        if self._http is not None and self._owns_http:
            self._http.close()
            self._http = None
        if self._conn is not None:
            del self._conn
            self._conn = None
        if self._db is not None:
            del self._db
            self._db = None

    # ------------------------------------------------------------------
    # Pass lifecycle
    # ------------------------------------------------------------------

    def begin_pass(self) -> None:
        previous = self.cache_get(_PASS_KEY) or {}
        self._pass_id = int(previous.get("pass_id", 0)) + 1
        self.cache_set(_PASS_KEY, {"pass_id": self._pass_id})
        logger.debug("Starting pass %d", self._pass_id)

    def finish_pass(self) -> int:
        """Drop stale nodes and their cache records, then rebuild edges."""
        assert self._conn is not None
        result = self._conn.execute(
            "MATCH (n:ContentNode) WHERE n.pass_id < $pid RETURN n.id",
            parameters={"pid": self._pass_id},
        )
        stale: set[str] = set()
        while result.has_next():
            stale.add(result.get_next()[0])
        if stale:
            self._drop_cache_records(stale)
        self._conn.execute(
            "MATCH (n:ContentNode) WHERE n.pass_id < $pid DETACH DELETE n",
            parameters={"pid": self._pass_id},
        )
        self._conn.execute(
            "MATCH ()-[r:ContentRelation]->() WHERE r.rel_type = $rt DELETE r",
            parameters={"rt": RelType.LINKS_TO.value},
        )

        result = self._conn.execute("MATCH (n:ContentNode) RETURN n.id, n.payload")
        rows: list[tuple[str, str]] = []
        while result.has_next():
            node_id, payload = result.get_next()
            rows.append((node_id, payload))
        for node_id, payload in rows:
            for name, target in _relation_targets(json.loads(payload)):
                self._merge_edge(node_id, target, RelType.LINKS_TO, name)

        logger.info("Pass %d finished, %d stale nodes removed", self._pass_id, len(stale))
        return len(stale)

    # ------------------------------------------------------------------
    # Nodes and edges
    # ------------------------------------------------------------------

    def create_node(self, record: dict[str, Any]) -> None:
        """Upsert *record* and stamp it with the current pass."""
        assert self._conn is not None
        internal = record.get("internal") or {}
        self._conn.execute(
            "MERGE (n:ContentNode {id: $id}) "
            "ON CREATE SET n.type = $type, n.parent = $parent, n.payload = $payload, "
            "n.digest = $digest, n.pass_id = $pid "
            "ON MATCH SET n.type = $type, n.parent = $parent, n.payload = $payload, "
            "n.digest = $digest, n.pass_id = $pid",
            parameters={
                "id": record["id"],
                "type": str(internal.get("type", "")),
                "parent": record.get("parent") or "",
                "payload": json.dumps(record, sort_keys=True, default=str),
                "digest": str(internal.get("contentDigest", "")),
                "pid": self._pass_id,
            },
        )

    def create_parent_child_link(self, parent_id: str, child_id: str) -> None:
        self._merge_edge(parent_id, child_id, RelType.CONTAINS, "")

    def touch_node(self, node_id: str) -> None:
        assert self._conn is not None
        self._conn.execute(
            "MATCH (n:ContentNode) WHERE n.id = $id SET n.pass_id = $pid",
            parameters={"id": node_id, "pid": self._pass_id},
        )

    def has_node(self, node_id: str) -> bool:
        return bool(
            self._scalar(
                "MATCH (n:ContentNode) WHERE n.id = $id RETURN count(n)",
                {"id": node_id},
            )
        )

    def get_record(self, node_id: str) -> dict[str, Any] | None:
        """Return the stored record of *node_id*, or ``None`` if not found."""
        assert self._conn is not None
        result = self._conn.execute(
            "MATCH (n:ContentNode) WHERE n.id = $id RETURN n.payload",
            parameters={"id": node_id},
        )
        if result.has_next():
            return json.loads(result.get_next()[0])
        return None

    def get_children(self, node_id: str) -> list[str]:
        """Return the ids linked under *node_id* by CONTAINS edges."""
        assert self._conn is not None
        result = self._conn.execute(
            "MATCH (a:ContentNode)-[r:ContentRelation]->(b:ContentNode) "
            "WHERE a.id = $id AND r.rel_type = $rt RETURN b.id ORDER BY b.id",
            parameters={"id": node_id, "rt": RelType.CONTAINS.value},
        )
        children: list[str] = []
        while result.has_next():
            children.append(result.get_next()[0])
        return children

    def get_related(self, node_id: str, name: str) -> list[str]:
        """Return the targets of the ``links_to`` edges named *name*."""
        assert self._conn is not None
        result = self._conn.execute(
            "MATCH (a:ContentNode)-[r:ContentRelation]->(b:ContentNode) "
            "WHERE a.id = $id AND r.rel_type = $rt AND r.name = $name RETURN b.id ORDER BY b.id",
            parameters={"id": node_id, "rt": RelType.LINKS_TO.value, "name": name},
        )
        targets: list[str] = []
        while result.has_next():
            targets.append(result.get_next()[0])
        return targets

    def node_count(self) -> int:
        return int(self._scalar("MATCH (n:ContentNode) RETURN count(n)"))

    def type_counts(self) -> dict[str, int]:
        """Return ``{internal type: node count}`` sorted by type."""
        assert self._conn is not None
        result = self._conn.execute(
            "MATCH (n:ContentNode) RETURN n.type, count(n) ORDER BY n.type"
        )
        counts: dict[str, int] = {}
        while result.has_next():
            type_name, count = result.get_next()
            counts[type_name] = int(count)
        return counts

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def cache_get(self, key: str) -> dict[str, Any] | None:
        assert self._conn is not None
        result = self._conn.execute(
            "MATCH (c:CacheEntry) WHERE c.key = $key RETURN c.value",
            parameters={"key": key},
        )
        if result.has_next():
            return json.loads(result.get_next()[0])
        return None

    def cache_set(self, key: str, value: dict[str, Any]) -> None:
        assert self._conn is not None
        self._conn.execute(
            "MERGE (c:CacheEntry {key: $key}) "
            "ON CREATE SET c.value = $value ON MATCH SET c.value = $value",
            parameters={"key": key, "value": json.dumps(value, sort_keys=True, default=str)},
        )

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def materialize_remote_file(self, url: str) -> str:
        """Download *url* into :attr:`files_dir` and declare a file node."""
        assert self.files_dir is not None
        self.files_dir.mkdir(parents=True, exist_ok=True)

        suffix = PurePosixPath(urlparse(url).path).suffix
        target = self.files_dir / (hashlib.sha1(url.encode("utf-8")).hexdigest() + suffix)

        if self._http is None:
            self._http = httpx.Client(timeout=60.0, follow_redirects=True)
        try:
            with self._http.stream("GET", url) as response:
                response.raise_for_status()
                with target.open("wb") as fh:
                    for chunk in response.iter_bytes():
                        fh.write(chunk)
        except httpx.HTTPError as exc:
            raise RemoteFetchError(f"Downloading {url} failed: {exc}", path=url) from exc

        file_type = node_type_name(self.type_prefix, "file")
        file_id = generate_node_id(file_type, url)
        self.create_node(
            {
                "id": file_id,
                "parent": None,
                "children": [],
                "url": url,
                "absolutePath": str(target.resolve()),
                "extension": suffix.lstrip("."),
                "size": target.stat().st_size,
                "internal": {"type": file_type},
            }
        )
        logger.debug("Materialized %s as %s", url, target.name)
        return file_id

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _scalar(self, query: str, parameters: dict[str, Any] | None = None) -> Any:
        assert self._conn is not None
        result = self._conn.execute(query, parameters=parameters or {})
        return result.get_next()[0] if result.has_next() else 0

    def _drop_cache_records(self, node_ids: set[str]) -> None:
        """Delete every cache record listing one of *node_ids*."""
        assert self._conn is not None
        result = self._conn.execute("MATCH (c:CacheEntry) RETURN c.key, c.value")
        doomed: list[str] = []
        while result.has_next():
            key, value = result.get_next()
            listed = json.loads(value).get("node_ids") or []
            if node_ids.intersection(listed):
                doomed.append(key)
        for key in doomed:
            self._conn.execute(
                "MATCH (c:CacheEntry) WHERE c.key = $key DELETE c",
                parameters={"key": key},
            )
        if doomed:
            logger.debug("Dropped %d cache records of pruned nodes", len(doomed))

    def _merge_edge(self, source: str, target: str, rel_type: RelType, name: str) -> None:
        """MATCH both endpoints, then MERGE the edge; missing endpoints are skipped."""
        assert self._conn is not None
        self._conn.execute(
            "MATCH (a:ContentNode), (b:ContentNode) WHERE a.id = $src AND b.id = $tgt "
            "MERGE (a)-[:ContentRelation {rel_type: $rt, name: $name}]->(b)",
            parameters={"src": source, "tgt": target, "rt": rel_type.value, "name": name},
        )

    def _create_schema(self) -> None:
        """Create node, relation and cache tables (idempotent)."""
        assert self._conn is not None
        self._conn.execute(f"CREATE NODE TABLE IF NOT EXISTS ContentNode({_NODE_PROPERTIES})")
        self._conn.execute(f"CREATE NODE TABLE IF NOT EXISTS CacheEntry({_CACHE_PROPERTIES})")
        self._conn.execute(
            "CREATE REL TABLE IF NOT EXISTS ContentRelation("
            f"FROM ContentNode TO ContentNode, {_REL_PROPERTIES})"
        )
