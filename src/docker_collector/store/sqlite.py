"""
Document Store.

SQLite-backed JSON document store. Each collection is a table of JSON
documents; natural keys are enforced with expression indexes so that
upserts replace whole documents instead of duplicating them.
"""

import asyncio
import json
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from ..errors import StoreError
from ..models import (
    COLLECTORS,
    COLLECTOR_ITEMS,
    CONTAINERS,
    CONTAINER_STATS,
    NETWORKS,
    VOLUMES,
    IMAGES,
    NATURAL_KEYS,
    CollectionError,
    CollectorItem,
    CollectorRecord,
)

COLLECTIONS = [COLLECTORS, COLLECTOR_ITEMS, CONTAINERS, CONTAINER_STATS, NETWORKS, VOLUMES, IMAGES]


def _key_expr(key_field: str) -> str:
    """SQL expression extracting a top-level document field."""
    if not key_field.isidentifier():
        raise StoreError(f"Invalid document field: {key_field!r}")
    return f"json_extract(data, '$.{key_field}')"


def _table(collection: str) -> str:
    if collection not in COLLECTIONS:
        raise StoreError(f"Unknown collection: {collection!r}")
    return collection


class DocumentStore:
    """
    SQLite-based document store for collector bookkeeping and inventory.

    Features:
    - Whole-document replacement keyed by natural id
    - Unique expression indexes for upsert idempotence
    - Thread-safe operations
    """

    TABLE_SCHEMA = """
    CREATE TABLE IF NOT EXISTS {table} (
        doc_id INTEGER PRIMARY KEY AUTOINCREMENT,
        data TEXT NOT NULL,
        updated_at REAL NOT NULL
    );
    """

    # Bookkeeping keys are guarded from the start; inventory keys are
    # created by the collector at registration.
    BOOKKEEPING_INDEXES = [("name", COLLECTORS), ("id", COLLECTORS), ("id", COLLECTOR_ITEMS)]

    def __init__(self, path: str = "./data/docker_collector.db", max_error_log: int = 100):
        """Initialize the store."""
        self.path = str(path)
        self.max_error_log = max_error_log

        self._lock = threading.Lock()
        self._conn = None

        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._init_db()

    def _init_db(self):
        """Initialize the database."""
        try:
            self._conn = sqlite3.connect(self.path, check_same_thread=False)
            for table in COLLECTIONS:
                self._conn.executescript(self.TABLE_SCHEMA.format(table=table))
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to open document store {self.path}: {e}") from e
        self.ensure_unique_indexes(self.BOOKKEEPING_INDEXES)

    def _get_conn(self) -> sqlite3.Connection:
        """Get database connection."""
        if self._conn is None:
            self._init_db()
        return self._conn

    @contextmanager
    def _transaction(self, action: str) -> Iterator[sqlite3.Connection]:
        """Run a unit of work under the store lock, wrapping SQLite errors."""
        with self._lock:
            conn = self._get_conn()
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise StoreError(f"{action} failed: {e}") from e

    # Indexes

    def ensure_unique_indexes(self, indexes: list[tuple[str, str]]):
        """
        Create unique indexes on ``(field, collection)`` pairs.

        Every index is attempted; failures are collected and raised together.
        """
        failures = []
        for key_field, collection in indexes:
            table = _table(collection)
            name = f"uq_{table}_{key_field.lower()}"
            try:
                with self._transaction(f"Creating index {name}") as conn:
                    conn.execute(
                        f"CREATE UNIQUE INDEX IF NOT EXISTS {name} ON {table} ({_key_expr(key_field)})"
                    )
            except StoreError as e:
                failures.append(str(e))

        if failures:
            raise StoreError("; ".join(failures))

    # Generic document access

    def upsert_many(self, collection: str, key_field: str, documents: list[dict]) -> int:
        """
        Replace or insert documents by natural key.

        Returns:
            Number of documents written
        """
        table = _table(collection)
        key_expr = _key_expr(key_field)

        for doc in documents:
            if doc.get(key_field) in (None, ""):
                raise StoreError(f"Document in {collection} has no '{key_field}'")

        with self._transaction(f"Upserting into {collection}") as conn:
            now = time.time()
            for doc in documents:
                data = json.dumps(doc, default=str)
                cursor = conn.execute(
                    f"UPDATE {table} SET data = ?, updated_at = ? WHERE {key_expr} = ?",
                    (data, now, doc[key_field]),
                )
                if cursor.rowcount == 0:
                    conn.execute(
                        f"INSERT INTO {table} (data, updated_at) VALUES (?, ?)",
                        (data, now),
                    )

        return len(documents)

    def find_one(self, collection: str, key_field: str, value) -> Optional[dict]:
        """Find a single document by field value."""
        table = _table(collection)
        with self._transaction(f"Querying {collection}") as conn:
            cursor = conn.execute(
                f"SELECT data FROM {table} WHERE {_key_expr(key_field)} = ? ORDER BY doc_id LIMIT 1",
                (value,),
            )
            row = cursor.fetchone()
        return json.loads(row[0]) if row else None

    def find_all(
        self,
        collection: str,
        filters: Optional[dict] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """List documents in insertion order, optionally filtered by field equality."""
        table = _table(collection)
        query = f"SELECT data FROM {table}"
        params: list = []

        if filters:
            clauses = []
            for key_field, value in filters.items():
                clauses.append(f"{_key_expr(key_field)} = ?")
                params.append(value)
            query += " WHERE " + " AND ".join(clauses)

        query += " ORDER BY doc_id ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self._transaction(f"Querying {collection}") as conn:
            rows = conn.execute(query, params).fetchall()
        return [json.loads(row[0]) for row in rows]

    def count(self, collection: str) -> int:
        """Get the number of documents in a collection."""
        table = _table(collection)
        with self._transaction(f"Counting {collection}") as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    # Collector identity

    def find_collector(self, name: str) -> Optional[CollectorRecord]:
        doc = self.find_one(COLLECTORS, "name", name)
        return CollectorRecord.from_document(doc) if doc else None

    def get_collector(self, collector_id: str) -> Optional[CollectorRecord]:
        doc = self.find_one(COLLECTORS, "id", collector_id)
        return CollectorRecord.from_document(doc) if doc else None

    def insert_collector(self, record: CollectorRecord) -> str:
        """
        Insert a collector identity record.

        If another writer registered the same name first, the existing id is
        returned instead of creating a second record.
        """
        try:
            with self._transaction(f"Inserting collector {record.name}") as conn:
                conn.execute(
                    f"INSERT INTO {COLLECTORS} (data, updated_at) VALUES (?, ?)",
                    (json.dumps(record.to_document()), time.time()),
                )
        except StoreError as e:
            if not isinstance(e.__cause__, sqlite3.IntegrityError):
                raise
            existing = self.find_collector(record.name)
            if existing is None:
                raise
            return existing.id
        return record.id

    def update_collector_summary(
        self,
        collector_id: str,
        duration: float,
        record_count: int,
        errors: list[CollectionError],
    ):
        """Fold one completed cycle into the identity record."""
        key_expr = _key_expr("id")
        with self._transaction(f"Updating collector {collector_id}") as conn:
            row = conn.execute(
                f"SELECT data FROM {COLLECTORS} WHERE {key_expr} = ?", (collector_id,)
            ).fetchone()
            if row is None:
                raise StoreError(f"Collector {collector_id} not found")

            record = CollectorRecord.from_document(json.loads(row[0]))
            record.apply_run(duration, record_count, errors, self.max_error_log)
            conn.execute(
                f"UPDATE {COLLECTORS} SET data = ?, updated_at = ? WHERE {key_expr} = ?",
                (json.dumps(record.to_document()), time.time(), collector_id),
            )

    # Collector items (targets)

    def list_collector_items(self) -> list[CollectorItem]:
        return [CollectorItem.from_document(doc) for doc in self.find_all(COLLECTOR_ITEMS)]

    def get_collector_item(self, item_id: str) -> Optional[CollectorItem]:
        doc = self.find_one(COLLECTOR_ITEMS, "id", item_id)
        return CollectorItem.from_document(doc) if doc else None

    def save_collector_item(self, item: CollectorItem) -> str:
        self.upsert_many(COLLECTOR_ITEMS, "id", [item.to_document()])
        return item.id

    def set_collector_item_enabled(self, item_id: str, enabled: bool):
        item = self.get_collector_item(item_id)
        if item is None:
            raise StoreError(f"Collector item {item_id} not found")
        item.enabled = enabled
        self.save_collector_item(item)

    def touch_collector_item(
        self, item_id: str, errors: Optional[list[CollectionError]] = None
    ):
        """Stamp a target's last-updated time, replacing its error list if given."""
        key_expr = _key_expr("id")
        with self._transaction(f"Stamping collector item {item_id}") as conn:
            row = conn.execute(
                f"SELECT data FROM {COLLECTOR_ITEMS} WHERE {key_expr} = ?", (item_id,)
            ).fetchone()
            if row is None:
                raise StoreError(f"Collector item {item_id} not found")

            item = CollectorItem.from_document(json.loads(row[0]))
            item.lastUpdated = int(time.time() * 1000)
            if errors is not None:
                item.errors = list(errors)
            conn.execute(
                f"UPDATE {COLLECTOR_ITEMS} SET data = ?, updated_at = ? WHERE {key_expr} = ?",
                (json.dumps(item.to_document()), time.time(), item_id),
            )

    # Inventory

    def upsert_containers(self, containers: list[dict]) -> int:
        return self.upsert_many(CONTAINERS, NATURAL_KEYS[CONTAINERS], containers)

    def upsert_networks(self, networks: list[dict]) -> int:
        return self.upsert_many(NETWORKS, NATURAL_KEYS[NETWORKS], networks)

    def upsert_volumes(self, volumes: list[dict]) -> int:
        return self.upsert_many(VOLUMES, NATURAL_KEYS[VOLUMES], volumes)

    def upsert_images(self, images: list[dict]) -> int:
        return self.upsert_many(IMAGES, NATURAL_KEYS[IMAGES], images)

    def upsert_container_stats(self, stats: dict) -> int:
        return self.upsert_many(CONTAINER_STATS, NATURAL_KEYS[CONTAINER_STATS], [stats])

    def close(self):
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class AsyncDocumentStore:
    """Async wrapper for DocumentStore, satisfying the ``Sink`` contract."""

    def __init__(self, *args, **kwargs):
        """Initialize the async store."""
        self._store = kwargs.pop("store", None) or DocumentStore(*args, **kwargs)
        self._executor = None

    @property
    def store(self) -> DocumentStore:
        return self._store

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    async def ensure_unique_indexes(self, indexes: list[tuple[str, str]]):
        await self._run(self._store.ensure_unique_indexes, indexes)

    async def find_collector(self, name: str) -> Optional[CollectorRecord]:
        return await self._run(self._store.find_collector, name)

    async def insert_collector(self, record: CollectorRecord) -> str:
        return await self._run(self._store.insert_collector, record)

    async def update_collector_summary(
        self,
        collector_id: str,
        duration: float,
        record_count: int,
        errors: list[CollectionError],
    ):
        await self._run(
            self._store.update_collector_summary, collector_id, duration, record_count, errors
        )

    async def list_collector_items(self) -> list[CollectorItem]:
        return await self._run(self._store.list_collector_items)

    async def touch_collector_item(
        self, item_id: str, errors: Optional[list[CollectionError]] = None
    ):
        await self._run(self._store.touch_collector_item, item_id, errors)

    async def upsert_containers(self, containers: list[dict]) -> int:
        return await self._run(self._store.upsert_containers, containers)

    async def upsert_networks(self, networks: list[dict]) -> int:
        return await self._run(self._store.upsert_networks, networks)

    async def upsert_volumes(self, volumes: list[dict]) -> int:
        return await self._run(self._store.upsert_volumes, volumes)

    async def upsert_images(self, images: list[dict]) -> int:
        return await self._run(self._store.upsert_images, images)

    async def upsert_container_stats(self, stats: dict) -> int:
        return await self._run(self._store.upsert_container_stats, stats)

    def close(self):
        """Close the store."""
        self._store.close()
