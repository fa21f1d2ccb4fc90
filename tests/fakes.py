"""In-memory fakes for the sink and the remote runtime."""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Optional

from docker_collector.errors import RemoteRuntimeError, StoreError
from docker_collector.models import (
    CONTAINER_STATS,
    CONTAINERS,
    IMAGES,
    NATURAL_KEYS,
    NETWORKS,
    VOLUMES,
    CollectorItem,
    CollectorRecord,
)


class FakeSink:
    """In-memory Sink with natural-key upserts and injectable failures."""

    def __init__(self, items: Optional[list[CollectorItem]] = None):
        self.collectors: list[CollectorRecord] = []
        self.items: list[CollectorItem] = list(items or [])
        self.documents: dict[str, dict[str, dict]] = {
            c: {} for c in (CONTAINERS, CONTAINER_STATS, NETWORKS, VOLUMES, IMAGES)
        }
        self.indexes: list[tuple[str, str]] = []
        self.touched: list[str] = []
        self.summaries: list[dict] = []
        self.calls: list[str] = []
        self.failures: dict[str, Exception] = {}

    def fail(self, method: str, error: Optional[Exception] = None):
        self.failures[method] = error or StoreError(f"{method} unavailable")

    async def _enter(self, method: str):
        self.calls.append(method)
        # Yield so concurrent callers interleave
        await asyncio.sleep(0)
        if method in self.failures:
            raise self.failures[method]

    async def ensure_unique_indexes(self, indexes):
        await self._enter("ensure_unique_indexes")
        self.indexes.extend(indexes)

    async def find_collector(self, name):
        await self._enter("find_collector")
        for record in self.collectors:
            if record.name == name:
                return record
        return None

    async def insert_collector(self, record):
        await self._enter("insert_collector")
        self.collectors.append(record)
        return record.id

    async def update_collector_summary(self, collector_id, duration, record_count, errors):
        await self._enter("update_collector_summary")
        record = next(r for r in self.collectors if r.id == collector_id)
        record.apply_run(duration, record_count, list(errors), max_errors=100)
        self.summaries.append(
            {"id": collector_id, "duration": duration, "records": record_count, "errors": list(errors)}
        )

    async def list_collector_items(self):
        await self._enter("list_collector_items")
        return list(self.items)

    async def touch_collector_item(self, item_id, errors=None):
        await self._enter("touch_collector_item")
        self.touched.append(item_id)

    async def _upsert(self, method, collection, documents):
        await self._enter(method)
        key = NATURAL_KEYS[collection]
        for doc in documents:
            self.documents[collection][doc[key]] = doc
        return len(documents)

    async def upsert_containers(self, containers):
        return await self._upsert("upsert_containers", CONTAINERS, containers)

    async def upsert_networks(self, networks):
        return await self._upsert("upsert_networks", NETWORKS, networks)

    async def upsert_volumes(self, volumes):
        return await self._upsert("upsert_volumes", VOLUMES, volumes)

    async def upsert_images(self, images):
        return await self._upsert("upsert_images", IMAGES, images)

    async def upsert_container_stats(self, stats):
        return await self._upsert("upsert_container_stats", CONTAINER_STATS, [stats])


class FakeStream:
    """Byte stream handed out by FakeClient.stream_stats."""

    def __init__(self, chunks: list[bytes]):
        self.chunks = chunks
        self.consumed = False

    async def aiter_bytes(self):
        for chunk in self.chunks:
            yield chunk
        self.consumed = True


@dataclass
class FakeRuntime:
    """Canned state of one remote Docker engine."""
    containers: list[dict] = field(default_factory=list)
    networks: list[dict] = field(default_factory=list)
    volumes: list[dict] = field(default_factory=list)
    volume_warnings: list = field(default_factory=list)
    images: list[dict] = field(default_factory=list)
    # container id -> raw payload chunks, or an exception to raise on open
    stats: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, Exception] = field(default_factory=dict)
    streams_opened: list[str] = field(default_factory=list)
    streams_closed: list[str] = field(default_factory=list)


class FakeClient:
    def __init__(self, host: str, api_version: str, runtime: FakeRuntime):
        self.host = host
        self.api_version = api_version
        self.runtime = runtime
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.closed = True

    def _check(self, operation: str):
        if operation in self.runtime.errors:
            raise self.runtime.errors[operation]

    async def ping(self):
        self._check("ping")
        return self.api_version, "linux"

    async def list_containers(self):
        self._check("list_containers")
        return list(self.runtime.containers)

    @asynccontextmanager
    async def stream_stats(self, container_id):
        payload = self.runtime.stats.get(container_id)
        if isinstance(payload, Exception):
            raise payload
        if payload is None:
            raise RemoteRuntimeError(f"No such container: {container_id}", status_code=404)
        self.runtime.streams_opened.append(container_id)
        try:
            yield FakeStream(payload)
        finally:
            self.runtime.streams_closed.append(container_id)

    async def list_networks(self):
        self._check("list_networks")
        return list(self.runtime.networks)

    async def list_volumes(self):
        self._check("list_volumes")
        return list(self.runtime.volumes), list(self.runtime.volume_warnings)

    async def list_images(self):
        self._check("list_images")
        return list(self.runtime.images)


class FakeFactory:
    """Client factory mapping hosts to canned runtimes."""

    def __init__(self, runtimes: Optional[dict[str, FakeRuntime]] = None):
        self.runtimes = runtimes or {}
        self.connected: list[tuple[str, str]] = []
        self.clients: list[FakeClient] = []

    def __call__(self, host: str, api_version: str) -> FakeClient:
        self.connected.append((host, api_version))
        if host not in self.runtimes:
            raise RemoteRuntimeError(f"Unsupported Docker host {host!r}")
        client = FakeClient(host, api_version, self.runtimes[host])
        self.clients.append(client)
        return client


def stats_payload(container_id: str, cpu: int = 100) -> list[bytes]:
    """A stats body split across chunks, as a stream would deliver it."""
    body = json.dumps({
        "id": container_id,
        "read": "2024-01-01T00:00:00Z",
        "cpu_stats": {"cpu_usage": {"total_usage": cpu}},
        "memory_stats": {"usage": 1024, "limit": 4096},
    }).encode() + b"\n"
    middle = len(body) // 2
    return [body[:middle], body[middle:]]


def make_item(item_id: str, host: Optional[str] = "tcp://a:2375", api_version: Optional[str] = "1.41", **kwargs) -> CollectorItem:
    options = {}
    if host is not None:
        options["host"] = host
    if api_version is not None:
        options["apiVersion"] = api_version
    return CollectorItem(id=item_id, niceName=item_id, options=options, **kwargs)


def make_runtime(container_ids=("c1", "c2"), networks=("n1",), volumes=()) -> FakeRuntime:
    return FakeRuntime(
        containers=[{"Id": cid, "Names": [f"/{cid}"], "State": "running"} for cid in container_ids],
        networks=[{"Id": nid, "Name": nid} for nid in networks],
        volumes=[{"Name": name, "Driver": "local"} for name in volumes],
        stats={cid: stats_payload(cid) for cid in container_ids},
    )


