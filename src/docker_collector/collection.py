"""Per-target collection of container inventory and utilization."""

import json
import time

from .errors import StatsDecodeError, TargetConfigError
from .models import CollectorItem, stamp_document
from .report import (
    ERROR_CONFIG,
    ERROR_CONNECT,
    ERROR_PING,
    KIND_CONTAINERS,
    KIND_IMAGES,
    KIND_NETWORKS,
    KIND_STATS,
    KIND_VOLUMES,
    TargetResult,
)
from .runtime import ClientFactory, RemoteClient, StatsStream
from .store import Sink
from .utils import get_logger

logger = get_logger(__name__)


async def decode_stats(stream: StatsStream) -> dict:
    """
    Consume a stats stream to the end and decode its first JSON document.

    The runtime may append a trailing newline or further samples after the
    first document; only the first one is kept.
    """
    buffer = bytearray()
    async for chunk in stream.aiter_bytes():
        buffer.extend(chunk)

    try:
        text = buffer.decode("utf-8").lstrip()
        payload, _ = json.JSONDecoder().raw_decode(text)
    except ValueError as e:
        raise StatsDecodeError(f"Invalid stats payload ({len(buffer)} bytes): {e}") from e

    if not isinstance(payload, dict):
        raise StatsDecodeError(f"Expected a stats object, got {type(payload).__name__}")
    return payload


class TargetCollector:
    """
    Runs one collection pass against a single remote runtime.

    Containers, per-container stats, networks, volumes and images are
    independent: a failure in one is recorded and the rest still run.
    """

    def __init__(self, sink: Sink, client_factory: ClientFactory):
        self.sink = sink
        self.client_factory = client_factory

    async def collect(self, item: CollectorItem) -> TargetResult:
        """Collect everything from one target and upsert it into the sink."""
        result = TargetResult(target_id=item.id, name=item.display_name)

        missing = item.missing_options()
        if missing:
            error = TargetConfigError(item.id, missing)
            logger.error(str(error))
            result.fail(ERROR_CONFIG, str(error))
            return result

        try:
            client = self.client_factory(item.host, item.api_version)
        except Exception as e:
            logger.error(f"Collector item {item.id}: connecting to {item.host} failed: {e}")
            result.fail(ERROR_CONNECT, f"Connecting to {item.host} failed: {e}")
            return result

        async with client:
            try:
                result.api_version, result.os_type = await client.ping()
            except Exception as e:
                logger.error(f"Collector item {item.id}: ping of {item.host} failed: {e}")
                result.fail(ERROR_PING, f"Ping of {item.host} failed: {e}")
                return result

            logger.info(
                f"Collecting from {item.display_name} ({item.host}, API {result.api_version}, {result.os_type})"
            )
            timestamp = int(time.time() * 1000)

            containers = await self._collect_containers(client, item, result, timestamp)
            await self._collect_stats(client, item, containers, result, timestamp)
            await self._collect_networks(client, item, result, timestamp)
            await self._collect_volumes(client, item, result, timestamp)
            await self._collect_images(client, item, result, timestamp)

        return result

    def _record(self, result: TargetResult, item: CollectorItem, kind: str, message: str):
        logger.error(f"Collector item {item.id}: {kind}: {message}")
        result.resource(kind).errors.append(message)

    async def _collect_containers(
        self, client: RemoteClient, item: CollectorItem, result: TargetResult, timestamp: int
    ) -> list[dict]:
        """List and upsert containers; returns the listed containers."""
        result.resource(KIND_CONTAINERS)
        try:
            containers = await client.list_containers()
        except Exception as e:
            self._record(result, item, KIND_CONTAINERS, f"Listing containers failed: {e}")
            return []

        if containers:
            try:
                result.resource(KIND_CONTAINERS).count = await self.sink.upsert_containers(
                    [stamp_document(c, item.id, timestamp) for c in containers]
                )
            except Exception as e:
                self._record(result, item, KIND_CONTAINERS, f"Saving {len(containers)} containers failed: {e}")

        return containers

    async def _collect_stats(
        self,
        client: RemoteClient,
        item: CollectorItem,
        containers: list[dict],
        result: TargetResult,
        timestamp: int,
    ):
        """Fetch one stats sample per container; each container is isolated."""
        resource = result.resource(KIND_STATS)

        for container in containers:
            container_id = container.get("Id")
            if not container_id:
                continue

            try:
                async with client.stream_stats(container_id) as stream:
                    stats = await decode_stats(stream)
            except Exception as e:
                self._record(result, item, KIND_STATS, f"Stats for container {container_id} failed: {e}")
                continue

            document = stamp_document(stats, item.id, timestamp)
            document["id"] = container_id
            try:
                resource.count += await self.sink.upsert_container_stats(document)
            except Exception as e:
                self._record(result, item, KIND_STATS, f"Saving stats for container {container_id} failed: {e}")

    async def _collect_networks(
        self, client: RemoteClient, item: CollectorItem, result: TargetResult, timestamp: int
    ):
        result.resource(KIND_NETWORKS)
        try:
            networks = await client.list_networks()
        except Exception as e:
            self._record(result, item, KIND_NETWORKS, f"Listing networks failed: {e}")
            return

        if networks:
            try:
                result.resource(KIND_NETWORKS).count = await self.sink.upsert_networks(
                    [stamp_document(n, item.id, timestamp) for n in networks]
                )
            except Exception as e:
                self._record(result, item, KIND_NETWORKS, f"Saving {len(networks)} networks failed: {e}")

    async def _collect_volumes(
        self, client: RemoteClient, item: CollectorItem, result: TargetResult, timestamp: int
    ):
        resource = result.resource(KIND_VOLUMES)
        try:
            volumes, warnings = await client.list_volumes()
        except Exception as e:
            self._record(result, item, KIND_VOLUMES, f"Listing volumes failed: {e}")
            return

        if warnings:
            resource.warnings = list(warnings)
            logger.warning(f"Collector item {item.id}: volume warnings: {list(warnings)}")

        if volumes:
            try:
                resource.count = await self.sink.upsert_volumes(
                    [stamp_document(v, item.id, timestamp) for v in volumes]
                )
            except Exception as e:
                self._record(result, item, KIND_VOLUMES, f"Saving {len(volumes)} volumes failed: {e}")

    async def _collect_images(
        self, client: RemoteClient, item: CollectorItem, result: TargetResult, timestamp: int
    ):
        result.resource(KIND_IMAGES)
        try:
            images = await client.list_images()
        except Exception as e:
            self._record(result, item, KIND_IMAGES, f"Listing images failed: {e}")
            return

        if images:
            try:
                result.resource(KIND_IMAGES).count = await self.sink.upsert_images(
                    [stamp_document(i, item.id, timestamp) for i in images]
                )
            except Exception as e:
                self._record(result, item, KIND_IMAGES, f"Saving {len(images)} images failed: {e}")
