"""Persistence sink contract consumed by the collector."""

from typing import Optional, Protocol

from ..models import CollectionError, CollectorItem, CollectorRecord


class Sink(Protocol):
    """Idempotent upsert-by-natural-key storage plus collector bookkeeping.

    Every upsert replaces the whole stored document that shares the
    natural key of the incoming one. Failures raise ``StoreError``.
    """

    async def ensure_unique_indexes(self, indexes: list[tuple[str, str]]) -> None:
        """Create unique indexes for ``(field, collection)`` pairs."""
        ...

    async def find_collector(self, name: str) -> Optional[CollectorRecord]:
        """Return the identity record registered under ``name``, if any."""
        ...

    async def insert_collector(self, record: CollectorRecord) -> str:
        """Insert an identity record and return its id."""
        ...

    async def update_collector_summary(
        self,
        collector_id: str,
        duration: float,
        record_count: int,
        errors: list[CollectionError],
    ) -> None:
        """Fold one completed cycle into the identity record."""
        ...

    async def list_collector_items(self) -> list[CollectorItem]:
        """Return every configured target in insertion order."""
        ...

    async def touch_collector_item(
        self, item_id: str, errors: Optional[list[CollectionError]] = None
    ) -> None:
        """Stamp a target's last-updated time."""
        ...

    async def upsert_containers(self, containers: list[dict]) -> int:
        ...

    async def upsert_networks(self, networks: list[dict]) -> int:
        ...

    async def upsert_volumes(self, volumes: list[dict]) -> int:
        ...

    async def upsert_images(self, images: list[dict]) -> int:
        ...

    async def upsert_container_stats(self, stats: dict) -> int:
        ...
