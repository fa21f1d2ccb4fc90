"""
Collection orchestrator.

Registers the collector's identity once per process, then on every cycle
walks the configured targets, isolating failures per target and per
sub-resource, and finally writes a run summary to the identity record.
"""

import asyncio
import time
from enum import Enum
from typing import Optional

from .collection import TargetCollector
from .config import settings
from .errors import RegistrationError, TargetListError
from .models import CollectorItem, CollectorRecord, INVENTORY_COLLECTIONS, NATURAL_KEYS
from .report import ERROR_UNEXPECTED, CycleReport, TargetResult
from .runtime import ClientFactory, connect
from .store import Sink
from .utils import get_logger

logger = get_logger(__name__)

# (field, collection) pairs that make inventory upserts idempotent
UNIQUE_INDEXES = [(NATURAL_KEYS[c], c) for c in INVENTORY_COLLECTIONS]


class RegistrationState(str, Enum):
    """Lifecycle of the collector's identity within this process."""
    UNREGISTERED = "unregistered"
    REGISTERING = "registering"
    REGISTERED = "registered"


class Collector:
    """
    Drives collection cycles over every configured target.

    Only two conditions escape ``collect()``: ``RegistrationError`` (fatal,
    the process should stop) and ``TargetListError`` (this cycle is
    skipped). Everything else is logged and recorded in the returned
    ``CycleReport``.
    """

    def __init__(
        self,
        sink: Sink,
        client_factory: ClientFactory = connect,
        name: Optional[str] = None,
        collector_type: Optional[str] = None,
    ):
        self.sink = sink
        self.name = name or settings.collector_name
        self.collector_type = collector_type or settings.collector_type
        self.targets = TargetCollector(sink, client_factory)

        self.collector_id: Optional[str] = None
        self._state = RegistrationState.UNREGISTERED
        self._registration_lock = asyncio.Lock()

    @property
    def state(self) -> RegistrationState:
        return self._state

    async def register(self) -> str:
        """
        Ensure this collector has an identity record; returns its id.

        Runs at most once per instance. Concurrent callers wait for the
        first registration to finish and then share its result.
        """
        if self._state is RegistrationState.REGISTERED:
            return self.collector_id

        async with self._registration_lock:
            if self._state is RegistrationState.REGISTERED:
                return self.collector_id

            self._state = RegistrationState.REGISTERING
            try:
                self.collector_id = await self._register()
            except BaseException:
                self._state = RegistrationState.UNREGISTERED
                raise
            self._state = RegistrationState.REGISTERED

        return self.collector_id

    async def _register(self) -> str:
        try:
            existing = await self.sink.find_collector(self.name)
        except Exception as e:
            raise RegistrationError(f"Looking up collector {self.name} failed: {e}") from e

        if existing:
            collector_id = existing.id
            logger.info(f"Using existing collector {self.name} ({collector_id})")
        else:
            record = CollectorRecord(name=self.name, collectorType=self.collector_type)
            try:
                collector_id = await self.sink.insert_collector(record)
            except Exception as e:
                raise RegistrationError(f"Registering collector {self.name} failed: {e}") from e
            logger.info(f"Registered collector {self.name} ({collector_id})")

        try:
            await self.sink.ensure_unique_indexes(UNIQUE_INDEXES)
        except Exception as e:
            logger.error(f"Creating unique indexes failed, duplicates are possible until they exist: {e}")

        return collector_id

    async def collect(self) -> CycleReport:
        """Run one collection cycle over all targets."""
        started = time.monotonic()
        report = CycleReport(started_at=time.time())

        report.collector_id = await self.register()

        try:
            items = await self.sink.list_collector_items()
        except Exception as e:
            raise TargetListError(f"Listing collector items failed: {e}") from e

        logger.info(f"Starting collection cycle over {len(items)} collector items")

        for item in items:
            if not item.enabled:
                logger.debug(f"Skipping disabled collector item {item.id}")
                report.targets.append(TargetResult(target_id=item.id, name=item.display_name, skipped=True))
                continue

            result = await self._collect_item(item)
            report.targets.append(result)

            try:
                await self.sink.touch_collector_item(item.id, result.errors)
            except Exception as e:
                result.stamp_error = f"Stamping collector item {item.id} failed: {e}"
                logger.error(result.stamp_error)

        report.duration = time.monotonic() - started

        try:
            await self.sink.update_collector_summary(
                report.collector_id, report.duration, report.records, report.errors
            )
        except Exception as e:
            report.summary_error = f"Updating collector {self.name} summary failed: {e}"
            logger.error(report.summary_error)

        logger.info(
            f"Collection cycle finished in {report.duration:.2f}s: "
            f"{len(report.attempted)} collector items, {report.records} records, "
            f"{len(report.failed)} with errors"
        )
        return report

    async def _collect_item(self, item: CollectorItem) -> TargetResult:
        try:
            return await self.targets.collect(item)
        except Exception as e:
            logger.exception(f"Collector item {item.id}: collection failed: {e}")
            result = TargetResult(target_id=item.id, name=item.display_name)
            result.fail(ERROR_UNEXPECTED, f"Collection failed: {e}")
            return result
