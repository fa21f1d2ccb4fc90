"""Cron-driven trigger that runs collection cycles."""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

from croniter import croniter

from .errors import TargetListError
from .orchestrator import Collector
from .utils import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CollectionScheduler:
    """Sleeps until each cron fire time and runs one collection cycle."""

    def __init__(
        self,
        collector: Collector,
        cron: str,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if not croniter.is_valid(cron):
            raise ValueError(f"Invalid cron expression: {cron!r}")
        self.collector = collector
        self.cron = cron
        self._clock = clock
        self._running = False

    def next_run(self, after: datetime) -> datetime:
        """Next fire time strictly after ``after``."""
        return croniter(self.cron, after).get_next(datetime)

    async def run(self, max_cycles: Optional[int] = None):
        """
        Run cycles until stopped.

        A cycle that cannot list its targets is logged and the loop goes on.
        ``RegistrationError`` is not caught: without an identity the
        collector cannot report, so the loop ends.
        """
        self._running = True
        cycles = 0

        while self._running and (max_cycles is None or cycles < max_cycles):
            now = self._clock()
            next_time = self.next_run(now)
            logger.info(f"Next scheduled collect at {next_time.isoformat()}")
            await asyncio.sleep(max((next_time - now).total_seconds(), 0))

            if not self._running:
                break

            try:
                await self.collector.collect()
            except TargetListError as e:
                logger.error(f"Error collecting: {e}")
            cycles += 1

        self._running = False

    def stop(self):
        """Stop after the current cycle."""
        self._running = False
