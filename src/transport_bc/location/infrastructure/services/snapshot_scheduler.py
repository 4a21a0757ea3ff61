"""Periodic durable-snapshot sweep.

One background task walks every cached vehicle position and stores a
durable copy for those whose last snapshot is older than the snapshot
interval. The per-vehicle claim key makes a sweep that races a capture,
another API instance or the Celery beat task harmless.
"""
import asyncio
import logging
from datetime import datetime
from typing import Optional

from src.transport_bc.location.infrastructure.services.location_store import LocationStore

logger = logging.getLogger(__name__)


class SnapshotScheduler:
    """Background scheduler for location snapshot sweeps."""

    # Maximum time allowed for a single sweep
    SWEEP_TIMEOUT = 30

    def __init__(self, location_store: LocationStore, interval_seconds: int = 60):
        self.location_store = location_store
        self.interval_seconds = interval_seconds
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._last_sweep: Optional[datetime] = None
        self._sweep_count = 0
        self._snapshot_count = 0
        self._error_count = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def status(self) -> dict:
        return {
            "running": self._running,
            "last_sweep": self._last_sweep.isoformat() if self._last_sweep else None,
            "sweep_count": self._sweep_count,
            "snapshot_count": self._snapshot_count,
            "error_count": self._error_count,
            "interval_seconds": self.interval_seconds,
        }

    async def start(self):
        if self._running:
            logger.warning("Snapshot scheduler already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(f"Snapshot scheduler started (interval: {self.interval_seconds}s)")

    async def stop(self):
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Snapshot scheduler stopped")

    async def _sweep_loop(self):
        while self._running:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except asyncio.CancelledError:
                logger.info("Snapshot scheduler task cancelled")
                raise
            except asyncio.TimeoutError:
                self._error_count += 1
                logger.error(f"Snapshot sweep timeout after {self.SWEEP_TIMEOUT}s")
            except Exception as e:
                self._error_count += 1
                logger.error(f"Snapshot sweep error: {e}")

    async def run_once(self) -> int:
        """Run one sweep in the thread pool and return the number of snapshots stored."""
        loop = asyncio.get_running_loop()
        stored = await asyncio.wait_for(
            loop.run_in_executor(None, self.location_store.snapshot_sweep),
            timeout=self.SWEEP_TIMEOUT,
        )
        self._last_sweep = datetime.utcnow()
        self._sweep_count += 1
        self._snapshot_count += stored
        return stored
