"""Unit tests for the periodic location snapshot sweep."""

import asyncio

import pytest

from src.transport_bc.location.infrastructure.services import LocationStore
from src.transport_bc.location.infrastructure.services.snapshot_scheduler import SnapshotScheduler


@pytest.fixture
def location_store(kv_store, history_repository, publisher, clock):
    # Snapshot interval shorter than the cache TTL, so a live vehicle can fall due
    return LocationStore(kv_store, history_repository, publisher, clock, ttl_seconds=60, snapshot_interval_seconds=30)


class TestSnapshotScheduler:
    """Tests for SnapshotScheduler.run_once() and status."""

    def test_run_once_stores_due_snapshots(self, location_store, history_repository, clock):
        scheduler = SnapshotScheduler(location_store, interval_seconds=60)
        location_store.capture("bus-1", 40.0, -3.7)

        clock.advance(10)
        assert asyncio.run(scheduler.run_once()) == 0

        clock.advance(20)
        assert asyncio.run(scheduler.run_once()) == 1
        assert len(history_repository.history("bus-1")) == 2
        assert scheduler.status["sweep_count"] == 2
        assert scheduler.status["snapshot_count"] == 1

    def test_status_before_start(self, location_store):
        scheduler = SnapshotScheduler(location_store, interval_seconds=60)

        assert scheduler.is_running is False
        assert scheduler.status["last_sweep"] is None
        assert scheduler.status["interval_seconds"] == 60

    def test_start_and_stop(self, location_store):
        scheduler = SnapshotScheduler(location_store, interval_seconds=3600)

        async def run():
            await scheduler.start()
            running = scheduler.is_running
            await scheduler.stop()
            return running

        assert asyncio.run(run()) is True
        assert scheduler.is_running is False


class TestSnapshotTask:
    """Celery beat entry point for the same sweep."""

    def test_snapshot_active_vehicles(self, container, monkeypatch):
        import core.containers
        from src.transport_bc.location.infrastructure import tasks

        monkeypatch.setattr(core.containers, "_transport_container", container)
        container.location_store().capture("bus-1", 40.0, -3.7)

        assert tasks.snapshot_active_vehicles() == {"snapshots_stored": 0}
