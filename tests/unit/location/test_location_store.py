"""Unit tests for the current-position cache and durable snapshots."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from src.transport_bc.location.domain.entities import VehicleStatus
from src.transport_bc.location.infrastructure.services import LocationStore
from src.transport_bc.shared.domain.errors import ValidationError
from src.transport_bc.shared.domain.value_objects import utc_from_timestamp


@pytest.fixture
def store(kv_store, history_repository, publisher, clock):
    return LocationStore(
        kv_store,
        history_repository,
        publisher,
        clock,
        ttl_seconds=60,
        snapshot_interval_seconds=300,
    )


class TestCapture:
    """Tests for LocationStore.capture() and current()."""

    @pytest.mark.parametrize("latitude,longitude", [
        (40.4168, -3.7038),
        (-33.8688, 151.2093),
        (90.0, 180.0),
        (-90.0, -180.0),
        (0.0, 0.0),
    ])
    def test_current_returns_captured_position(self, store, latitude, longitude):
        store.capture("bus-1", latitude, longitude, accuracy=8)

        position = store.current("bus-1")

        assert position.latitude == latitude
        assert position.longitude == longitude
        assert position.accuracy == 8
        assert position.status == VehicleStatus.ONLINE

    def test_position_expires_after_ttl(self, store, clock):
        store.capture("bus-1", 40.0, -3.7)

        clock.advance(59)
        assert store.current("bus-1") is not None

        clock.advance(1)
        assert store.current("bus-1") is None

    def test_capture_overwrites_previous_sample(self, store, clock):
        store.capture("bus-1", 40.0, -3.7)
        clock.advance(5)
        store.capture("bus-1", 40.001, -3.7)

        position = store.current("bus-1")

        assert position.latitude == 40.001
        assert position.captured_at == utc_from_timestamp(clock())

    @pytest.mark.parametrize("latitude,longitude", [(91, 0), (-90.5, 0), (0, 180.1), (0, -181)])
    def test_rejects_out_of_range_coordinates(self, store, latitude, longitude):
        with pytest.raises(ValidationError):
            store.capture("bus-1", latitude, longitude)

    def test_rejects_missing_vehicle(self, store):
        with pytest.raises(ValidationError):
            store.capture("", 40.0, -3.7)

    @pytest.mark.parametrize("accuracy,expected", [(None, 10.0), (0.2, 1.0), (5000, 1000.0), (25.5, 25.5)])
    def test_accuracy_is_clamped(self, store, accuracy, expected):
        assert store.capture("bus-1", 40.0, -3.7, accuracy=accuracy).accuracy == expected

    def test_capture_publishes_location_update(self, store, publisher):
        store.capture("bus-1", 40.0, -3.7, trip_id="trip-1")

        events = publisher.events_for("location:bus-1")

        assert len(events) == 1
        assert events[0]["type"] == "location_update"
        assert events[0]["trip_id"] == "trip-1"

    def test_store_unavailable_does_not_fail_capture(self, store, kv_store):
        kv_store.available = False

        position = store.capture("bus-1", 40.0, -3.7)

        assert position.vehicle_id == "bus-1"
        assert store.current("bus-1") is None


class TestSnapshots:
    """Durable snapshots are sparse: one per vehicle per interval."""

    def test_first_capture_is_snapshotted(self, store, history_repository):
        store.capture("bus-1", 40.0, -3.7)

        assert len(history_repository.history("bus-1")) == 1

    def test_no_second_snapshot_within_interval(self, store, history_repository, clock):
        for _ in range(10):
            store.capture("bus-1", 40.0, -3.7)
            clock.advance(10)

        assert len(history_repository.history("bus-1")) == 1

    def test_snapshot_again_after_interval(self, store, history_repository, clock):
        store.capture("bus-1", 40.0, -3.7)
        clock.advance(300)
        store.capture("bus-1", 40.01, -3.7)

        history = history_repository.history("bus-1")

        assert len(history) == 2
        assert history[0].latitude == 40.01

    def test_sweep_snapshots_due_vehicles_only(self, store, history_repository, clock):
        store.capture("bus-1", 40.0, -3.7)
        clock.advance(250)
        store.capture("bus-2", 41.0, -3.7)
        clock.advance(50)
        store.capture("bus-1", 40.0, -3.7)  # claim for bus-1 expired at 300s

        assert store.snapshot_sweep() == 0  # bus-1 was just snapshotted, bus-2 is not due
        assert len(history_repository.history("bus-1")) == 2
        assert len(history_repository.history("bus-2")) == 1

    def test_failed_append_releases_claim(self, store, history_repository, monkeypatch):
        def fail(position):
            raise OperationalError("INSERT", {}, Exception("database is down"))

        monkeypatch.setattr(history_repository, "append_historical_position", fail)
        store.capture("bus-1", 40.0, -3.7)
        monkeypatch.undo()

        store.capture("bus-1", 40.0, -3.7)

        assert len(history_repository.history("bus-1")) == 1


class TestReads:
    """Tests for active vehicles, offline marking and history."""

    def test_active_vehicles_sorted_and_filtered(self, store):
        store.capture("bus-3", 40.0, -3.7)
        store.capture("bus-1", 40.0, -3.7)
        store.capture("bus-2", 40.0, -3.7)

        assert [p.vehicle_id for p in store.active_vehicles()] == ["bus-1", "bus-2", "bus-3"]
        assert [p.vehicle_id for p in store.active_vehicles(["bus-2", "bus-9"])] == ["bus-2"]

    def test_expired_vehicle_is_not_active(self, store, clock):
        store.capture("bus-1", 40.0, -3.7)
        clock.advance(61)

        assert store.active_vehicles() == []

    def test_mark_offline_keeps_position(self, store, publisher):
        store.capture("bus-1", 40.0, -3.7)

        position = store.mark_offline("bus-1")

        assert position.status == VehicleStatus.OFFLINE
        assert store.current("bus-1").status == VehicleStatus.OFFLINE
        assert publisher.events_for("location:bus-1")[-1]["type"] == "vehicle_offline"

    def test_mark_offline_without_position(self, store):
        assert store.mark_offline("bus-1") is None

    def test_history_range_and_limit(self, store, clock):
        start = utc_from_timestamp(clock())
        for i in range(3):
            store.capture("bus-1", 40.0 + i / 100, -3.7)
            clock.advance(300)

        in_range = store.history("bus-1", start=start + timedelta(seconds=1))
        limited = store.history("bus-1", limit=1)

        assert len(in_range) == 2
        assert [p.latitude for p in limited] == [40.02]

    @pytest.mark.parametrize("limit", [0, 1001])
    def test_history_limit_bounds(self, store, limit):
        with pytest.raises(ValidationError):
            store.history("bus-1", limit=limit)

    def test_history_rejects_inverted_range(self, store, clock):
        now = utc_from_timestamp(clock())

        with pytest.raises(ValidationError):
            store.history("bus-1", start=now, end=now - timedelta(minutes=1))

    def test_last_known_after_cache_expiry(self, store, clock):
        store.capture("bus-1", 40.0, -3.7)
        clock.advance(120)

        assert store.current("bus-1") is None
        assert store.last_known("bus-1").latitude == 40.0
