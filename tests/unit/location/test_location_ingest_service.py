"""Unit tests for the GPS ingest pipeline."""

import pytest
from sqlalchemy.exc import OperationalError

from src.transport_bc.geofence.domain.entities import GeofenceAction
from src.transport_bc.shared.domain.errors import RateLimitedError
from src.transport_bc.trip.infrastructure.models import StudentTripRecordModel

from tests.seed_data import STOPS, TRIP_ID, VEHICLE_ID, north_of

STOP_1_LAT, STOP_1_LON = STOPS[0][2], STOPS[0][3]


@pytest.fixture
def ingest(container):
    return container.ingest_service()


class TestLocationIngest:
    """Tests for LocationIngestService.ingest()."""

    def test_plain_capture(self, ingest, container):
        result = ingest.ingest(VEHICLE_ID, 40.0, -3.7, accuracy=12, driver_id="driver-1")

        assert result.position.accuracy == 12
        assert result.rate_limit.remaining == 9
        assert result.current_speed_kmh is None
        assert result.geofence_events == []
        assert result.progress is None
        assert container.location_store().current(VEHICLE_ID) is not None

    def test_trip_sample_runs_full_pipeline(self, ingest, container, publisher, clock, session_factory):
        latitude, longitude = north_of(STOP_1_LAT, STOP_1_LON, 300)
        first = ingest.ingest(VEHICLE_ID, latitude, longitude, trip_id=TRIP_ID)
        clock.advance(10)
        second = ingest.ingest(VEHICLE_ID, STOP_1_LAT, STOP_1_LON, trip_id=TRIP_ID)

        assert [e.action for e in first.geofence_events] == [GeofenceAction.APPROACHING]
        assert [e.action for e in second.geofence_events] == [GeofenceAction.ARRIVED]
        assert second.current_speed_kmh == pytest.approx(108, abs=0.5)
        assert container.eta_estimator().speed_profile(VEHICLE_ID, TRIP_ID).sample_count == 1
        assert second.progress.next_stop.stop_id == "stop-1"
        assert publisher.events_for(f"trip:{TRIP_ID}")[-1]["type"] == "trip_progress"

        with session_factory() as session:
            assert session.get(StudentTripRecordModel, "rec-1").boarded is True

    def test_implausible_speed_is_discarded(self, ingest, container, clock):
        ingest.ingest(VEHICLE_ID, 40.0, -3.7, trip_id=TRIP_ID)
        clock.advance(10)
        latitude, longitude = north_of(40.0, -3.7, 2000)

        result = ingest.ingest(VEHICLE_ID, latitude, longitude, trip_id=TRIP_ID)

        assert result.current_speed_kmh is None
        assert container.eta_estimator().speed_samples(VEHICLE_ID, TRIP_ID) == []

    def test_no_speed_across_trips(self, ingest, clock):
        ingest.ingest(VEHICLE_ID, 40.0, -3.7, trip_id="earlier-trip")
        clock.advance(10)

        result = ingest.ingest(VEHICLE_ID, 40.001, -3.7, trip_id=TRIP_ID)

        assert result.current_speed_kmh is None

    def test_eleventh_sample_is_rejected(self, ingest, container):
        for _ in range(10):
            ingest.ingest(VEHICLE_ID, 40.0, -3.7)

        with pytest.raises(RateLimitedError) as exc_info:
            ingest.ingest(VEHICLE_ID, 40.5, -3.7)

        assert exc_info.value.scope == "vehicle"
        assert container.location_store().current(VEHICLE_ID).latitude == 40.0

    def test_vehicles_have_independent_limits(self, ingest):
        for _ in range(10):
            ingest.ingest(VEHICLE_ID, 40.0, -3.7)

        assert ingest.ingest("bus-9", 40.0, -3.7).rate_limit.remaining == 9

    def test_database_failure_does_not_block_capture(self, ingest, container, monkeypatch):
        def fail(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is down"))

        monkeypatch.setattr(container.trip_repository(), "find_trip", fail)

        result = ingest.ingest(VEHICLE_ID, STOP_1_LAT, STOP_1_LON, trip_id=TRIP_ID)

        assert result.position.vehicle_id == VEHICLE_ID
        assert result.geofence_events == []
        assert result.progress is None

    def test_store_outage_fails_open(self, ingest, kv_store):
        kv_store.available = False

        result = ingest.ingest(VEHICLE_ID, STOP_1_LAT, STOP_1_LON, trip_id=TRIP_ID)

        assert result.rate_limit.allowed is True
        assert result.geofence_events == []
        assert result.progress.completed_stops == 0
