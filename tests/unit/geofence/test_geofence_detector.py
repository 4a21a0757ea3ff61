"""Unit tests for geofence classification and the per-stop state machine."""

import pytest

from src.transport_bc.geofence.domain.entities import (
    GeofenceAction,
    GeofenceState,
    GeofenceThresholds,
    classify,
    held_states,
    parse_state,
    settle,
    transition,
)
from src.transport_bc.geofence.infrastructure.services import GeofenceDetector
from src.transport_bc.shared.infrastructure.kv_store import InMemoryKeyValueStore
from src.transport_bc.trip.infrastructure.services import StopEventKind, StopEventQueue

from tests.seed_data import STOPS, TRIP_ID, VEHICLE_ID, north_of

STOP_1_LAT, STOP_1_LON = STOPS[0][2], STOPS[0][3]


class RecordingStopEventQueue(StopEventQueue):
    def __init__(self, fail=False):
        self.dispatched = []
        self.fail = fail

    def _dispatch(self, kind, trip_id, stop_id, at):
        if self.fail:
            raise RuntimeError("broker unreachable")
        self.dispatched.append((kind, trip_id, stop_id))


@pytest.fixture
def stop_events():
    return RecordingStopEventQueue()


@pytest.fixture
def detector(kv_store, trip_repository, publisher, stop_events, clock):
    return GeofenceDetector(kv_store, trip_repository, publisher, stop_events, clock=clock)


class InterleavingStore(InMemoryKeyValueStore):
    """Runs a callback once, right after the next state write on one key."""

    def __init__(self, clock):
        super().__init__(clock)
        self.key = None
        self.interleave = None

    def swap_unless(self, key, value, ttl_seconds, keep=()):
        previous = super().swap_unless(key, value, ttl_seconds, keep)
        if key == self.key and self.interleave:
            interleave, self.interleave = self.interleave, None
            interleave()
        return previous


def walk(detector, distances, vehicle_id=VEHICLE_ID):
    actions = []
    for meters in distances:
        latitude, longitude = north_of(STOP_1_LAT, STOP_1_LON, meters)
        actions.extend(e.action for e in detector.evaluate(TRIP_ID, vehicle_id, latitude, longitude))
    return actions


class TestClassification:
    """Pure band and transition rules."""

    @pytest.mark.parametrize("distance,expected", [
        (0, GeofenceState.ARRIVED),
        (100, GeofenceState.ARRIVED),
        (100.1, GeofenceState.APPROACHING),
        (500, GeofenceState.APPROACHING),
        (500.1, GeofenceState.OUTSIDE),
    ])
    def test_classify(self, distance, expected):
        assert classify(distance, GeofenceThresholds()) == expected

    @pytest.mark.parametrize("previous,current,expected", [
        (GeofenceState.OUTSIDE, GeofenceState.APPROACHING, GeofenceAction.APPROACHING),
        (GeofenceState.OUTSIDE, GeofenceState.ARRIVED, GeofenceAction.ARRIVED),
        (GeofenceState.APPROACHING, GeofenceState.ARRIVED, GeofenceAction.ARRIVED),
        (GeofenceState.ARRIVED, GeofenceState.OUTSIDE, GeofenceAction.DEPARTED),
        (GeofenceState.APPROACHING, GeofenceState.OUTSIDE, None),
        (GeofenceState.ARRIVED, GeofenceState.ARRIVED, None),
    ])
    def test_transition(self, previous, current, expected):
        assert transition(previous, current) == expected

    def test_arrived_holds_inside_approaching_band(self):
        assert settle(GeofenceState.ARRIVED, GeofenceState.APPROACHING) == GeofenceState.ARRIVED
        assert settle(GeofenceState.ARRIVED, GeofenceState.OUTSIDE) == GeofenceState.OUTSIDE
        assert held_states(GeofenceState.APPROACHING) == (GeofenceState.ARRIVED,)
        assert held_states(GeofenceState.ARRIVED) == ()

    @pytest.mark.parametrize("raw", [None, "", "garbage"])
    def test_unknown_state_is_outside(self, raw):
        assert parse_state(raw) == GeofenceState.OUTSIDE


class TestGeofenceDetector:
    """Tests for GeofenceDetector.evaluate()."""

    def test_approach_arrive_depart(self, detector):
        """600m -> 300m -> 50m -> 300m -> 600m fires each transition once."""
        actions = walk(detector, [600, 300, 50, 300, 600])

        assert actions == [GeofenceAction.APPROACHING, GeofenceAction.ARRIVED, GeofenceAction.DEPARTED]

    def test_no_event_within_the_same_band(self, detector):
        assert walk(detector, [450, 400, 350, 300]) == [GeofenceAction.APPROACHING]

    def test_no_duplicate_arrival_while_lingering(self, detector):
        actions = walk(detector, [50, 20, 250, 80, 30])

        assert actions == [GeofenceAction.ARRIVED]

    def test_every_stop_on_route_is_evaluated(self, detector):
        """Jumping straight to stop 3 still fires its ARRIVED."""
        _, _, latitude, longitude = STOPS[2]

        events = detector.evaluate(TRIP_ID, VEHICLE_ID, latitude, longitude)

        assert [(e.stop_id, e.action) for e in events] == [("stop-3", GeofenceAction.ARRIVED)]
        assert events[0].distance_meters == 0

    def test_vehicles_do_not_share_state(self, detector):
        walk(detector, [50], vehicle_id="bus-1")

        assert walk(detector, [50], vehicle_id="bus-9") == [GeofenceAction.ARRIVED]
        assert detector.active_states("bus-9")["stop-1"] == GeofenceState.ARRIVED

    def test_events_are_published(self, detector, publisher):
        walk(detector, [50])

        payload = publisher.events_for(f"geofence:{VEHICLE_ID}")[0]

        assert payload["type"] == "geofence_event"
        assert payload["action"] == "ARRIVED"
        assert payload["stop_id"] == "stop-1"

    def test_side_effects_are_dispatched(self, detector, stop_events):
        walk(detector, [50, 600])

        assert stop_events.dispatched == [
            (StopEventKind.ARRIVED, TRIP_ID, "stop-1"),
            (StopEventKind.DEPARTED, TRIP_ID, "stop-1"),
        ]

    def test_side_effect_failure_does_not_block_events(self, kv_store, trip_repository, publisher, clock):
        detector = GeofenceDetector(kv_store, trip_repository, publisher, RecordingStopEventQueue(fail=True), clock=clock)

        assert walk(detector, [50]) == [GeofenceAction.ARRIVED]
        assert len(publisher.events_for(f"geofence:{VEHICLE_ID}")) == 1

    def test_store_unavailable_yields_no_events(self, detector, kv_store):
        kv_store.available = False

        assert walk(detector, [50]) == []

    def test_unknown_trip(self, detector):
        assert detector.evaluate("missing", VEHICLE_ID, STOP_1_LAT, STOP_1_LON) == []

    def test_active_states_and_clear(self, detector):
        walk(detector, [300])

        states = detector.active_states(VEHICLE_ID)

        assert states["stop-1"] == GeofenceState.APPROACHING
        assert states["stop-2"] == GeofenceState.OUTSIDE
        assert detector.clear(VEHICLE_ID) == len(STOPS)
        assert detector.active_states(VEHICLE_ID) == {}

    def test_config_reports_thresholds(self, detector):
        assert detector.config().to_dict() == {
            "approaching_threshold": 500.0,
            "arrival_threshold": 100.0,
            "departure_threshold": 150.0,
        }


class TestConcurrentSamples:
    """A second sample for the same vehicle landing mid-evaluation."""

    @pytest.fixture
    def store(self, clock):
        store = InterleavingStore(clock)
        store.key = f"{GeofenceDetector.KEY_PREFIX}{VEHICLE_ID}:stop-1"
        return store

    @pytest.fixture
    def detector(self, store, trip_repository, publisher, stop_events, clock):
        return GeofenceDetector(store, trip_repository, publisher, stop_events, clock=clock)

    def test_arrival_fires_once(self, detector, store, stop_events):
        actions = walk(detector, [600, 300, 50])
        interleaved = []
        store.interleave = lambda: interleaved.extend(walk(detector, [40]))

        actions += walk(detector, [300])

        assert interleaved == []
        assert (actions + interleaved).count(GeofenceAction.ARRIVED) == 1
        assert [kind for kind, _, stop_id in stop_events.dispatched if stop_id == "stop-1"] == [
            StopEventKind.ARRIVED
        ]

    def test_departure_is_not_lost(self, detector, store):
        walk(detector, [600, 300, 50])
        interleaved = []
        store.interleave = lambda: interleaved.extend(walk(detector, [700]))

        walk(detector, [300])

        assert interleaved == [GeofenceAction.DEPARTED]
        assert detector.active_states(VEHICLE_ID)["stop-1"] == GeofenceState.OUTSIDE
