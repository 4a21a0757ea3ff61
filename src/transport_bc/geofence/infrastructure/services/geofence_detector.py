import logging
from typing import Dict, List

from src.transport_bc.geofence.domain.entities import (
    GeofenceAction,
    GeofenceEvent,
    GeofenceState,
    GeofenceThresholds,
    classify,
    held_states,
    parse_state,
    settle,
    transition,
)
from src.transport_bc.shared.domain.errors import DependencyUnavailableError
from src.transport_bc.shared.domain.value_objects import (
    Clock,
    haversine_distance,
    system_clock,
    utc_from_timestamp,
)
from src.transport_bc.shared.infrastructure.event_publisher import EventPublisher, geofence_topic
from src.transport_bc.shared.infrastructure.kv_store import KeyValueStore
from src.transport_bc.trip.domain.repositories import TripRepository
from src.transport_bc.trip.infrastructure.services.stop_event_queue import StopEventQueue

logger = logging.getLogger(__name__)


class GeofenceDetector:
    """Per (vehicle, stop) proximity state machine.

    State lives under ``geofence:vehicle:{vehicle_id}:{stop_id}``. Each
    evaluation swaps the newly classified state in and derives the event from
    the value that was stored immediately before, in one atomic store call, so
    concurrent samples for the same vehicle cannot fire the same transition
    twice. A stored ARRIVED is left in place while a departing vehicle is
    still inside the approaching band.
    """

    KEY_PREFIX = "geofence:vehicle:"

    def __init__(
        self,
        store: KeyValueStore,
        trip_repository: TripRepository,
        publisher: EventPublisher,
        stop_events: StopEventQueue,
        thresholds: GeofenceThresholds = GeofenceThresholds(),
        clock: Clock = system_clock,
        state_ttl_seconds: int = 86400,
    ):
        self.store = store
        self.trip_repository = trip_repository
        self.publisher = publisher
        self.stop_events = stop_events
        self.thresholds = thresholds
        self.clock = clock
        self.state_ttl_seconds = state_ttl_seconds

    def _key(self, vehicle_id: str, stop_id: str) -> str:
        return f"{self.KEY_PREFIX}{vehicle_id}:{stop_id}"

    def evaluate(self, trip_id: str, vehicle_id: str, latitude: float, longitude: float) -> List[GeofenceEvent]:
        """Check every stop of the trip's route and return the transitions fired."""
        trip = self.trip_repository.find_trip(trip_id)
        if not trip:
            logger.warning(f"Geofence check skipped: trip {trip_id} not found")
            return []

        stops = self.trip_repository.find_route_stops(trip.route_id)
        now = utc_from_timestamp(self.clock())
        events = []

        for stop in stops:
            distance = haversine_distance(latitude, longitude, stop.latitude, stop.longitude)
            classified = classify(distance, self.thresholds)
            key = self._key(vehicle_id, stop.stop_id)
            keep = [state.value for state in held_states(classified)]
            try:
                raw = self.store.swap_unless(key, classified.value, self.state_ttl_seconds, keep)
            except DependencyUnavailableError as e:
                logger.warning(f"Geofence state unavailable for vehicle {vehicle_id}, skipping: {e}")
                break

            previous = parse_state(raw)
            action = transition(previous, settle(previous, classified))
            if action is None:
                continue

            event = GeofenceEvent(
                vehicle_id=vehicle_id,
                trip_id=trip_id,
                stop_id=stop.stop_id,
                stop_name=stop.name,
                action=action,
                distance_meters=round(distance),
                latitude=latitude,
                longitude=longitude,
                timestamp=now,
            )
            logger.info(
                f"Geofence {action.value}: vehicle {vehicle_id} at {stop.name} "
                f"({event.distance_meters}m, trip {trip_id})"
            )
            events.append(event)

        for event in events:
            self.publisher.publish(geofence_topic(vehicle_id), {"type": "geofence_event", **event.to_dict()})
            self._dispatch_side_effect(event)

        return events

    def _dispatch_side_effect(self, event: GeofenceEvent) -> None:
        if event.action == GeofenceAction.ARRIVED:
            self.stop_events.arrived(event.trip_id, event.stop_id, event.timestamp)
        elif event.action == GeofenceAction.DEPARTED:
            self.stop_events.departed(event.trip_id, event.stop_id, event.timestamp)

    def active_states(self, vehicle_id: str) -> Dict[str, GeofenceState]:
        """Stored state per stop id for a vehicle."""
        prefix = f"{self.KEY_PREFIX}{vehicle_id}:"
        states = {}
        try:
            for key in self.store.scan_prefix(prefix):
                raw = self.store.get(key)
                if raw is not None:
                    states[key[len(prefix):]] = parse_state(raw)
        except DependencyUnavailableError as e:
            logger.warning(f"Geofence states unavailable for vehicle {vehicle_id}: {e}")
        return states

    def clear(self, vehicle_id: str) -> int:
        """Drop every stored state for a vehicle, e.g. when its trip ends."""
        try:
            keys = self.store.scan_prefix(f"{self.KEY_PREFIX}{vehicle_id}:")
            cleared = self.store.delete(*keys)
        except DependencyUnavailableError as e:
            logger.warning(f"Failed to clear geofence states for vehicle {vehicle_id}: {e}")
            return 0
        logger.info(f"Cleared {cleared} geofence states for vehicle {vehicle_id}")
        return cleared

    def config(self) -> GeofenceThresholds:
        return self.thresholds
