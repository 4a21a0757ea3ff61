import json
import logging
from typing import Optional

from src.transport_bc.eta.infrastructure.services import ETAEstimator
from src.transport_bc.shared.domain.errors import DependencyUnavailableError, NotFoundError
from src.transport_bc.shared.domain.value_objects import Clock, system_clock, utc_from_timestamp
from src.transport_bc.shared.infrastructure.kv_store import KeyValueStore
from src.transport_bc.trip.domain.entities import NextStop, TripSnapshot, TripStats
from src.transport_bc.trip.domain.repositories import TripRepository

logger = logging.getLogger(__name__)


class TripProgressTracker:
    """Derives completed stops, next stop and boarding counts for a trip.

    Snapshots are cached under ``trip:progress:{trip_id}`` for a short TTL
    and dropped whenever a stop is explicitly marked completed.
    """

    CACHE_KEY_PREFIX = "trip:progress:"

    def __init__(
        self,
        store: KeyValueStore,
        trip_repository: TripRepository,
        eta_estimator: ETAEstimator,
        clock: Clock = system_clock,
        cache_ttl_seconds: int = 60,
    ):
        self.store = store
        self.trip_repository = trip_repository
        self.eta_estimator = eta_estimator
        self.clock = clock
        self.cache_ttl_seconds = cache_ttl_seconds

    def _key(self, trip_id: str) -> str:
        return f"{self.CACHE_KEY_PREFIX}{trip_id}"

    def progress(self, trip_id: str, vehicle_id: str, latitude: float, longitude: float) -> Optional[TripSnapshot]:
        """Compute and cache the snapshot; None if the trip or its route is unknown."""
        trip = self.trip_repository.find_trip(trip_id)
        if not trip or trip.vehicle_id != vehicle_id:
            return None

        stops = self.trip_repository.find_route_stops(trip.route_id)
        if not stops:
            return None

        total = len(stops)
        completed = min(self.trip_repository.count_completed_stops(trip_id), total)
        current_index = min(completed, total - 1)

        next_stop = None
        if completed < total:
            stop = stops[current_index]
            estimate = self.eta_estimator.estimate_flat(latitude, longitude, stop.latitude, stop.longitude)
            next_stop = NextStop(
                stop_id=stop.stop_id,
                name=stop.name,
                sequence=stop.sequence,
                latitude=stop.latitude,
                longitude=stop.longitude,
                distance_km=round(estimate.distance_km, 2),
                estimated_seconds=estimate.estimated_seconds,
            )

        snapshot = TripSnapshot(
            trip_id=trip_id,
            vehicle_id=vehicle_id,
            route_id=trip.route_id,
            route_name=trip.route_name,
            trip_status=trip.status,
            current_stop_index=current_index,
            total_stops=total,
            completed_stops=completed,
            progress_percentage=round(completed / total * 100),
            stops=stops,
            next_stop=next_stop,
            current_latitude=latitude,
            current_longitude=longitude,
            computed_at=utc_from_timestamp(self.clock()),
            students_boarded=self.trip_repository.count_boarded(trip_id),
            students_expected=self.trip_repository.count_expected(trip_id),
            remaining_stops=stops[completed:],
        )

        try:
            self.store.set(self._key(trip_id), json.dumps(snapshot.to_dict()), self.cache_ttl_seconds)
        except DependencyUnavailableError as e:
            logger.warning(f"Could not cache progress for trip {trip_id}: {e}")

        return snapshot

    def cached(self, trip_id: str) -> Optional[TripSnapshot]:
        try:
            raw = self.store.get(self._key(trip_id))
        except DependencyUnavailableError as e:
            logger.warning(f"Progress cache unavailable for trip {trip_id}: {e}")
            return None
        if not raw:
            return None
        try:
            return TripSnapshot.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Corrupt cached progress for trip {trip_id}: {e}")
            return None

    def stats(self, trip_id: str) -> Optional[TripStats]:
        """Monitoring summary of the cached snapshot, if one is live."""
        snapshot = self.cached(trip_id)
        if not snapshot:
            return None
        return TripStats(
            trip_id=trip_id,
            progress_percentage=snapshot.progress_percentage,
            students_boarded=snapshot.students_boarded,
            students_expected=snapshot.students_expected,
            last_update=snapshot.computed_at,
        )

    def invalidate(self, trip_id: str) -> None:
        try:
            self.store.delete(self._key(trip_id))
        except DependencyUnavailableError as e:
            logger.warning(f"Could not invalidate progress cache for trip {trip_id}: {e}")

    def mark_stop_completed(self, trip_id: str, stop_id: str) -> int:
        """Record alighting at stop_id for the trip's students and drop the cached snapshot.

        Returns the number of student records updated.
        """
        trip = self.trip_repository.find_trip(trip_id)
        if not trip:
            raise NotFoundError(f"Trip {trip_id} not found")
        stops = self.trip_repository.find_route_stops(trip.route_id)
        if stop_id not in {stop.stop_id for stop in stops}:
            raise NotFoundError(f"Stop {stop_id} is not on the route of trip {trip_id}")

        updated = self.trip_repository.complete_stop(trip_id, stop_id, utc_from_timestamp(self.clock()))
        self.invalidate(trip_id)
        logger.info(f"Stop {stop_id} marked completed on trip {trip_id} ({updated} records)")
        return updated
