"""ETA estimation from the current position to upcoming stops.

Every segment estimate collects candidates from up to four methods and keeps
the most confident one:

1. simple      distance / current speed (fallback speed when stationary);
               always available, confidence 0.5 moving / 0.3 stationary
2. historical  median of pairwise speeds over the vehicle's last durable
               positions; confidence = clamp(1 - stddev / median, 0.3, 0.95)
3. kalman      constant-acceleration projection over the recent speed
               buffer; confidence 0.8 above 5 km/h, else 0.5
4. weighted    confidence-weighted blend of the above, only formed when at
               least two of them produced a value

Historical and kalman failures degrade to the remaining candidates; the
simple method means an estimate is always returned.
"""
import json
import logging
import math
import statistics
from datetime import timedelta
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from src.transport_bc.eta.domain.entities import (
    ETAEstimate,
    EstimateCandidate,
    EstimationMethod,
    RouteBreakdown,
    RouteSegmentETA,
    SpeedProfile,
    SpeedSample,
    select_best,
    weighted_candidate,
)
from src.transport_bc.location.domain.repositories import LocationHistoryRepository
from src.transport_bc.shared.domain.errors import DependencyUnavailableError
from src.transport_bc.shared.domain.value_objects import (
    Clock,
    haversine_distance,
    haversine_km,
    system_clock,
    utc_from_timestamp,
)
from src.transport_bc.shared.infrastructure.kv_store import KeyValueStore
from src.transport_bc.trip.domain.entities import RouteStop
from src.transport_bc.trip.domain.repositories import TripRepository

logger = logging.getLogger(__name__)


class ETAEstimator:
    """Service for calculating Estimated Time of Arrival."""

    SPEED_KEY_PREFIX = "speed:history:"

    HISTORY_POSITION_LIMIT = 100
    MIN_DATA_POINTS = 3
    MAX_VALID_SPEED_KMH = 150.0
    KALMAN_WINDOW = 10
    ACCELERATION_THRESHOLD = 0.1  # km/h per second
    MAX_BREAKDOWN_STOPS = 5

    def __init__(
        self,
        store: KeyValueStore,
        history_repository: LocationHistoryRepository,
        trip_repository: TripRepository,
        clock: Clock = system_clock,
        fallback_speed_kmh: float = 40.0,
        speed_buffer_size: int = 60,
        speed_history_ttl_seconds: int = 86400,
    ):
        self.store = store
        self.history_repository = history_repository
        self.trip_repository = trip_repository
        self.clock = clock
        self.fallback_speed_kmh = fallback_speed_kmh
        self.speed_buffer_size = speed_buffer_size
        self.speed_history_ttl_seconds = speed_history_ttl_seconds

    # ----- Segment estimates -----

    def estimate_segment(
        self,
        vehicle_id: str,
        from_latitude: float,
        from_longitude: float,
        to_latitude: float,
        to_longitude: float,
        current_speed_kmh: float = 0.0,
        trip_id: Optional[str] = None,
    ) -> ETAEstimate:
        """Best estimate for a single hop between two points."""
        distance_km = haversine_km(from_latitude, from_longitude, to_latitude, to_longitude)
        return self.estimate_distance(vehicle_id, distance_km, current_speed_kmh, trip_id)

    def estimate_distance(
        self,
        vehicle_id: str,
        distance_km: float,
        current_speed_kmh: float = 0.0,
        trip_id: Optional[str] = None,
    ) -> ETAEstimate:
        base = [self.simple_candidate(distance_km, current_speed_kmh)]

        historical = self.historical_candidate(vehicle_id, distance_km)
        if historical:
            base.append(historical)

        kalman = self.kalman_candidate(vehicle_id, distance_km, current_speed_kmh, trip_id)
        if kalman:
            base.append(kalman)

        candidates = list(base)
        if len(base) >= 2:
            candidates.append(weighted_candidate(base))

        return self._to_estimate(distance_km, select_best(candidates))

    def estimate_flat(
        self,
        from_latitude: float,
        from_longitude: float,
        to_latitude: float,
        to_longitude: float,
    ) -> ETAEstimate:
        """Simple estimate at the fallback speed, no history lookups."""
        distance_km = haversine_km(from_latitude, from_longitude, to_latitude, to_longitude)
        return self._to_estimate(distance_km, self.simple_candidate(distance_km, 0.0))

    def _to_estimate(self, distance_km: float, candidate: EstimateCandidate) -> ETAEstimate:
        return ETAEstimate(
            distance_km=round(distance_km, 3),
            estimated_seconds=round(candidate.seconds),
            confidence=round(candidate.confidence, 3),
            method=candidate.method,
            explanation=f"{candidate.method.value} estimate: {round(candidate.seconds / 60)} minutes",
        )

    # ----- Methods -----

    def simple_candidate(self, distance_km: float, current_speed_kmh: float) -> EstimateCandidate:
        moving = current_speed_kmh > 0
        speed = current_speed_kmh if moving else self.fallback_speed_kmh
        return EstimateCandidate(
            EstimationMethod.SIMPLE,
            distance_km / speed * 3600,
            0.5 if moving else 0.3,
        )

    def historical_candidate(self, vehicle_id: str, distance_km: float) -> Optional[EstimateCandidate]:
        try:
            positions = self.history_repository.query_recent_positions(
                vehicle_id, self.HISTORY_POSITION_LIMIT
            )
        except SQLAlchemyError as e:
            logger.warning(f"Historical ETA unavailable for vehicle {vehicle_id}: {e}")
            return None

        if len(positions) < self.MIN_DATA_POINTS:
            return None

        speeds = []
        # positions are newest first
        for current, previous in zip(positions, positions[1:]):
            elapsed = (current.captured_at - previous.captured_at).total_seconds()
            if elapsed <= 0:
                continue
            meters = haversine_distance(
                current.latitude, current.longitude, previous.latitude, previous.longitude
            )
            speed_kmh = meters / 1000 / (elapsed / 3600)
            if 0 < speed_kmh < self.MAX_VALID_SPEED_KMH:
                speeds.append(speed_kmh)

        if len(speeds) < self.MIN_DATA_POINTS:
            return None

        median_speed = statistics.median(speeds)
        std_dev = statistics.pstdev(speeds)
        confidence = max(0.3, min(0.95, 1 - std_dev / median_speed))
        return EstimateCandidate(
            EstimationMethod.HISTORICAL,
            distance_km / median_speed * 3600,
            confidence,
        )

    def kalman_candidate(
        self,
        vehicle_id: str,
        distance_km: float,
        current_speed_kmh: float,
        trip_id: Optional[str] = None,
    ) -> Optional[EstimateCandidate]:
        if current_speed_kmh <= 0:
            return None

        samples = self._samples_for(vehicle_id, trip_id)
        if len(samples) < self.MIN_DATA_POINTS:
            return None

        recent = samples[-self.KALMAN_WINDOW:]
        time_span = (recent[-1].captured_at - recent[0].captured_at).total_seconds()
        acceleration = (recent[-1].speed_kmh - recent[0].speed_kmh) / time_span if time_span > 0 else 0.0

        hours = distance_km / current_speed_kmh
        if acceleration > self.ACCELERATION_THRESHOLD:
            # v^2 = u^2 + 2as with a in km/h^2, t = (v - u) / a
            accel_kmh2 = acceleration * 3600
            final_speed = math.sqrt(current_speed_kmh ** 2 + 2 * accel_kmh2 * distance_km)
            hours = (final_speed - current_speed_kmh) / accel_kmh2

        confidence = min(0.9, 0.8 if current_speed_kmh > 5 else 0.5)
        return EstimateCandidate(EstimationMethod.KALMAN, hours * 3600, confidence)

    # ----- Speed buffer -----

    def _speed_key(self, vehicle_id: str, trip_id: str) -> str:
        return f"{self.SPEED_KEY_PREFIX}{vehicle_id}:{trip_id}"

    def record_speed(self, vehicle_id: str, trip_id: str, speed_kmh: float, accuracy: float) -> bool:
        """Append a reading to the bounded per-(vehicle, trip) buffer. Best effort."""
        sample = SpeedSample(
            captured_at=utc_from_timestamp(self.clock()),
            speed_kmh=float(speed_kmh),
            accuracy_meters=float(accuracy),
        )
        try:
            self.store.push_bounded(
                self._speed_key(vehicle_id, trip_id),
                json.dumps(sample.to_dict()),
                self.speed_buffer_size,
                self.speed_history_ttl_seconds,
            )
            return True
        except DependencyUnavailableError as e:
            logger.warning(f"Failed to record speed for vehicle {vehicle_id} trip {trip_id}: {e}")
            return False

    def speed_samples(self, vehicle_id: str, trip_id: str) -> List[SpeedSample]:
        try:
            raw = self.store.get_list(self._speed_key(vehicle_id, trip_id))
        except DependencyUnavailableError as e:
            logger.warning(f"Speed buffer unavailable for vehicle {vehicle_id}: {e}")
            return []
        samples = []
        for item in raw:
            try:
                samples.append(SpeedSample.from_dict(json.loads(item)))
            except (ValueError, KeyError) as e:
                logger.warning(f"Skipping corrupt speed sample for vehicle {vehicle_id}: {e}")
        return samples

    def _samples_for(self, vehicle_id: str, trip_id: Optional[str]) -> List[SpeedSample]:
        """Buffer of the given trip, or the most recently updated buffer of the vehicle."""
        if trip_id:
            return self.speed_samples(vehicle_id, trip_id)

        prefix = f"{self.SPEED_KEY_PREFIX}{vehicle_id}:"
        try:
            keys = self.store.scan_prefix(prefix)
        except DependencyUnavailableError as e:
            logger.warning(f"Speed buffers unavailable for vehicle {vehicle_id}: {e}")
            return []

        latest: List[SpeedSample] = []
        for key in keys:
            samples = self.speed_samples(vehicle_id, key[len(prefix):])
            if samples and (not latest or samples[-1].captured_at > latest[-1].captured_at):
                latest = samples
        return latest

    def speed_profile(self, vehicle_id: str, trip_id: Optional[str] = None) -> SpeedProfile:
        samples = self._samples_for(vehicle_id, trip_id)
        speeds = [s.speed_kmh for s in samples if 0 < s.speed_kmh < self.MAX_VALID_SPEED_KMH]
        if not speeds:
            speeds = [self.fallback_speed_kmh]
        return SpeedProfile.from_speeds(speeds, sample_count=len(samples))

    # ----- Route breakdown -----

    def estimate_route_breakdown(
        self,
        trip_id: str,
        vehicle_id: str,
        current_latitude: float,
        current_longitude: float,
        current_speed_kmh: float = 0.0,
        remaining_stops: Optional[Sequence[RouteStop]] = None,
    ) -> Optional[RouteBreakdown]:
        """Multi-segment ETA over the next remaining stops.

        Returns None when the trip or its route is unknown, or when no stops
        remain. remaining_stops defaults to the stops after the completed ones.
        """
        trip = self.trip_repository.find_trip(trip_id)
        if not trip:
            return None
        all_stops = self.trip_repository.find_route_stops(trip.route_id)
        if not all_stops:
            return None

        completed = self.trip_repository.count_completed_stops(trip_id)
        if remaining_stops is None:
            remaining_stops = all_stops[completed:]
        if not remaining_stops:
            return None

        now = utc_from_timestamp(self.clock())
        segments = []
        cumulative_seconds = 0
        from_name = "Current Location"
        from_lat, from_lon = current_latitude, current_longitude

        for index, stop in enumerate(remaining_stops[:self.MAX_BREAKDOWN_STOPS]):
            estimate = self.estimate_segment(
                vehicle_id, from_lat, from_lon, stop.latitude, stop.longitude,
                current_speed_kmh, trip_id=trip_id,
            )
            cumulative_seconds += estimate.estimated_seconds
            segments.append(RouteSegmentETA(
                segment=index,
                from_stop=from_name,
                to_stop=stop.name,
                to_stop_id=stop.stop_id,
                distance_km=round(estimate.distance_km, 2),
                estimated_seconds=estimate.estimated_seconds,
                arrival_time=now + timedelta(seconds=cumulative_seconds),
                confidence=estimate.confidence,
                method=estimate.method,
            ))
            from_name = stop.name
            from_lat, from_lon = stop.latitude, stop.longitude

        total_km = self._path_distance_km(all_stops)
        completed_km = self._path_distance_km(all_stops[:completed + 1]) if completed else 0.0
        profile = self.speed_profile(vehicle_id, trip_id)
        average_speed = profile.average_speed_kmh or self.fallback_speed_kmh

        return RouteBreakdown(
            trip_id=trip_id,
            vehicle_id=vehicle_id,
            total_distance_km=round(total_km, 2),
            total_estimated_seconds=round(total_km / average_speed * 3600),
            completed_distance_km=round(completed_km, 2),
            completed_seconds=round(completed_km / average_speed * 3600),
            remaining_distance_km=round(max(0.0, total_km - completed_km), 2),
            remaining_seconds=cumulative_seconds,
            progress_percentage=round(completed_km / total_km * 100) if total_km > 0 else 0,
            estimated_arrival_time=segments[-1].arrival_time,
            confidence=round(sum(s.confidence for s in segments) / len(segments), 3),
            speed_profile=profile,
            segments=segments,
        )

    @staticmethod
    def _path_distance_km(stops: Sequence[RouteStop]) -> float:
        """Sum of consecutive stop-to-stop legs."""
        return sum(
            haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)
            for a, b in zip(stops, stops[1:])
        )
