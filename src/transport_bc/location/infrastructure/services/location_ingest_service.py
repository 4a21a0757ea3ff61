import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from src.transport_bc.eta.infrastructure.services import ETAEstimator
from src.transport_bc.geofence.domain.entities import GeofenceEvent
from src.transport_bc.geofence.infrastructure.services import GeofenceDetector
from src.transport_bc.location.domain.entities import VehiclePosition
from src.transport_bc.location.infrastructure.services.location_store import LocationStore
from src.transport_bc.rate_limit.domain.entities import RateLimitDecision
from src.transport_bc.rate_limit.infrastructure.services import GpsSubmissionLimiter
from src.transport_bc.shared.domain.value_objects import haversine_distance
from src.transport_bc.shared.infrastructure.event_publisher import EventPublisher, trip_topic
from src.transport_bc.trip.domain.entities import TripSnapshot
from src.transport_bc.trip.infrastructure.services import TripProgressTracker

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    position: VehiclePosition
    rate_limit: RateLimitDecision
    current_speed_kmh: Optional[float] = None
    geofence_events: List[GeofenceEvent] = field(default_factory=list)
    progress: Optional[TripSnapshot] = None


class LocationIngestService:
    """Runs one GPS sample through the tracking pipeline.

    rate limit -> location cache -> speed buffer -> geofences -> trip progress

    Only rate limiting and coordinate validation can fail the call. Everything
    after the position is cached is best effort and logged on failure.
    """

    MAX_DERIVED_SPEED_KMH = 150.0

    def __init__(
        self,
        submission_limiter: GpsSubmissionLimiter,
        location_store: LocationStore,
        geofence_detector: GeofenceDetector,
        progress_tracker: TripProgressTracker,
        eta_estimator: ETAEstimator,
        publisher: EventPublisher,
    ):
        self.submission_limiter = submission_limiter
        self.location_store = location_store
        self.geofence_detector = geofence_detector
        self.progress_tracker = progress_tracker
        self.eta_estimator = eta_estimator
        self.publisher = publisher

    def ingest(
        self,
        vehicle_id: str,
        latitude: float,
        longitude: float,
        accuracy: Optional[float] = None,
        trip_id: Optional[str] = None,
        driver_id: Optional[str] = None,
    ) -> IngestResult:
        vehicle_decision, _ = self.submission_limiter.check(vehicle_id, driver_id)

        previous = self.location_store.current(vehicle_id)
        position = self.location_store.capture(vehicle_id, latitude, longitude, accuracy, trip_id)
        result = IngestResult(position=position, rate_limit=vehicle_decision)

        if not trip_id:
            return result

        result.current_speed_kmh = self._derive_speed(previous, position)
        if result.current_speed_kmh is not None:
            self.eta_estimator.record_speed(vehicle_id, trip_id, result.current_speed_kmh, position.accuracy)

        try:
            result.geofence_events = self.geofence_detector.evaluate(trip_id, vehicle_id, latitude, longitude)
        except SQLAlchemyError as e:
            logger.error(f"Geofence evaluation failed for vehicle {vehicle_id} trip {trip_id}: {e}")

        try:
            result.progress = self.progress_tracker.progress(trip_id, vehicle_id, latitude, longitude)
        except SQLAlchemyError as e:
            logger.error(f"Trip progress failed for trip {trip_id}: {e}")

        if result.progress:
            self.publisher.publish(
                trip_topic(trip_id),
                {"type": "trip_progress", **result.progress.to_dict()},
            )

        return result

    def _derive_speed(self, previous: Optional[VehiclePosition], current: VehiclePosition) -> Optional[float]:
        """Speed over the last hop of the same trip, None if it cannot be trusted."""
        if previous is None or previous.trip_id != current.trip_id:
            return None
        elapsed = (current.captured_at - previous.captured_at).total_seconds()
        if elapsed <= 0:
            return None
        meters = haversine_distance(previous.latitude, previous.longitude, current.latitude, current.longitude)
        speed_kmh = meters / elapsed * 3.6
        if speed_kmh >= self.MAX_DERIVED_SPEED_KMH:
            logger.warning(f"Discarding implausible speed {speed_kmh:.0f} km/h for vehicle {current.vehicle_id}")
            return None
        return round(speed_kmh, 1)
