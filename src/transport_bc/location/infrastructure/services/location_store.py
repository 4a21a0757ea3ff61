"""Ephemeral current-position cache with sparse durable snapshots.

Keys:
    gps:location:{vehicle_id}   JSON VehiclePosition, expires after the location TTL
    gps:snapshot:{vehicle_id}   snapshot claim, expires after the snapshot interval

A vehicle whose cache entry expired is "location unknown", which callers
must not confuse with an explicit OFFLINE status.
"""
import json
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from src.transport_bc.location.domain.entities import (
    HistoricalPosition,
    VehiclePosition,
    VehicleStatus,
)
from src.transport_bc.location.domain.repositories import LocationHistoryRepository
from src.transport_bc.shared.domain.errors import DependencyUnavailableError, ValidationError
from src.transport_bc.shared.domain.value_objects import (
    Clock,
    system_clock,
    utc_from_timestamp,
    validate_coordinates,
)
from src.transport_bc.shared.infrastructure.event_publisher import EventPublisher, location_topic
from src.transport_bc.shared.infrastructure.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class LocationStore:
    """Owns the cached VehiclePosition of every tracked vehicle."""

    LOCATION_KEY_PREFIX = "gps:location:"
    SNAPSHOT_KEY_PREFIX = "gps:snapshot:"

    DEFAULT_ACCURACY_METERS = 10.0
    MIN_ACCURACY_METERS = 1.0
    MAX_ACCURACY_METERS = 1000.0
    MAX_HISTORY_LIMIT = 1000

    def __init__(
        self,
        store: KeyValueStore,
        history_repository: LocationHistoryRepository,
        publisher: EventPublisher,
        clock: Clock = system_clock,
        ttl_seconds: int = 60,
        snapshot_interval_seconds: int = 300,
    ):
        self.store = store
        self.history_repository = history_repository
        self.publisher = publisher
        self.clock = clock
        self.ttl_seconds = ttl_seconds
        self.snapshot_interval_seconds = snapshot_interval_seconds

    def _location_key(self, vehicle_id: str) -> str:
        return f"{self.LOCATION_KEY_PREFIX}{vehicle_id}"

    def _snapshot_key(self, vehicle_id: str) -> str:
        return f"{self.SNAPSHOT_KEY_PREFIX}{vehicle_id}"

    def _now(self) -> datetime:
        return utc_from_timestamp(self.clock())

    def _clamp_accuracy(self, accuracy: Optional[float]) -> float:
        if accuracy is None:
            return self.DEFAULT_ACCURACY_METERS
        return min(self.MAX_ACCURACY_METERS, max(self.MIN_ACCURACY_METERS, float(accuracy)))

    def capture(
        self,
        vehicle_id: str,
        latitude: float,
        longitude: float,
        accuracy: Optional[float] = None,
        trip_id: Optional[str] = None,
    ) -> VehiclePosition:
        """Validate and cache a new sample, publish it and snapshot if due."""
        if not vehicle_id:
            raise ValidationError("vehicle_id is required")
        validate_coordinates(latitude, longitude)

        position = VehiclePosition(
            vehicle_id=vehicle_id,
            latitude=float(latitude),
            longitude=float(longitude),
            accuracy=self._clamp_accuracy(accuracy),
            status=VehicleStatus.ONLINE,
            captured_at=self._now(),
            trip_id=trip_id,
        )

        self._write(position)
        self.publisher.publish(
            location_topic(vehicle_id),
            {"type": "location_update", **position.to_dict()},
        )
        self.snapshot_if_due(position)
        return position

    def _write(self, position: VehiclePosition) -> None:
        try:
            self.store.set(
                self._location_key(position.vehicle_id),
                json.dumps(position.to_dict()),
                self.ttl_seconds,
            )
        except DependencyUnavailableError as e:
            logger.warning(f"Could not cache location for vehicle {position.vehicle_id}: {e}")

    def current(self, vehicle_id: str) -> Optional[VehiclePosition]:
        """Cached position, or None when expired, never seen or the store is down."""
        try:
            raw = self.store.get(self._location_key(vehicle_id))
        except DependencyUnavailableError as e:
            logger.warning(f"Location cache unavailable reading vehicle {vehicle_id}: {e}")
            return None
        if not raw:
            return None
        try:
            return VehiclePosition.from_dict(json.loads(raw))
        except (ValueError, KeyError) as e:
            logger.error(f"Corrupt cached location for vehicle {vehicle_id}: {e}")
            return None

    def mark_offline(self, vehicle_id: str) -> Optional[VehiclePosition]:
        """Flag the cached position OFFLINE and notify subscribers.

        Returns None when there is no cached position to flag.
        """
        position = self.current(vehicle_id)
        if position is None:
            return None
        position.status = VehicleStatus.OFFLINE
        self._write(position)
        self.publisher.publish(
            location_topic(vehicle_id),
            {"type": "vehicle_offline", **position.to_dict()},
        )
        logger.info(f"Vehicle {vehicle_id} marked OFFLINE")
        return position

    def active_vehicles(self, vehicle_ids: Optional[Iterable[str]] = None) -> List[VehiclePosition]:
        """Every non-expired cached position, optionally restricted to vehicle_ids."""
        allowed = set(vehicle_ids) if vehicle_ids is not None else None
        try:
            keys = self.store.scan_prefix(self.LOCATION_KEY_PREFIX)
        except DependencyUnavailableError as e:
            logger.warning(f"Location cache unavailable listing active vehicles: {e}")
            return []

        positions = []
        for key in keys:
            vehicle_id = key[len(self.LOCATION_KEY_PREFIX):]
            if allowed is not None and vehicle_id not in allowed:
                continue
            position = self.current(vehicle_id)
            if position is not None:
                positions.append(position)
        positions.sort(key=lambda p: p.vehicle_id)
        return positions

    def snapshot_if_due(self, position: VehiclePosition) -> bool:
        """Append a durable copy unless one was taken within the snapshot interval.

        The claim key makes this idempotent across capture calls, API
        instances and the periodic sweep. A failed append releases the claim
        so the next sample retries.
        """
        snapshot_key = self._snapshot_key(position.vehicle_id)
        try:
            claimed = self.store.set_if_absent(
                snapshot_key, position.captured_at.isoformat(), self.snapshot_interval_seconds
            )
        except DependencyUnavailableError as e:
            logger.warning(f"Skipping snapshot for vehicle {position.vehicle_id}: {e}")
            return False
        if not claimed:
            return False

        try:
            self.history_repository.append_historical_position(
                HistoricalPosition.from_position(position, stored_at=self._now())
            )
            return True
        except SQLAlchemyError as e:
            logger.error(f"Failed to store location snapshot for vehicle {position.vehicle_id}: {e}")
            try:
                self.store.delete(snapshot_key)
            except DependencyUnavailableError as release_error:
                logger.warning(f"Could not release snapshot claim {snapshot_key}: {release_error}")
            return False

    def snapshot_sweep(self) -> int:
        """Snapshot every active vehicle that is due. Returns the number stored."""
        stored = 0
        for position in self.active_vehicles():
            if self.snapshot_if_due(position):
                stored += 1
        if stored:
            logger.info(f"Location snapshot sweep stored {stored} positions")
        return stored

    def history(
        self,
        vehicle_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[HistoricalPosition]:
        if limit < 1 or limit > self.MAX_HISTORY_LIMIT:
            raise ValidationError(f"limit must be between 1 and {self.MAX_HISTORY_LIMIT}")
        if start and end and start > end:
            raise ValidationError("startTime must be before endTime")
        return self.history_repository.history(vehicle_id, start=start, end=end, limit=limit)

    def last_known(self, vehicle_id: str) -> Optional[HistoricalPosition]:
        """Most recent durable snapshot, used once the cache entry has expired."""
        try:
            return self.history_repository.last_known(vehicle_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to read last known location for vehicle {vehicle_id}: {e}")
            return None
