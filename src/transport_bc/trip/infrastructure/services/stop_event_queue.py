"""Outbound queue for boarding side effects of geofence transitions.

ARRIVED at a stop boards the students picked up there; DEPARTED alights the
students dropped there and starts a scheduled trip. The geofence detector
only enqueues; a failure here never reaches the location-ingest call.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum

from src.transport_bc.trip.domain.repositories import TripRepository

logger = logging.getLogger(__name__)


class StopEventKind(str, Enum):
    ARRIVED = "ARRIVED"
    DEPARTED = "DEPARTED"


class BoardingRecorder:
    """Applies a stop event to the student trip records."""

    def __init__(self, trip_repository: TripRepository):
        self.trip_repository = trip_repository

    def apply(self, kind: StopEventKind, trip_id: str, stop_id: str, at: datetime) -> int:
        if kind == StopEventKind.ARRIVED:
            boarded = self.trip_repository.mark_boarded(trip_id, stop_id, at)
            logger.info(f"Trip {trip_id} arrived at {stop_id}: {boarded} students boarded")
            return boarded

        self.trip_repository.start_trip(trip_id)
        alighted = self.trip_repository.mark_alighted(trip_id, stop_id, at)
        logger.info(f"Trip {trip_id} departed {stop_id}: {alighted} students alighted")
        return alighted


class StopEventQueue(ABC):
    """Fire-and-forget dispatch of ARRIVED/DEPARTED stop events."""

    def arrived(self, trip_id: str, stop_id: str, at: datetime) -> bool:
        return self._submit(StopEventKind.ARRIVED, trip_id, stop_id, at)

    def departed(self, trip_id: str, stop_id: str, at: datetime) -> bool:
        return self._submit(StopEventKind.DEPARTED, trip_id, stop_id, at)

    def _submit(self, kind: StopEventKind, trip_id: str, stop_id: str, at: datetime) -> bool:
        try:
            self._dispatch(kind, trip_id, stop_id, at)
            return True
        except Exception as e:
            logger.error(f"Failed to handle {kind.value} for trip {trip_id} at stop {stop_id}: {e}")
            return False

    @abstractmethod
    def _dispatch(self, kind: StopEventKind, trip_id: str, stop_id: str, at: datetime) -> None:
        pass


class InlineStopEventQueue(StopEventQueue):
    """Applies stop events in-process, right after the geofence evaluation."""

    def __init__(self, recorder: BoardingRecorder):
        self.recorder = recorder

    def _dispatch(self, kind: StopEventKind, trip_id: str, stop_id: str, at: datetime) -> None:
        self.recorder.apply(kind, trip_id, stop_id, at)


class CeleryStopEventQueue(StopEventQueue):
    """Queues stop events on the Celery broker for a worker to apply."""

    def _dispatch(self, kind: StopEventKind, trip_id: str, stop_id: str, at: datetime) -> None:
        from src.transport_bc.trip.infrastructure.tasks import record_stop_event

        record_stop_event.delay(kind.value, trip_id, stop_id, at.isoformat())
