from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from src.transport_bc.trip.domain.entities import RouteStop, TripInfo


class TripRepository(ABC):
    """Read access to vehicles, trips and routes plus the boarding bookkeeping
    the tracking pipeline is allowed to mutate."""

    @abstractmethod
    def get_vehicle_school(self, vehicle_id: str) -> Optional[str]:
        """School owning the vehicle, or None for an unknown vehicle."""
        raise NotImplementedError

    @abstractmethod
    def vehicle_ids_for_school(self, school_id: str) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def find_trip(self, trip_id: str, school_id: Optional[str] = None) -> Optional[TripInfo]:
        """Trip with its route header; scoped to school_id when given."""
        raise NotImplementedError

    @abstractmethod
    def find_route_stops(self, route_id: str) -> List[RouteStop]:
        """Stops of a route ordered by sequence."""
        raise NotImplementedError

    @abstractmethod
    def count_completed_stops(self, trip_id: str) -> int:
        """Distinct drop stops with at least one alighting on this trip."""
        raise NotImplementedError

    @abstractmethod
    def count_boarded(self, trip_id: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def count_expected(self, trip_id: str) -> int:
        """Students on the trip not marked absent."""
        raise NotImplementedError

    @abstractmethod
    def mark_boarded(self, trip_id: str, stop_id: str, at: datetime) -> int:
        """Board present students picked up at stop_id. Returns rows changed."""
        raise NotImplementedError

    @abstractmethod
    def mark_alighted(self, trip_id: str, stop_id: str, at: datetime) -> int:
        """Alight boarded students dropped at stop_id. Returns rows changed."""
        raise NotImplementedError

    @abstractmethod
    def complete_stop(self, trip_id: str, stop_id: str, at: datetime) -> int:
        """Record alighting for every present student dropped at stop_id."""
        raise NotImplementedError

    @abstractmethod
    def start_trip(self, trip_id: str) -> bool:
        """Move a SCHEDULED trip to IN_PROGRESS. Returns True if it changed."""
        raise NotImplementedError
