from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class TripInfo:
    """Trip header as read from the durable store."""
    trip_id: str
    school_id: str
    route_id: str
    route_name: str
    vehicle_id: str
    status: str
    trip_date: date


@dataclass(frozen=True)
class RouteStop:
    """A stop on a route, in route order."""
    stop_id: str
    name: str
    sequence: int
    latitude: float
    longitude: float
    wait_time_minutes: int = 0


@dataclass
class NextStop:
    stop_id: str
    name: str
    sequence: int
    latitude: float
    longitude: float
    distance_km: float
    estimated_seconds: int


@dataclass
class TripSnapshot:
    """Derived view of a trip's progress at one position sample.

    Never stored durably; cached briefly under the trip id.
    """
    trip_id: str
    vehicle_id: str
    route_id: str
    route_name: str
    trip_status: str
    current_stop_index: int
    total_stops: int
    completed_stops: int
    progress_percentage: int
    stops: List[RouteStop]
    next_stop: Optional[NextStop]
    current_latitude: float
    current_longitude: float
    computed_at: datetime
    students_boarded: int = 0
    students_expected: int = 0
    remaining_stops: List[RouteStop] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["computed_at"] = self.computed_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TripSnapshot":
        next_stop = data.get("next_stop")
        return cls(
            trip_id=data["trip_id"],
            vehicle_id=data["vehicle_id"],
            route_id=data["route_id"],
            route_name=data["route_name"],
            trip_status=data["trip_status"],
            current_stop_index=data["current_stop_index"],
            total_stops=data["total_stops"],
            completed_stops=data["completed_stops"],
            progress_percentage=data["progress_percentage"],
            stops=[RouteStop(**stop) for stop in data.get("stops", [])],
            next_stop=NextStop(**next_stop) if next_stop else None,
            current_latitude=data["current_latitude"],
            current_longitude=data["current_longitude"],
            computed_at=datetime.fromisoformat(data["computed_at"]),
            students_boarded=data.get("students_boarded", 0),
            students_expected=data.get("students_expected", 0),
            remaining_stops=[RouteStop(**stop) for stop in data.get("remaining_stops", [])],
        )


@dataclass(frozen=True)
class TripStats:
    """Compact monitoring view of a cached snapshot."""
    trip_id: str
    progress_percentage: int
    students_boarded: int
    students_expected: int
    last_update: datetime
