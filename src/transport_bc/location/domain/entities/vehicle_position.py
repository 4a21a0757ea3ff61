from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class VehicleStatus(str, Enum):
    """Reported status of a tracked vehicle."""
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"
    INACTIVE = "INACTIVE"


@dataclass
class VehiclePosition:
    """Most recent position of a vehicle, as held in the location cache.

    An expired cache entry means "location unknown", which is distinct from
    an explicit OFFLINE status.
    """
    vehicle_id: str
    latitude: float
    longitude: float
    accuracy: float
    status: VehicleStatus
    captured_at: datetime
    trip_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vehicle_id": self.vehicle_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy,
            "status": self.status.value,
            "captured_at": self.captured_at.isoformat(),
            "trip_id": self.trip_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VehiclePosition":
        return cls(
            vehicle_id=data["vehicle_id"],
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            accuracy=float(data["accuracy"]),
            status=VehicleStatus(data.get("status", VehicleStatus.ONLINE.value)),
            captured_at=datetime.fromisoformat(data["captured_at"]),
            trip_id=data.get("trip_id"),
        )


@dataclass
class HistoricalPosition:
    """Durable snapshot of a VehiclePosition."""
    vehicle_id: str
    latitude: float
    longitude: float
    accuracy: float
    status: VehicleStatus
    captured_at: datetime
    stored_at: Optional[datetime] = None
    trip_id: Optional[str] = None
    id: Optional[int] = None

    @classmethod
    def from_position(cls, position: VehiclePosition, stored_at: datetime) -> "HistoricalPosition":
        return cls(
            vehicle_id=position.vehicle_id,
            latitude=position.latitude,
            longitude=position.longitude,
            accuracy=position.accuracy,
            status=position.status,
            captured_at=position.captured_at,
            stored_at=stored_at,
            trip_id=position.trip_id,
        )
