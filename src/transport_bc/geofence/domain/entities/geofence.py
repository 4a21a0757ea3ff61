"""Geofence state machine.

Each (vehicle, stop) pair is in one of three bands, classified from
the current distance:

    ARRIVED      distance <= arrival threshold
    APPROACHING  distance <= approaching threshold
    OUTSIDE      otherwise (also the state of an absent key)

Events fire only on band changes:

    OUTSIDE  -> APPROACHING   APPROACHING
    any      -> ARRIVED       ARRIVED
    ARRIVED  -> OUTSIDE       DEPARTED

A vehicle that has ARRIVED stays ARRIVED while it is still inside the
approaching band, so pulling away from a stop fires DEPARTED once it is
OUTSIDE and never a second APPROACHING. APPROACHING -> OUTSIDE changes the
stored state silently. The departure threshold is reported with the
configuration but does not create a fourth band.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class GeofenceState(str, Enum):
    OUTSIDE = "OUTSIDE"
    APPROACHING = "APPROACHING"
    ARRIVED = "ARRIVED"


class GeofenceAction(str, Enum):
    APPROACHING = "APPROACHING"
    ARRIVED = "ARRIVED"
    DEPARTED = "DEPARTED"


@dataclass(frozen=True)
class GeofenceThresholds:
    approaching_meters: float = 500.0
    arrival_meters: float = 100.0
    departure_meters: float = 150.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "approaching_threshold": self.approaching_meters,
            "arrival_threshold": self.arrival_meters,
            "departure_threshold": self.departure_meters,
        }


@dataclass(frozen=True)
class GeofenceEvent:
    vehicle_id: str
    trip_id: str
    stop_id: str
    stop_name: str
    action: GeofenceAction
    distance_meters: int
    latitude: float
    longitude: float
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vehicle_id": self.vehicle_id,
            "trip_id": self.trip_id,
            "stop_id": self.stop_id,
            "stop_name": self.stop_name,
            "action": self.action.value,
            "distance_meters": self.distance_meters,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": self.timestamp.isoformat(),
        }


def classify(distance_meters: float, thresholds: GeofenceThresholds) -> GeofenceState:
    """Map a distance onto its band."""
    if distance_meters <= thresholds.arrival_meters:
        return GeofenceState.ARRIVED
    if distance_meters <= thresholds.approaching_meters:
        return GeofenceState.APPROACHING
    return GeofenceState.OUTSIDE


# Stored states left in place when a new distance falls in the key band
_HOLDS = {
    GeofenceState.APPROACHING: (GeofenceState.ARRIVED,),
}


def held_states(classified: GeofenceState) -> Tuple[GeofenceState, ...]:
    """Stored states that a sample classified as `classified` does not replace."""
    return _HOLDS.get(classified, ())


def settle(previous: GeofenceState, classified: GeofenceState) -> GeofenceState:
    """State to store after classifying a new distance."""
    if previous in held_states(classified):
        return previous
    return classified


def transition(previous: GeofenceState, current: GeofenceState) -> Optional[GeofenceAction]:
    """Event fired when moving from previous to current, if any."""
    if previous == current:
        return None
    if current == GeofenceState.ARRIVED:
        return GeofenceAction.ARRIVED
    if current == GeofenceState.APPROACHING and previous == GeofenceState.OUTSIDE:
        return GeofenceAction.APPROACHING
    if current == GeofenceState.OUTSIDE and previous == GeofenceState.ARRIVED:
        return GeofenceAction.DEPARTED
    return None


def parse_state(raw: Optional[str]) -> GeofenceState:
    """Stored value to state; unknown or absent values count as OUTSIDE."""
    if not raw:
        return GeofenceState.OUTSIDE
    try:
        return GeofenceState(raw)
    except ValueError:
        return GeofenceState.OUTSIDE
