from .geofence import (
    GeofenceState,
    GeofenceAction,
    GeofenceThresholds,
    GeofenceEvent,
    classify,
    held_states,
    settle,
    transition,
    parse_state,
)

__all__ = [
    "GeofenceState",
    "GeofenceAction",
    "GeofenceThresholds",
    "GeofenceEvent",
    "classify",
    "held_states",
    "settle",
    "transition",
    "parse_state",
]
