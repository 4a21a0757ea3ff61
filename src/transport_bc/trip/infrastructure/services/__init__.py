from .stop_event_queue import (
    StopEventKind,
    BoardingRecorder,
    StopEventQueue,
    InlineStopEventQueue,
    CeleryStopEventQueue,
)
from .trip_progress_tracker import TripProgressTracker

__all__ = [
    "StopEventKind",
    "BoardingRecorder",
    "StopEventQueue",
    "InlineStopEventQueue",
    "CeleryStopEventQueue",
    "TripProgressTracker",
]
