from .trip_snapshot import TripInfo, RouteStop, NextStop, TripSnapshot, TripStats

__all__ = ["TripInfo", "RouteStop", "NextStop", "TripSnapshot", "TripStats"]
