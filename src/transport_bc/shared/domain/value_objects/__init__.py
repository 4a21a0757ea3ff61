from .geo import GeoPoint, haversine_distance, haversine_km, validate_coordinates
from .clock import Clock, system_clock, utc_from_timestamp, to_naive_utc, to_aware_utc

__all__ = [
    "GeoPoint",
    "haversine_distance",
    "haversine_km",
    "validate_coordinates",
    "Clock",
    "system_clock",
    "utc_from_timestamp",
    "to_naive_utc",
    "to_aware_utc",
]
