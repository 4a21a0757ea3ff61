from dataclasses import dataclass
from math import radians, cos, sin, atan2, sqrt
from typing import Tuple

from src.transport_bc.shared.domain.errors import ValidationError

# Earth's radius in meters
EARTH_RADIUS_M = 6_371_000


@dataclass(frozen=True)
class GeoPoint:
    """Geographic point with latitude and longitude."""
    latitude: float
    longitude: float

    def to_tuple(self) -> Tuple[float, float]:
        """Return as (lat, lon) tuple."""
        return (self.latitude, self.longitude)

    def distance_to(self, other: "GeoPoint") -> float:
        """Calculate distance to another point in meters using Haversine formula."""
        return haversine_distance(
            self.latitude, self.longitude,
            other.latitude, other.longitude
        )


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the distance between two points on Earth using the Haversine formula.

    Args:
        lat1: Latitude of first point in degrees
        lon1: Longitude of first point in degrees
        lat2: Latitude of second point in degrees
        lon2: Longitude of second point in degrees

    Returns:
        Distance in meters
    """
    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)
    delta_lat = radians(lat2 - lat1)
    delta_lon = radians(lon2 - lon1)

    a = sin(delta_lat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(delta_lon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_M * c


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance in kilometers."""
    return haversine_distance(lat1, lon1, lat2, lon2) / 1000


def validate_coordinates(latitude: float, longitude: float) -> None:
    """Raise ValidationError unless the pair is a valid WGS84 coordinate."""
    if latitude is None or longitude is None:
        raise ValidationError("latitude and longitude are required")
    if not -90 <= latitude <= 90:
        raise ValidationError("Invalid latitude: must be between -90 and 90")
    if not -180 <= longitude <= 180:
        raise ValidationError("Invalid longitude: must be between -180 and 180")
