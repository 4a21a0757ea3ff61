"""Identifiers and coordinates of the seeded test schools."""

# 2025-10-09 08:53:20 UTC
START_TIMESTAMP = 1_760_000_000.0

SCHOOL_ID = "school-1"
OTHER_SCHOOL_ID = "school-2"
VEHICLE_ID = "bus-1"
OTHER_VEHICLE_ID = "bus-2"
ROUTE_ID = "route-1"
TRIP_ID = "trip-1"
OTHER_TRIP_ID = "trip-2"

# Four stops along a parallel, roughly 850 m apart
STOPS = [
    ("stop-1", "Plaza Mayor", 40.0, -3.70),
    ("stop-2", "Calle Alcala", 40.0, -3.69),
    ("stop-3", "Parque Norte", 40.0, -3.68),
    ("stop-4", "Colegio San Jose", 40.0, -3.67),
]

METERS_PER_DEGREE_LAT = 111_194.93


def north_of(latitude, longitude, meters):
    """Point the given distance due north of (latitude, longitude)."""
    return latitude + meters / METERS_PER_DEGREE_LAT, longitude
