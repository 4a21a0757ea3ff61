from .gps_location_model import GPSLocationModel

__all__ = ["GPSLocationModel"]
