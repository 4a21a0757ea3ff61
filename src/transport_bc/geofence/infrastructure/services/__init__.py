from .geofence_detector import GeofenceDetector

__all__ = ["GeofenceDetector"]
