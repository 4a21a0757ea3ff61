from .trip_repository import TripRepository

__all__ = ["TripRepository"]
