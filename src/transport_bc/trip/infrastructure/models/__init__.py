from .trip_model import TripModel, TripStatusEnum, StudentTripRecordModel

__all__ = ["TripModel", "TripStatusEnum", "StudentTripRecordModel"]
