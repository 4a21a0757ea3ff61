from .sqlalchemy_trip_repository import SqlAlchemyTripRepository

__all__ = ["SqlAlchemyTripRepository"]
