from .sqlalchemy_location_history_repository import SqlAlchemyLocationHistoryRepository

__all__ = ["SqlAlchemyLocationHistoryRepository"]
