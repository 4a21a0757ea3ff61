from .location_history_repository import LocationHistoryRepository

__all__ = ["LocationHistoryRepository"]
