from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from src.transport_bc.location.domain.entities import HistoricalPosition


class LocationHistoryRepository(ABC):
    """Durable, append-only record of sampled vehicle positions."""

    @abstractmethod
    def append_historical_position(self, position: HistoricalPosition) -> HistoricalPosition:
        raise NotImplementedError

    @abstractmethod
    def query_recent_positions(self, vehicle_id: str, limit: int) -> List[HistoricalPosition]:
        """Newest-first positions for a vehicle."""
        raise NotImplementedError

    @abstractmethod
    def history(
        self,
        vehicle_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[HistoricalPosition]:
        """Newest-first positions captured within [start, end]."""
        raise NotImplementedError

    @abstractmethod
    def last_known(self, vehicle_id: str) -> Optional[HistoricalPosition]:
        raise NotImplementedError
