from datetime import datetime
from typing import List, Optional

from core.database import SessionFactory
from src.transport_bc.location.domain.entities import HistoricalPosition, VehicleStatus
from src.transport_bc.location.domain.repositories import LocationHistoryRepository
from src.transport_bc.location.infrastructure.models import GPSLocationModel
from src.transport_bc.shared.domain.value_objects import to_aware_utc, to_naive_utc


def _to_entity(row: GPSLocationModel) -> HistoricalPosition:
    return HistoricalPosition(
        id=row.id,
        vehicle_id=row.vehicle_id,
        trip_id=row.trip_id,
        latitude=row.latitude,
        longitude=row.longitude,
        accuracy=row.accuracy,
        status=VehicleStatus(row.status),
        captured_at=to_aware_utc(row.timestamp),
        stored_at=to_aware_utc(row.recorded_at),
    )


class SqlAlchemyLocationHistoryRepository(LocationHistoryRepository):
    """GPS history backed by the transport_gps_locations table.

    Each call opens and closes its own session so the repository can be
    shared between concurrent requests and background sweeps.
    """

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    def append_historical_position(self, position: HistoricalPosition) -> HistoricalPosition:
        db = self._session_factory()
        try:
            row = GPSLocationModel(
                vehicle_id=position.vehicle_id,
                trip_id=position.trip_id,
                latitude=position.latitude,
                longitude=position.longitude,
                accuracy=position.accuracy,
                status=position.status.value,
                timestamp=to_naive_utc(position.captured_at),
                recorded_at=to_naive_utc(position.stored_at) or datetime.utcnow(),
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return _to_entity(row)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def query_recent_positions(self, vehicle_id: str, limit: int) -> List[HistoricalPosition]:
        db = self._session_factory()
        try:
            rows = (
                db.query(GPSLocationModel)
                .filter(GPSLocationModel.vehicle_id == vehicle_id)
                .order_by(GPSLocationModel.timestamp.desc(), GPSLocationModel.id.desc())
                .limit(limit)
                .all()
            )
            return [_to_entity(row) for row in rows]
        finally:
            db.close()

    def history(
        self,
        vehicle_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[HistoricalPosition]:
        db = self._session_factory()
        try:
            query = db.query(GPSLocationModel).filter(GPSLocationModel.vehicle_id == vehicle_id)
            if start:
                query = query.filter(GPSLocationModel.timestamp >= to_naive_utc(start))
            if end:
                query = query.filter(GPSLocationModel.timestamp <= to_naive_utc(end))
            rows = (
                query.order_by(GPSLocationModel.timestamp.desc(), GPSLocationModel.id.desc())
                .limit(limit)
                .all()
            )
            return [_to_entity(row) for row in rows]
        finally:
            db.close()

    def last_known(self, vehicle_id: str) -> Optional[HistoricalPosition]:
        recent = self.query_recent_positions(vehicle_id, 1)
        return recent[0] if recent else None
