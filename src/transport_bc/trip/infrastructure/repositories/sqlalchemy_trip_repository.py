import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import distinct, func

from core.database import SessionFactory
from src.transport_bc.route.infrastructure.models import RouteModel, RouteStopModel, StopModel
from src.transport_bc.shared.domain.value_objects import to_naive_utc
from src.transport_bc.trip.domain.entities import RouteStop, TripInfo
from src.transport_bc.trip.domain.repositories import TripRepository
from src.transport_bc.trip.infrastructure.models import (
    StudentTripRecordModel,
    TripModel,
    TripStatusEnum,
)
from src.transport_bc.vehicle.infrastructure.models import VehicleModel

logger = logging.getLogger(__name__)


class SqlAlchemyTripRepository(TripRepository):
    """Trip, route and student-record access through SQLAlchemy.

    One short-lived session per call; writes commit or roll back before
    the session is closed.
    """

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    def get_vehicle_school(self, vehicle_id: str) -> Optional[str]:
        db = self._session_factory()
        try:
            return (
                db.query(VehicleModel.school_id)
                .filter(VehicleModel.id == vehicle_id)
                .scalar()
            )
        finally:
            db.close()

    def vehicle_ids_for_school(self, school_id: str) -> List[str]:
        db = self._session_factory()
        try:
            rows = db.query(VehicleModel.id).filter(VehicleModel.school_id == school_id).all()
            return [row.id for row in rows]
        finally:
            db.close()

    def find_trip(self, trip_id: str, school_id: Optional[str] = None) -> Optional[TripInfo]:
        db = self._session_factory()
        try:
            query = (
                db.query(TripModel, RouteModel)
                .join(RouteModel, TripModel.route_id == RouteModel.id)
                .filter(TripModel.id == trip_id)
            )
            if school_id:
                query = query.filter(TripModel.school_id == school_id)
            result = query.first()
            if not result:
                return None
            trip, route = result
            return TripInfo(
                trip_id=trip.id,
                school_id=trip.school_id,
                route_id=route.id,
                route_name=route.name,
                vehicle_id=trip.vehicle_id,
                status=trip.status.value,
                trip_date=trip.trip_date,
            )
        finally:
            db.close()

    def find_route_stops(self, route_id: str) -> List[RouteStop]:
        db = self._session_factory()
        try:
            rows = (
                db.query(RouteStopModel, StopModel)
                .join(StopModel, RouteStopModel.stop_id == StopModel.id)
                .filter(RouteStopModel.route_id == route_id)
                .order_by(RouteStopModel.sequence)
                .all()
            )
            return [
                RouteStop(
                    stop_id=stop.id,
                    name=stop.name,
                    sequence=route_stop.sequence,
                    latitude=stop.latitude,
                    longitude=stop.longitude,
                    wait_time_minutes=route_stop.wait_time_minutes or 0,
                )
                for route_stop, stop in rows
            ]
        finally:
            db.close()

    def count_completed_stops(self, trip_id: str) -> int:
        db = self._session_factory()
        try:
            count = (
                db.query(func.count(distinct(StudentTripRecordModel.drop_stop_id)))
                .filter(
                    StudentTripRecordModel.trip_id == trip_id,
                    StudentTripRecordModel.alighted.is_(True),
                    StudentTripRecordModel.drop_stop_id.isnot(None),
                )
                .scalar()
            )
            return count or 0
        finally:
            db.close()

    def count_boarded(self, trip_id: str) -> int:
        db = self._session_factory()
        try:
            return (
                db.query(StudentTripRecordModel)
                .filter(
                    StudentTripRecordModel.trip_id == trip_id,
                    StudentTripRecordModel.boarded.is_(True),
                )
                .count()
            )
        finally:
            db.close()

    def count_expected(self, trip_id: str) -> int:
        db = self._session_factory()
        try:
            return (
                db.query(StudentTripRecordModel)
                .filter(
                    StudentTripRecordModel.trip_id == trip_id,
                    StudentTripRecordModel.absent.is_(False),
                )
                .count()
            )
        finally:
            db.close()

    def mark_boarded(self, trip_id: str, stop_id: str, at: datetime) -> int:
        db = self._session_factory()
        try:
            updated = (
                db.query(StudentTripRecordModel)
                .filter(
                    StudentTripRecordModel.trip_id == trip_id,
                    StudentTripRecordModel.pickup_stop_id == stop_id,
                    StudentTripRecordModel.absent.is_(False),
                    StudentTripRecordModel.boarded.is_(False),
                )
                .update(
                    {
                        StudentTripRecordModel.boarded: True,
                        StudentTripRecordModel.boarding_time: to_naive_utc(at),
                    },
                    synchronize_session=False,
                )
            )
            db.commit()
            return updated
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def mark_alighted(self, trip_id: str, stop_id: str, at: datetime) -> int:
        db = self._session_factory()
        try:
            updated = (
                db.query(StudentTripRecordModel)
                .filter(
                    StudentTripRecordModel.trip_id == trip_id,
                    StudentTripRecordModel.drop_stop_id == stop_id,
                    StudentTripRecordModel.boarded.is_(True),
                    StudentTripRecordModel.alighted.is_(False),
                )
                .update(
                    {
                        StudentTripRecordModel.alighted: True,
                        StudentTripRecordModel.alighting_time: to_naive_utc(at),
                    },
                    synchronize_session=False,
                )
            )
            db.commit()
            return updated
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def complete_stop(self, trip_id: str, stop_id: str, at: datetime) -> int:
        db = self._session_factory()
        try:
            records = (
                db.query(StudentTripRecordModel)
                .filter(
                    StudentTripRecordModel.trip_id == trip_id,
                    StudentTripRecordModel.drop_stop_id == stop_id,
                    StudentTripRecordModel.absent.is_(False),
                    StudentTripRecordModel.alighted.is_(False),
                )
                .all()
            )
            when = to_naive_utc(at)
            for record in records:
                # alighted implies boarded
                if not record.boarded:
                    record.boarded = True
                    record.boarding_time = when
                record.alighted = True
                record.alighting_time = when
            db.commit()
            return len(records)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def start_trip(self, trip_id: str) -> bool:
        db = self._session_factory()
        try:
            updated = (
                db.query(TripModel)
                .filter(
                    TripModel.id == trip_id,
                    TripModel.status == TripStatusEnum.SCHEDULED,
                )
                .update(
                    {
                        TripModel.status: TripStatusEnum.IN_PROGRESS,
                        TripModel.updated_at: datetime.utcnow(),
                    },
                    synchronize_session=False,
                )
            )
            db.commit()
            if updated:
                logger.info(f"Trip {trip_id} moved to IN_PROGRESS")
            return bool(updated)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
