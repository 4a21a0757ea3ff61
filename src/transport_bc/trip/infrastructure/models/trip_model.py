import enum
from datetime import datetime
from sqlalchemy import Column, String, Boolean, Date, DateTime, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from core.base import Base


class TripStatusEnum(enum.Enum):
    """Lifecycle of a scheduled trip."""
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TripModel(Base):
    """SQLAlchemy model for a single run of a route by a vehicle."""

    __tablename__ = "transport_trips"

    id = Column(String(50), primary_key=True)
    school_id = Column(String(50), nullable=False, index=True)
    route_id = Column(String(50), ForeignKey("transport_routes.id"), nullable=False, index=True)
    vehicle_id = Column(String(50), ForeignKey("transport_vehicles.id"), nullable=False, index=True)
    status = Column(SQLEnum(TripStatusEnum), nullable=False, default=TripStatusEnum.SCHEDULED)
    trip_date = Column(Date, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    route = relationship("RouteModel")
    student_records = relationship("StudentTripRecordModel", back_populates="trip")

    def __repr__(self):
        return f"<Trip {self.id} route={self.route_id} vehicle={self.vehicle_id}>"


class StudentTripRecordModel(Base):
    """Boarding/alighting bookkeeping for one student on one trip.

    alighted implies boarded; absent implies neither boarded nor alighted.
    """

    __tablename__ = "transport_student_trip_records"

    id = Column(String(50), primary_key=True)
    trip_id = Column(String(50), ForeignKey("transport_trips.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(String(50), nullable=False, index=True)
    pickup_stop_id = Column(String(50), ForeignKey("transport_stops.id"), nullable=True)
    drop_stop_id = Column(String(50), ForeignKey("transport_stops.id"), nullable=True)
    boarded = Column(Boolean, nullable=False, default=False)
    boarding_time = Column(DateTime, nullable=True)
    alighted = Column(Boolean, nullable=False, default=False)
    alighting_time = Column(DateTime, nullable=True)
    absent = Column(Boolean, nullable=False, default=False)

    # Relationships
    trip = relationship("TripModel", back_populates="student_records")

    __table_args__ = (
        Index("ix_student_trip_records_trip", "trip_id"),
        Index("ix_student_trip_records_trip_drop", "trip_id", "drop_stop_id"),
    )

    def __repr__(self):
        return f"<StudentTripRecord {self.student_id} trip={self.trip_id}>"
