from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Index
from core.base import Base


class VehicleModel(Base):
    """SQLAlchemy model for a school vehicle (bus, van)."""

    __tablename__ = "transport_vehicles"

    id = Column(String(50), primary_key=True)
    school_id = Column(String(50), nullable=False, index=True)
    registration_number = Column(String(30), nullable=False)
    capacity = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_transport_vehicles_school_registration", "school_id", "registration_number"),
    )

    def __repr__(self):
        return f"<Vehicle {self.id} ({self.registration_number})>"
