from datetime import datetime
from sqlalchemy import Column, String, Float, DateTime, Integer, Index
from core.base import Base


class GPSLocationModel(Base):
    """Model for storing historical vehicle positions.

    Rows are sparse snapshots of the cached current position (one per
    vehicle per snapshot interval), used for history queries and the
    historical-speed ETA method.
    """
    __tablename__ = "transport_gps_locations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_id = Column(String(50), nullable=False, index=True)
    trip_id = Column(String(50), nullable=True, index=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    accuracy = Column(Float, nullable=False)
    status = Column(String(20), nullable=False)  # ONLINE, OFFLINE, INACTIVE
    timestamp = Column(DateTime, nullable=False, index=True)
    recorded_at = Column(DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        Index("ix_gps_locations_vehicle_time", "vehicle_id", "timestamp"),
    )

    def __repr__(self):
        return f"<GPSLocation {self.vehicle_id} @ {self.timestamp}>"
