from sqlalchemy import Column, String, Float, Integer, ForeignKey, Index
from sqlalchemy.orm import relationship
from core.base import Base


class StopModel(Base):
    """SQLAlchemy model for a pickup/drop stop."""

    __tablename__ = "transport_stops"

    id = Column(String(50), primary_key=True)
    school_id = Column(String(50), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    def __repr__(self):
        return f"<Stop {self.id}: {self.name}>"


class RouteModel(Base):
    """SQLAlchemy model for a transport route."""

    __tablename__ = "transport_routes"

    id = Column(String(50), primary_key=True)
    school_id = Column(String(50), nullable=False, index=True)
    name = Column(String(255), nullable=False)

    # Relationships
    stops = relationship(
        "RouteStopModel",
        back_populates="route",
        order_by="RouteStopModel.sequence",
    )

    def __repr__(self):
        return f"<Route {self.id}: {self.name}>"


class RouteStopModel(Base):
    """Ordered membership of a stop on a route."""

    __tablename__ = "transport_route_stops"

    id = Column(Integer, primary_key=True, autoincrement=True)
    route_id = Column(String(50), ForeignKey("transport_routes.id", ondelete="CASCADE"), nullable=False)
    stop_id = Column(String(50), ForeignKey("transport_stops.id"), nullable=False)
    sequence = Column(Integer, nullable=False)
    wait_time_minutes = Column(Integer, default=0)

    # Relationships
    route = relationship("RouteModel", back_populates="stops")
    stop = relationship("StopModel")

    __table_args__ = (
        Index("ix_route_stops_route_sequence", "route_id", "sequence", unique=True),
    )

    def __repr__(self):
        return f"<RouteStop {self.route_id}#{self.sequence} -> {self.stop_id}>"
