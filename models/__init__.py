# Models registry for Alembic autogenerate
# Import all SQLAlchemy models here so Alembic can detect them

from src.transport_bc.vehicle.infrastructure.models import VehicleModel
from src.transport_bc.route.infrastructure.models import RouteModel, RouteStopModel, StopModel
from src.transport_bc.trip.infrastructure.models import TripModel, StudentTripRecordModel
from src.transport_bc.location.infrastructure.models import GPSLocationModel

__all__ = [
    "VehicleModel",
    "RouteModel",
    "RouteStopModel",
    "StopModel",
    "TripModel",
    "StudentTripRecordModel",
    "GPSLocationModel",
]
