"""Request-scoped dependencies shared by the transport routers.

Every endpoint runs inside a tenant: X-School-Id is required and vehicles or
trips of another school are reported as not found.
"""
from dataclasses import dataclass
from typing import Optional, Tuple
from datetime import datetime

from fastapi import Depends, Header, Request

from core.containers import TransportContainer
from src.transport_bc.shared.domain.errors import AuthContextError, NotFoundError, ValidationError
from src.transport_bc.trip.domain.entities import TripInfo


@dataclass(frozen=True)
class TenantContext:
    school_id: str
    user_id: Optional[str] = None


def get_container(request: Request) -> TransportContainer:
    return request.app.state.container


def get_tenant(
    x_school_id: Optional[str] = Header(None, alias="X-School-Id"),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> TenantContext:
    if not x_school_id:
        raise AuthContextError("School ID is required")
    return TenantContext(school_id=x_school_id, user_id=x_user_id or None)


def get_user_id(tenant: TenantContext = Depends(get_tenant)) -> str:
    """Submitting user, required for location capture."""
    if not tenant.user_id:
        raise AuthContextError("User ID is required")
    return tenant.user_id


def ensure_vehicle_in_school(container: TransportContainer, vehicle_id: str, school_id: str) -> None:
    if container.trip_repository().get_vehicle_school(vehicle_id) != school_id:
        raise NotFoundError(f"Vehicle {vehicle_id} not found")


def get_trip_in_school(container: TransportContainer, trip_id: str, school_id: str) -> TripInfo:
    trip = container.trip_repository().find_trip(trip_id, school_id=school_id)
    if not trip:
        raise NotFoundError(f"Trip {trip_id} not found")
    return trip


def resolve_position(container: TransportContainer, vehicle_id: str) -> Tuple[float, float, datetime]:
    """Cached position, falling back to the latest durable snapshot.

    Raises ValidationError when the vehicle has never reported.
    """
    location_store = container.location_store()
    position = location_store.current(vehicle_id) or location_store.last_known(vehicle_id)
    if position is None:
        raise ValidationError("No current location available")
    return position.latitude, position.longitude, position.captured_at


def current_speed(container: TransportContainer, vehicle_id: str, trip_id: str) -> float:
    """Latest buffered speed for the trip, 0 when nothing has been recorded."""
    profile = container.eta_estimator().speed_profile(vehicle_id, trip_id)
    return profile.current_speed_kmh if profile.sample_count > 0 else 0.0
