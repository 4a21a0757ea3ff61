from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from core.containers import TransportContainer
from core.rate_limiter import limiter, RateLimits
from src.transport_bc.shared.domain.errors import NotFoundError
from src.transport_bc.shared.domain.value_objects import haversine_distance, validate_coordinates
from src.transport_bc.shared.domain.value_objects import to_aware_utc

from adapters.http.api.transport.schemas import (
    LocationCaptureRequest,
    LocationCaptureResponse,
    LocationCaptureResult,
    VehiclePositionSchema,
    VehiclePositionResponse,
    HistoricalPositionSchema,
    GeofenceEventSchema,
    TripProgressSchema,
    RateLimitStatusSchema,
    ActiveVehiclesData,
    ActiveVehiclesResponse,
    LocationHistoryData,
    LocationHistoryResponse,
    OfflineData,
    OfflineResponse,
    GeofenceThresholdsSchema,
    GeofenceStatusData,
    GeofenceStatusResponse,
    GeofenceClearedData,
    GeofenceClearedResponse,
    PointSchema,
    DistanceData,
    DistanceResponse,
)
from .dependencies import (
    TenantContext,
    get_container,
    get_tenant,
    get_user_id,
    ensure_vehicle_in_school,
    get_trip_in_school,
)


router = APIRouter(tags=["Tracking"])


@router.post("/location", response_model=LocationCaptureResponse, status_code=201)
def capture_location(
    body: LocationCaptureRequest,
    tenant: TenantContext = Depends(get_tenant),
    user_id: str = Depends(get_user_id),
    container: TransportContainer = Depends(get_container),
):
    """Submit a GPS sample for a vehicle.

    The sample is rate limited per vehicle and per submitting user, cached as
    the vehicle's current position and, when a trip is given, run through
    geofence detection and trip progress.
    """
    ensure_vehicle_in_school(container, body.vehicle_id, tenant.school_id)
    if body.trip_id:
        get_trip_in_school(container, body.trip_id, tenant.school_id)

    result = container.ingest_service().ingest(
        vehicle_id=body.vehicle_id,
        latitude=body.latitude,
        longitude=body.longitude,
        accuracy=body.accuracy,
        trip_id=body.trip_id,
        driver_id=user_id,
    )

    return LocationCaptureResponse(
        data=LocationCaptureResult(
            position=VehiclePositionSchema.model_validate(result.position),
            current_speed_kmh=result.current_speed_kmh,
            geofence_events=[GeofenceEventSchema.model_validate(e) for e in result.geofence_events],
            progress=TripProgressSchema.model_validate(result.progress) if result.progress else None,
            rate_limit=RateLimitStatusSchema.model_validate(result.rate_limit),
        )
    )


@router.get("/vehicles/active", response_model=ActiveVehiclesResponse)
@limiter.limit(RateLimits.ACTIVE_VEHICLES)
def get_active_vehicles(
    request: Request,
    tenant: TenantContext = Depends(get_tenant),
    container: TransportContainer = Depends(get_container),
):
    """Current positions of every vehicle of the school with a live cache entry."""
    vehicle_ids = container.trip_repository().vehicle_ids_for_school(tenant.school_id)
    positions = container.location_store().active_vehicles(vehicle_ids)
    return ActiveVehiclesResponse(
        data=ActiveVehiclesData(
            count=len(positions),
            vehicles=[VehiclePositionSchema.model_validate(p) for p in positions],
        )
    )


@router.get("/vehicles/{vehicle_id}/location", response_model=VehiclePositionResponse)
def get_current_location(
    vehicle_id: str,
    tenant: TenantContext = Depends(get_tenant),
    container: TransportContainer = Depends(get_container),
):
    ensure_vehicle_in_school(container, vehicle_id, tenant.school_id)
    position = container.location_store().current(vehicle_id)
    if position is None:
        raise NotFoundError("No current location data available")
    return VehiclePositionResponse(data=VehiclePositionSchema.model_validate(position))


@router.get("/vehicles/{vehicle_id}/location-history", response_model=LocationHistoryResponse)
@limiter.limit(RateLimits.LOCATION_HISTORY)
def get_location_history(
    request: Request,
    vehicle_id: str,
    start_time: Optional[datetime] = Query(None, alias="startTime", description="ISO 8601 start of the range"),
    end_time: Optional[datetime] = Query(None, alias="endTime", description="ISO 8601 end of the range"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of snapshots"),
    tenant: TenantContext = Depends(get_tenant),
    container: TransportContainer = Depends(get_container),
):
    """Durable position snapshots, newest first."""
    ensure_vehicle_in_school(container, vehicle_id, tenant.school_id)
    history = container.location_store().history(
        vehicle_id,
        start=to_aware_utc(start_time),
        end=to_aware_utc(end_time),
        limit=limit,
    )
    return LocationHistoryResponse(
        data=LocationHistoryData(
            vehicle_id=vehicle_id,
            count=len(history),
            locations=[HistoricalPositionSchema.model_validate(h) for h in history],
        )
    )


@router.post("/vehicles/{vehicle_id}/location/offline", response_model=OfflineResponse)
def mark_vehicle_offline(
    vehicle_id: str,
    tenant: TenantContext = Depends(get_tenant),
    container: TransportContainer = Depends(get_container),
):
    ensure_vehicle_in_school(container, vehicle_id, tenant.school_id)
    position = container.location_store().mark_offline(vehicle_id)
    return OfflineResponse(
        data=OfflineData(
            vehicle_id=vehicle_id,
            position=VehiclePositionSchema.model_validate(position) if position else None,
        )
    )


@router.get("/vehicles/{vehicle_id}/geofences", response_model=GeofenceStatusResponse)
def get_geofence_status(
    vehicle_id: str,
    tenant: TenantContext = Depends(get_tenant),
    container: TransportContainer = Depends(get_container),
):
    """Stored geofence band per stop plus the active thresholds."""
    ensure_vehicle_in_school(container, vehicle_id, tenant.school_id)
    detector = container.geofence_detector()
    return GeofenceStatusResponse(
        data=GeofenceStatusData(
            vehicle_id=vehicle_id,
            states=detector.active_states(vehicle_id),
            thresholds=GeofenceThresholdsSchema.model_validate(detector.config()),
        )
    )


@router.delete("/vehicles/{vehicle_id}/geofences", response_model=GeofenceClearedResponse)
def clear_geofence_states(
    vehicle_id: str,
    tenant: TenantContext = Depends(get_tenant),
    container: TransportContainer = Depends(get_container),
):
    """Forget the stored geofence bands of a vehicle between trips.

    The next sample near a stop starts from OUTSIDE again, so a stop left in
    ARRIVED by the previous trip fires a fresh arrival.
    """
    ensure_vehicle_in_school(container, vehicle_id, tenant.school_id)
    cleared = container.geofence_detector().clear(vehicle_id)
    return GeofenceClearedResponse(data=GeofenceClearedData(vehicle_id=vehicle_id, cleared=cleared))


@router.get("/distance", response_model=DistanceResponse)
def get_distance(
    lat1: float = Query(..., description="Latitude of the first point"),
    lon1: float = Query(..., description="Longitude of the first point"),
    lat2: float = Query(..., description="Latitude of the second point"),
    lon2: float = Query(..., description="Longitude of the second point"),
    tenant: TenantContext = Depends(get_tenant),
):
    """Great-circle distance between two points."""
    validate_coordinates(lat1, lon1)
    validate_coordinates(lat2, lon2)
    meters = haversine_distance(lat1, lon1, lat2, lon2)
    return DistanceResponse(
        data=DistanceData(
            distance_km=round(meters / 1000, 2),
            distance_meters=round(meters),
            point1=PointSchema(latitude=lat1, longitude=lon1),
            point2=PointSchema(latitude=lat2, longitude=lon2),
        )
    )
