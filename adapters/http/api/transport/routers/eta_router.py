from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.containers import TransportContainer
from src.transport_bc.shared.domain.errors import NotFoundError
from src.transport_bc.shared.domain.value_objects import utc_from_timestamp

from adapters.http.api.transport.schemas import (
    ETAEstimateSchema,
    SpeedProfileSchema,
    RouteStopSchema,
    RouteBreakdownSchema,
    RouteETAData,
    RouteETAResponse,
    StopETAData,
    StopETAResponse,
    TripProgressSchema,
    TripProgressData,
    TripProgressResponse,
    TripStatsSchema,
    TripStatsResponse,
    SpeedRecordRequest,
    SpeedRecordData,
    SpeedRecordResponse,
    SpeedProfileData,
    SpeedProfileResponse,
    StopCompletedData,
    StopCompletedResponse,
)
from .dependencies import (
    TenantContext,
    get_container,
    get_tenant,
    ensure_vehicle_in_school,
    get_trip_in_school,
    resolve_position,
    current_speed,
)


router = APIRouter(tags=["ETA"])


def _now(container: TransportContainer):
    return utc_from_timestamp(container.clock()())


@router.get("/vehicles/{vehicle_id}/speed-profile", response_model=SpeedProfileResponse)
def get_speed_profile(
    vehicle_id: str,
    trip_id: Optional[str] = Query(None, alias="tripId", description="Restrict to one trip's speed buffer"),
    tenant: TenantContext = Depends(get_tenant),
    container: TransportContainer = Depends(get_container),
):
    """Current, average, max and min speed from the buffered readings.

    Without tripId the most recently updated buffer of the vehicle is used.
    """
    ensure_vehicle_in_school(container, vehicle_id, tenant.school_id)
    profile = container.eta_estimator().speed_profile(vehicle_id, trip_id)
    return SpeedProfileResponse(
        data=SpeedProfileData(
            vehicle_id=vehicle_id,
            trip_id=trip_id,
            profile=SpeedProfileSchema.model_validate(profile),
        )
    )


@router.post("/speed-record", response_model=SpeedRecordResponse, status_code=201)
def record_speed(
    body: SpeedRecordRequest,
    tenant: TenantContext = Depends(get_tenant),
    container: TransportContainer = Depends(get_container),
):
    ensure_vehicle_in_school(container, body.vehicle_id, tenant.school_id)
    get_trip_in_school(container, body.trip_id, tenant.school_id)
    recorded = container.eta_estimator().record_speed(
        body.vehicle_id, body.trip_id, body.speed_kmh, body.accuracy
    )
    return SpeedRecordResponse(
        data=SpeedRecordData(vehicle_id=body.vehicle_id, trip_id=body.trip_id, recorded=recorded)
    )


@router.get("/trips/{trip_id}/eta", response_model=RouteETAResponse)
def get_route_eta(
    trip_id: str,
    tenant: TenantContext = Depends(get_tenant),
    container: TransportContainer = Depends(get_container),
):
    """Segment-by-segment ETA over the next remaining stops of the trip."""
    trip = get_trip_in_school(container, trip_id, tenant.school_id)
    latitude, longitude, last_update = resolve_position(container, trip.vehicle_id)

    breakdown = container.eta_estimator().estimate_route_breakdown(
        trip_id,
        trip.vehicle_id,
        latitude,
        longitude,
        current_speed(container, trip.vehicle_id, trip_id),
    )
    if breakdown is None:
        raise NotFoundError(f"No remaining stops for trip {trip_id}")

    return RouteETAResponse(
        data=RouteETAData(
            trip_id=trip_id,
            vehicle_id=trip.vehicle_id,
            route_name=trip.route_name,
            breakdown=RouteBreakdownSchema.model_validate(breakdown),
            last_update=last_update,
            generated_at=_now(container),
        )
    )


@router.get("/trips/{trip_id}/stops/{stop_id}/eta", response_model=StopETAResponse)
def get_stop_eta(
    trip_id: str,
    stop_id: str,
    tenant: TenantContext = Depends(get_tenant),
    container: TransportContainer = Depends(get_container),
):
    trip = get_trip_in_school(container, trip_id, tenant.school_id)
    stops = container.trip_repository().find_route_stops(trip.route_id)
    stop = next((s for s in stops if s.stop_id == stop_id), None)
    if stop is None:
        raise NotFoundError(f"Stop {stop_id} is not on the route of trip {trip_id}")

    latitude, longitude, _ = resolve_position(container, trip.vehicle_id)
    estimate = container.eta_estimator().estimate_segment(
        trip.vehicle_id,
        latitude,
        longitude,
        stop.latitude,
        stop.longitude,
        current_speed(container, trip.vehicle_id, trip_id),
        trip_id=trip_id,
    )
    now = _now(container)

    return StopETAResponse(
        data=StopETAData(
            trip_id=trip_id,
            vehicle_id=trip.vehicle_id,
            stop=RouteStopSchema.model_validate(stop),
            eta=ETAEstimateSchema(
                distance_km=round(estimate.distance_km, 2),
                estimated_seconds=estimate.estimated_seconds,
                estimated_minutes=estimate.estimated_minutes,
                estimated_arrival_time=now + timedelta(seconds=estimate.estimated_seconds),
                confidence=estimate.confidence,
                method=estimate.method,
                explanation=estimate.explanation,
            ),
            generated_at=now,
        )
    )


@router.get("/trips/{trip_id}/progress", response_model=TripProgressResponse)
def get_trip_progress(
    trip_id: str,
    tenant: TenantContext = Depends(get_tenant),
    container: TransportContainer = Depends(get_container),
):
    """Completed stops, next stop and boarding counts, with the remaining ETA breakdown."""
    trip = get_trip_in_school(container, trip_id, tenant.school_id)
    latitude, longitude, _ = resolve_position(container, trip.vehicle_id)

    snapshot = container.progress_tracker().progress(trip_id, trip.vehicle_id, latitude, longitude)
    if snapshot is None:
        raise NotFoundError(f"Route stops not found for trip {trip_id}")

    breakdown = container.eta_estimator().estimate_route_breakdown(
        trip_id,
        trip.vehicle_id,
        latitude,
        longitude,
        current_speed(container, trip.vehicle_id, trip_id),
        remaining_stops=snapshot.remaining_stops,
    )

    return TripProgressResponse(
        data=TripProgressData(
            progress=TripProgressSchema.model_validate(snapshot),
            eta=RouteBreakdownSchema.model_validate(breakdown) if breakdown else None,
            generated_at=_now(container),
        )
    )


@router.get("/trips/{trip_id}/stats", response_model=TripStatsResponse)
def get_trip_stats(
    trip_id: str,
    tenant: TenantContext = Depends(get_tenant),
    container: TransportContainer = Depends(get_container),
):
    """Monitoring summary of the cached progress snapshot, without recomputing it."""
    get_trip_in_school(container, trip_id, tenant.school_id)
    stats = container.progress_tracker().stats(trip_id)
    if stats is None:
        raise NotFoundError(f"No live progress for trip {trip_id}")
    return TripStatsResponse(data=TripStatsSchema.model_validate(stats))


@router.post("/trips/{trip_id}/stops/{stop_id}/complete", response_model=StopCompletedResponse)
def complete_stop(
    trip_id: str,
    stop_id: str,
    tenant: TenantContext = Depends(get_tenant),
    container: TransportContainer = Depends(get_container),
):
    """Record alighting for the stop's students and drop the cached progress."""
    get_trip_in_school(container, trip_id, tenant.school_id)
    updated = container.progress_tracker().mark_stop_completed(trip_id, stop_id)
    return StopCompletedResponse(
        data=StopCompletedData(trip_id=trip_id, stop_id=stop_id, records_updated=updated)
    )
