"""Centralized API schemas for transport tracking endpoints."""

from .tracking_schemas import (
    LocationCaptureRequest,
    VehiclePositionSchema,
    HistoricalPositionSchema,
    GeofenceEventSchema,
    RouteStopSchema,
    NextStopSchema,
    TripProgressSchema,
    RateLimitStatusSchema,
    LocationCaptureResult,
    LocationCaptureResponse,
    VehiclePositionResponse,
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
    TripStatsSchema,
    TripStatsResponse,
    StopCompletedData,
    StopCompletedResponse,
    PointSchema,
    DistanceData,
    DistanceResponse,
)

from .eta_schemas import (
    ETAEstimateSchema,
    SpeedProfileSchema,
    RouteSegmentSchema,
    RouteBreakdownSchema,
    RouteETAData,
    RouteETAResponse,
    StopETAData,
    StopETAResponse,
    TripProgressData,
    TripProgressResponse,
    SpeedRecordRequest,
    SpeedRecordData,
    SpeedRecordResponse,
    SpeedProfileData,
    SpeedProfileResponse,
)

__all__ = [
    # Tracking
    "LocationCaptureRequest",
    "VehiclePositionSchema",
    "HistoricalPositionSchema",
    "GeofenceEventSchema",
    "RouteStopSchema",
    "NextStopSchema",
    "TripProgressSchema",
    "RateLimitStatusSchema",
    "LocationCaptureResult",
    "LocationCaptureResponse",
    "VehiclePositionResponse",
    "ActiveVehiclesData",
    "ActiveVehiclesResponse",
    "LocationHistoryData",
    "LocationHistoryResponse",
    "OfflineData",
    "OfflineResponse",
    "GeofenceThresholdsSchema",
    "GeofenceStatusData",
    "GeofenceStatusResponse",
    "GeofenceClearedData",
    "GeofenceClearedResponse",
    "TripStatsSchema",
    "TripStatsResponse",
    "StopCompletedData",
    "StopCompletedResponse",
    "PointSchema",
    "DistanceData",
    "DistanceResponse",
    # ETA
    "ETAEstimateSchema",
    "SpeedProfileSchema",
    "RouteSegmentSchema",
    "RouteBreakdownSchema",
    "RouteETAData",
    "RouteETAResponse",
    "StopETAData",
    "StopETAResponse",
    "TripProgressData",
    "TripProgressResponse",
    "SpeedRecordRequest",
    "SpeedRecordData",
    "SpeedRecordResponse",
    "SpeedProfileData",
    "SpeedProfileResponse",
]
