"""Location, geofence and trip-progress schemas."""

from typing import Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from src.transport_bc.geofence.domain.entities import GeofenceAction, GeofenceState
from src.transport_bc.location.domain.entities import VehicleStatus


class LocationCaptureRequest(BaseModel):
    vehicle_id: str = Field(..., min_length=1)
    latitude: float
    longitude: float
    accuracy: Optional[float] = Field(None, description="GPS accuracy in meters, clamped to [1, 1000]")
    trip_id: Optional[str] = None


class VehiclePositionSchema(BaseModel):
    vehicle_id: str
    latitude: float
    longitude: float
    accuracy: float
    status: VehicleStatus
    captured_at: datetime
    trip_id: Optional[str] = None

    class Config:
        from_attributes = True


class HistoricalPositionSchema(BaseModel):
    id: Optional[int] = None
    vehicle_id: str
    trip_id: Optional[str] = None
    latitude: float
    longitude: float
    accuracy: float
    status: VehicleStatus
    captured_at: datetime
    stored_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GeofenceEventSchema(BaseModel):
    stop_id: str
    stop_name: str
    action: GeofenceAction
    distance_meters: int
    latitude: float
    longitude: float
    timestamp: datetime

    class Config:
        from_attributes = True


class RouteStopSchema(BaseModel):
    stop_id: str
    name: str
    sequence: int
    latitude: float
    longitude: float
    wait_time_minutes: int = 0

    class Config:
        from_attributes = True


class NextStopSchema(BaseModel):
    stop_id: str
    name: str
    sequence: int
    latitude: float
    longitude: float
    distance_km: float
    estimated_seconds: int

    class Config:
        from_attributes = True


class TripProgressSchema(BaseModel):
    trip_id: str
    vehicle_id: str
    route_id: str
    route_name: str
    trip_status: str
    current_stop_index: int
    total_stops: int
    completed_stops: int
    progress_percentage: int
    next_stop: Optional[NextStopSchema] = None
    students_boarded: int
    students_expected: int
    current_latitude: float
    current_longitude: float
    computed_at: datetime
    stops: List[RouteStopSchema] = []

    class Config:
        from_attributes = True


class RateLimitStatusSchema(BaseModel):
    limit: int
    remaining: int
    reset_at: datetime

    class Config:
        from_attributes = True


class LocationCaptureResult(BaseModel):
    position: VehiclePositionSchema
    current_speed_kmh: Optional[float] = None
    geofence_events: List[GeofenceEventSchema] = []
    progress: Optional[TripProgressSchema] = None
    rate_limit: RateLimitStatusSchema

    class Config:
        from_attributes = True


class LocationCaptureResponse(BaseModel):
    success: bool = True
    message: str = "Location captured and broadcast"
    data: LocationCaptureResult


class VehiclePositionResponse(BaseModel):
    success: bool = True
    data: VehiclePositionSchema


class ActiveVehiclesData(BaseModel):
    count: int
    vehicles: List[VehiclePositionSchema]


class ActiveVehiclesResponse(BaseModel):
    success: bool = True
    data: ActiveVehiclesData


class LocationHistoryData(BaseModel):
    vehicle_id: str
    count: int
    locations: List[HistoricalPositionSchema]


class LocationHistoryResponse(BaseModel):
    success: bool = True
    data: LocationHistoryData


class OfflineData(BaseModel):
    vehicle_id: str
    status: VehicleStatus = VehicleStatus.OFFLINE
    position: Optional[VehiclePositionSchema] = None


class OfflineResponse(BaseModel):
    success: bool = True
    message: str = "Vehicle marked as offline"
    data: OfflineData


class GeofenceThresholdsSchema(BaseModel):
    approaching_meters: float
    arrival_meters: float
    departure_meters: float

    class Config:
        from_attributes = True


class GeofenceStatusData(BaseModel):
    vehicle_id: str
    states: Dict[str, GeofenceState]
    thresholds: GeofenceThresholdsSchema


class GeofenceStatusResponse(BaseModel):
    success: bool = True
    data: GeofenceStatusData


class GeofenceClearedData(BaseModel):
    vehicle_id: str
    cleared: int


class GeofenceClearedResponse(BaseModel):
    success: bool = True
    message: str = "Geofence states cleared"
    data: GeofenceClearedData


class TripStatsSchema(BaseModel):
    trip_id: str
    progress_percentage: int
    students_boarded: int
    students_expected: int
    last_update: datetime

    class Config:
        from_attributes = True


class TripStatsResponse(BaseModel):
    success: bool = True
    data: TripStatsSchema


class StopCompletedData(BaseModel):
    trip_id: str
    stop_id: str
    records_updated: int


class StopCompletedResponse(BaseModel):
    success: bool = True
    message: str = "Stop marked as completed"
    data: StopCompletedData


class PointSchema(BaseModel):
    latitude: float
    longitude: float


class DistanceData(BaseModel):
    distance_km: float
    distance_meters: int
    point1: PointSchema
    point2: PointSchema


class DistanceResponse(BaseModel):
    success: bool = True
    data: DistanceData
