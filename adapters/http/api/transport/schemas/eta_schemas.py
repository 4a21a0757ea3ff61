"""ETA, speed and route-breakdown schemas."""

from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from src.transport_bc.eta.domain.entities import EstimationMethod
from .tracking_schemas import RouteStopSchema, TripProgressSchema


class ETAEstimateSchema(BaseModel):
    distance_km: float
    estimated_seconds: int
    estimated_minutes: int
    estimated_arrival_time: datetime
    confidence: float
    method: EstimationMethod
    explanation: str


class SpeedProfileSchema(BaseModel):
    current_speed_kmh: float
    average_speed_kmh: float
    max_speed_kmh: float
    min_speed_kmh: float
    sample_count: int = 0

    class Config:
        from_attributes = True


class RouteSegmentSchema(BaseModel):
    segment: int
    from_stop: str
    to_stop: str
    to_stop_id: str
    distance_km: float
    estimated_seconds: int
    arrival_time: datetime
    confidence: float
    method: EstimationMethod

    class Config:
        from_attributes = True


class RouteBreakdownSchema(BaseModel):
    total_distance_km: float
    total_estimated_seconds: int
    completed_distance_km: float
    completed_seconds: int
    remaining_distance_km: float
    remaining_seconds: int
    progress_percentage: int
    estimated_arrival_time: datetime
    confidence: float
    speed_profile: SpeedProfileSchema
    segments: List[RouteSegmentSchema]

    class Config:
        from_attributes = True


class RouteETAData(BaseModel):
    trip_id: str
    vehicle_id: str
    route_name: str
    breakdown: RouteBreakdownSchema
    last_update: datetime
    generated_at: datetime


class RouteETAResponse(BaseModel):
    success: bool = True
    data: RouteETAData


class StopETAData(BaseModel):
    trip_id: str
    vehicle_id: str
    stop: RouteStopSchema
    eta: ETAEstimateSchema
    generated_at: datetime


class StopETAResponse(BaseModel):
    success: bool = True
    data: StopETAData


class TripProgressData(BaseModel):
    progress: TripProgressSchema
    eta: Optional[RouteBreakdownSchema] = None
    generated_at: datetime


class TripProgressResponse(BaseModel):
    success: bool = True
    data: TripProgressData


class SpeedRecordRequest(BaseModel):
    vehicle_id: str = Field(..., min_length=1)
    trip_id: str = Field(..., min_length=1)
    speed_kmh: float = Field(..., ge=0, le=300)
    accuracy: float = Field(10.0, ge=0)


class SpeedRecordData(BaseModel):
    vehicle_id: str
    trip_id: str
    recorded: bool


class SpeedRecordResponse(BaseModel):
    success: bool = True
    message: str = "Speed reading recorded"
    data: SpeedRecordData


class SpeedProfileData(BaseModel):
    vehicle_id: str
    trip_id: Optional[str] = None
    profile: SpeedProfileSchema


class SpeedProfileResponse(BaseModel):
    success: bool = True
    data: SpeedProfileData
