from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


class EstimationMethod(str, Enum):
    """Method that produced an ETA estimate."""
    SIMPLE = "simple"          # distance / current (or fallback) speed
    HISTORICAL = "historical"  # median of recent durable position pairs
    KALMAN = "kalman"          # acceleration model over the speed buffer
    WEIGHTED = "weighted"      # confidence-weighted blend of the others


# Order used to break confidence ties, first wins
METHOD_PRIORITY = (
    EstimationMethod.HISTORICAL,
    EstimationMethod.KALMAN,
    EstimationMethod.WEIGHTED,
    EstimationMethod.SIMPLE,
)


@dataclass(frozen=True)
class EstimateCandidate:
    """One method's (seconds, confidence) answer for a segment."""
    method: EstimationMethod
    seconds: float
    confidence: float


@dataclass
class ETAEstimate:
    """Result of an ETA calculation for one segment."""
    distance_km: float
    estimated_seconds: int
    confidence: float
    method: EstimationMethod
    explanation: str

    @property
    def estimated_minutes(self) -> int:
        return round(self.estimated_seconds / 60)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "distance_km": self.distance_km,
            "estimated_seconds": self.estimated_seconds,
            "estimated_minutes": self.estimated_minutes,
            "confidence": self.confidence,
            "method": self.method.value,
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class SpeedSample:
    """Entry of the per-(vehicle, trip) speed buffer."""
    captured_at: datetime
    speed_kmh: float
    accuracy_meters: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "captured_at": self.captured_at.isoformat(),
            "speed_kmh": self.speed_kmh,
            "accuracy_meters": self.accuracy_meters,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SpeedSample":
        return cls(
            captured_at=datetime.fromisoformat(data["captured_at"]),
            speed_kmh=float(data["speed_kmh"]),
            accuracy_meters=float(data.get("accuracy_meters", 0.0)),
        )


@dataclass(frozen=True)
class SpeedProfile:
    current_speed_kmh: float
    average_speed_kmh: float
    max_speed_kmh: float
    min_speed_kmh: float
    sample_count: int = 0

    @classmethod
    def from_speeds(cls, speeds: Sequence[float], sample_count: int = 0) -> "SpeedProfile":
        return cls(
            current_speed_kmh=round(speeds[-1], 1),
            average_speed_kmh=round(sum(speeds) / len(speeds), 1),
            max_speed_kmh=round(max(speeds), 1),
            min_speed_kmh=round(min(speeds), 1),
            sample_count=sample_count,
        )


@dataclass
class RouteSegmentETA:
    segment: int  # 0 = current position to next stop
    from_stop: str
    to_stop: str
    to_stop_id: str
    distance_km: float
    estimated_seconds: int
    arrival_time: datetime
    confidence: float
    method: EstimationMethod


@dataclass
class RouteBreakdown:
    """Multi-segment ETA over the next few remaining stops of a trip."""
    trip_id: str
    vehicle_id: str
    total_distance_km: float
    total_estimated_seconds: int
    completed_distance_km: float
    completed_seconds: int
    remaining_distance_km: float
    remaining_seconds: int
    progress_percentage: int
    estimated_arrival_time: datetime
    confidence: float
    speed_profile: SpeedProfile
    segments: List[RouteSegmentETA] = field(default_factory=list)


def weighted_candidate(candidates: Sequence[EstimateCandidate]) -> Optional[EstimateCandidate]:
    """Confidence-weighted blend; confidence is the mean of the inputs.

    Returns None for an empty input.
    """
    if not candidates:
        return None
    total_confidence = sum(c.confidence for c in candidates)
    if total_confidence == 0:
        return EstimateCandidate(EstimationMethod.WEIGHTED, candidates[0].seconds, 0.5)
    seconds = sum(c.seconds * c.confidence for c in candidates) / total_confidence
    return EstimateCandidate(
        EstimationMethod.WEIGHTED,
        seconds,
        total_confidence / len(candidates),
    )


def select_best(candidates: Sequence[EstimateCandidate]) -> EstimateCandidate:
    """Highest confidence wins; ties go to the earlier method in METHOD_PRIORITY."""
    if not candidates:
        raise ValueError("select_best() needs at least one candidate")
    ordered = sorted(candidates, key=lambda c: METHOD_PRIORITY.index(c.method))
    best = ordered[0]
    for candidate in ordered[1:]:
        if candidate.confidence > best.confidence:
            best = candidate
    return best
