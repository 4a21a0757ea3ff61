from .eta_estimate import (
    EstimationMethod,
    EstimateCandidate,
    ETAEstimate,
    SpeedSample,
    SpeedProfile,
    RouteSegmentETA,
    RouteBreakdown,
    select_best,
    weighted_candidate,
)

__all__ = [
    "EstimationMethod",
    "EstimateCandidate",
    "ETAEstimate",
    "SpeedSample",
    "SpeedProfile",
    "RouteSegmentETA",
    "RouteBreakdown",
    "select_best",
    "weighted_candidate",
]
