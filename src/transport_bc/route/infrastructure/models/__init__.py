from .route_model import RouteModel, RouteStopModel, StopModel

__all__ = ["RouteModel", "RouteStopModel", "StopModel"]
