from .vehicle_model import VehicleModel

__all__ = ["VehicleModel"]
