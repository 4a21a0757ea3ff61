from .vehicle_position import VehiclePosition, VehicleStatus, HistoricalPosition

__all__ = ["VehiclePosition", "VehicleStatus", "HistoricalPosition"]
