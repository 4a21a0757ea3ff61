from .tracking_router import router as tracking_router
from .eta_router import router as eta_router

__all__ = ["tracking_router", "eta_router"]
