from .eta_estimator import ETAEstimator

__all__ = ["ETAEstimator"]
