from .sliding_window_rate_limiter import SlidingWindowRateLimiter, GpsSubmissionLimiter

__all__ = ["SlidingWindowRateLimiter", "GpsSubmissionLimiter"]
