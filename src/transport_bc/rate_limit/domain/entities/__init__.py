from .rate_limit_decision import RateLimitDecision, SubjectType

__all__ = ["RateLimitDecision", "SubjectType"]
