from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class SubjectType(str, Enum):
    """Who a sliding window counts submissions for."""
    VEHICLE = "vehicle"
    DRIVER = "driver"


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single admit() call."""
    allowed: bool
    remaining: int
    reset_at: datetime
    limit: int
    # Window entry left by an admitted call, used to release it again
    member: Optional[str] = field(default=None, compare=False)

    def retry_after(self, now: datetime) -> float:
        """Seconds until the window frees a slot (0 when allowed)."""
        if self.allowed:
            return 0.0
        return max(0.0, (self.reset_at - now).total_seconds())
