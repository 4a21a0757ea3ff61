import logging
import uuid
from typing import Optional, Tuple

from src.transport_bc.rate_limit.domain.entities import RateLimitDecision, SubjectType
from src.transport_bc.shared.domain.errors import DependencyUnavailableError, RateLimitedError
from src.transport_bc.shared.domain.value_objects import Clock, system_clock, utc_from_timestamp
from src.transport_bc.shared.infrastructure.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """Sliding-window counter per (subject type, subject id).

    Each admitted call leaves one timestamped member in a sorted set. Members
    at or before ``now - window`` are pruned on every call, and the whole key
    expires ``window + 1`` seconds after the last call.
    """

    KEY_PREFIX = "gps:ratelimit"

    def __init__(self, store: KeyValueStore, clock: Clock = system_clock):
        self.store = store
        self.clock = clock

    def _key(self, subject_type: SubjectType, subject_id: str) -> str:
        return f"{self.KEY_PREFIX}:{subject_type.value}:{subject_id}"

    def admit(
        self,
        subject_type: SubjectType,
        subject_id: str,
        max_updates: int,
        window_seconds: int,
    ) -> RateLimitDecision:
        now = self.clock()
        key = self._key(subject_type, subject_id)
        member = f"{now:.6f}:{uuid.uuid4().hex[:8]}"

        try:
            # Add first, then count: concurrent callers can never both see a free slot
            count, oldest = self.store.window_add(
                key, member, now, now - window_seconds, window_seconds + 1
            )
        except DependencyUnavailableError as e:
            logger.warning(f"Rate limiter store unavailable for {key}, admitting: {e}")
            return RateLimitDecision(
                allowed=True,
                remaining=max_updates,
                reset_at=utc_from_timestamp(now + window_seconds),
                limit=max_updates,
            )

        reset_at = utc_from_timestamp((oldest if oldest is not None else now) + window_seconds)

        if count > max_updates:
            try:
                self.store.window_remove(key, member)
            except DependencyUnavailableError as e:
                logger.warning(f"Could not roll back rejected entry on {key}: {e}")
            return RateLimitDecision(allowed=False, remaining=0, reset_at=reset_at, limit=max_updates)

        return RateLimitDecision(
            allowed=True,
            remaining=max_updates - count,
            reset_at=reset_at,
            limit=max_updates,
            member=member,
        )

    def release(self, subject_type: SubjectType, subject_id: str, decision: RateLimitDecision) -> None:
        """Give back the slot taken by an admitted call."""
        if not decision.allowed or decision.member is None:
            return
        key = self._key(subject_type, subject_id)
        try:
            self.store.window_remove(key, decision.member)
        except DependencyUnavailableError as e:
            logger.warning(f"Could not release entry on {key}: {e}")

    def reset(self, subject_type: SubjectType, subject_id: str) -> None:
        try:
            self.store.delete(self._key(subject_type, subject_id))
        except DependencyUnavailableError as e:
            logger.warning(f"Failed to reset rate limit for {subject_type.value} {subject_id}: {e}")


class GpsSubmissionLimiter:
    """Applies the per-vehicle and per-driver windows to a location submission.

    A submission has to pass both and a rejected submission consumes neither
    budget: the vehicle window is checked first, and its slot is released
    again when the driver window rejects.
    """

    def __init__(
        self,
        limiter: SlidingWindowRateLimiter,
        vehicle_max_updates: int = 10,
        driver_max_updates: int = 20,
        window_seconds: int = 60,
    ):
        self.limiter = limiter
        self.vehicle_max_updates = vehicle_max_updates
        self.driver_max_updates = driver_max_updates
        self.window_seconds = window_seconds

    def check(
        self, vehicle_id: str, driver_id: Optional[str] = None
    ) -> Tuple[RateLimitDecision, Optional[RateLimitDecision]]:
        vehicle_decision = self.limiter.admit(
            SubjectType.VEHICLE, vehicle_id, self.vehicle_max_updates, self.window_seconds
        )
        if not vehicle_decision.allowed:
            self._reject("vehicle", vehicle_id, vehicle_decision)

        driver_decision = None
        if driver_id:
            driver_decision = self.limiter.admit(
                SubjectType.DRIVER, driver_id, self.driver_max_updates, self.window_seconds
            )
            if not driver_decision.allowed:
                self.limiter.release(SubjectType.VEHICLE, vehicle_id, vehicle_decision)
                self._reject("driver", driver_id, driver_decision)

        return vehicle_decision, driver_decision

    def _reject(self, scope: str, subject_id: str, decision: RateLimitDecision) -> None:
        now = utc_from_timestamp(self.limiter.clock())
        retry_after = decision.retry_after(now)
        logger.warning(
            f"GPS rate limit exceeded for {scope} {subject_id} "
            f"({decision.limit}/{self.window_seconds}s), retry in {retry_after:.0f}s"
        )
        raise RateLimitedError(
            f"Too many location updates for this {scope}",
            reset_at=decision.reset_at,
            retry_after=retry_after,
            scope=scope,
        )
