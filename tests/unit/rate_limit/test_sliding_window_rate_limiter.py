"""Unit tests for the sliding-window GPS submission limiter."""

import pytest

from src.transport_bc.rate_limit.domain.entities import SubjectType
from src.transport_bc.rate_limit.infrastructure.services import (
    GpsSubmissionLimiter,
    SlidingWindowRateLimiter,
)
from src.transport_bc.shared.domain.errors import RateLimitedError
from src.transport_bc.shared.domain.value_objects import utc_from_timestamp


@pytest.fixture
def limiter(kv_store, clock):
    return SlidingWindowRateLimiter(kv_store, clock)


class TestSlidingWindowRateLimiter:
    """Tests for SlidingWindowRateLimiter.admit()."""

    def test_admits_up_to_max_updates(self, limiter, clock):
        """Exactly max_updates calls inside the window are allowed."""
        decisions = []
        for _ in range(10):
            decisions.append(limiter.admit(SubjectType.VEHICLE, "bus-1", 10, 60))
            clock.advance(1)

        assert all(d.allowed for d in decisions)
        assert [d.remaining for d in decisions] == list(range(9, -1, -1))

    def test_rejects_the_next_call(self, limiter, clock):
        """The max_updates+1-th call fails with reset_at in the future."""
        first_call = clock()
        for _ in range(10):
            limiter.admit(SubjectType.VEHICLE, "bus-1", 10, 60)
            clock.advance(1)

        decision = limiter.admit(SubjectType.VEHICLE, "bus-1", 10, 60)

        assert decision.allowed is False
        assert decision.remaining == 0
        assert decision.reset_at == utc_from_timestamp(first_call + 60)
        assert decision.reset_at > utc_from_timestamp(clock())
        assert decision.retry_after(utc_from_timestamp(clock())) == pytest.approx(50)

    def test_admits_again_after_window(self, limiter, clock):
        for _ in range(11):
            limiter.admit(SubjectType.VEHICLE, "bus-1", 10, 60)

        clock.advance(61)

        assert limiter.admit(SubjectType.VEHICLE, "bus-1", 10, 60).allowed is True

    def test_rejected_calls_do_not_consume_slots(self, limiter, clock):
        """Only admitted calls are counted, so the window frees up on schedule."""
        limiter.admit(SubjectType.VEHICLE, "bus-1", 2, 60)
        clock.advance(30)
        limiter.admit(SubjectType.VEHICLE, "bus-1", 2, 60)
        for _ in range(5):
            assert limiter.admit(SubjectType.VEHICLE, "bus-1", 2, 60).allowed is False

        clock.advance(31)  # first call has left the window

        assert limiter.admit(SubjectType.VEHICLE, "bus-1", 2, 60).allowed is True
        assert limiter.admit(SubjectType.VEHICLE, "bus-1", 2, 60).allowed is False

    def test_subjects_are_isolated(self, limiter):
        """One vehicle's counter never affects another vehicle or a driver with the same id."""
        for _ in range(3):
            limiter.admit(SubjectType.VEHICLE, "bus-1", 3, 60)

        assert limiter.admit(SubjectType.VEHICLE, "bus-1", 3, 60).allowed is False
        assert limiter.admit(SubjectType.VEHICLE, "bus-2", 3, 60).allowed is True
        assert limiter.admit(SubjectType.DRIVER, "bus-1", 3, 60).allowed is True

    def test_fails_open_when_store_unavailable(self, limiter, kv_store):
        kv_store.available = False

        decisions = [limiter.admit(SubjectType.VEHICLE, "bus-1", 1, 60) for _ in range(5)]

        assert all(d.allowed for d in decisions)

    def test_release_returns_the_slot(self, limiter):
        decision = limiter.admit(SubjectType.VEHICLE, "bus-1", 10, 60)

        limiter.release(SubjectType.VEHICLE, "bus-1", decision)

        assert limiter.admit(SubjectType.VEHICLE, "bus-1", 10, 60).remaining == 9

    def test_reset_clears_the_window(self, limiter):
        limiter.admit(SubjectType.VEHICLE, "bus-1", 1, 60)
        limiter.reset(SubjectType.VEHICLE, "bus-1")

        assert limiter.admit(SubjectType.VEHICLE, "bus-1", 1, 60).allowed is True


class TestGpsSubmissionLimiter:
    """Tests for the combined vehicle and driver windows."""

    def test_vehicle_limit_raises(self, limiter):
        submissions = GpsSubmissionLimiter(limiter, vehicle_max_updates=2, driver_max_updates=20)
        submissions.check("bus-1", "driver-1")
        submissions.check("bus-1", "driver-1")

        with pytest.raises(RateLimitedError) as exc_info:
            submissions.check("bus-1", "driver-1")

        assert exc_info.value.scope == "vehicle"
        assert exc_info.value.retry_after == pytest.approx(60)

    def test_driver_limit_spans_vehicles(self, limiter):
        submissions = GpsSubmissionLimiter(limiter, vehicle_max_updates=10, driver_max_updates=2)
        submissions.check("bus-1", "driver-1")
        submissions.check("bus-2", "driver-1")

        with pytest.raises(RateLimitedError) as exc_info:
            submissions.check("bus-3", "driver-1")

        assert exc_info.value.scope == "driver"

    def test_returns_both_decisions(self, limiter):
        submissions = GpsSubmissionLimiter(limiter)

        vehicle_decision, driver_decision = submissions.check("bus-1", "driver-1")

        assert vehicle_decision.limit == 10
        assert driver_decision.limit == 20

    def test_no_driver_window_without_driver(self, limiter):
        submissions = GpsSubmissionLimiter(limiter)

        _, driver_decision = submissions.check("bus-1")

        assert driver_decision is None

    def test_driver_rejection_does_not_consume_vehicle_budget(self, limiter):
        submissions = GpsSubmissionLimiter(limiter, vehicle_max_updates=10, driver_max_updates=2)
        submissions.check("bus-2", "driver-1")
        submissions.check("bus-2", "driver-1")

        for _ in range(5):
            with pytest.raises(RateLimitedError):
                submissions.check("bus-1", "driver-1")

        vehicle_decision, _ = submissions.check("bus-1", "driver-2")

        assert vehicle_decision.remaining == 9
