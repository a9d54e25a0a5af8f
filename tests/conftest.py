"""
Pytest fixtures for parcelsched tests.

Provides a controllable clock, a small scheduler configuration and
builders for delivery requests.
"""

from __future__ import annotations

from collections.abc import Callable

import pytest

from parcelsched.config import SchedulerConfig
from parcelsched.scheduling import FifoScheduler, LeastLostValueScheduler
from parcelsched.types import Coordinates, DeliveryRequest, PackageInfo, TimeValueFunction
from parcelsched.valuation import generate_type_a


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """Create a clock starting at t=0."""
    return FakeClock()


@pytest.fixture
def config() -> SchedulerConfig:
    """
    Small configuration: capacity 2, 10 m/s, five 10-second steps.

    With an all-steps-set function a 100-cost package is worth
    100/80/60/40/20/0 at 10/20/30/40/50/60 seconds.
    """
    return SchedulerConfig(
        queue_capacity=2,
        max_speed=10.0,
        step_interval=10.0,
        tvf_steps=5,
        delivery_time_limit=1000.0,
        tier_multiplier=2.0,
    )


@pytest.fixture
def linear_tvf(config: SchedulerConfig) -> TimeValueFunction:
    """All-steps-set time-value function for the small config."""
    return generate_type_a(config)


@pytest.fixture
def origin() -> Coordinates:
    return Coordinates(0.0, 0.0, 0.0)


# ============================================================================
# Request Fixtures
# ============================================================================


@pytest.fixture
def make_request(linear_tvf: TimeValueFunction) -> Callable[..., DeliveryRequest]:
    """
    Build a request whose travel time is ``duration`` seconds at 10 m/s.
    """

    def _make(
        duration: float,
        cost: float = 100.0,
        tier: int = 0,
        request_id: str | None = None,
        tvf: TimeValueFunction | None = None,
    ) -> DeliveryRequest:
        kwargs = {}
        if request_id is not None:
            kwargs["id"] = request_id
        return DeliveryRequest(
            destination=Coordinates(duration * 10.0, 0.0, 0.0),
            package=PackageInfo(base_cost=cost, tier=tier),
            tvf=tvf or linear_tvf,
            **kwargs,
        )

    return _make


# ============================================================================
# Scheduler Fixtures
# ============================================================================


@pytest.fixture
def llv_scheduler(
    config: SchedulerConfig, origin: Coordinates, clock: FakeClock
) -> LeastLostValueScheduler:
    """Create a least-lost-value scheduler on the fake clock."""
    return LeastLostValueScheduler(config, origin, clock=clock)


@pytest.fixture
def fifo_scheduler(
    config: SchedulerConfig, origin: Coordinates, clock: FakeClock
) -> FifoScheduler:
    """Create a FIFO scheduler on the fake clock."""
    return FifoScheduler(config, origin, clock=clock)
