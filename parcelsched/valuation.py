"""
Time-value functions: the revenue a delivery earns as a function of how
long it takes.

``delivery_value`` is the single authority for every value computation in
the package. The scorer, the eviction loop and the loss accounting all go
through it (via ``ValueFunction``) rather than approximating it.

Example:
    >>> config = SchedulerConfig(step_interval=10.0, tvf_steps=5)
    >>> tvf = generate_type_a(config)
    >>> delivery_value(35.0, PackageInfo(base_cost=100.0), tvf, 1000.0)
    40
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from parcelsched.exceptions import ConfigurationError
from parcelsched.types import DeliveryRequest, DeliveryType, PackageInfo, TimeValueFunction

if TYPE_CHECKING:
    from parcelsched.config import SchedulerConfig

# Step indices at which a type B function drops in value.
TYPE_B_DROP_STEPS = (4, 9)


def max_revenue(package: PackageInfo, tvf: TimeValueFunction) -> float:
    """Revenue of an on-time delivery: base cost scaled once per tier."""
    return package.base_cost * tvf.tier_multiplier ** package.tier


def delivery_value(
    delivery_time: float,
    package: PackageInfo,
    tvf: TimeValueFunction,
    delivery_time_limit: float,
) -> int:
    """
    Compute the decayed value of a delivery.

    Walks the step schedule one interval at a time, up to but not including
    ``delivery_time``, counting set flags until ``tvf.num_steps`` have been
    hit. Flags past the end of the schedule count as unset.

    Args:
        delivery_time: Elapsed plus projected time in seconds.
        package: Package metadata giving the base revenue.
        tvf: The decay schedule.
        delivery_time_limit: Deliveries slower than this are worth 0.

    Returns:
        Rounded revenue in ``[0, max_revenue]``.
    """
    if delivery_time > delivery_time_limit:
        return 0

    revenue = max_revenue(package, tvf)
    penalty_step = revenue / tvf.num_steps
    steps_hit = 0

    index = 0
    while index < len(tvf.steps) and (index + 1) * tvf.step_interval < delivery_time:
        if tvf.steps[index]:
            steps_hit += 1
            if steps_hit == tvf.num_steps:
                break
        index += 1

    return max(0, round(revenue - penalty_step * steps_hit))


class ValueFunction:
    """
    Binds the global delivery-time limit so schedulers can value requests.

    Attributes:
        delivery_time_limit: Deliveries slower than this are worth 0.
    """

    def __init__(self, delivery_time_limit: float) -> None:
        self.delivery_time_limit = delivery_time_limit

    @classmethod
    def from_config(cls, config: SchedulerConfig) -> ValueFunction:
        return cls(config.delivery_time_limit)

    def value(self, delivery_time: float, request: DeliveryRequest) -> int:
        """Value of ``request`` if delivered after ``delivery_time`` seconds."""
        return delivery_value(delivery_time, request.package, request.tvf, self.delivery_time_limit)

    def max_revenue(self, request: DeliveryRequest) -> float:
        return max_revenue(request.package, request.tvf)


def generate_type_a(
    config: SchedulerConfig,
    delivery_type: DeliveryType = DeliveryType.PARCEL,
) -> TimeValueFunction:
    """
    Linear decay: every step costs an equal share until the value is gone.
    """
    return TimeValueFunction(
        steps=(True,) * config.tvf_steps,
        num_steps=config.tvf_steps,
        step_interval=config.step_interval,
        tier_multiplier=config.tier_multiplier,
        delivery_type=delivery_type,
    )


def generate_type_b(
    config: SchedulerConfig,
    delivery_type: DeliveryType = DeliveryType.PARCEL,
) -> TimeValueFunction:
    """
    Two cliff drops: half the value is lost at step 4 and the rest at step 9.

    Raises:
        ConfigurationError: If ``config.tvf_steps`` is too short to hold
            both drops.
    """
    if config.tvf_steps <= max(TYPE_B_DROP_STEPS):
        raise ConfigurationError(
            "tvf_steps",
            f"at least {max(TYPE_B_DROP_STEPS) + 1} for type B functions",
            config.tvf_steps,
        )

    return TimeValueFunction(
        steps=tuple(i in TYPE_B_DROP_STEPS for i in range(config.tvf_steps)),
        num_steps=len(TYPE_B_DROP_STEPS),
        step_interval=config.step_interval,
        tier_multiplier=config.tier_multiplier,
        delivery_type=delivery_type,
    )


__all__ = [
    "TYPE_B_DROP_STEPS",
    "ValueFunction",
    "delivery_value",
    "generate_type_a",
    "generate_type_b",
    "max_revenue",
]
