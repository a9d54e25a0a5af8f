"""
Scheduler configuration.

Configuration is supplied once at construction and never changes while a
scheduler runs. Defaults follow the settings of the delivery simulation the
scheduler was built for.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import asdict, dataclass, fields
from typing import Any

from parcelsched.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class SchedulerConfig:
    """
    Configuration for a delivery scheduler.

    Attributes:
        queue_capacity: Entries allowed to remain queued after a dequeue.
        max_speed: Maximum service speed in metres per second, used to
            estimate each request's travel time.
        step_interval: Seconds between time-value function steps.
        tvf_steps: Length of the step sequences built by the TVF generators.
        delivery_time_limit: Deliveries slower than this are worth nothing.
        tier_multiplier: Revenue multiplier applied once per package tier.
        rescore_each_eviction: Re-score the survivors after every eviction
            instead of reusing one scoring for the whole trim pass.
        max_pending: Optional admission cap; requests arriving when this
            many entries are queued are rejected immediately. ``None`` keeps
            admission unbounded and defers all capacity decisions to dequeue.
        auto_sync: Push a snapshot to the attached store after every mutation.

    Example:
        >>> config = SchedulerConfig(queue_capacity=10, max_speed=15.0)
        >>> config = SchedulerConfig.from_dict({"queue_capacity": 5})
    """

    queue_capacity: int = 30
    max_speed: float = 20.0
    step_interval: float = 60.0
    tvf_steps: int = 10
    delivery_time_limit: float = 1200.0
    tier_multiplier: float = 2.0
    rescore_each_eviction: bool = False
    max_pending: int | None = None
    auto_sync: bool = True

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """
        Check every field.

        Raises:
            ConfigurationError: On the first invalid value.
        """
        if isinstance(self.queue_capacity, bool) or not isinstance(self.queue_capacity, int):
            raise ConfigurationError("queue_capacity", "an integer", self.queue_capacity)
        if self.queue_capacity < 1:
            raise ConfigurationError("queue_capacity", "a positive integer", self.queue_capacity)

        for key in ("max_speed", "step_interval", "tier_multiplier"):
            value = getattr(self, key)
            if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
                raise ConfigurationError(key, "a positive finite number", value)

        if not isinstance(self.tvf_steps, int) or self.tvf_steps < 1:
            raise ConfigurationError("tvf_steps", "a positive integer", self.tvf_steps)

        limit = self.delivery_time_limit
        if not isinstance(limit, (int, float)) or math.isnan(limit) or limit < 0:
            raise ConfigurationError("delivery_time_limit", "a non-negative number", limit)

        if self.max_pending is not None:
            if not isinstance(self.max_pending, int) or self.max_pending < self.queue_capacity:
                raise ConfigurationError(
                    "max_pending",
                    f"None or an integer >= queue_capacity ({self.queue_capacity})",
                    self.max_pending,
                )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SchedulerConfig:
        """
        Build a config from a mapping, ignoring unknown keys.

        Args:
            data: Field names mapped to values.

        Returns:
            A validated SchedulerConfig.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown scheduler config keys: {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_env(
        cls,
        prefix: str = "PARCELSCHED_",
        environ: dict[str, str] | None = None,
    ) -> SchedulerConfig:
        """
        Build a config from environment variables.

        ``PARCELSCHED_QUEUE_CAPACITY=12`` overrides ``queue_capacity`` and so
        on; unset variables keep their defaults.

        Raises:
            ConfigurationError: If a variable cannot be parsed.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        values: dict[str, Any] = {}

        for f in fields(cls):
            raw = env.get(f"{prefix}{f.name.upper()}")
            if raw is None:
                continue
            values[f.name] = _parse_value(f.name, raw, getattr(defaults, f.name))

        return cls(**values)


def _parse_value(key: str, raw: str, default: Any) -> Any:
    text = raw.strip()
    try:
        if key == "max_pending":
            return None if text.lower() in ("", "none") else int(text)
        if isinstance(default, bool):
            lowered = text.lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
            raise ValueError(text)
        if isinstance(default, int):
            return int(text)
        return float(text)
    except ValueError:
        raise ConfigurationError(key, f"a value parseable as {type(default).__name__}", raw) from None


__all__ = ["SchedulerConfig"]
