"""
Core data types for parcelsched.

Delivery requests, their packages and time-value functions are immutable
once created. Queue entries wrap a request with the scheduling data the
queue owns: arrival timestamp, a per-pass priority score and the travel
time estimate fixed at enqueue time.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from parcelsched.exceptions import InvalidRequestError, InvalidTimeValueFunctionError


class DeliveryType(Enum):
    """Category tag carried by a time-value function."""

    PARCEL = "parcel"
    FOOD = "food"
    MEDICAL = "medical"


class EntryState(Enum):
    """
    Lifecycle of a queue entry.

    QUEUED -> SCORED -> SERVED | EVICTED. SERVED and EVICTED are terminal.
    """

    QUEUED = "queued"
    SCORED = "scored"
    SERVED = "served"
    EVICTED = "evicted"

    @property
    def is_terminal(self) -> bool:
        return self in (EntryState.SERVED, EntryState.EVICTED)


@dataclass(frozen=True)
class Coordinates:
    """A point in the service area, in metres."""

    x: float
    y: float = 0.0
    z: float = 0.0

    def distance_to(self, other: Coordinates) -> float:
        return math.sqrt(
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        )

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Coordinates:
        return cls(x=float(data["x"]), y=float(data.get("y", 0.0)), z=float(data.get("z", 0.0)))


@dataclass(frozen=True)
class PackageInfo:
    """
    Package metadata that determines the revenue of a delivery.

    Attributes:
        base_cost: Revenue of the package at tier 0, before any decay.
        tier: Service tier; revenue scales by ``tier_multiplier ** tier``.
        weight: Payload weight in kilograms (informational).
    """

    base_cost: float
    tier: int = 0
    weight: float = 0.0

    def __post_init__(self) -> None:
        if self.base_cost < 0 or not math.isfinite(self.base_cost):
            raise InvalidRequestError("base_cost", "must be a finite non-negative number", self.base_cost)
        if self.tier < 0:
            raise InvalidRequestError("tier", "must be non-negative", self.tier)
        if self.weight < 0:
            raise InvalidRequestError("weight", "must be non-negative", self.weight)

    def to_dict(self) -> dict[str, Any]:
        return {"base_cost": self.base_cost, "tier": self.tier, "weight": self.weight}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PackageInfo:
        return cls(
            base_cost=float(data["base_cost"]),
            tier=int(data.get("tier", 0)),
            weight=float(data.get("weight", 0.0)),
        )


@dataclass(frozen=True)
class TimeValueFunction:
    """
    Staged schedule describing how a delivery's revenue decays.

    Every ``step_interval`` seconds of elapsed delivery time one flag of
    ``steps`` is consulted; each set flag costs ``1 / num_steps`` of the
    maximum revenue until ``num_steps`` flags have been hit.

    Attributes:
        steps: Ordered penalty flags, one per step interval.
        num_steps: Saturation count, at most ``len(steps)``.
        step_interval: Seconds between consecutive flags.
        tier_multiplier: Revenue multiplier applied once per package tier.
        delivery_type: Category tag.

    Raises:
        InvalidTimeValueFunctionError: If the function is malformed.
    """

    steps: tuple[bool, ...]
    num_steps: int
    step_interval: float = 60.0
    tier_multiplier: float = 2.0
    delivery_type: DeliveryType = DeliveryType.PARCEL

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(bool(s) for s in self.steps))

        if self.num_steps < 1:
            raise InvalidTimeValueFunctionError("num_steps", "must be at least 1", self.num_steps)
        if self.num_steps > len(self.steps):
            raise InvalidTimeValueFunctionError(
                "num_steps",
                f"exceeds the step sequence length {len(self.steps)}",
                self.num_steps,
            )
        if not self.step_interval > 0:
            raise InvalidTimeValueFunctionError("step_interval", "must be positive", self.step_interval)
        if not self.tier_multiplier > 0:
            raise InvalidTimeValueFunctionError(
                "tier_multiplier", "must be positive", self.tier_multiplier
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "steps": list(self.steps),
            "num_steps": self.num_steps,
            "step_interval": self.step_interval,
            "tier_multiplier": self.tier_multiplier,
            "delivery_type": self.delivery_type.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TimeValueFunction:
        return cls(
            steps=tuple(data["steps"]),
            num_steps=int(data["num_steps"]),
            step_interval=float(data.get("step_interval", 60.0)),
            tier_multiplier=float(data.get("tier_multiplier", 2.0)),
            delivery_type=DeliveryType(data.get("delivery_type", DeliveryType.PARCEL.value)),
        )


@dataclass(frozen=True)
class DeliveryRequest:
    """
    A pending request to carry a package to a destination.

    Example:
        >>> request = DeliveryRequest(
        ...     destination=Coordinates(1200.0, 0.0, -300.0),
        ...     package=PackageInfo(base_cost=100.0, tier=1),
        ...     tvf=generate_type_a(config),
        ... )
    """

    destination: Coordinates
    package: PackageInfo
    tvf: TimeValueFunction
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "destination": self.destination.to_dict(),
            "package": self.package.to_dict(),
            "tvf": self.tvf.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeliveryRequest:
        return cls(
            id=str(data["id"]),
            destination=Coordinates.from_dict(data["destination"]),
            package=PackageInfo.from_dict(data["package"]),
            tvf=TimeValueFunction.from_dict(data["tvf"]),
        )


@dataclass
class QueueEntry:
    """
    A delivery request held in a scheduler queue.

    Attributes:
        request: The wrapped delivery request.
        timestamp: Scheduler clock reading when the request was enqueued.
        expected_duration: Travel-time estimate in seconds, fixed at enqueue.
        priority: Score from the most recent scoring pass.
        state: Lifecycle state.
    """

    request: DeliveryRequest
    timestamp: float
    expected_duration: float
    priority: float = 0.0
    state: EntryState = EntryState.QUEUED

    def __post_init__(self) -> None:
        if self.expected_duration < 0 or not math.isfinite(self.expected_duration):
            raise InvalidRequestError(
                "expected_duration", "must be a finite non-negative number", self.expected_duration
            )

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "expected_duration" and "expected_duration" in self.__dict__:
            raise AttributeError("expected_duration is fixed once an entry is queued")
        super().__setattr__(name, value)

    @property
    def id(self) -> str:
        return self.request.id

    @property
    def sort_key(self) -> tuple[float, float, str]:
        # Priority first, then arrival; the request id makes the order total.
        return (self.priority, self.timestamp, self.request.id)

    def elapsed(self, now: float) -> float:
        """Projected delivery time: waiting time so far plus travel time."""
        return (now - self.timestamp) + self.expected_duration

    def rescored(self, priority: float) -> QueueEntry:
        """Return a copy of this entry carrying a fresh score."""
        return replace(self, priority=priority, state=EntryState.SCORED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "request": self.request.to_dict(),
            "timestamp": self.timestamp,
            "expected_duration": self.expected_duration,
            "priority": self.priority,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QueueEntry:
        return cls(
            request=DeliveryRequest.from_dict(data["request"]),
            timestamp=float(data["timestamp"]),
            expected_duration=float(data["expected_duration"]),
            priority=float(data.get("priority", 0.0)),
        )


__all__ = [
    "Coordinates",
    "DeliveryRequest",
    "DeliveryType",
    "EntryState",
    "PackageInfo",
    "QueueEntry",
    "TimeValueFunction",
]
