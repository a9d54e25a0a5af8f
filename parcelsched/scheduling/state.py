"""
Running counters owned by a scheduler instance.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class SchedulerCounters:
    """
    Aggregate counters for one scheduler queue.

    Attributes:
        incoming_requests: Requests submitted, accepted or not.
        potential: Cumulative value forfeited to evicted or rejected requests.
        rejections: Requests evicted or rejected at admission.
    """

    incoming_requests: int = 0
    potential: float = 0.0
    rejections: int = 0

    def record_incoming(self) -> int:
        self.incoming_requests += 1
        return self.incoming_requests

    def record_rejection(self, value: float) -> None:
        """Tally one sacrificed request and the value it would have earned."""
        self.potential += value
        self.rejections += 1

    def average_potential_lost(self) -> float | None:
        """Mean value lost per rejection, or None before the first rejection."""
        if self.rejections == 0:
            return None
        return self.potential / self.rejections

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


__all__ = ["SchedulerCounters"]
