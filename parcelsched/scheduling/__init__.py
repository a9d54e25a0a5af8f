"""
Delivery scheduling policies for parcelsched.

Available policies:

- LeastLostValueScheduler ("llv"): admits every request, re-scores the
  queue before each dequeue and evicts the entries whose loss costs least.
- FifoScheduler ("fifo"): arrival order, rejects arrivals at a full queue.

Quick Start:
    >>> from parcelsched.scheduling import SchedulerFactory
    >>>
    >>> scheduler = SchedulerFactory.create("llv", SchedulerConfig(queue_capacity=30))
    >>> scheduler.enqueue(request)
    True
    >>> entry = scheduler.get_next_request()
"""

from __future__ import annotations

import logging
from typing import Any

from parcelsched.config import SchedulerConfig
from parcelsched.exceptions import SchedulerNotAvailableError
from parcelsched.scheduling.base import (
    DeliveryScheduler,
    SchedulerEvent,
    SchedulerEventType,
)
from parcelsched.scheduling.fifo import FifoScheduler
from parcelsched.scheduling.llv import LeastLostValueScheduler
from parcelsched.scheduling.scoring import OrderedIndex, expected_duration, score_entries
from parcelsched.scheduling.state import SchedulerCounters

logger = logging.getLogger(__name__)

_BUILTIN_POLICIES = ("llv", "fifo")


class SchedulerFactory:
    """
    Factory for creating scheduler instances by policy name.

    Example:
        >>> scheduler = SchedulerFactory.create("fifo")
        >>> scheduler = SchedulerFactory.create(
        ...     "llv",
        ...     SchedulerConfig(queue_capacity=10),
        ...     origin=Coordinates(100.0, 0.0, 100.0),
        ...     store=JsonFileSnapshotStore("queue.json"),
        ... )
    """

    _policies: dict[str, type[DeliveryScheduler]] = {
        "llv": LeastLostValueScheduler,
        "fifo": FifoScheduler,
    }

    @classmethod
    def create(
        cls,
        policy: str = "llv",
        config: SchedulerConfig | None = None,
        **kwargs: Any,
    ) -> DeliveryScheduler:
        """
        Create a scheduler.

        Args:
            policy: Registered policy name (case-insensitive).
            config: Scheduler configuration.
            **kwargs: Passed to the scheduler (origin, store, clock).

        Returns:
            A new scheduler instance.

        Raises:
            SchedulerNotAvailableError: If the policy is unknown.
        """
        key = policy.lower()
        if key not in cls._policies:
            raise SchedulerNotAvailableError(
                f"Unknown scheduling policy: '{policy}'. "
                f"Available policies: {', '.join(cls.get_available_policies())}",
                policy=policy,
            )
        return cls._policies[key](config, **kwargs)

    @classmethod
    def register(cls, policy: str, scheduler_class: type[DeliveryScheduler]) -> None:
        """
        Register a custom scheduling policy.

        Example:
            >>> class ShortestFirstScheduler(DeliveryScheduler):
            ...     name = "sjf"
            ...     ...
            >>> SchedulerFactory.register("sjf", ShortestFirstScheduler)
        """
        cls._policies[policy.lower()] = scheduler_class
        logger.debug(f"Registered scheduling policy: {policy}")

    @classmethod
    def unregister(cls, policy: str) -> bool:
        """
        Unregister a custom policy. Built-in policies cannot be removed.

        Returns:
            True if the policy was unregistered.
        """
        key = policy.lower()
        if key in cls._policies and key not in _BUILTIN_POLICIES:
            del cls._policies[key]
            return True
        return False

    @classmethod
    def get_available_policies(cls) -> list[str]:
        return sorted(cls._policies)

    @classmethod
    def is_available(cls, policy: str) -> bool:
        return policy.lower() in cls._policies


def create_scheduler(
    policy: str = "llv",
    config: SchedulerConfig | None = None,
    **kwargs: Any,
) -> DeliveryScheduler:
    """
    Create a scheduler; shortcut for ``SchedulerFactory.create``.

    Example:
        >>> from parcelsched.scheduling import create_scheduler
        >>> scheduler = create_scheduler("llv")
    """
    return SchedulerFactory.create(policy, config, **kwargs)


__all__ = [
    # Interface and events
    "DeliveryScheduler",
    "SchedulerEvent",
    "SchedulerEventType",
    "SchedulerCounters",
    # Policies
    "FifoScheduler",
    "LeastLostValueScheduler",
    # Scoring
    "OrderedIndex",
    "expected_duration",
    "score_entries",
    # Factory
    "SchedulerFactory",
    "create_scheduler",
]
