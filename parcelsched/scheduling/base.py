"""
Scheduler interface shared by all delivery scheduling policies.

A scheduler owns one queue and its counters. Producers call ``enqueue``,
the dispatch side calls ``get_next_request``, and metrics readers use the
side-effect-free accessors. All mutating calls are serialized by an
internal lock so one instance has a single scheduling authority.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Collection
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from parcelsched.config import SchedulerConfig
from parcelsched.exceptions import SnapshotError
from parcelsched.persistence import QueueSnapshot, SnapshotStore
from parcelsched.scheduling.scoring import expected_duration
from parcelsched.scheduling.state import SchedulerCounters
from parcelsched.types import Coordinates, DeliveryRequest, QueueEntry
from parcelsched.valuation import ValueFunction

logger = logging.getLogger(__name__)


class SchedulerEventType(Enum):
    """Things a scheduler reports to its observers."""

    ENQUEUED = "enqueued"
    REJECTED = "rejected"
    EVICTED = "evicted"
    SERVED = "served"


@dataclass
class SchedulerEvent:
    """A single scheduler occurrence."""

    event_type: SchedulerEventType
    request_id: str
    timestamp: float
    policy: str
    value: float | None = None
    priority: float | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "request_id": self.request_id,
            "timestamp": self.timestamp,
            "policy": self.policy,
            "value": self.value,
            "priority": self.priority,
            "details": self.details,
        }


class DeliveryScheduler(ABC):
    """
    Base class for delivery scheduling policies.

    Subclasses implement how entries are admitted, ordered and served;
    this class provides counters, valuation, snapshot sync and events.

    Attributes:
        name: Policy name used by the factory and in snapshots.
        config: Immutable scheduler configuration.
        origin: Where deliveries depart from.
    """

    name: str = "base"

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        origin: Coordinates | None = None,
        *,
        store: SnapshotStore | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            config: Scheduler configuration.
            origin: Departure point used for travel-time estimates.
            store: Optional snapshot store; an existing snapshot is
                restored immediately.
            clock: Returns the current time in seconds. Entry timestamps
                come from this clock, so restored snapshots need a clock
                that keeps counting across restarts.
        """
        self.config = config or SchedulerConfig()
        self.origin = origin or Coordinates(0.0, 0.0, 0.0)
        self.value_fn = ValueFunction.from_config(self.config)

        self._store = store
        self._clock = clock or time.time
        self._counters = SchedulerCounters()
        self._lock = threading.RLock()
        self._callbacks: list[Callable[[SchedulerEvent], None]] = []

        if store is not None:
            snapshot = store.load()
            if snapshot is not None:
                self.restore(snapshot)

    # -- policy hooks -----------------------------------------------------

    @abstractmethod
    def _admit(self, entry: QueueEntry) -> bool:
        """Add ``entry`` to the queue, or return False to reject it."""
        pass

    @abstractmethod
    def _next(self, now: float) -> QueueEntry | None:
        """Remove and return the entry to serve next."""
        pass

    @abstractmethod
    def _current_entries(self) -> list[QueueEntry]:
        """Queued entries in the policy's natural order."""
        pass

    def _pending_entries(self) -> Collection[QueueEntry]:
        """Queued entries in storage order, for size and membership checks."""
        return self._current_entries()

    @abstractmethod
    def _load_entries(self, entries: list[QueueEntry]) -> None:
        """Replace the queue with ``entries``."""
        pass

    # -- producer side ----------------------------------------------------

    def now(self) -> float:
        return self._clock()

    def enqueue(self, request: DeliveryRequest) -> bool:
        """
        Submit a delivery request.

        Args:
            request: The request to queue.

        Returns:
            True if the request was queued, False if it was rejected at
            admission.

        Raises:
            ValueError: If a request with the same ID is already queued.
        """
        with self._lock:
            if request.id in self:
                raise ValueError(f"Request with ID {request.id} already in queue")

            now = self.now()
            duration = expected_duration(self.origin, request.destination, self.config.max_speed)
            entry = QueueEntry(request=request, timestamp=now, expected_duration=duration)

            self._counters.record_incoming()
            accepted = self._admit(entry)

            if accepted:
                self._emit(SchedulerEventType.ENQUEUED, entry, now)
            else:
                value = self.value_fn.value(entry.expected_duration, request)
                self._counters.record_rejection(value)
                logger.debug(f"Rejected request {request.id} at admission, lost {value}")
                self._emit(SchedulerEventType.REJECTED, entry, now, value=value)

            self._after_mutation()
            return accepted

    # -- dispatch side ----------------------------------------------------

    def get_next_request(self) -> QueueEntry | None:
        """
        Remove and return the next request to serve.

        Returns:
            The entry to serve, or None if the queue is empty. An empty
            queue has no side effects.
        """
        with self._lock:
            if self.queue_size() == 0:
                return None

            now = self.now()
            entry = self._next(now)
            if entry is not None:
                self._emit(SchedulerEventType.SERVED, entry, now, priority=entry.priority)
            self._after_mutation()
            return entry

    # -- read accessors ---------------------------------------------------

    def queue_size(self) -> int:
        with self._lock:
            return len(self._pending_entries())

    def potential_lost(self) -> float:
        """Cumulative value forfeited to evicted or rejected requests."""
        with self._lock:
            return self._counters.potential

    def avg_potential_lost(self) -> float | None:
        """Average value lost per rejection; None before any rejection."""
        with self._lock:
            return self._counters.average_potential_lost()

    @property
    def incoming_requests(self) -> int:
        return self._counters.incoming_requests

    @property
    def rejections(self) -> int:
        return self._counters.rejections

    def entries(self) -> list[QueueEntry]:
        """Snapshot of the queued entries; mutating it does not affect the queue."""
        with self._lock:
            return list(self._current_entries())

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "policy": self.name,
                "queue_size": self.queue_size(),
                "queue_capacity": self.config.queue_capacity,
                "incoming_requests": self._counters.incoming_requests,
                "potential_lost": self._counters.potential,
                "avg_potential_lost": self._counters.average_potential_lost(),
                "rejections": self._counters.rejections,
            }

    # -- persistence ------------------------------------------------------

    def snapshot(self) -> QueueSnapshot:
        """Export the queue and counters without touching the store."""
        with self._lock:
            return QueueSnapshot.capture(
                self.name, self._current_entries(), self._counters.to_dict()
            )

    def sync_queue(self) -> QueueSnapshot:
        """
        Export the queue and counters and push them to the attached store.

        Returns:
            The exported snapshot.
        """
        with self._lock:
            snapshot = self.snapshot()
            if self._store is not None:
                self._store.save(snapshot)
            return snapshot

    def restore(self, snapshot: QueueSnapshot) -> None:
        """
        Rebuild the queue and counters from a snapshot.

        Raises:
            SnapshotError: If the snapshot was written by another policy.
        """
        if snapshot.policy != self.name:
            raise SnapshotError(
                f"Snapshot belongs to policy '{snapshot.policy}', not '{self.name}'",
                source=snapshot.policy,
            )

        with self._lock:
            self._load_entries(snapshot.to_entries())
            self._counters = SchedulerCounters(
                incoming_requests=snapshot.incoming_requests,
                potential=snapshot.potential,
                rejections=snapshot.rejections,
            )
        logger.info(
            f"Restored {self.name} scheduler with {len(snapshot.entries)} queued entries"
        )

    def _after_mutation(self) -> None:
        if not self.config.auto_sync or self._store is None:
            return
        # The in-memory queue stays authoritative when the store fails.
        try:
            self.sync_queue()
        except (SnapshotError, OSError) as e:
            logger.error(f"Automatic queue sync to {self._store.name} failed: {e}")

    # -- observers --------------------------------------------------------

    def on_event(self, callback: Callable[[SchedulerEvent], None]) -> None:
        """Register a callable that receives every scheduler event."""
        self._callbacks.append(callback)

    def _emit(
        self,
        event_type: SchedulerEventType,
        entry: QueueEntry,
        now: float,
        value: float | None = None,
        priority: float | None = None,
    ) -> None:
        if not self._callbacks:
            return

        event = SchedulerEvent(
            event_type=event_type,
            request_id=entry.id,
            timestamp=now,
            policy=self.name,
            value=value,
            priority=priority,
            details={"expected_duration": entry.expected_duration},
        )
        for callback in self._callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Scheduler event callback error: {e}")

    def __len__(self) -> int:
        return self.queue_size()

    def __contains__(self, request_id: str) -> bool:
        with self._lock:
            return any(entry.id == request_id for entry in self._pending_entries())

    def __enter__(self) -> DeliveryScheduler:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._store is not None:
            self.sync_queue()


__all__ = [
    "DeliveryScheduler",
    "SchedulerEvent",
    "SchedulerEventType",
]
