"""
First-in first-out scheduling.

The baseline policy: requests are served in arrival order and the queue
never grows past its capacity. Requests arriving at a full queue are
rejected immediately and counted as lost potential.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable

from parcelsched.config import SchedulerConfig
from parcelsched.persistence import SnapshotStore
from parcelsched.scheduling.base import DeliveryScheduler
from parcelsched.types import Coordinates, EntryState, QueueEntry


class FifoScheduler(DeliveryScheduler):
    """Serves requests in arrival order, rejecting arrivals at a full queue."""

    name = "fifo"

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        origin: Coordinates | None = None,
        *,
        store: SnapshotStore | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._queue: deque[QueueEntry] = deque()
        super().__init__(config, origin, store=store, clock=clock)

    def _admit(self, entry: QueueEntry) -> bool:
        if len(self._queue) >= self.config.queue_capacity:
            return False
        self._queue.append(entry)
        return True

    def _next(self, now: float) -> QueueEntry | None:
        entry = self._queue.popleft()
        entry.state = EntryState.SERVED
        return entry

    def _current_entries(self) -> list[QueueEntry]:
        return list(self._queue)

    def _pending_entries(self) -> deque[QueueEntry]:
        return self._queue

    def _load_entries(self, entries: list[QueueEntry]) -> None:
        self._queue = deque(sorted(entries, key=lambda e: (e.timestamp, e.id)))


__all__ = ["FifoScheduler"]
