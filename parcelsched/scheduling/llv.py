"""
Least-lost-value scheduling.

Requests are always admitted (unless ``max_pending`` caps admission).
Capacity is enforced lazily: every dequeue first re-scores the whole queue,
evicts the lowest-scoring entries until the queue fits the configured
capacity, and then serves the highest-scoring entry. The value each
evicted entry would have earned is added to the lost-potential total.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from parcelsched.config import SchedulerConfig
from parcelsched.persistence import SnapshotStore
from parcelsched.scheduling.base import DeliveryScheduler, SchedulerEventType
from parcelsched.scheduling.scoring import OrderedIndex, score_entries
from parcelsched.types import Coordinates, EntryState, QueueEntry

logger = logging.getLogger(__name__)


class LeastLostValueScheduler(DeliveryScheduler):
    """
    Scheduler that serves the request whose service costs the system least.

    Example:
        >>> scheduler = LeastLostValueScheduler(
        ...     SchedulerConfig(queue_capacity=30),
        ...     origin=Coordinates(0.0, 0.0, 0.0),
        ... )
        >>> scheduler.enqueue(request)
        True
        >>> entry = scheduler.get_next_request()
        >>> scheduler.potential_lost(), scheduler.avg_potential_lost()
        (0.0, None)
    """

    name = "llv"

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        origin: Coordinates | None = None,
        *,
        store: SnapshotStore | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        # Entries live in a plain list; an ordered index is only built from
        # a fresh scoring pass.
        self._queue: list[QueueEntry] = []
        super().__init__(config, origin, store=store, clock=clock)

    def _admit(self, entry: QueueEntry) -> bool:
        limit = self.config.max_pending
        if limit is not None and len(self._queue) >= limit:
            return False
        self._queue.append(entry)
        return True

    def _current_entries(self) -> list[QueueEntry]:
        return OrderedIndex(self._queue).to_list()

    def _pending_entries(self) -> list[QueueEntry]:
        return self._queue

    def _load_entries(self, entries: list[QueueEntry]) -> None:
        self._queue = list(entries)

    def sort_queue(self) -> list[QueueEntry]:
        """
        Re-score every queued entry against the current queue.

        Returns:
            The scored entries in ascending priority order.
        """
        with self._lock:
            index = OrderedIndex(score_entries(self._queue, self.now(), self.value_fn))
            self._queue = index.to_list()
            return index.to_list()

    def _next(self, now: float) -> QueueEntry | None:
        index = OrderedIndex(score_entries(self._queue, now, self.value_fn))
        capacity = self.config.queue_capacity

        while len(index) > capacity:
            self._evict(index.pop_min(), now)
            if self.config.rescore_each_eviction and len(index) > capacity:
                index = OrderedIndex(score_entries(index.to_list(), now, self.value_fn))

        served = index.pop_max()
        served.state = EntryState.SERVED
        self._queue = index.to_list()

        logger.debug(
            f"Serving request {served.id} (priority {served.priority:.2f}), "
            f"{len(self._queue)} left in queue"
        )
        return served

    def _evict(self, entry: QueueEntry, now: float) -> None:
        value = self.value_fn.value(entry.elapsed(now), entry.request)
        entry.state = EntryState.EVICTED
        self._counters.record_rejection(value)

        logger.debug(
            f"Evicted request {entry.id} (priority {entry.priority:.2f}), lost {value}"
        )
        self._emit(SchedulerEventType.EVICTED, entry, now, value=value, priority=entry.priority)


__all__ = ["LeastLostValueScheduler"]
