"""
Dispatch loop that drains a scheduler into delivery units.

The physical delivery is owned by the caller's handler; the dispatcher only
decides when to ask the scheduler for more work and how many deliveries may
be in flight at once.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass
from enum import Enum, auto
from typing import Any

from parcelsched.scheduling.base import DeliveryScheduler
from parcelsched.types import QueueEntry

logger = logging.getLogger(__name__)


class DispatcherState(Enum):
    """Dispatcher operational states."""

    IDLE = auto()
    RUNNING = auto()
    PAUSED = auto()
    STOPPED = auto()


@dataclass
class DispatchStats:
    """Statistics for the dispatcher."""

    dispatched: int = 0
    completed: int = 0
    failed: int = 0
    active: int = 0


class Dispatcher:
    """
    Pulls requests from a scheduler and hands them to a delivery handler.

    The handler receives a ``QueueEntry`` and returns True once a delivery
    unit has been launched for it. A False return or an exception counts as
    a failed dispatch. Launched deliveries occupy a slot until
    ``complete()`` is called for them.

    Example:
        >>> def launch(entry):
        ...     return fleet.send(entry.request.destination)
        >>>
        >>> dispatcher = Dispatcher(scheduler, launch, max_active=30, interval=0.75)
        >>> dispatcher.start()
        >>> ...
        >>> dispatcher.complete(request_id)
        >>> dispatcher.shutdown()
    """

    def __init__(
        self,
        scheduler: DeliveryScheduler,
        handler: Callable[[QueueEntry], bool],
        *,
        max_active: int = 30,
        interval: float = 0.75,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            scheduler: The scheduler to drain.
            handler: Launches a delivery for an entry.
            max_active: Maximum deliveries in flight.
            interval: Seconds between ticks of the background loop.
        """
        if max_active < 1:
            raise ValueError("max_active must be at least 1")
        if interval <= 0:
            raise ValueError("interval must be positive")

        self.scheduler = scheduler
        self.max_active = max_active
        self.interval = interval
        self._handler = handler

        self._active: dict[str, QueueEntry] = {}
        self._reserved = 0
        self._stats = DispatchStats()
        self._lock = threading.RLock()

        self._state = DispatcherState.IDLE
        self._wake = threading.Event()
        self._thread: threading.Thread | None = None

    def tick(self) -> QueueEntry | None:
        """
        Dispatch at most one request.

        Returns:
            The entry handed to the handler, or None if no slot was free or
            the scheduler had nothing queued.
        """
        # The scheduler and the handler run outside the dispatcher lock; a
        # reserved slot keeps concurrent ticks within max_active.
        with self._lock:
            if len(self._active) + self._reserved >= self.max_active:
                return None
            self._reserved += 1

        launched = False
        entry = None
        try:
            entry = self.scheduler.get_next_request()
            if entry is None:
                return None
            try:
                launched = bool(self._handler(entry))
            except Exception as e:
                logger.error(f"Dispatch of request {entry.id} failed: {e}")
        finally:
            with self._lock:
                self._reserved -= 1
                if entry is not None:
                    self._stats.dispatched += 1
                    if launched:
                        self._active[entry.id] = entry
                    else:
                        self._stats.failed += 1
        return entry

    def complete(self, request_id: str, success: bool = True) -> bool:
        """
        Release the slot held by a launched delivery.

        Args:
            request_id: ID of the delivered request.
            success: Whether the delivery reached its destination.

        Returns:
            True if the request was in flight.
        """
        with self._lock:
            if self._active.pop(request_id, None) is None:
                return False
            if success:
                self._stats.completed += 1
            else:
                self._stats.failed += 1
            return True

    def active_requests(self) -> list[str]:
        with self._lock:
            return list(self._active)

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            self._stats.active = len(self._active)
            return {
                "state": self._state.name,
                "max_active": self.max_active,
                **asdict(self._stats),
                "scheduler": self.scheduler.get_stats(),
            }

    def start(self) -> None:
        """Run ``tick`` every ``interval`` seconds on a background thread."""
        with self._lock:
            if self._state == DispatcherState.RUNNING:
                return
            self._state = DispatcherState.RUNNING
            self._wake.clear()
            self._thread = threading.Thread(target=self._loop, name="dispatcher", daemon=True)
            self._thread.start()
        logger.info("Dispatcher started")

    def pause(self) -> None:
        with self._lock:
            if self._state == DispatcherState.RUNNING:
                self._state = DispatcherState.PAUSED
                logger.info("Dispatcher paused")

    def resume(self) -> None:
        with self._lock:
            if self._state == DispatcherState.PAUSED:
                self._state = DispatcherState.RUNNING
                logger.info("Dispatcher resumed")

    def shutdown(self, timeout: float | None = None) -> None:
        """Stop the background loop. In-flight deliveries are left to the caller."""
        with self._lock:
            if self._state == DispatcherState.STOPPED:
                return
            self._state = DispatcherState.STOPPED
        self._wake.set()

        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Dispatcher stopped")

    def is_running(self) -> bool:
        with self._lock:
            return self._state == DispatcherState.RUNNING

    def _loop(self) -> None:
        while not self._wake.wait(self.interval):
            with self._lock:
                state = self._state
            if state == DispatcherState.STOPPED:
                return
            if state != DispatcherState.RUNNING:
                continue
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Dispatcher tick failed: {e}")

    def __enter__(self) -> Dispatcher:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.shutdown()


__all__ = ["DispatchStats", "Dispatcher", "DispatcherState"]
