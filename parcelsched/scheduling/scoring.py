"""
Least-lost-value scoring.

Serving one entry delays every other entry by its travel time, so the score
of an entry depends on the whole queue and is recomputed from scratch before
every dequeue. Scores are only meaningful within the pass that produced
them; ``OrderedIndex`` is therefore rebuilt from each fresh scoring instead
of being kept up to date.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence

from parcelsched.types import Coordinates, QueueEntry
from parcelsched.valuation import ValueFunction

logger = logging.getLogger(__name__)


def expected_duration(origin: Coordinates, destination: Coordinates, max_speed: float) -> float:
    """Travel-time estimate in seconds from origin to destination."""
    return origin.distance_to(destination) / max_speed


def score_entries(
    entries: Sequence[QueueEntry],
    now: float,
    value_fn: ValueFunction,
) -> list[QueueEntry]:
    """
    Score every entry against the rest of the queue.

    For entry ``j`` the score is the value all other entries lose when
    ``j`` is served first (each is delayed by ``j``'s duration), minus the
    value ``j`` itself would lose if it waited behind the longest competing
    job. Higher scores mean serving ``j`` now is the cheaper choice.

    Args:
        entries: The current queue, in any order.
        now: Scheduler clock reading for this pass.
        value_fn: Evaluator bound to the delivery-time limit.

    Returns:
        Rescored copies of ``entries`` in input order. The inputs are not
        modified.
    """
    elapsed = [entry.elapsed(now) for entry in entries]
    # Value each entry earns if nothing delays it further.
    current = [value_fn.value(t, entry.request) for t, entry in zip(elapsed, entries)]

    scored: list[QueueEntry] = []
    for j, entry in enumerate(entries):
        duration = entry.expected_duration
        lost_value = 0.0
        max_duration = 0.0

        for k, other in enumerate(entries):
            if k == j:
                continue
            lost_value += current[k] - value_fn.value(elapsed[k] + duration, other.request)
            max_duration = max(max_duration, other.expected_duration)

        won_value = current[j] - value_fn.value(elapsed[j] + max_duration, entry.request)
        scored.append(entry.rescored(lost_value - won_value))

    logger.debug(f"Scored {len(scored)} queue entries")
    return scored


class OrderedIndex:
    """
    Entries sorted ascending by ``QueueEntry.sort_key``.

    Built fresh from one scoring pass; the lowest-priority entry is at the
    front and the entry to serve next at the back.
    """

    def __init__(self, entries: Iterable[QueueEntry] = ()) -> None:
        self._entries = sorted(entries, key=lambda e: e.sort_key)

    def min(self) -> QueueEntry | None:
        return self._entries[0] if self._entries else None

    def max(self) -> QueueEntry | None:
        return self._entries[-1] if self._entries else None

    def pop_min(self) -> QueueEntry:
        """
        Remove and return the lowest-priority entry.

        Raises:
            IndexError: If the index is empty.
        """
        if not self._entries:
            raise IndexError("pop from an empty OrderedIndex")
        return self._entries.pop(0)

    def pop_max(self) -> QueueEntry:
        """
        Remove and return the highest-priority entry.

        Raises:
            IndexError: If the index is empty.
        """
        if not self._entries:
            raise IndexError("pop from an empty OrderedIndex")
        return self._entries.pop()

    def to_list(self) -> list[QueueEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[QueueEntry]:
        return iter(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)


__all__ = ["OrderedIndex", "expected_duration", "score_entries"]
