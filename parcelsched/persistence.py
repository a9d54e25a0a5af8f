"""
Queue snapshots and the stores that hold them.

A snapshot is the flat list of queued entries plus the scheduler's scalar
counters. Restoring from a snapshot rebuilds the queue purely from the
entries themselves, so the order they were written in does not matter.

Example:
    >>> store = JsonFileSnapshotStore("state/queue.json")
    >>> scheduler = LeastLostValueScheduler(config, origin, store=store)
    >>> scheduler.enqueue(request)   # snapshot written after the mutation
    >>>
    >>> # After a restart
    >>> scheduler = LeastLostValueScheduler(config, origin, store=store)
    >>> scheduler.queue_size()
    1
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from parcelsched.exceptions import ParcelSchedError, SnapshotError
from parcelsched.types import QueueEntry

logger = logging.getLogger(__name__)


class QueueSnapshot(BaseModel):
    """
    Serializable state of one scheduler queue.

    Attributes:
        policy: Name of the scheduling policy that wrote the snapshot.
        entries: Queued entries as plain dictionaries.
        incoming_requests: Requests submitted so far.
        potential: Cumulative value lost to evictions and rejections.
        rejections: Number of evicted or rejected requests.
        saved_at: When the snapshot was taken.
    """

    policy: str = "llv"
    entries: list[dict[str, Any]] = Field(default_factory=list)
    incoming_requests: int = Field(default=0, ge=0)
    potential: float = Field(default=0.0, ge=0.0)
    rejections: int = Field(default=0, ge=0)
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("entries")
    @classmethod
    def _entries_are_loadable(cls, value: list[dict[str, Any]]) -> list[dict[str, Any]]:
        seen: set[str] = set()
        for position, data in enumerate(value):
            try:
                entry = QueueEntry.from_dict(data)
            except (KeyError, TypeError, ValueError, ParcelSchedError) as e:
                raise ValueError(f"entry {position} is malformed: {e}") from e
            if entry.id in seen:
                raise ValueError(f"entry {position} duplicates request id {entry.id!r}")
            seen.add(entry.id)
        return value

    @classmethod
    def capture(
        cls,
        policy: str,
        entries: list[QueueEntry],
        counters: dict[str, Any],
    ) -> QueueSnapshot:
        return cls(
            policy=policy,
            entries=[entry.to_dict() for entry in entries],
            incoming_requests=counters["incoming_requests"],
            potential=counters["potential"],
            rejections=counters["rejections"],
        )

    def to_entries(self) -> list[QueueEntry]:
        return [QueueEntry.from_dict(data) for data in self.entries]

    def to_json(self, pretty: bool = False) -> str:
        return self.model_dump_json(indent=2 if pretty else None)

    @classmethod
    def from_json(cls, text: str | bytes, source: str | None = None) -> QueueSnapshot:
        """
        Parse and validate a JSON snapshot.

        Raises:
            SnapshotError: If the text is not a valid snapshot.
        """
        try:
            return cls.model_validate_json(text)
        except ValidationError as e:
            errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
            raise SnapshotError("Invalid queue snapshot", source=source, errors=errors) from e


class SnapshotStore(ABC):
    """Durable home for the latest queue snapshot."""

    name: str = "store"

    @abstractmethod
    def save(self, snapshot: QueueSnapshot) -> None:
        """Replace the stored snapshot."""
        pass

    @abstractmethod
    def load(self) -> QueueSnapshot | None:
        """Return the stored snapshot, or None if nothing was saved yet."""
        pass

    def close(self) -> None:
        """Release any resources held by the store."""
        pass

    def __enter__(self) -> SnapshotStore:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class InMemorySnapshotStore(SnapshotStore):
    """Keeps the latest snapshot as JSON text; useful for tests and embedding."""

    name = "memory"

    def __init__(self) -> None:
        self._data: str | None = None
        self._lock = threading.Lock()
        self.save_count = 0

    def save(self, snapshot: QueueSnapshot) -> None:
        with self._lock:
            self._data = snapshot.to_json()
            self.save_count += 1

    def load(self) -> QueueSnapshot | None:
        with self._lock:
            if self._data is None:
                return None
            return QueueSnapshot.from_json(self._data, source=self.name)


class JsonFileSnapshotStore(SnapshotStore):
    """
    Stores the snapshot as a JSON document on disk.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a crash mid-write leaves the previous snapshot intact.

    Example:
        >>> with JsonFileSnapshotStore("queue.json", pretty=True) as store:
        ...     store.save(scheduler.sync_queue())
    """

    name = "json-file"

    def __init__(self, path: str | Path, pretty: bool = False) -> None:
        """
        Initialize the file store.

        Args:
            path: Snapshot file location; parent directories are created.
            pretty: If True, write indented JSON.
        """
        self.path = Path(path)
        self.pretty = pretty
        self._lock = threading.RLock()

        self.path.parent.mkdir(parents=True, exist_ok=True)

    def save(self, snapshot: QueueSnapshot) -> None:
        """
        Atomically replace the snapshot file.

        Raises:
            SnapshotError: If the file cannot be written.
        """
        payload = snapshot.to_json(pretty=self.pretty)
        with self._lock:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self.path)
            except OSError as e:
                Path(tmp_name).unlink(missing_ok=True)
                raise SnapshotError(f"Failed to write snapshot: {e}", source=str(self.path)) from e

        logger.debug(f"Wrote queue snapshot with {len(snapshot.entries)} entries to {self.path}")

    def load(self) -> QueueSnapshot | None:
        """
        Read the snapshot file.

        Returns:
            The snapshot, or None if the file does not exist.

        Raises:
            SnapshotError: If the file exists but cannot be parsed.
        """
        with self._lock:
            if not self.path.exists():
                return None
            try:
                text = self.path.read_text(encoding="utf-8")
            except OSError as e:
                raise SnapshotError(f"Failed to read snapshot: {e}", source=str(self.path)) from e

        if not text.strip():
            return None
        return QueueSnapshot.from_json(text, source=str(self.path))


__all__ = [
    "InMemorySnapshotStore",
    "JsonFileSnapshotStore",
    "QueueSnapshot",
    "SnapshotStore",
]
