"""
Scheduler metrics.

Provides read-only observability for a scheduler:
- Event counters fed by scheduler callbacks
- Gauges for queue size and lost potential
- Prometheus-compatible text export
- A periodic reporter that logs one METRICS line per interval

Example:
    >>> collector = MetricsCollector()
    >>> collector.attach(scheduler)
    >>>
    >>> scheduler.enqueue(request)
    >>> collector.get_counter(SchedulerEventType.ENQUEUED)
    1
    >>>
    >>> exporter = PrometheusExporter(collector)
    >>> print(exporter.export())
"""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Any

from parcelsched.scheduling.base import DeliveryScheduler, SchedulerEvent, SchedulerEventType

logger = logging.getLogger(__name__)


class MetricsCollector:
    """
    Collects scheduler events and gauge readings.

    Example:
        >>> collector = MetricsCollector(event_window_size=1000)
        >>> collector.attach(scheduler)
        >>> collector.observe(scheduler)
        >>> collector.get_gauge("queue_size")
        0.0
    """

    def __init__(self, event_window_size: int = 10000) -> None:
        """
        Initialize the collector.

        Args:
            event_window_size: Maximum events to keep in memory.
        """
        self._events: deque[SchedulerEvent] = deque(maxlen=event_window_size)
        self._counters: dict[str, int] = defaultdict(int)
        self._gauges: dict[str, float] = {}
        self._value_sums: dict[str, float] = defaultdict(float)

        self._lock = threading.RLock()
        self._start_time = time.time()

    def attach(self, scheduler: DeliveryScheduler) -> None:
        """Subscribe to a scheduler's events."""
        scheduler.on_event(self.record_event)

    def record_event(self, event: SchedulerEvent) -> None:
        with self._lock:
            self._events.append(event)
            self._counters[event.event_type.value] += 1
            if event.value is not None:
                self._value_sums[event.event_type.value] += event.value

    def observe(self, scheduler: DeliveryScheduler) -> None:
        """Copy the scheduler's read accessors into gauges."""
        stats = scheduler.get_stats()
        with self._lock:
            self._gauges["queue_size"] = float(stats["queue_size"])
            self._gauges["queue_capacity"] = float(stats["queue_capacity"])
            self._gauges["incoming_requests"] = float(stats["incoming_requests"])
            self._gauges["potential_lost"] = float(stats["potential_lost"])
            self._gauges["rejections"] = float(stats["rejections"])
            avg = stats["avg_potential_lost"]
            if avg is None:
                self._gauges.pop("avg_potential_lost", None)
            else:
                self._gauges["avg_potential_lost"] = float(avg)

    def set_gauge(self, name: str, value: float) -> None:
        with self._lock:
            self._gauges[name] = value

    def get_counter(self, event_type: SchedulerEventType | str) -> int:
        key = event_type.value if isinstance(event_type, SchedulerEventType) else event_type
        with self._lock:
            return self._counters.get(key, 0)

    def get_value_sum(self, event_type: SchedulerEventType) -> float:
        """Total value carried by events of one type (e.g. value lost to evictions)."""
        with self._lock:
            return self._value_sums.get(event_type.value, 0.0)

    def get_gauge(self, name: str) -> float | None:
        with self._lock:
            return self._gauges.get(name)

    def get_recent_events(
        self,
        limit: int = 100,
        event_type: SchedulerEventType | None = None,
    ) -> list[SchedulerEvent]:
        with self._lock:
            events = list(self._events)
        if event_type is not None:
            events = [e for e in events if e.event_type == event_type]
        return events[-limit:]

    def get_summary(self) -> dict[str, Any]:
        with self._lock:
            return {
                "uptime_seconds": time.time() - self._start_time,
                "counters": {t.value: self._counters.get(t.value, 0) for t in SchedulerEventType},
                "gauges": dict(self._gauges),
                "value_sums": dict(self._value_sums),
            }


class PrometheusExporter:
    """
    Exports collected metrics in Prometheus text format.

    Example:
        >>> exporter = PrometheusExporter(collector)
        >>> @app.route('/metrics')
        >>> def metrics():
        ...     return exporter.export(), 200, {'Content-Type': 'text/plain'}
    """

    def __init__(self, collector: MetricsCollector, namespace: str = "parcelsched") -> None:
        self._collector = collector
        self._namespace = namespace

    def export(self) -> str:
        lines: list[str] = []
        summary = self._collector.get_summary()

        lines.append("# parcelsched scheduler metrics")
        lines.append(f"# Generated at {datetime.now(timezone.utc).isoformat()}")
        lines.append("")

        name = f"{self._namespace}_events_total"
        lines.append(f"# HELP {name} Scheduler events by type")
        lines.append(f"# TYPE {name} counter")
        for event_type, count in summary["counters"].items():
            lines.append(f'{name}{{event_type="{event_type}"}} {count}')
        lines.append("")

        for gauge_name, value in sorted(summary["gauges"].items()):
            name = f"{self._namespace}_{gauge_name}"
            lines.append(f"# HELP {name} {gauge_name.replace('_', ' ')}")
            lines.append(f"# TYPE {name} gauge")
            lines.append(f"{name} {value}")
            lines.append("")

        lines.append(f"# HELP {self._namespace}_uptime_seconds Uptime in seconds")
        lines.append(f"# TYPE {self._namespace}_uptime_seconds gauge")
        lines.append(f"{self._namespace}_uptime_seconds {summary['uptime_seconds']:.2f}")
        lines.append("")

        return "\n".join(lines)


class MetricsReporter:
    """
    Periodically logs a scheduler's aggregate metrics.

    Each report is one ``METRICS`` line at WARNING level so it survives
    default log filtering in long simulation runs.

    Example:
        >>> reporter = MetricsReporter(scheduler, interval=60.0, label="Controller_1")
        >>> reporter.start()
        >>> ...
        >>> reporter.stop()
    """

    def __init__(
        self,
        scheduler: DeliveryScheduler,
        interval: float = 60.0,
        collector: MetricsCollector | None = None,
        label: str | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")

        self.scheduler = scheduler
        self.interval = interval
        self.collector = collector
        self.label = label or f"Scheduler_{scheduler.name}"

        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def report(self) -> str:
        """Log and return one metrics line."""
        stats = self.scheduler.get_stats()
        if self.collector is not None:
            self.collector.observe(self.scheduler)

        avg = stats["avg_potential_lost"]
        line = (
            f"METRICS {self.label} Queue_Size {stats['queue_size']} "
            f"Incoming_Requests {stats['incoming_requests']} "
            f"Potential_Lost {stats['potential_lost']:.1f} "
            f"Avg_Potential_Lost {'n/a' if avg is None else f'{avg:.2f}'} "
            f"Rejections {stats['rejections']}"
        )
        logger.warning(line)
        return line

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name=f"metrics-{self.label}", daemon=True
        )
        self._thread.start()
        logger.info(f"Metrics reporter started for {self.label}")

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info(f"Metrics reporter stopped for {self.label}")

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.report()
            except Exception as e:
                logger.error(f"Metrics report failed: {e}")


__all__ = [
    "MetricsCollector",
    "MetricsReporter",
    "PrometheusExporter",
]
