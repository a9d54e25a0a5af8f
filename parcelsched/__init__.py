"""
parcelsched: economic admission control for delivery request queues.

parcelsched keeps a bounded queue of pending delivery requests, values each
one with a time-decaying revenue function and decides which request to
serve next and which to sacrifice when the queue overflows.

Basic Usage:
    >>> from parcelsched import (
    ...     Coordinates, DeliveryRequest, PackageInfo,
    ...     SchedulerConfig, create_scheduler, generate_type_a,
    ... )
    >>>
    >>> config = SchedulerConfig(queue_capacity=30, max_speed=20.0)
    >>> scheduler = create_scheduler("llv", config, origin=Coordinates(0.0))
    >>>
    >>> scheduler.enqueue(DeliveryRequest(
    ...     destination=Coordinates(2400.0, 0.0, 800.0),
    ...     package=PackageInfo(base_cost=100.0, tier=1),
    ...     tvf=generate_type_a(config),
    ... ))
    True
    >>> entry = scheduler.get_next_request()
    >>> scheduler.potential_lost()
    0.0
"""

__version__ = "0.1.0"

from parcelsched.config import SchedulerConfig
from parcelsched.dispatch import Dispatcher, DispatcherState
from parcelsched.exceptions import (
    ConfigurationError,
    InvalidRequestError,
    InvalidTimeValueFunctionError,
    ParcelSchedError,
    SchedulerNotAvailableError,
    SnapshotError,
)
from parcelsched.metrics import MetricsCollector, MetricsReporter, PrometheusExporter
from parcelsched.persistence import (
    InMemorySnapshotStore,
    JsonFileSnapshotStore,
    QueueSnapshot,
    SnapshotStore,
)
from parcelsched.scheduling import (
    DeliveryScheduler,
    FifoScheduler,
    LeastLostValueScheduler,
    SchedulerEvent,
    SchedulerEventType,
    SchedulerFactory,
    create_scheduler,
)
from parcelsched.types import (
    Coordinates,
    DeliveryRequest,
    DeliveryType,
    EntryState,
    PackageInfo,
    QueueEntry,
    TimeValueFunction,
)
from parcelsched.valuation import (
    ValueFunction,
    delivery_value,
    generate_type_a,
    generate_type_b,
)

__all__ = [
    "__version__",
    # Configuration
    "SchedulerConfig",
    # Types
    "Coordinates",
    "DeliveryRequest",
    "DeliveryType",
    "EntryState",
    "PackageInfo",
    "QueueEntry",
    "TimeValueFunction",
    # Valuation
    "ValueFunction",
    "delivery_value",
    "generate_type_a",
    "generate_type_b",
    # Scheduling
    "DeliveryScheduler",
    "FifoScheduler",
    "LeastLostValueScheduler",
    "SchedulerEvent",
    "SchedulerEventType",
    "SchedulerFactory",
    "create_scheduler",
    # Persistence
    "InMemorySnapshotStore",
    "JsonFileSnapshotStore",
    "QueueSnapshot",
    "SnapshotStore",
    # Metrics and dispatch
    "Dispatcher",
    "DispatcherState",
    "MetricsCollector",
    "MetricsReporter",
    "PrometheusExporter",
    # Exceptions
    "ConfigurationError",
    "InvalidRequestError",
    "InvalidTimeValueFunctionError",
    "ParcelSchedError",
    "SchedulerNotAvailableError",
    "SnapshotError",
]
