"""
Tests for the delivery schedulers and the scheduler factory.
"""

import pytest

from parcelsched.config import SchedulerConfig
from parcelsched.exceptions import SchedulerNotAvailableError
from parcelsched.scheduling import (
    DeliveryScheduler,
    FifoScheduler,
    LeastLostValueScheduler,
    SchedulerEventType,
    SchedulerFactory,
    create_scheduler,
)
from parcelsched.scheduling import llv as llv_module
from parcelsched.types import Coordinates, EntryState


def _fill(scheduler, make_request, durations):
    requests = [make_request(d, request_id=f"d{int(d)}") for d in durations]
    for request in requests:
        assert scheduler.enqueue(request)
    return requests


class TestEnqueue:
    """Tests for request admission."""

    def test_always_accepted(self, llv_scheduler, make_request):
        """Enqueue never rejects, even far past capacity."""
        for i in range(10):
            assert llv_scheduler.enqueue(make_request(10.0 + i))

        assert llv_scheduler.queue_size() == 10
        assert llv_scheduler.incoming_requests == 10
        assert llv_scheduler.rejections == 0

    def test_expected_duration_from_distance(self, llv_scheduler, make_request):
        llv_scheduler.enqueue(make_request(25.0, request_id="r"))
        entry = llv_scheduler.entries()[0]

        assert entry.expected_duration == 25.0
        assert entry.timestamp == 0.0
        assert entry.state == EntryState.QUEUED

    def test_timestamp_from_clock(self, llv_scheduler, make_request, clock):
        clock.advance(42.0)
        llv_scheduler.enqueue(make_request(10.0))
        assert llv_scheduler.entries()[0].timestamp == 42.0

    def test_duplicate_id_rejected(self, llv_scheduler, make_request):
        llv_scheduler.enqueue(make_request(10.0, request_id="same"))
        with pytest.raises(ValueError):
            llv_scheduler.enqueue(make_request(20.0, request_id="same"))
        assert llv_scheduler.incoming_requests == 1

    def test_contains(self, llv_scheduler, make_request):
        llv_scheduler.enqueue(make_request(10.0, request_id="here"))
        assert "here" in llv_scheduler
        assert "elsewhere" not in llv_scheduler

    def test_size_checks_skip_sorting(self, llv_scheduler, make_request, monkeypatch):
        """Size and membership checks read the queue without building an ordered view."""
        _fill(llv_scheduler, make_request, [10.0, 20.0])
        builds = []
        original = llv_module.OrderedIndex

        def counting_index(*args, **kwargs):
            builds.append(1)
            return original(*args, **kwargs)

        monkeypatch.setattr(llv_module, "OrderedIndex", counting_index)

        llv_scheduler.enqueue(make_request(30.0, request_id="d30"))
        assert llv_scheduler.queue_size() == 3
        assert len(llv_scheduler) == 3
        assert "d10" in llv_scheduler
        assert builds == []

        assert len(llv_scheduler.entries()) == 3
        assert builds == [1]


class TestLeastLostValueScheduler:
    """Tests for LeastLostValueScheduler."""

    def test_empty_queue(self, llv_scheduler):
        """An empty dequeue returns None and changes nothing."""
        assert llv_scheduler.get_next_request() is None
        assert llv_scheduler.queue_size() == 0
        assert llv_scheduler.potential_lost() == 0.0
        assert llv_scheduler.rejections == 0
        assert llv_scheduler.incoming_requests == 0

    def test_single_entry_served(self, llv_scheduler, make_request):
        _fill(llv_scheduler, make_request, [20.0])

        entry = llv_scheduler.get_next_request()

        assert entry.id == "d20"
        assert entry.priority == 0
        assert entry.state == EntryState.SERVED
        assert llv_scheduler.queue_size() == 0

    def test_sort_queue_single_entry(self, llv_scheduler, make_request):
        _fill(llv_scheduler, make_request, [20.0])
        scored = llv_scheduler.sort_queue()

        assert len(scored) == 1
        assert scored[0].priority == 0

    def test_sort_queue_orders_ascending(self, llv_scheduler, make_request):
        _fill(llv_scheduler, make_request, [30.0, 10.0, 20.0])
        scored = llv_scheduler.sort_queue()

        assert [e.id for e in scored] == ["d10", "d20", "d30"]
        assert [e.priority for e in scored] == [-20, 20, 80]
        assert [e.id for e in llv_scheduler.entries()] == ["d10", "d20", "d30"]

    def test_trim_pass_evicts_one(self, llv_scheduler, make_request):
        """
        Capacity 2 with three same-time requests of 10/20/30 seconds.

        One trim pass evicts exactly the lowest-scoring entry (the 10s
        request, worth its full 100 at 10s) and serves the highest.
        """
        _fill(llv_scheduler, make_request, [10.0, 20.0, 30.0])

        served = llv_scheduler.get_next_request()

        assert served.id == "d30"
        assert llv_scheduler.rejections == 1
        assert llv_scheduler.potential_lost() == 100
        assert llv_scheduler.avg_potential_lost() == 100
        assert [e.id for e in llv_scheduler.entries()] == ["d20"]

    def test_queue_within_capacity_after_dequeue(self, llv_scheduler, make_request, config):
        _fill(llv_scheduler, make_request, [10.0, 15.0, 20.0, 25.0, 30.0, 35.0])

        llv_scheduler.get_next_request()

        assert llv_scheduler.queue_size() <= config.queue_capacity
        assert llv_scheduler.rejections == 4

    def test_each_eviction_counts_its_value(self, llv_scheduler, make_request, clock):
        events = []
        llv_scheduler.on_event(events.append)
        requests = {r.id: r for r in _fill(llv_scheduler, make_request, [10.0, 15.0, 20.0, 25.0, 30.0])}
        clock.advance(5.0)

        llv_scheduler.get_next_request()

        evictions = [e for e in events if e.event_type == SchedulerEventType.EVICTED]
        assert len(evictions) == 3 == llv_scheduler.rejections
        assert llv_scheduler.potential_lost() == sum(e.value for e in evictions)
        for event in evictions:
            elapsed = 5.0 + event.details["expected_duration"]
            assert event.value == llv_scheduler.value_fn.value(elapsed, requests[event.request_id])

    def test_no_eviction_within_capacity(self, llv_scheduler, make_request):
        _fill(llv_scheduler, make_request, [10.0, 30.0])

        served = llv_scheduler.get_next_request()

        assert served.id == "d30"
        assert llv_scheduler.rejections == 0
        assert llv_scheduler.avg_potential_lost() is None

    def test_drain(self, llv_scheduler, make_request):
        _fill(llv_scheduler, make_request, [10.0, 20.0, 30.0])

        served = []
        while (entry := llv_scheduler.get_next_request()) is not None:
            served.append(entry.id)

        assert served == ["d30", "d20"]
        assert llv_scheduler.queue_size() == 0

    def test_single_scoring_per_trim_pass(self, llv_scheduler, make_request, monkeypatch):
        calls = []
        original = llv_module.score_entries

        def counting(entries, now, value_fn):
            calls.append(len(entries))
            return original(entries, now, value_fn)

        monkeypatch.setattr(llv_module, "score_entries", counting)
        _fill(llv_scheduler, make_request, [10.0, 20.0, 30.0, 40.0])

        llv_scheduler.get_next_request()

        assert calls == [4]
        assert llv_scheduler.rejections == 2

    def test_rescore_each_eviction(self, make_request, origin, clock, monkeypatch):
        config = SchedulerConfig(
            queue_capacity=1,
            max_speed=10.0,
            step_interval=10.0,
            tvf_steps=5,
            delivery_time_limit=1000.0,
            rescore_each_eviction=True,
        )
        scheduler = LeastLostValueScheduler(config, origin, clock=clock)
        calls = []
        original = llv_module.score_entries

        def counting(entries, now, value_fn):
            calls.append(len(entries))
            return original(entries, now, value_fn)

        monkeypatch.setattr(llv_module, "score_entries", counting)
        _fill(scheduler, make_request, [10.0, 20.0, 30.0])

        served = scheduler.get_next_request()

        assert calls == [3, 2]
        assert served.id == "d30"
        assert scheduler.rejections == 2
        assert scheduler.queue_size() == 0

    def test_max_pending_rejects_at_admission(self, make_request, origin, clock):
        config = SchedulerConfig(
            queue_capacity=2,
            max_speed=10.0,
            step_interval=10.0,
            tvf_steps=5,
            max_pending=2,
        )
        scheduler = LeastLostValueScheduler(config, origin, clock=clock)

        assert scheduler.enqueue(make_request(10.0))
        assert scheduler.enqueue(make_request(20.0))
        assert not scheduler.enqueue(make_request(30.0))

        assert scheduler.queue_size() == 2
        assert scheduler.incoming_requests == 3
        assert scheduler.rejections == 1
        assert scheduler.potential_lost() == 60

    def test_events(self, llv_scheduler, make_request):
        events = []
        llv_scheduler.on_event(events.append)
        _fill(llv_scheduler, make_request, [10.0, 20.0, 30.0])

        llv_scheduler.get_next_request()

        kinds = [e.event_type for e in events]
        assert kinds.count(SchedulerEventType.ENQUEUED) == 3
        assert kinds.count(SchedulerEventType.EVICTED) == 1
        assert kinds[-1] == SchedulerEventType.SERVED
        assert events[-1].request_id == "d30"
        assert events[-1].policy == "llv"

    def test_failing_callback_does_not_break_scheduling(self, llv_scheduler, make_request):
        def broken(event):
            raise RuntimeError("observer down")

        llv_scheduler.on_event(broken)

        assert llv_scheduler.enqueue(make_request(10.0))
        assert llv_scheduler.get_next_request() is not None

    def test_get_stats(self, llv_scheduler, make_request):
        _fill(llv_scheduler, make_request, [10.0, 20.0, 30.0])
        llv_scheduler.get_next_request()

        stats = llv_scheduler.get_stats()
        assert stats["policy"] == "llv"
        assert stats["queue_size"] == 1
        assert stats["queue_capacity"] == 2
        assert stats["incoming_requests"] == 3
        assert stats["rejections"] == 1
        assert stats["potential_lost"] == 100

    def test_entries_is_a_copy(self, llv_scheduler, make_request):
        _fill(llv_scheduler, make_request, [10.0])
        llv_scheduler.entries().clear()
        assert llv_scheduler.queue_size() == 1


class TestFifoScheduler:
    """Tests for FifoScheduler."""

    def test_arrival_order(self, fifo_scheduler, make_request, clock):
        for duration in (30.0, 10.0):
            fifo_scheduler.enqueue(make_request(duration, request_id=f"d{int(duration)}"))
            clock.advance(1.0)

        assert fifo_scheduler.get_next_request().id == "d30"
        assert fifo_scheduler.get_next_request().id == "d10"
        assert fifo_scheduler.get_next_request() is None

    def test_rejects_when_full(self, fifo_scheduler, make_request):
        assert fifo_scheduler.enqueue(make_request(10.0))
        assert fifo_scheduler.enqueue(make_request(20.0))
        assert not fifo_scheduler.enqueue(make_request(30.0))

        assert fifo_scheduler.queue_size() == 2
        assert fifo_scheduler.rejections == 1
        assert fifo_scheduler.potential_lost() == 60
        assert fifo_scheduler.avg_potential_lost() == 60

    def test_rejection_event(self, fifo_scheduler, make_request):
        events = []
        fifo_scheduler.on_event(events.append)
        _fill(fifo_scheduler, make_request, [10.0, 20.0])
        fifo_scheduler.enqueue(make_request(30.0, request_id="late"))

        assert events[-1].event_type == SchedulerEventType.REJECTED
        assert events[-1].request_id == "late"
        assert events[-1].value == 60


class TestSchedulerFactory:
    """Tests for SchedulerFactory."""

    def test_create_llv(self, config):
        scheduler = SchedulerFactory.create("llv", config)
        assert isinstance(scheduler, LeastLostValueScheduler)
        assert scheduler.config is config

    def test_create_case_insensitive(self):
        assert isinstance(SchedulerFactory.create("FIFO"), FifoScheduler)

    def test_create_with_kwargs(self, config, clock):
        origin = Coordinates(100.0, 0.0, 0.0)
        scheduler = create_scheduler("llv", config, origin=origin, clock=clock)
        assert scheduler.origin == origin
        assert scheduler.now() == clock.now

    def test_unknown_policy(self):
        with pytest.raises(SchedulerNotAvailableError, match="Unknown"):
            SchedulerFactory.create("random")

    def test_available_policies(self):
        assert SchedulerFactory.get_available_policies() == ["fifo", "llv"]
        assert SchedulerFactory.is_available("LLV")
        assert not SchedulerFactory.is_available("random")

    def test_register_and_unregister(self):
        class LifoScheduler(FifoScheduler):
            name = "lifo"

            def _next(self, now):
                return self._queue.pop()

        SchedulerFactory.register("lifo", LifoScheduler)
        try:
            scheduler = SchedulerFactory.create("lifo")
            assert isinstance(scheduler, DeliveryScheduler)
            assert scheduler.name == "lifo"
        finally:
            assert SchedulerFactory.unregister("lifo")

        assert not SchedulerFactory.is_available("lifo")

    def test_cannot_unregister_builtin(self):
        assert not SchedulerFactory.unregister("llv")
        assert SchedulerFactory.is_available("llv")

