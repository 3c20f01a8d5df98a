"""Tests for the event bus facade."""

import threading
import time

import pytest
from pydantic import BaseModel, Field

from eventbus import AsyncEventBus, DeliveryMode, EventBus, HandlerRegistrationError, Subscriber, get_event_bus
from eventbus.events import OrderAuditLog, OrderCreated, OrderNotifier, OrderShipped, register_order_subscribers
from eventbus.registry import MatchPolicy
from eventbus.settings import Settings

WAIT = 5.0


# Test event models (don't start with "Test" to avoid pytest collection)
class SampleEvent(BaseModel):
    """Simple test event."""

    message: str = Field(..., description="Test message")
    value: int = Field(default=42, description="Test value")


class CountingSubscriber(Subscriber):
    """Subscriber counting deliveries per handler, safe across threads."""

    def __init__(self):
        self.lock = threading.Lock()
        self.counts = {"created": 0, "shipped": 0}
        self.all_done = threading.Semaphore(0)

    def on_created(self, event: OrderCreated) -> None:
        self._count("created")

    def on_shipped(self, event: OrderShipped) -> None:
        self._count("shipped")

    def _count(self, key: str) -> None:
        with self.lock:
            self.counts[key] += 1
        self.all_done.release()

    def event_handlers(self):
        return [
            ("OrderCreated", self.on_created),
            ("OrderShipped", self.on_shipped),
        ]


def make_bus(mode: DeliveryMode, **kwargs) -> EventBus:
    return EventBus(mode, **kwargs)


@pytest.fixture(params=[DeliveryMode.SYNC, DeliveryMode.ASYNC], ids=["sync", "async"])
def mode(request):
    return request.param


class TestEventBus:
    """Test cases for EventBus."""

    def test_event_bus_initialization(self):
        bus = EventBus()
        assert bus.mode is DeliveryMode.SYNC
        bus.post(SampleEvent(message="nobody listens"))

    def test_async_event_bus_mode(self):
        with AsyncEventBus(max_workers=2) as bus:
            assert bus.mode is DeliveryMode.ASYNC

    def test_get_event_bus_singleton(self):
        bus1 = get_event_bus()
        bus2 = get_event_bus()
        assert bus1 is bus2

    def test_from_settings(self):
        settings = Settings(_env_file=None, delivery_mode="async", max_workers=3, match_policy="exact")
        bus = EventBus.from_settings(settings)
        try:
            assert bus.mode is DeliveryMode.ASYNC
            assert bus._registry.match_policy is MatchPolicy.EXACT
        finally:
            bus.shutdown()

    def test_context_exit_uses_settings_shutdown_timeout(self):
        settings = Settings(_env_file=None, delivery_mode="async", shutdown_timeout=0.05)
        gate = threading.Event()

        def blocking_handler(event: SampleEvent) -> None:
            gate.wait(WAIT)

        try:
            start = time.monotonic()
            with EventBus.from_settings(settings) as bus:
                bus.register(object(), [blocking_handler])
                bus.post(SampleEvent(message="x"))
            elapsed = time.monotonic() - start
        finally:
            gate.set()

        assert elapsed < WAIT / 2
        assert bus._dispatcher.closed

    def test_order_created_reaches_only_its_handler(self, mode):
        """H1 for OrderCreated and H2 for OrderShipped; posting OrderCreated invokes H1 once."""
        subscriber = CountingSubscriber()
        with make_bus(mode) as bus:
            bus.register(subscriber)
            bus.post(OrderCreated(order_id="A-1", customer_id="C-1"))
            assert subscriber.all_done.acquire(timeout=WAIT)

        assert subscriber.counts == {"created": 1, "shipped": 0}

    def test_register_then_post_invokes_exactly_once(self, mode):
        subscriber = CountingSubscriber()
        with make_bus(mode) as bus:
            bus.register(subscriber)
            for _ in range(5):
                bus.post(OrderShipped(order_id="A-1", carrier="DHL"))

        assert subscriber.counts == {"created": 0, "shipped": 5}

    def test_duplicate_registration_delivers_once(self, mode):
        subscriber = CountingSubscriber()
        with make_bus(mode) as bus:
            bus.register(subscriber)
            bus.register(subscriber)
            bus.register(subscriber, [("OrderCreated", subscriber.on_created)])
            bus.post(OrderCreated(order_id="A-1", customer_id="C-1"))

        assert subscriber.counts["created"] == 1

    def test_unregister_stops_delivery(self, mode):
        subscriber = CountingSubscriber()
        with make_bus(mode) as bus:
            bus.register(subscriber)
            assert bus.unregister(subscriber) == 2
            bus.post(OrderCreated(order_id="A-1", customer_id="C-1"))

        assert subscriber.counts == {"created": 0, "shipped": 0}

    def test_unregister_during_post_does_not_double_invoke(self):
        bus = EventBus()
        calls = []
        victim_owner = object()

        def victim(event: SampleEvent) -> None:
            calls.append("victim")

        def remover(event: SampleEvent) -> None:
            calls.append("remover")
            bus.unregister(victim_owner)

        bus.register(object(), [remover])
        bus.register(victim_owner, [victim])

        bus.post(SampleEvent(message="first"))
        bus.post(SampleEvent(message="second"))

        assert calls.count("victim") <= 1
        assert calls.count("remover") == 2

    def test_register_invalid_handler_fails_fast(self):
        bus = EventBus()

        with pytest.raises(HandlerRegistrationError):
            bus.register(object(), [(SampleEvent, lambda: None)])

    def test_failing_handler_does_not_reach_caller(self, mode):
        reported = []
        received = []
        lock = threading.Lock()

        def record_error(subscription, event, error):
            with lock:
                reported.append(error)

        def bad_handler(event: SampleEvent) -> None:
            raise ValueError("Test handler failure")

        def good_handler(event: SampleEvent) -> None:
            with lock:
                received.append(event.message)

        with make_bus(mode, max_workers=2, error_handler=record_error) as bus:
            bus.register(object(), [bad_handler, good_handler])
            bus.post(SampleEvent(message="test"))

        assert received == ["test"]
        assert len(reported) == 1
        assert str(reported[0]) == "Test handler failure"

    def test_sync_post_waits_for_slow_handler(self):
        flag = threading.Event()

        def slow_handler(event: SampleEvent) -> None:
            time.sleep(0.05)
            flag.set()

        bus = EventBus()
        bus.register(object(), [slow_handler])
        bus.post(SampleEvent(message="x"))

        assert flag.is_set()

    def test_async_post_completion_is_awaited(self):
        gate = threading.Event()
        completed = threading.Event()

        def slow_handler(event: SampleEvent) -> None:
            gate.wait(WAIT)
            completed.set()

        bus = AsyncEventBus()
        try:
            bus.register(object(), [slow_handler])
            bus.post(SampleEvent(message="x"))
            assert not completed.is_set()
            gate.set()
            assert completed.wait(WAIT)
        finally:
            gate.set()
            bus.shutdown()

    def test_shutdown_with_deadline_returns_abandoned_count(self):
        gate = threading.Event()

        def blocking_handler(event: SampleEvent) -> None:
            gate.wait(WAIT)

        bus = AsyncEventBus()
        bus.register(object(), [blocking_handler])
        bus.post(SampleEvent(message="x"))
        try:
            assert bus.shutdown(timeout=0.01) == 1
        finally:
            gate.set()


class TestEventBusIntegration:
    """Integration tests for event bus."""

    def test_event_chaining(self):
        bus = EventBus()

        class FirstEvent(BaseModel):
            value: int

        class SecondEvent(BaseModel):
            doubled: int

        captured_second_events = []

        def double_handler(event: FirstEvent) -> None:
            bus.post(SecondEvent(doubled=event.value * 2))

        bus.register(object(), [double_handler, (SecondEvent, captured_second_events.append)])

        bus.post(FirstEvent(value=5))

        assert len(captured_second_events) == 1
        assert captured_second_events[0].doubled == 10

    def test_sample_order_subscribers(self, mode):
        notifier = OrderNotifier()
        audit_log = OrderAuditLog()

        with make_bus(mode) as bus:
            register_order_subscribers(bus, notifier, audit_log)
            bus.post(OrderCreated(order_id="A-1", customer_id="C-1"))
            bus.post(OrderShipped(order_id="A-1", carrier="DHL"))

        assert sorted(notifier.notifications) == ["order A-1 created for C-1", "order A-1 shipped via DHL"]
        assert sorted(audit_log.entries) == [("OrderCreated", "A-1"), ("OrderShipped", "A-1")]

    def test_exact_matching_skips_base_class_subscribers(self):
        audit_log = OrderAuditLog()
        bus = EventBus(match_policy=MatchPolicy.EXACT)
        bus.register(audit_log)

        bus.post(OrderCreated(order_id="A-1", customer_id="C-1"))

        assert audit_log.entries == []

    def test_concurrent_posts_from_many_threads(self):
        subscriber = CountingSubscriber()
        with AsyncEventBus(max_workers=4) as bus:
            bus.register(subscriber)

            def poster():
                for i in range(25):
                    bus.post(OrderCreated(order_id=f"A-{i}", customer_id="C-1"))

            threads = [threading.Thread(target=poster) for _ in range(4)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        assert subscriber.counts["created"] == 100
