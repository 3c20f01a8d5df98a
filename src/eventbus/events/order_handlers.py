"""Order event subscribers.

This module contains subscribers that respond to order events. They record
what they received so that callers (the demo CLI, tests) can inspect it.
"""

import threading

from loguru import logger

from eventbus.core import Subscriber
from eventbus.events.types import OrderCreated, OrderEvent, OrderShipped


class OrderNotifier(Subscriber):
    """Sends a notification for each created or shipped order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.notifications: list[str] = []

    def on_created(self, event: OrderCreated) -> None:
        self._record(f"order {event.order_id} created for {event.customer_id}")

    def on_shipped(self, event: OrderShipped) -> None:
        self._record(f"order {event.order_id} shipped via {event.carrier}")

    def _record(self, message: str) -> None:
        logger.info(f"Notification: {message}")
        with self._lock:
            self.notifications.append(message)

    def event_handlers(self):
        return [
            (OrderCreated, self.on_created),
            (OrderShipped, self.on_shipped),
        ]


class OrderAuditLog(Subscriber):
    """Keeps an audit trail of every order event, whatever its concrete type."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.entries: list[tuple[str, str]] = []

    def record(self, event: OrderEvent) -> None:
        with self._lock:
            self.entries.append((type(event).__name__, event.order_id))

    def event_handlers(self):
        return [self.record]


class FlakyWarehouse(Subscriber):
    """Rejects every created order; used to demonstrate failure isolation."""

    def reserve_stock(self, event: OrderCreated) -> None:
        raise RuntimeError(f"warehouse offline, cannot reserve stock for {event.order_id}")

    def event_handlers(self):
        return [("OrderCreated", self.reserve_stock)]
