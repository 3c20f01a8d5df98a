"""Sample order events and subscribers.

This package provides event types and subscribers used by the demo CLI.
"""

from loguru import logger

from eventbus.bus import EventBus
from eventbus.events.order_handlers import FlakyWarehouse, OrderAuditLog, OrderNotifier
from eventbus.events.types import OrderCreated, OrderEvent, OrderShipped

__all__ = [
    "FlakyWarehouse",
    "OrderAuditLog",
    "OrderCreated",
    "OrderEvent",
    "OrderNotifier",
    "OrderShipped",
    "register_order_subscribers",
]


def register_order_subscribers(bus: EventBus, *subscribers: object) -> None:
    """Register the given order subscribers on ``bus``."""
    logger.debug(f"Registering {len(subscribers)} order subscriber(s)")

    for subscriber in subscribers:
        bus.register(subscriber)

    logger.info("Order subscribers registered successfully")
