"""Sample order event definitions.

These Pydantic models are used by the demo CLI and serve as a reference for
declaring events. ``__event_type__`` gives each event a string tag so that
subscribers can bind by name as well as by class.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class OrderEvent(BaseModel):
    """Base class for all order events."""

    order_id: str
    occurred_at: datetime = Field(default_factory=datetime.now)


class OrderCreated(OrderEvent):
    """Event emitted when a new order is placed."""

    __event_type__ = "OrderCreated"

    customer_id: str
    total: float = 0.0


class OrderShipped(OrderEvent):
    """Event emitted when an order leaves the warehouse."""

    __event_type__ = "OrderShipped"

    carrier: str
