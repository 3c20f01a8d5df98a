"""Core Event Bus Components.

This module contains the fundamental abstractions for the event bus system.
They have no dependency on the registry or dispatcher implementations and can
be imported by any subscriber module.

## Key Components

- **Subscriber**: Base class for objects that declare a static handler table
- **EventBusError**: Base exception for all event bus related errors
- **HandlerRegistrationError**: Raised when handler registration fails
- **DispatchError**: Base for failures reported through the error channel
- **DispatchRejectedError**: The worker pool refused a submission
- **EventBusShutdownError**: An event was posted after shutdown

## Usage Example

```python
from eventbus.core import Subscriber
from pydantic import BaseModel

class OrderCreated(BaseModel):
    order_id: str

class OrderShipped(BaseModel):
    order_id: str

class OrderAuditor(Subscriber):
    def __init__(self):
        self.seen = []

    def on_created(self, event: OrderCreated) -> None:
        self.seen.append(("created", event.order_id))

    def on_shipped(self, event: OrderShipped) -> None:
        self.seen.append(("shipped", event.order_id))

    def event_handlers(self):
        return [
            (OrderCreated, self.on_created),
            (OrderShipped, self.on_shipped),
        ]

# bus.register(OrderAuditor()) picks up both handlers
```

"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import Any

EventTypeKey = type | str
HandlerSpec = tuple[EventTypeKey, Callable[[Any], Any]] | Callable[[Any], Any]


class Subscriber(ABC):
    """Base class for objects that subscribe to events on an event bus.

    Subclasses declare which events they receive by returning a static table
    from ``event_handlers``. Each entry is either an ``(event_type, handler)``
    pair or a bare callable whose single parameter is annotated with the
    event type.

    ``EventBus.register(subscriber)`` reads this table when no explicit
    handlers are passed.
    """

    @abstractmethod
    def event_handlers(self) -> Iterable[HandlerSpec]:
        """Return the handler table for this subscriber.

        Returns:
            Iterable of ``(event_type, handler)`` pairs or annotated callables.
        """


class EventBusError(Exception):
    """Base exception for all event bus related errors.

    This is the root of the event bus exception hierarchy. All specific
    event bus exceptions inherit from this class.

    Use this for catching any event bus related error:
        ```python
        try:
            bus.register(subscriber)
        except EventBusError as e:
            logger.error(f"Event bus error: {e}")
        ```
    """


class HandlerRegistrationError(EventBusError):
    """Raised when handler registration fails.

    This occurs when:
    - The handler is not callable
    - The handler does not accept exactly one required event parameter
    - The event type is neither a class nor a string tag
    - A bare handler has no usable annotation for its event parameter
    - The handler is a coroutine function

    Valid handlers declared alongside a rejected one are still registered.
    The rejected entries are available on ``rejected`` as
    ``(entry, reason)`` pairs.
    """

    def __init__(self, rejected: list[tuple[Any, str]]):
        self.rejected = rejected
        details = "; ".join(f"{entry!r}: {reason}" for entry, reason in rejected)
        super().__init__(f"{len(rejected)} handler(s) rejected: {details}")


class DispatchError(EventBusError):
    """Base class for delivery failures that are not caused by a handler.

    These are never raised to the caller of ``post``. They are passed to the
    error channel in place of a handler exception.
    """


class DispatchRejectedError(DispatchError):
    """Raised when the worker pool has no capacity for another invocation."""


class EventBusShutdownError(DispatchError):
    """Raised when an event is posted to a bus that has been shut down."""
