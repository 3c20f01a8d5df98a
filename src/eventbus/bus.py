"""Event Bus Implementation.

This module provides the ``EventBus`` facade, which owns one
``SubscriptionRegistry`` and one dispatcher for its whole lifetime. The
delivery mode is chosen at construction time.

## Key Features

- **Sync or Async Delivery**: Inline on the posting thread, or on a worker pool
- **Idempotent Registration**: The same (owner, handler) pair is delivered to once
- **Error Isolation**: Handler failures go to an error channel, never to ``post``
- **Snapshot Dispatch**: Each post sees a consistent set of subscriptions
- **Bounded Shutdown**: Pending async work drains up to a deadline

## Advanced Usage

```python
from eventbus import AsyncEventBus
from pydantic import BaseModel

class OrderCreated(BaseModel):
    order_id: str

failures = []

def update_inventory(event: OrderCreated) -> None:
    ...

def send_confirmation(event: OrderCreated) -> None:
    ...

with AsyncEventBus(max_workers=4, error_handler=lambda s, e, exc: failures.append(exc)) as bus:
    bus.register(inventory, [update_inventory, send_confirmation])
    bus.post(OrderCreated(order_id="123"))
# leaving the block drains pending handlers
```

"""

from collections.abc import Iterable
from functools import lru_cache
from typing import Any

from loguru import logger

from .core import HandlerSpec
from .dispatcher import DeliveryMode, Dispatcher, ErrorHandler, SynchronousDispatcher, ThreadPoolDispatcher
from .registry import MatchPolicy, SubscriptionRegistry
from .settings import Settings, get_settings
from .subscription import Subscription


class EventBus:
    """In-process publish/subscribe event bus.

    Example:
        ```python
        bus = EventBus()
        bus.register(notifier)  # reads notifier.event_handlers()
        bus.post(OrderCreated(order_id="A-1"))
        bus.unregister(notifier)
        ```
    """

    def __init__(
        self,
        mode: DeliveryMode = DeliveryMode.SYNC,
        *,
        max_workers: int = 1,
        max_pending: int | None = None,
        error_handler: ErrorHandler | None = None,
        match_policy: MatchPolicy = MatchPolicy.POLYMORPHIC,
        isolate_events: bool = False,
        shutdown_timeout: float | None = None,
    ) -> None:
        """Initialize a new EventBus instance.

        Args:
            mode: Synchronous or asynchronous delivery
            max_workers: Worker threads for asynchronous delivery
            max_pending: Bound on outstanding asynchronous invocations, None for unbounded
            error_handler: Called with (subscription, event, exception) on each failure
            match_policy: Polymorphic or exact class matching
            isolate_events: If True, each handler receives a deep copy of the event
            shutdown_timeout: Drain deadline used when the bus exits a with-block; None waits for all
        """
        self._mode = DeliveryMode(mode)
        self._shutdown_timeout = shutdown_timeout
        self._registry = SubscriptionRegistry(match_policy)
        self._dispatcher: Dispatcher
        if self._mode is DeliveryMode.ASYNC:
            self._dispatcher = ThreadPoolDispatcher(
                self._registry,
                max_workers=max_workers,
                max_pending=max_pending,
                error_handler=error_handler,
                isolate_events=isolate_events,
            )
        else:
            self._dispatcher = SynchronousDispatcher(
                self._registry,
                error_handler=error_handler,
                isolate_events=isolate_events,
            )
        logger.debug(f"EventBus initialized (mode={self._mode.value}, isolate_events={isolate_events})")

    @classmethod
    def from_settings(cls, settings: Settings, error_handler: ErrorHandler | None = None) -> "EventBus":
        """Build an EventBus from ``Settings``."""
        return cls(
            DeliveryMode(settings.delivery_mode),
            max_workers=settings.max_workers,
            max_pending=settings.max_pending,
            error_handler=error_handler,
            match_policy=MatchPolicy(settings.match_policy),
            isolate_events=settings.isolate_events,
            shutdown_timeout=settings.shutdown_timeout,
        )

    @property
    def mode(self) -> DeliveryMode:
        return self._mode

    def register(self, owner: Any, handlers: Iterable[HandlerSpec] | None = None) -> list[Subscription]:
        """Register ``owner``'s handlers.

        Args:
            owner: The subscribing object
            handlers: Handler table; defaults to ``owner.event_handlers()``

        Returns:
            The subscriptions built from the valid entries

        Raises:
            HandlerRegistrationError: If any handler declaration is invalid
        """
        return self._registry.register(owner, handlers)

    def unregister(self, owner: Any, handlers: Iterable[HandlerSpec] | None = None) -> int:
        """Remove ``owner``'s handlers; all of them when ``handlers`` is None."""
        return self._registry.unregister(owner, handlers)

    def post(self, event: Any) -> None:
        """Post an event to every matching subscription.

        In sync mode this returns after all handlers have run; in async mode
        it returns once every invocation has been submitted. It never raises
        because of a handler failure.
        """
        self._dispatcher.post(event)

    def shutdown(self, timeout: float | None = None) -> int:
        """Stop accepting events and release the worker pool.

        Args:
            timeout: Seconds to let pending async invocations drain; None waits for all

        Returns:
            Number of invocations abandoned at the deadline
        """
        abandoned = self._dispatcher.shutdown(timeout)
        logger.debug("EventBus shutdown complete")
        return abandoned

    def __enter__(self) -> "EventBus":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown(self._shutdown_timeout)


class AsyncEventBus(EventBus):
    """EventBus that delivers on a worker pool."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(DeliveryMode.ASYNC, **kwargs)


@lru_cache
def get_event_bus() -> EventBus:
    """Get or create the application EventBus, configured from ``get_settings()``.

    Example:
        ```python
        bus = get_event_bus()
        bus.register(notifier)
        bus.post(OrderCreated(order_id="A-1"))
        ```
    """
    return EventBus.from_settings(get_settings())
