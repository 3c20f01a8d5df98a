"""Event dispatchers.

A dispatcher resolves the subscriptions matching a posted event through the
``SubscriptionRegistry`` and invokes each of them. Two delivery modes exist:

- ``SynchronousDispatcher`` runs handlers one after another on the calling
  thread; ``post`` returns when all of them have completed.
- ``ThreadPoolDispatcher`` submits one unit of work per subscription to a
  ``concurrent.futures`` executor; ``post`` returns once all units are
  submitted.

In both modes a failing handler never stops delivery to the others and never
raises to the caller of ``post``. Failures go to the error channel, a callable
invoked with ``(subscription, event, exception)``.
"""

import concurrent.futures
import copy
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import Any

from loguru import logger
from pydantic import BaseModel

from .core import DispatchRejectedError, EventBusShutdownError
from .registry import SubscriptionRegistry
from .subscription import Subscription

ErrorHandler = Callable[[Subscription, Any, BaseException], None]


class DeliveryMode(str, Enum):
    """Where handlers run relative to the thread calling ``post``."""

    SYNC = "sync"
    ASYNC = "async"


def log_dispatch_error(subscription: Subscription, event: Any, error: BaseException) -> None:
    """Default error channel: log the failure with its traceback."""
    logger.opt(exception=error).error(f"Handler {subscription.name} failed for {type(event).__name__}: {error}")


def copy_event(event: Any) -> Any:
    """Return a deep copy of ``event`` for handler isolation."""
    if isinstance(event, BaseModel):
        return event.model_copy(deep=True)
    return copy.deepcopy(event)


class Dispatcher(ABC):
    """Base class for dispatchers.

    Subclasses implement ``_deliver``; lookup, failure isolation and error
    reporting are shared.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        error_handler: ErrorHandler | None = None,
        isolate_events: bool = False,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            registry: Registry used to resolve matching subscriptions
            error_handler: Error channel; defaults to ``log_dispatch_error``
            isolate_events: If True, each handler receives a deep copy of the event
        """
        self._registry = registry
        self._error_handler = error_handler or log_dispatch_error
        self._isolate_events = isolate_events
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def post(self, event: Any) -> None:
        """Deliver ``event`` to every matching subscription.

        Never raises because of a handler, a saturated pool or a closed
        dispatcher; such failures are reported through the error channel.
        """
        event_type = type(event)
        subscriptions = self._registry.subscriptions_for(event_type)

        if not subscriptions:
            logger.debug(f"No subscriptions registered for {event_type.__name__}")
            return

        if self._closed:
            logger.warning(f"Dropping {event_type.__name__}: dispatcher is shut down")
            for subscription in subscriptions:
                self._report(subscription, event, EventBusShutdownError("event posted after shutdown"))
            return

        logger.debug(f"Posting {event_type.__name__} to {len(subscriptions)} subscription(s)")
        self._deliver(event, subscriptions)

    @abstractmethod
    def _deliver(self, event: Any, subscriptions: tuple[Subscription, ...]) -> None:
        """Invoke or schedule every subscription in ``subscriptions``."""

    def shutdown(self, timeout: float | None = None) -> int:
        """Stop accepting events.

        Returns:
            Number of invocations abandoned; always 0 for this base class
        """
        self._closed = True
        return 0

    def _invoke(self, subscription: Subscription, event: Any) -> bool:
        """Invoke one subscription, reporting any failure. Returns True on success."""
        try:
            handler_event = copy_event(event) if self._isolate_events else event
            subscription.invoke(handler_event)
            return True
        except Exception as e:
            self._report(subscription, event, e)
            return False

    def _report(self, subscription: Subscription, event: Any, error: BaseException) -> None:
        try:
            self._error_handler(subscription, event, error)
        except Exception as e:
            logger.opt(exception=e).error(f"Error handler raised while reporting failure of {subscription.name}")


class SynchronousDispatcher(Dispatcher):
    """Runs handlers on the calling thread, in snapshot order."""

    def _deliver(self, event: Any, subscriptions: tuple[Subscription, ...]) -> None:
        failed = 0
        for subscription in subscriptions:
            if not self._invoke(subscription, event):
                failed += 1

        if failed > 0:
            successful = len(subscriptions) - failed
            logger.warning(f"Event {type(event).__name__}: {successful} successful, {failed} failed handlers")


class ThreadPoolDispatcher(Dispatcher):
    """Submits each handler invocation to a worker pool.

    The pool is owned by the dispatcher and shut down with it. By default it
    is a single-worker ``ThreadPoolExecutor``. ``max_pending`` bounds the
    number of outstanding invocations; a submission beyond it is reported as
    ``DispatchRejectedError``.

    Example:
        ```python
        dispatcher = ThreadPoolDispatcher(registry, max_workers=4)
        dispatcher.post(OrderCreated(order_id="A-1"))  # returns immediately
        dispatcher.shutdown(timeout=5.0)  # drain, then abandon
        ```
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        *,
        max_workers: int = 1,
        max_pending: int | None = None,
        executor: concurrent.futures.Executor | None = None,
        error_handler: ErrorHandler | None = None,
        isolate_events: bool = False,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            registry: Registry used to resolve matching subscriptions
            max_workers: Worker threads for the default executor
            max_pending: Upper bound on outstanding invocations, or None for unbounded
            executor: Executor to use instead of creating a ``ThreadPoolExecutor``
            error_handler: Error channel; defaults to ``log_dispatch_error``
            isolate_events: If True, each handler receives a deep copy of the event
        """
        super().__init__(registry, error_handler=error_handler, isolate_events=isolate_events)
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        if max_pending is not None and max_pending < 1:
            raise ValueError(f"max_pending must be at least 1, got {max_pending}")

        self._executor = executor or concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="eventbus",
        )
        self._max_pending = max_pending
        self._slots = threading.BoundedSemaphore(max_pending) if max_pending else None
        self._pending: set[concurrent.futures.Future] = set()
        self._lock = threading.Lock()
        logger.debug(f"ThreadPoolDispatcher initialized (max_workers={max_workers}, max_pending={max_pending})")

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def _deliver(self, event: Any, subscriptions: tuple[Subscription, ...]) -> None:
        submitted = 0
        for subscription in subscriptions:
            if self._slots is not None and not self._slots.acquire(blocking=False):
                self._report(
                    subscription,
                    event,
                    DispatchRejectedError(f"worker pool saturated ({self._max_pending} invocations pending)"),
                )
                continue

            # Accepted submissions must be in _pending before shutdown snapshots it
            rejection: EventBusShutdownError | None = None
            with self._lock:
                if self._closed:
                    rejection = EventBusShutdownError("event posted after shutdown")
                else:
                    try:
                        future = self._executor.submit(self._invoke, subscription, event)
                    except RuntimeError as e:
                        rejection = EventBusShutdownError(str(e))
                    else:
                        self._pending.add(future)

            if rejection is not None:
                if self._slots is not None:
                    self._slots.release()
                self._report(subscription, event, rejection)
                continue

            future.add_done_callback(self._on_done)
            submitted += 1

        logger.trace(f"Submitted {submitted}/{len(subscriptions)} invocations for {type(event).__name__}")

    def _on_done(self, future: concurrent.futures.Future) -> None:
        # Free the slot before the future leaves the pending set
        if self._slots is not None:
            self._slots.release()
        with self._lock:
            self._pending.discard(future)

    def shutdown(self, timeout: float | None = None) -> int:
        """Stop accepting events, drain outstanding work, then abandon the rest.

        Args:
            timeout: Seconds to wait for outstanding invocations; None waits
                until all of them finish

        Returns:
            Number of invocations that had not finished by the deadline
        """
        with self._lock:
            if self._closed:
                return 0
            self._closed = True
            pending = set(self._pending)

        logger.debug(f"Shutting down ThreadPoolDispatcher ({len(pending)} pending, timeout={timeout})")
        _, not_done = concurrent.futures.wait(pending, timeout=timeout)
        self._executor.shutdown(wait=False, cancel_futures=True)

        if not_done:
            logger.warning(f"Abandoned {len(not_done)} pending invocation(s) at shutdown")
        logger.debug("ThreadPoolDispatcher shutdown complete")
        return len(not_done)
