"""Subscription registry.

The registry maps event type keys to the subscriptions declared for them. It
is safe to use from many threads at once:

- Writers (``register``, ``unregister``, ``clear``) serialize on one lock,
  build a new mapping, and publish it with a single reference assignment.
- Readers (``subscriptions_for`` and the introspection helpers) never lock.
  They read whichever mapping is current and get back an immutable tuple,
  so a dispatch in progress never observes a partial update.
"""

import threading
from collections.abc import Iterable
from enum import Enum
from typing import Any

from loguru import logger

from .core import EventTypeKey, HandlerRegistrationError, HandlerSpec, Subscriber
from .subscription import Subscription, build_subscription, declared_tag, event_type_name


class MatchPolicy(str, Enum):
    """How a posted event's class is matched against declared event types."""

    POLYMORPHIC = "polymorphic"  # declared class or any base class of the event
    EXACT = "exact"  # declared class must equal the event class


def _resolve_handlers(owner: Any, handlers: Iterable[HandlerSpec] | None) -> list[HandlerSpec]:
    if handlers is not None:
        return list(handlers)
    if isinstance(owner, Subscriber) or callable(getattr(owner, "event_handlers", None)):
        return list(owner.event_handlers())
    raise HandlerRegistrationError([(owner, "no handlers given and owner does not declare event_handlers()")])


class SubscriptionRegistry:
    """Thread-safe, copy-on-write mapping from event type to subscriptions.

    Example:
        ```python
        registry = SubscriptionRegistry()
        registry.register(auditor, [(OrderCreated, auditor.on_created)])
        for subscription in registry.subscriptions_for(OrderCreated):
            subscription.invoke(event)
        ```
    """

    def __init__(self, match_policy: MatchPolicy = MatchPolicy.POLYMORPHIC) -> None:
        """Initialize an empty registry.

        Args:
            match_policy: Rule used by ``subscriptions_for`` to match classes
        """
        self._match_policy = MatchPolicy(match_policy)
        self._subscriptions: dict[EventTypeKey, tuple[Subscription, ...]] = {}
        self._write_lock = threading.Lock()
        logger.debug(f"SubscriptionRegistry initialized (match_policy={self._match_policy.value})")

    @property
    def match_policy(self) -> MatchPolicy:
        return self._match_policy

    def register(self, owner: Any, handlers: Iterable[HandlerSpec] | None = None) -> list[Subscription]:
        """Register the handlers declared by ``owner``.

        Valid entries are registered even if other entries are rejected.
        Registering an (owner, handler) pair that is already present is a
        no-op.

        Args:
            owner: The subscribing object
            handlers: Handler table; defaults to ``owner.event_handlers()``

        Returns:
            The subscriptions built from the valid entries

        Raises:
            HandlerRegistrationError: If any entry was rejected, after the
                valid entries have been registered
        """
        built: list[Subscription] = []
        rejected: list[tuple[Any, str]] = []
        for entry in _resolve_handlers(owner, handlers):
            try:
                built.append(build_subscription(owner, entry))
            except HandlerRegistrationError as e:
                rejected.extend(e.rejected)

        if built:
            with self._write_lock:
                updated = dict(self._subscriptions)
                for subscription in built:
                    current = updated.get(subscription.event_type, ())
                    if subscription in current:
                        logger.trace(f"Already registered: {subscription.name}")
                        continue
                    updated[subscription.event_type] = (*current, subscription)
                    logger.debug(f"Registered {subscription.name} for {event_type_name(subscription.event_type)}")
                self._subscriptions = updated

        if rejected:
            for entry, reason in rejected:
                logger.error(f"Rejected handler {entry!r} on {type(owner).__name__}: {reason}")
            raise HandlerRegistrationError(rejected)
        return built

    def unregister(self, owner: Any, handlers: Iterable[HandlerSpec] | None = None) -> int:
        """Remove subscriptions owned by ``owner``.

        Args:
            owner: The subscribing object
            handlers: Handler table to remove; ``None`` removes every
                subscription owned by ``owner``

        Returns:
            Number of subscriptions removed. Unknown handlers are ignored.

        Raises:
            HandlerRegistrationError: If an entry in ``handlers`` is not a
                valid handler declaration
        """
        targets: set[tuple[EventTypeKey, Subscription]] | None = None
        if handlers is not None:
            targets = set()
            for entry in handlers:
                subscription = build_subscription(owner, entry)
                targets.add((subscription.event_type, subscription))

        removed = 0
        with self._write_lock:
            updated: dict[EventTypeKey, tuple[Subscription, ...]] = {}
            for event_type, subscriptions in self._subscriptions.items():
                if targets is None:
                    kept = tuple(s for s in subscriptions if s.owner is not owner)
                else:
                    kept = tuple(s for s in subscriptions if (event_type, s) not in targets)
                removed += len(subscriptions) - len(kept)
                if kept:
                    updated[event_type] = kept
            self._subscriptions = updated

        logger.debug(f"Unregistered {removed} subscription(s) for {type(owner).__name__}")
        return removed

    def subscriptions_for(self, event_type: EventTypeKey) -> tuple[Subscription, ...]:
        """Return a snapshot of the subscriptions matching ``event_type``.

        For a class, the match follows the registry's ``MatchPolicy`` and
        also includes subscriptions for the class's declared string tag. A
        string key matches tag subscriptions exactly. A subscription that
        matches through several keys appears once.

        Args:
            event_type: Runtime class of a posted event, or a string tag

        Returns:
            Immutable tuple, unaffected by later registry changes
        """
        mapping = self._subscriptions
        if isinstance(event_type, str):
            return mapping.get(event_type, ())

        if self._match_policy is MatchPolicy.EXACT:
            candidates = [event_type]
        else:
            candidates = list(event_type.__mro__)

        keys: list[EventTypeKey] = []
        for cls in candidates:
            keys.append(cls)
            tag = declared_tag(cls)
            if tag is not None:
                keys.append(tag)

        matched: dict[Subscription, None] = {}
        for key in keys:
            for subscription in mapping.get(key, ()):
                matched.setdefault(subscription, None)
        return tuple(matched)

    def get_subscription_count(self, event_type: EventTypeKey) -> int:
        """Get the number of subscriptions declared for exactly ``event_type``."""
        return len(self._subscriptions.get(event_type, ()))

    def get_registered_events(self) -> list[EventTypeKey]:
        """Get all event type keys that have at least one subscription."""
        return list(self._subscriptions.keys())

    def clear(self, event_type: EventTypeKey | None = None) -> None:
        """Clear subscriptions for a specific event type or all event types."""
        with self._write_lock:
            if event_type is None:
                self._subscriptions = {}
                logger.debug("Cleared all subscriptions")
            elif event_type in self._subscriptions:
                updated = dict(self._subscriptions)
                del updated[event_type]
                self._subscriptions = updated
                logger.debug(f"Cleared subscriptions for {event_type_name(event_type)}")
