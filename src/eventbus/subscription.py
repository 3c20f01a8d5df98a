"""Subscriptions and event type keys.

A ``Subscription`` binds an owning object, a handler callable, and the event
type the handler accepts. Event types are routed by ``EventTypeKey``: either
a class, or a string tag declared on the event class as ``__event_type__``.

```python
class OrderCreated(BaseModel):
    __event_type__ = "OrderCreated"
    order_id: str
```

Handlers registered for ``OrderCreated`` (the class) and for
``"OrderCreated"`` (the tag) both receive instances of the class.
"""

import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from .core import EventTypeKey, HandlerRegistrationError, HandlerSpec

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


def declared_tag(event_class: type) -> str | None:
    """Return the string tag declared directly on ``event_class``, if any."""
    tag = event_class.__dict__.get("__event_type__")
    return tag if isinstance(tag, str) else None


def event_type_name(event_type: EventTypeKey) -> str:
    """Human readable name of an event type key, for logs and CLI output."""
    return event_type if isinstance(event_type, str) else event_type.__name__


def _handler_identity(handler: Callable[..., Any]) -> tuple[int, Any]:
    # Bound methods are recreated on every attribute access; compare them by
    # (instance, function) rather than by object identity.
    if inspect.ismethod(handler):
        return id(handler.__self__), handler.__func__
    return id(handler), None


@dataclass(frozen=True, eq=False)
class Subscription:
    """An immutable binding of one handler to one declared event type.

    Two subscriptions are equal iff they share the same owner object and the
    same handler. The declared event type does not take part in equality.

    Attributes:
        owner: The object that registered the handler
        handler: Callable accepting exactly one event argument
        event_type: Class or string tag the handler was declared for
    """

    owner: Any
    handler: Callable[[Any], Any]
    event_type: EventTypeKey
    _identity: tuple[int, int, Any] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_identity", (id(self.owner), *_handler_identity(self.handler)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Subscription):
            return NotImplemented
        return self._identity == other._identity

    def __hash__(self) -> int:
        return hash(self._identity)

    @property
    def name(self) -> str:
        """Qualified handler name, e.g. ``OrderNotifier.on_created``."""
        return getattr(self.handler, "__qualname__", None) or type(self.handler).__qualname__

    def invoke(self, event: Any) -> Any:
        """Call the handler with ``event``. Exceptions propagate to the dispatcher."""
        logger.trace(f"Invoking {self.name} for {type(event).__name__}")
        return self.handler(event)


def _validate_signature(handler: Callable[..., Any]) -> inspect.Signature:
    """Check that ``handler`` accepts exactly one required positional argument.

    Raises:
        ValueError: With the reason the handler is rejected
    """
    if not callable(handler):
        raise ValueError("handler must be callable")

    call = handler if inspect.isroutine(handler) else getattr(handler, "__call__", handler)
    if inspect.iscoroutinefunction(call):
        raise ValueError("coroutine functions are not supported by the thread based dispatcher")

    try:
        sig = inspect.signature(handler, eval_str=True)
    except NameError as e:
        raise ValueError(f"cannot resolve handler annotations: {e}") from e
    except (ValueError, TypeError) as e:
        raise ValueError(f"cannot inspect handler signature: {e}") from e

    required = [p for p in sig.parameters.values() if p.kind in _POSITIONAL and p.default is p.empty]
    required_kw = [
        p for p in sig.parameters.values() if p.kind is inspect.Parameter.KEYWORD_ONLY and p.default is p.empty
    ]
    if len(required) != 1 or required_kw:
        raise ValueError(f"handler must accept exactly one event parameter, signature is {sig}")
    return sig


def build_subscription(owner: Any, entry: HandlerSpec) -> Subscription:
    """Create a ``Subscription`` from one handler table entry.

    Args:
        owner: The object registering the handler
        entry: An ``(event_type, handler)`` pair, or a bare callable whose
            single parameter is annotated with the event class

    Returns:
        The validated subscription

    Raises:
        HandlerRegistrationError: If the entry is not a valid handler declaration
    """
    try:
        if isinstance(entry, tuple):
            if len(entry) != 2:
                raise ValueError("handler entries must be (event_type, handler) pairs")
            event_type, handler = entry
            _validate_signature(handler)
            if not isinstance(event_type, (type, str)):
                raise ValueError(f"event type must be a class or a string tag, got {event_type!r}")
        else:
            handler = entry
            sig = _validate_signature(handler)
            param = next(p for p in sig.parameters.values() if p.kind in _POSITIONAL and p.default is p.empty)
            event_type = param.annotation
            if event_type is inspect.Parameter.empty:
                raise ValueError(f"parameter '{param.name}' has no event type annotation")
            if not isinstance(event_type, type):
                raise ValueError(f"parameter '{param.name}' must be annotated with a class, got {event_type!r}")
    except ValueError as e:
        raise HandlerRegistrationError([(entry, str(e))]) from e

    return Subscription(owner=owner, handler=handler, event_type=event_type)
