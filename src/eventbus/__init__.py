"""In-process publish/subscribe event bus.

This package provides an event bus that decouples the objects producing
events from the objects reacting to them. It supports:

- **Declared Handler Tables**: Subscribers list (event type, handler) pairs
- **Sync and Async Delivery**: Inline, or through a worker pool
- **Polymorphic Matching**: Handlers for a base class receive subclass events
- **Error Isolation**: Handler failures are reported, not propagated
- **Thread Safety**: Register, unregister and post from any thread

## Quick Start

```python
from eventbus import EventBus
from pydantic import BaseModel

class UserCreated(BaseModel):
    user_id: int
    email: str

class WelcomeMailer:
    def send_welcome_email(self, event: UserCreated) -> None:
        print(f"Sending welcome email to {event.email}")

    def event_handlers(self):
        return [(UserCreated, self.send_welcome_email)]

bus = EventBus()
bus.register(WelcomeMailer())
bus.post(UserCreated(user_id=1, email="user@example.com"))
```

Handler tables are explicit; see ``core.Subscriber``. For the registry and
dispatch internals see ``registry.py`` and ``dispatcher.py``.

"""

from .bus import AsyncEventBus, EventBus, get_event_bus
from .core import (
    DispatchError,
    DispatchRejectedError,
    EventBusError,
    EventBusShutdownError,
    HandlerRegistrationError,
    Subscriber,
)
from .dispatcher import DeliveryMode, SynchronousDispatcher, ThreadPoolDispatcher
from .registry import MatchPolicy, SubscriptionRegistry
from .settings import Settings, get_settings
from .subscription import Subscription

__all__ = [
    "AsyncEventBus",
    "DeliveryMode",
    "DispatchError",
    "DispatchRejectedError",
    "EventBus",
    "EventBusError",
    "EventBusShutdownError",
    "HandlerRegistrationError",
    "MatchPolicy",
    "Settings",
    "Subscriber",
    "Subscription",
    "SubscriptionRegistry",
    "SynchronousDispatcher",
    "ThreadPoolDispatcher",
    "get_event_bus",
    "get_settings",
]
