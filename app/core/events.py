"""In-process domain event bus.

Handlers are plain async callables registered per event name. ``publish`` awaits
them in registration order; a failing handler is logged and skipped so a side
effect can never undo or fail the operation that emitted the event.
"""

from typing import Any, Awaitable, Callable

from app.core.logging import get_logger

log = get_logger(__name__)

TRANSACTION_LOGGED = "transaction.logged"

Handler = Callable[[Any], Awaitable[None]]


class EventBus:
    def __init__(self) -> None:
        self.subscribers: dict[str, list[Handler]] = {}

    def subscribe(self, event_name: str, handler: Handler) -> None:
        handlers = self.subscribers.setdefault(event_name, [])
        if handler not in handlers:
            handlers.append(handler)

    def unsubscribe(self, event_name: str, handler: Handler) -> None:
        handlers = self.subscribers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def on(self, event_name: str):
        """Decorator form of ``subscribe``."""
        def wrapper(func: Handler) -> Handler:
            self.subscribe(event_name, func)
            return func
        return wrapper

    async def publish(self, event_name: str, payload: Any) -> None:
        for handler in list(self.subscribers.get(event_name, [])):
            try:
                await handler(payload)
            except Exception:
                log.exception("event_handler_failed", event_name=event_name, handler=getattr(handler, "__name__", repr(handler)))


eventbus = EventBus()
