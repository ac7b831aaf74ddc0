"""Event bus for deployment progress observers."""

from collections import deque
from collections.abc import Awaitable, Callable
from typing import Protocol

from quickdeploy_sdk.logging import get_logger

from .events import Event

EventHandler = Callable[[Event], Awaitable[None]]


class EventBusProtocol(Protocol):
    async def publish(self, event: Event) -> None:
        ...

    def subscribe(self, pattern: str, handler: EventHandler) -> Callable[[], None]:
        ...


class InMemoryEventBus(EventBusProtocol):
    """
    Delivers events to subscribers in subscription order.

    Patterns are an exact name, ``*`` or a ``prefix.*`` family such as
    ``deployment.step.*``. A failing observer is logged and skipped; it never
    fails the deployment. The last ``history_size`` events are kept for
    inspection.
    """

    def __init__(self, history_size: int = 100) -> None:
        self._subscriptions: list[tuple[str, EventHandler]] = []
        self._history: deque[Event] = deque(maxlen=history_size)
        self._logger = get_logger("orchestration.event_bus")

    @property
    def history(self) -> list[Event]:
        return list(self._history)

    def subscribe(self, pattern: str, handler: EventHandler) -> Callable[[], None]:
        """Register ``handler`` for ``pattern``; returns a callable that removes it."""
        subscription = (pattern, handler)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    async def publish(self, event: Event) -> None:
        self._history.append(event)
        for pattern, handler in list(self._subscriptions):
            if not event.matches(pattern):
                continue
            try:
                await handler(event)
            except Exception as exc:
                self._logger.error(
                    f"Observer for {event.name} failed on {event.metadata.repository}: {exc}",
                    exc_info=True,
                )
