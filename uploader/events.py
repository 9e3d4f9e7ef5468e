"""Synchronous publish/subscribe fan-out for engine notifications."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

from common.logging_config import get_logger

logger = get_logger(__name__)


class EventName(str, Enum):
    """Notifications emitted by the queue, files, chunks and scheduler."""
    FILE_ADDED = "fileAdded"
    FILES_ADDED = "filesAdded"
    CHUNKING_START = "chunkingStart"
    CHUNKING_PROGRESS = "chunkingProgress"
    CHUNKING_COMPLETE = "chunkingComplete"
    CHUNK_PROGRESS = "chunkProgress"
    FILE_PROGRESS = "fileProgress"
    PROGRESS = "progress"
    FILE_SUCCESS = "fileSuccess"
    FILE_ERROR = "fileError"
    ERROR = "error"
    FILE_RETRY = "fileRetry"
    UPLOAD_START = "uploadStart"
    COMPLETE = "complete"
    PAUSE = "pause"
    BEFORE_CANCEL = "beforeCancel"
    CANCEL = "cancel"


# Events that re-fire as a queue-wide counterpart after their own subscribers ran.
_DERIVED_EVENTS = {
    EventName.FILE_ERROR: EventName.ERROR,
    EventName.FILE_PROGRESS: EventName.PROGRESS,
}


@dataclass(frozen=True)
class Event:
    """
    Payload delivered to subscribers.

    Fields not relevant to a given event are left at their defaults.
    """
    name: EventName
    file: Any = None
    chunk: Any = None
    message: str = ""
    value: Optional[float] = None
    files: Sequence[Any] = field(default_factory=tuple)
    skipped: Sequence[Any] = field(default_factory=tuple)


EventHandler = Callable[[Event], Any]


@dataclass(eq=False)
class Subscription:
    """Handle returned by subscribe; pass it to unsubscribe. `name` is None for catch-all."""
    name: Optional[EventName]
    handler: EventHandler
    active: bool = True


class EventBus:
    """
    Ordered list of subscriptions with named and catch-all delivery.

    Handlers run synchronously, in subscription order. A handler that raises
    is logged and skipped; the remaining handlers still run.
    """

    def __init__(self):
        self._subscriptions: List[Subscription] = []

    def subscribe(self, name: EventName | str, handler: EventHandler) -> Subscription:
        """
        Register a handler for one event.

        Args:
            name: Event name (enum member or its string value, case-insensitive)
            handler: Callable receiving the Event

        Returns:
            Subscription handle
        """
        subscription = Subscription(name=_coerce_name(name), handler=handler)
        self._subscriptions.append(subscription)
        return subscription

    def subscribe_all(self, handler: EventHandler) -> Subscription:
        """Register a catch-all handler that receives every event."""
        subscription = Subscription(name=None, handler=handler)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription. Unknown or already removed handles are ignored."""
        subscription.active = False
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass

    def fire(self, name: EventName, **payload) -> None:
        """
        Deliver an event to its named subscribers and to every catch-all subscriber.

        Args:
            name: Event to fire
            **payload: Event fields (file, chunk, message, value, files, skipped)
        """
        event = Event(name=name, **payload)

        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            if subscription.name is None or subscription.name == name:
                self._deliver(subscription, event)

        derived = _DERIVED_EVENTS.get(name)
        if derived is not None:
            self.fire(derived, **payload)

    def clear(self) -> None:
        for subscription in self._subscriptions:
            subscription.active = False
        self._subscriptions.clear()

    def __len__(self) -> int:
        return len(self._subscriptions)

    def _deliver(self, subscription: Subscription, event: Event) -> None:
        try:
            subscription.handler(event)
        except Exception as e:
            logger.error(f"Event handler failed [event={event.name.value}]: {e}", exc_info=True)


def _coerce_name(name: EventName | str) -> EventName:
    if isinstance(name, EventName):
        return name
    lowered = name.lower()
    for member in EventName:
        if member.value.lower() == lowered or member.name.lower() == lowered:
            return member
    raise ValueError(f"Unknown event: {name}")
