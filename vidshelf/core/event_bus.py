"""Async event bus for change notifications.

Mutating operations on the library, playlists, settings and playback queue
emit events here instead of relying on implicit change propagation.
Consumers subscribe per event type with an async handler; handler failures
are logged and never reach the emitter.

Example:
    >>> from vidshelf.core.event_bus import EventBus, LIBRARY_CHANGED
    >>>
    >>> bus = EventBus()
    >>>
    >>> async def on_library_changed(event):
    ...     print(event["payload"]["count"])
    >>>
    >>> bus.subscribe(LIBRARY_CHANGED, on_library_changed)
    >>> await bus.emit(LIBRARY_CHANGED, {"count": 12})
"""

from datetime import datetime, timezone
from typing import Any, Callable, Coroutine, Dict, List

import structlog

logger = structlog.get_logger(__name__)

LIBRARY_CHANGED = "library_changed"
VIDEO_REMOVED = "video_removed"
VIDEO_WATCHED = "video_watched"
PLAYLISTS_CHANGED = "playlists_changed"
LIKED_CHANGED = "liked_changed"
PLAYBACK_STATE_CHANGED = "playback_state_changed"
PLAYBACK_ITEM_CHANGED = "playback_item_changed"
PLAYBACK_FAILED = "playback_failed"

EventHandler = Callable[[Dict[str, Any]], Coroutine[Any, Any, None]]


class EventBus:
    """Publish/subscribe hub keyed by event type.

    Handlers run sequentially in subscription order, so an emitter that
    awaits ``emit`` knows every subscriber has seen the event.

    Attributes:
        _handlers: Dict of event_type -> list of async handlers
    """

    def __init__(self) -> None:
        """Initialize the event bus."""
        self._handlers: Dict[str, List[EventHandler]] = {}

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Register an async handler for an event type.

        Args:
            event_type: Type of event (e.g., "library_changed")
            handler: Async function receiving the event dictionary
        """
        handlers = self._handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)
        logger.debug("event_bus_subscribed", event_type=event_type)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        """Remove a handler; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def subscriber_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, []))

    def _create_event(
        self,
        event_type: str,
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Create a standardized event dictionary.

        Args:
            event_type: Type of event
            payload: Event-specific payload data

        Returns:
            Event dictionary with type, timestamp, and payload
        """
        return {
            "event_type": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "payload": payload,
        }

    async def emit(self, event_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Deliver an event to every subscriber of its type.

        Args:
            event_type: Type of event
            payload: Event-specific payload data

        Returns:
            The event dictionary that was delivered
        """
        event = self._create_event(event_type, payload)
        handlers = list(self._handlers.get(event_type, []))

        if not handlers:
            logger.debug("event_bus_no_subscribers", event_type=event_type)
            return event

        for handler in handlers:
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    "event_bus_handler_error",
                    event_type=event_type,
                    error=str(e),
                    exc_info=True,
                )

        logger.debug("event_bus_emitted", event_type=event_type, handlers=len(handlers))
        return event

    def clear(self) -> None:
        """Drop all subscriptions."""
        self._handlers.clear()
