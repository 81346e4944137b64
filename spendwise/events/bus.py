"""
Session Event Bus

Every state change in the session layer is published here:
1. Logged locally as a structured event (for debugging)
2. Delivered to every subscriber interested in its type

The bus:
- Delivers synchronously, in subscription order, on the emitter's thread
- Gracefully handles subscriber failures (logged, never re-raised into
  the emitter, so a broken consumer cannot break a mutation)
"""

from typing import Callable, Iterable, Optional

from spendwise.log import get_logger
from spendwise.models.events import EventSeverity, SessionEvent, SessionEventType


EventHandler = Callable[[SessionEvent], None]


class EventBus:
    """
    Central publish/subscribe hub for session events.
    """

    def __init__(self):
        self._subscribers: list[tuple[EventHandler, Optional[frozenset[SessionEventType]]]] = []
        self._logger = get_logger(__name__)

    def subscribe(
        self,
        handler: EventHandler,
        event_types: Optional[Iterable[SessionEventType]] = None,
    ) -> Callable[[], None]:
        """
        Register a handler.

        Args:
            handler: Called with each matching event
            event_types: Only deliver these types. None means all.

        Returns:
            A callable that removes the subscription.
        """
        entry = (handler, frozenset(event_types) if event_types is not None else None)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def emit(self, event: SessionEvent) -> None:
        """Log an event and deliver it to matching subscribers."""
        log_dict = event.to_log_dict()

        if event.severity == EventSeverity.ERROR:
            self._logger.error("session_event", **log_dict)
        elif event.severity == EventSeverity.WARNING:
            self._logger.warning("session_event", **log_dict)
        else:
            self._logger.info("session_event", **log_dict)

        for handler, types in list(self._subscribers):
            if types is not None and event.event_type not in types:
                continue
            try:
                handler(event)
            except Exception as e:
                self._logger.error(
                    "event_subscriber_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                    event_type=event.event_type.value,
                )

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
