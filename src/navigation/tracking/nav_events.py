# nav_events.py
# Outbound notifications from the navigation core.
# Fire-and-observe: listeners are called synchronously, nothing is acknowledged.

import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, DefaultDict, List

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class NavigationEvent(Enum):
    STEP_CHANGED  = "step_changed"     # payload: new step index
    ARRIVED       = "arrived"          # payload: final Coord
    STATE_CHANGED = "state_changed"    # payload: (NavigationState, reason or None)
    ROUTE_UPDATED = "route_updated"    # payload: Route or None


class EventBus:
    """
    Minimal publish/subscribe channel.

    A listener that raises is logged and skipped; the remaining listeners
    still receive the event.
    """

    def __init__(self) -> None:
        self._listeners: DefaultDict[NavigationEvent, List[Listener]] = defaultdict(list)

    def subscribe(self, event: NavigationEvent, callback: Listener) -> Callable[[], None]:
        """Register callback for event. Returns a function that unregisters it."""
        self._listeners[event].append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners[event]:
                self._listeners[event].remove(callback)

        return unsubscribe

    def emit(self, event: NavigationEvent, payload: Any = None) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(payload)
            except Exception:
                logger.exception(f"Listener {callback!r} failed on {event.value}")

    def clear(self) -> None:
        self._listeners.clear()
