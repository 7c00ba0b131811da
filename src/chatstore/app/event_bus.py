import logging
from typing import Callable, Dict, List

from src.chatstore.models.events import Event

logger = logging.getLogger(__name__)


class EventBus:
    """
    A simple event bus for decoupled communication between components.
    Callbacks run synchronously on the dispatching thread.
    """
    def __init__(self):
        """Initializes the EventBus."""
        self._subscribers: Dict[str, List[Callable[[Event], None]]] = {}

    def subscribe(self, event_type: str, callback: Callable[[Event], None]):
        """
        Subscribe a callback function to a specific event type.

        Args:
            event_type: The type of event to subscribe to.
            callback: The function to call when the event is dispatched.
        """
        self._subscribers.setdefault(event_type, []).append(callback)
        logger.debug("Subscribed %s to event '%s'", getattr(callback, "__name__", callback), event_type)

    def unsubscribe(self, event_type: str, callback: Callable[[Event], None]) -> None:
        callbacks = self._subscribers.get(event_type)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)

    def dispatch(self, event: Event):
        """
        Dispatch an event to all subscribed callbacks.

        A failing callback is logged and does not prevent the remaining
        callbacks from running.

        Args:
            event: The Event object to dispatch.
        """
        callbacks = list(self._subscribers.get(event.event_type, []))
        if not callbacks:
            logger.debug("No subscribers for event '%s'", event.event_type)
            return
        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(
                    "Error in callback %s for event '%s': %s",
                    getattr(callback, "__name__", callback),
                    event.event_type,
                    e,
                    exc_info=True,
                )
