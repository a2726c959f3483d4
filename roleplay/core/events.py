from collections import defaultdict
from typing import Callable

from loguru import logger

MESSAGES_CHANGED = "messages_changed"
TYPING_CHANGED = "typing_changed"
EMOTION_CHANGED = "emotion_changed"
ERROR_CHANGED = "error_changed"
SPEECH_STATE_CHANGED = "speech_state_changed"
USAGE_CHANGED = "usage_changed"


class EventBus:
    """Synchronous observer registry for state-change notifications.

    Services emit after their state is already updated, so a listener can
    read the new value back from the emitter. Listener failures are logged
    and never reach the emitter.
    """

    def __init__(self):
        self._listeners: dict[str, list[Callable]] = defaultdict(list)

    def subscribe(self, event_name: str, callback: Callable) -> None:
        self._listeners[event_name].append(callback)
        logger.debug("Subscribed to event: {}", event_name)

    def unsubscribe(self, event_name: str, callback: Callable) -> None:
        if callback in self._listeners[event_name]:
            self._listeners[event_name].remove(callback)
            logger.debug("Unsubscribed from event: {}", event_name)

    def emit(self, event_name: str, *args, **kwargs) -> None:
        for callback in list(self._listeners.get(event_name, [])):
            try:
                callback(*args, **kwargs)
            except Exception as e:
                logger.error("Error in event listener for {}: {}", event_name, e)

    def clear(self) -> None:
        self._listeners.clear()
