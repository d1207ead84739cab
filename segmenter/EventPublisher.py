"""Publisher for engine events with thread-safe subscriber management.

This module implements the Observer pattern's publisher component. The engine,
the transcription workers and the pipeline all publish through one instance,
and the UI, console printer or tests subscribe to it.
"""

import threading
import logging
from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from segmenter.protocols import EngineEventSubscriber
    from segmenter.types import EngineEvent


class EventPublisher:
    """Manages subscribers and publishes EngineEvents.

    Thread Safety:
        - Subscription management uses a lock for thread-safe registration
        - Subscriber list is copied before iteration (lock released during callbacks)
        - No locks held during subscriber callbacks (prevents deadlocks)

    Error Handling:
        - Each subscriber notification is wrapped in try-except
        - Exceptions logged but don't affect other subscribers or the publisher

    Example:
        >>> publisher = EventPublisher(verbose=True)
        >>> publisher.subscribe(printer)
        >>> publisher.publish(EngineEvent(type='ready'))
    """

    def __init__(self, verbose: bool = False) -> None:
        self._subscribers: List['EngineEventSubscriber'] = []
        self._lock: threading.Lock = threading.Lock()
        self._verbose: bool = verbose

    def subscribe(self, subscriber: 'EngineEventSubscriber') -> None:
        """Register a subscriber. Registering the same callable twice is a no-op.

        Args:
            subscriber: Callable receiving one EngineEvent
        """
        with self._lock:
            if subscriber not in self._subscribers:
                self._subscribers.append(subscriber)
                if self._verbose:
                    logging.info(f"Subscriber registered: {subscriber!r}")

    def unsubscribe(self, subscriber: 'EngineEventSubscriber') -> None:
        """Unregister a subscriber. Unknown subscribers are ignored."""
        with self._lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)
                if self._verbose:
                    logging.info(f"Subscriber unregistered: {subscriber!r}")

    def publish(self, event: 'EngineEvent') -> None:
        """Deliver event to every subscriber.

        Args:
            event: Event to deliver
        """
        with self._lock:
            subscribers = list(self._subscribers)

        if self._verbose:
            logging.debug(f"EventPublisher: {event.type} {event.message}")

        for subscriber in subscribers:
            try:
                subscriber(event)
            except Exception as e:
                logging.error(
                    f"Subscriber {subscriber!r} failed on {event.type}: {e}",
                    exc_info=True
                )

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)
