"""
Reload broadcast channel.

A publish/subscribe medium where every open event-stream connection owns
one bounded queue. Publishing never blocks: a subscriber whose queue is
full simply misses that signal, which is harmless because reloading is
idempotent and a pending signal is already queued for it.
"""

import queue
import threading
from typing import Optional

from websii.errors import StreamLimitReached
from websii.utils.logging_config import get_logger

logger = get_logger("reload.broadcast")

RELOAD = "reload"
_CLOSED = object()


class ChannelClosed(Exception):
    """The channel was closed while a subscriber was waiting."""


class Subscription:
    """One reader attached to a ``ReloadChannel``."""

    def __init__(self, channel: "ReloadChannel", maxsize: int):
        self._channel = channel
        self._queue = queue.Queue(maxsize=maxsize)
        self.closed = False

    def offer(self, item) -> bool:
        try:
            self._queue.put_nowait(item)
            return True
        except queue.Full:
            return False

    def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """Wait for the next signal.

        Returns ``RELOAD`` or ``None`` on timeout. Raises ``ChannelClosed``
        once the channel shuts down.
        """
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            self.closed = True
            raise ChannelClosed()
        return item

    def close(self) -> None:
        self._channel.unsubscribe(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class ReloadChannel:
    """Fan-out of reload signals to subscribers.

    ``max_subscribers`` bounds how many readers may be attached at once;
    ``None`` means no bound.
    """

    def __init__(self, subscriber_queue_size: int = 16, max_subscribers: Optional[int] = None):
        self.subscriber_queue_size = subscriber_queue_size
        self.max_subscribers = max_subscribers
        self._lock = threading.Lock()
        self._subscribers = set()
        self._closed = False
        self.published = 0

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, self.subscriber_queue_size)
        with self._lock:
            if self._closed:
                subscription.offer(_CLOSED)
            elif self.max_subscribers is not None and len(self._subscribers) >= self.max_subscribers:
                raise StreamLimitReached(f"Live reload stream limit reached ({self.max_subscribers})")
            else:
                self._subscribers.add(subscription)
            count = len(self._subscribers)
        logger.debug(f"Reload subscriber attached ({count} connected)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers.discard(subscription)
            count = len(self._subscribers)
        logger.debug(f"Reload subscriber detached ({count} connected)")

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self) -> int:
        """Send one reload signal to every subscriber.

        Returns:
            Number of subscribers the signal was queued for
        """
        with self._lock:
            if self._closed:
                return 0
            subscribers = list(self._subscribers)
            self.published += 1
        delivered = sum(1 for subscription in subscribers if subscription.offer(RELOAD))
        logger.debug(f"Reload signal delivered to {delivered}/{len(subscribers)} subscribers")
        return delivered

    def close(self) -> None:
        """Wake every subscriber with a close marker and refuse new signals."""
        with self._lock:
            self._closed = True
            subscribers = list(self._subscribers)
            self._subscribers.clear()
        for subscription in subscribers:
            # Make room so the close marker always lands.
            while not subscription.offer(_CLOSED):
                try:
                    subscription._queue.get_nowait()
                except queue.Empty:
                    pass
