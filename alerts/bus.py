"""In-process fan-out of breach events to live subscribers.

Publishers never block: each subscriber owns a bounded queue and the oldest
entry is dropped when a slow reader falls behind. The bus is created once per
process, injected into the engine and web app, and closed on shutdown.
"""
import logging
import threading
from collections import deque

from utils.errors import PublishError

logger = logging.getLogger("alertmon.alerts.bus")


class Subscription:
    """One live reader of the bus."""

    def __init__(self, bus, maxsize):
        self._bus = bus
        self._queue = deque(maxlen=maxsize)
        self._cond = threading.Condition()
        self.closed = False
        self.dropped = 0

    def _offer(self, event):
        with self._cond:
            if self.closed:
                return False
            if len(self._queue) == self._queue.maxlen:
                self.dropped += 1
            self._queue.append(event)
            self._cond.notify()
            return True

    def _close(self):
        with self._cond:
            self.closed = True
            self._cond.notify_all()

    def get(self, timeout=None):
        """Wait up to `timeout` seconds for the next event. None on timeout or close."""
        with self._cond:
            if not self._queue and not self.closed:
                self._cond.wait(timeout)
            if self._queue:
                return self._queue.popleft()
            return None

    def pending(self):
        with self._cond:
            return len(self._queue)

    def close(self):
        self._bus.unsubscribe(self)

    def __iter__(self):
        while True:
            event = self.get()
            if event is None:
                if self.closed:
                    return
                continue
            yield event

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class NotificationBus:
    def __init__(self, max_queue=100):
        if max_queue < 1:
            raise ValueError("max_queue must be >= 1")
        self.max_queue = max_queue
        self._subscribers = []
        self._lock = threading.Lock()
        self._running = False
        self.published = 0

    @property
    def is_running(self):
        return self._running

    def start(self):
        with self._lock:
            self._running = True
        logger.info("Notification bus started")
        return self

    def close(self):
        with self._lock:
            self._running = False
            subscribers, self._subscribers = self._subscribers, []
        for sub in subscribers:
            sub._close()
        logger.info(f"Notification bus closed ({len(subscribers)} subscriber(s) disconnected)")

    def subscribe(self, maxsize=None) -> Subscription:
        sub = Subscription(self, maxsize or self.max_queue)
        with self._lock:
            if not self._running:
                raise PublishError("Notification bus is not running")
            self._subscribers.append(sub)
            count = len(self._subscribers)
        logger.debug(f"Subscriber added ({count} active)")
        return sub

    def unsubscribe(self, sub: Subscription):
        with self._lock:
            if sub in self._subscribers:
                self._subscribers.remove(sub)
        sub._close()

    def subscriber_count(self):
        with self._lock:
            return len(self._subscribers)

    def publish(self, event) -> int:
        """Hand `event` to every current subscriber. Returns how many received it."""
        with self._lock:
            if not self._running:
                raise PublishError("Notification bus is not running")
            subscribers = list(self._subscribers)
            self.published += 1
        delivered = 0
        for sub in subscribers:
            if sub._offer(event):
                delivered += 1
        return delivered
