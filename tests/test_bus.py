"""Tests for the notification bus."""
import threading
import time
import pytest

from alerts.bus import NotificationBus
from utils.errors import PublishError


def test_publish_without_subscribers(bus):
    assert bus.publish("evt") == 0
    assert bus.published == 1


def test_fan_out(bus):
    a = bus.subscribe()
    b = bus.subscribe()
    assert bus.publish("evt-1") == 2
    assert a.get(timeout=0.1) == "evt-1"
    assert b.get(timeout=0.1) == "evt-1"


def test_order_preserved(bus):
    sub = bus.subscribe()
    for i in range(5):
        bus.publish(i)
    assert [sub.get(timeout=0.1) for _ in range(5)] == [0, 1, 2, 3, 4]


def test_slow_subscriber_drops_oldest():
    bus = NotificationBus(max_queue=3).start()
    sub = bus.subscribe()
    for i in range(5):
        bus.publish(i)
    assert sub.dropped == 2
    assert sub.pending() == 3
    assert [sub.get(timeout=0.1) for _ in range(3)] == [2, 3, 4]
    bus.close()


def test_publish_never_blocks_on_full_queue():
    bus = NotificationBus(max_queue=1).start()
    bus.subscribe()
    start = time.monotonic()
    for i in range(1000):
        bus.publish(i)
    assert time.monotonic() - start < 1.0
    bus.close()


def test_per_subscription_maxsize(bus):
    sub = bus.subscribe(maxsize=1)
    bus.publish("a")
    bus.publish("b")
    assert sub.get(timeout=0.1) == "b"


def test_get_times_out(bus):
    sub = bus.subscribe()
    assert sub.get(timeout=0.01) is None


def test_unsubscribe(bus):
    sub = bus.subscribe()
    assert bus.subscriber_count() == 1
    bus.unsubscribe(sub)
    bus.unsubscribe(sub)
    assert bus.subscriber_count() == 0
    assert sub.closed is True
    assert bus.publish("evt") == 0


def test_subscription_context_manager(bus):
    with bus.subscribe() as sub:
        assert bus.subscriber_count() == 1
    assert sub.closed
    assert bus.subscriber_count() == 0


def test_close_wakes_waiting_subscriber():
    bus = NotificationBus().start()
    sub = bus.subscribe()
    received = []

    def reader():
        received.extend(sub)

    t = threading.Thread(target=reader)
    t.start()
    bus.publish("evt")
    time.sleep(0.05)
    bus.close()
    t.join(timeout=2)
    assert not t.is_alive()
    assert received == ["evt"]


def test_publish_after_close_raises():
    bus = NotificationBus().start()
    bus.close()
    assert bus.is_running is False
    with pytest.raises(PublishError):
        bus.publish("evt")
    with pytest.raises(PublishError):
        bus.subscribe()


def test_bus_requires_start():
    bus = NotificationBus()
    with pytest.raises(PublishError):
        bus.publish("evt")


def test_invalid_queue_size():
    with pytest.raises(ValueError):
        NotificationBus(max_queue=0)


def test_concurrent_publishers(bus):
    sub = bus.subscribe(maxsize=1000)

    def writer(n):
        for i in range(50):
            bus.publish((n, i))

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)
    assert sub.pending() == 200
    assert bus.published == 200
