"""
In-process publish/subscribe for live order payment-status events.

One EventBroadcaster is created by the application factory and shared by
every route through deps.get_broadcaster. It maps an order id to the set of
sinks currently watching that order (open SSE streams, in-memory fakes in
tests, ...).

All methods are synchronous and never await, so on a single asyncio loop
each call runs to completion against the registry and no lock is needed.
Guard _subscribers with a lock before calling these from worker threads.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from services.status_normalizer import normalize

logger = logging.getLogger(__name__)

Unsubscribe = Callable[[], None]


class OrderEventSink(Protocol):
    """Anything that can receive status events for one viewer."""

    def deliver(self, event: dict[str, Any]) -> None:
        """Hand over one event. Must not block; raise if the sink is unusable."""
        ...

    def close(self) -> None:
        ...

    def on_close(self, callback: Callable[[], None]) -> None:
        """Register a callback fired once when the sink closes."""
        ...


def _registry_key(order_id: Any) -> str:
    # 42 and "42" address the same order
    return str(order_id)


class EventBroadcaster:
    """Registry of order id -> live sinks, with fan-out publish."""

    def __init__(self) -> None:
        self._subscribers: dict[str, set[OrderEventSink]] = {}

    def subscribe(self, order_id: Any, sink: OrderEventSink) -> Unsubscribe:
        """
        Register `sink` for events of `order_id`.

        Returns a function removing exactly this sink from exactly this
        order. Calling it again is a no-op. It is also registered as the
        sink's close callback, so closing the sink releases its slot.
        """
        key = _registry_key(order_id)
        self._subscribers.setdefault(key, set()).add(sink)
        released = False

        def unsubscribe() -> None:
            nonlocal released
            if released:
                return
            released = True
            self._discard(key, sink)

        sink.on_close(unsubscribe)
        logger.debug(f"Sink subscribed to order {key} ({len(self._subscribers.get(key, ()))} watching)")
        return unsubscribe

    def publish(self, order_id: Any, raw_status: Any, extra: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Normalize `raw_status`, build the event and deliver it to every sink
        watching `order_id`.

        The event is returned whether or not anyone is listening. Publishing
        to an unwatched order does not create a registry entry.
        """
        event: dict[str, Any] = {
            "orderId": order_id,
            "status": normalize(raw_status).value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if extra:
            event.update(extra)

        key = _registry_key(order_id)
        sinks = self._subscribers.get(key)
        if not sinks:
            return event

        # Snapshot: a failing sink may unsubscribe itself while we iterate
        for sink in list(sinks):
            try:
                sink.deliver(event)
            except Exception as e:
                logger.warning(f"Dropping sink for order {key}: delivery failed ({type(e).__name__}: {e})")
                self._close_quietly(sink)
                self._discard(key, sink)

        return event

    def _discard(self, key: str, sink: OrderEventSink) -> None:
        current = self._subscribers.get(key)
        if current is None:
            return
        current.discard(sink)
        if not current:
            del self._subscribers[key]

    @staticmethod
    def _close_quietly(sink: OrderEventSink) -> None:
        try:
            sink.close()
        except Exception as e:
            logger.debug(f"Ignoring error while closing sink: {e}")

    def subscriber_count(self, order_id: Any) -> int:
        return len(self._subscribers.get(_registry_key(order_id), ()))

    def stats(self) -> dict[str, int]:
        return {
            "watched_orders": len(self._subscribers),
            "subscribers": sum(len(s) for s in self._subscribers.values()),
        }
