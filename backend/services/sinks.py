"""
Transport-side sinks for the event broadcaster.

QueueSink buffers events in a bounded asyncio.Queue; the SSE route drains
it. deliver() never awaits, which keeps EventBroadcaster.publish synchronous.
A consumer that falls `maxsize` events behind is treated as dead: the full
queue makes deliver() raise and the broadcaster drops the sink.
"""
import asyncio
import json
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class SinkClosedError(Exception):
    """Raised when delivering to, or reading from, a closed sink."""
    pass


_CLOSED = object()


class QueueSink:
    """Bounded in-memory sink read by one async consumer."""

    def __init__(self, maxsize: int = 100):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._close_callbacks: list[Callable[[], None]] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, event: dict[str, Any]) -> None:
        if self._closed:
            raise SinkClosedError("sink is closed")
        # asyncio.QueueFull propagates to the broadcaster
        self._queue.put_nowait(event)

    def on_close(self, callback: Callable[[], None]) -> None:
        if self._closed:
            callback()
            return
        self._close_callbacks.append(callback)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        # Wake a consumer blocked in get(); pending events are discarded
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

        callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Sink close callback failed")

    async def get(self, timeout: float | None = None) -> dict[str, Any] | None:
        """
        Wait for the next event.

        Returns None when `timeout` elapses with nothing to read.
        Raises SinkClosedError once the sink has been closed.
        """
        try:
            item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        if item is _CLOSED:
            # Leave the marker for any later reader
            self._queue.put_nowait(_CLOSED)
            raise SinkClosedError("sink is closed")
        return item


def format_sse(payload: dict[str, Any]) -> str:
    """Serialize one payload as a Server-Sent Events `data:` frame."""
    return f"data: {json.dumps(payload, default=str)}\n\n"
