"""
Live payment-status stream (Server-Sent Events).

    GET /sse/order-status/{order_id}

The first frame is the stored snapshot; after that every status event
published for the order is forwarded as it happens. Idle streams get a
heartbeat frame every settings.sse_heartbeat_seconds so proxies keep the
connection open and dead clients are noticed.
"""
import logging
import time
from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends, Path, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from deps import get_broadcaster
from domain.constants import HEARTBEAT_EVENT_TYPE
from domain.errors import NotFoundError
from services import order_store
from services.broadcaster import EventBroadcaster
from services.sinks import QueueSink, SinkClosedError, format_sse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["stream"])

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def status_event_stream(
    request: Request,
    sink: QueueSink,
    snapshot: dict[str, Any],
    heartbeat_seconds: float,
) -> AsyncIterator[str]:
    """Yield SSE frames until the client disconnects or the sink is closed."""
    try:
        yield format_sse(snapshot)
        while True:
            if await request.is_disconnected():
                break
            try:
                event = await sink.get(timeout=heartbeat_seconds)
            except SinkClosedError:
                break
            if event is None:
                yield format_sse({"type": HEARTBEAT_EVENT_TYPE, "ts": int(time.time() * 1000)})
            else:
                yield format_sse(event)
    finally:
        # Closing fires the broadcaster's unsubscribe callback
        sink.close()


class SinkStreamingResponse(StreamingResponse):
    """
    StreamingResponse that closes its sink however the response ends,
    including a client that disconnects before the body generator starts.
    """

    def __init__(self, content, sink: QueueSink, **kwargs):
        super().__init__(content, **kwargs)
        self.sink = sink

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self.sink.close()


@router.get("/sse/order-status/{order_id}")
async def order_status_stream(
    request: Request,
    order_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    # Subscribe before reading the snapshot: an update committed in between
    # is queued as a live event instead of being lost
    sink = QueueSink(maxsize=settings.sink_queue_size)
    broadcaster.subscribe(order_id, sink)
    try:
        snapshot = await order_store.read_status(db, order_id)
    except Exception:
        sink.close()
        raise
    if snapshot is None:
        sink.close()
        raise NotFoundError("Order", str(order_id))

    logger.info(f"Status stream opened for order {order_id}")
    return SinkStreamingResponse(
        status_event_stream(request, sink, snapshot.to_dict(), settings.sse_heartbeat_seconds),
        sink=sink,
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
