"""
Payment status updates — the single write path for order payment status.

Every flow that changes an order's payment status (checkout, provider
webhooks, manual confirmation, mock payments, admin overrides, refunds) calls
update_status(), which:

    1. normalizes the raw provider status once
    2. persists it through order_store (the only await)
    3. publishes the persisted status to live viewers of the order

If the write fails nothing is published and the error propagates.
There is no transition graph: the last committed write wins, so replayed or
out-of-order callbacks can overwrite newer state.
"""
import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from domain.enums import OrderStatus
from services import order_store
from services.broadcaster import EventBroadcaster
from services.status_normalizer import normalize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusUpdateResult:
    persisted_status: OrderStatus
    event: dict[str, Any]
    snapshot: order_store.StatusSnapshot


async def update_status(
    db: AsyncSession,
    broadcaster: EventBroadcaster,
    order_id: int,
    raw_status: Any,
    *,
    payment_provider: str | None = None,
    payment_reference: str | None = None,
) -> StatusUpdateResult:
    status = normalize(raw_status)
    # Empty strings count as "not supplied" so they never blank sticky values
    payment_provider = payment_provider or None
    payment_reference = payment_reference or None

    snapshot = await order_store.write_status(
        db,
        order_id,
        status,
        payment_provider=payment_provider,
        payment_reference=payment_reference,
    )

    # Subscribers see what this call set, not what the row now holds
    extra = {}
    if payment_provider is not None:
        extra["paymentProvider"] = payment_provider
    if payment_reference is not None:
        extra["paymentReference"] = payment_reference

    event = broadcaster.publish(order_id, snapshot.status, extra)
    logger.info(
        f"Order {order_id} payment status -> {snapshot.status.value} "
        f"(raw={raw_status!r}, provider={payment_provider}, reference={payment_reference})"
    )
    return StatusUpdateResult(persisted_status=snapshot.status, event=event, snapshot=snapshot)
