"""
PayPal capture reporting.

The frontend (or a PayPal SDK call outside this service) captures the PayPal
order and reports the outcome here; we only record it.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from domain.constants import PAYPAL_CAPTURE_COMPLETED, PROVIDER_PAYPAL
from domain.enums import OrderStatus
from domain.errors import NotFoundError
from services import order_store, payment_status_service
from services.broadcaster import EventBroadcaster

logger = logging.getLogger(__name__)


async def record_capture(
    db: AsyncSession,
    broadcaster: EventBroadcaster,
    *,
    order_id: int,
    paypal_order_id: str,
    capture_status: str,
    capture_id: str | None = None,
) -> payment_status_service.StatusUpdateResult:
    """
    COMPLETED captures settle the order under the capture id (falling back to
    the PayPal order id); any other outcome marks it failed.
    """
    if await order_store.read_status(db, order_id) is None:
        raise NotFoundError("Order", str(order_id))

    completed = (capture_status or "").strip().upper() == PAYPAL_CAPTURE_COMPLETED
    if completed:
        status, reference = OrderStatus.SUCCESSFUL, capture_id or paypal_order_id
    else:
        status, reference = OrderStatus.FAILED, paypal_order_id
        logger.warning(f"PayPal capture for order {order_id} not completed: {capture_status!r}")

    return await payment_status_service.update_status(
        db,
        broadcaster,
        order_id,
        status,
        payment_provider=PROVIDER_PAYPAL,
        payment_reference=reference,
    )
