"""
Refund requests — customer-initiated refunds of settled orders.

A request stores the reason and immediately moves the order to refunded,
keeping the provider/reference that settled it.
"""
import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import RefundRequest
from domain.constants import PROVIDER_REFUND, REFUND_REASON_MIN_LENGTH
from domain.enums import OrderStatus
from domain.errors import ConflictError, NotFoundError, ValidationError
from services import order_store, payment_status_service
from services.broadcaster import EventBroadcaster

logger = logging.getLogger(__name__)

ALREADY_REQUESTED = "A refund has already been requested for this order"


async def _has_refund_request(db: AsyncSession, order_id: int) -> bool:
    res = await db.execute(select(RefundRequest.id).where(RefundRequest.order_id == order_id))
    return res.scalar_one_or_none() is not None


async def request_refund(
    db: AsyncSession,
    broadcaster: EventBroadcaster,
    *,
    order_id: int,
    reason: str,
) -> payment_status_service.StatusUpdateResult:
    reason = (reason or "").strip()
    if len(reason) < REFUND_REASON_MIN_LENGTH:
        raise ValidationError(
            f"Refund reason is required (min {REFUND_REASON_MIN_LENGTH} characters)",
            field="reason",
        )

    current = await order_store.read_status(db, order_id)
    if current is None:
        raise NotFoundError("Order", str(order_id))
    if current.status != OrderStatus.SUCCESSFUL:
        raise ValidationError("Only successful payments can be refunded")

    if await _has_refund_request(db, order_id):
        raise ConflictError(ALREADY_REQUESTED)

    db.add(RefundRequest(order_id=order_id, reason=reason, created_at=datetime.utcnow()))

    # The status write commits the request along with the status change
    try:
        result = await payment_status_service.update_status(
            db,
            broadcaster,
            order_id,
            OrderStatus.REFUNDED,
            payment_provider=current.payment_provider or PROVIDER_REFUND,
            payment_reference=current.payment_reference,
        )
    except IntegrityError:
        # A concurrent request for the same order committed first
        raise ConflictError(ALREADY_REQUESTED)

    logger.info(f"Refund requested for order {order_id}")
    return result
