"""
Order status store — durable payment-status record for orders.

The only code that writes the payment_* columns of `orders`. Callers pass an
already-normalized OrderStatus; provider and reference are sticky (None keeps
the stored value).
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Order
from domain.enums import OrderStatus
from domain.errors import NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusSnapshot:
    order_id: int
    status: OrderStatus
    payment_provider: str | None
    payment_reference: str | None
    status_updated_at: datetime | None
    total_amount: float

    def to_dict(self) -> dict:
        return {
            "orderId": self.order_id,
            "status": self.status.value,
            "paymentProvider": self.payment_provider,
            "paymentReference": self.payment_reference,
            "paymentStatusUpdatedAt": self.status_updated_at.isoformat() if self.status_updated_at else None,
            "totalAmount": self.total_amount,
        }


def _utcnow() -> datetime:
    # Naive UTC, matching what SQLite hands back for DateTime columns
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _snapshot(order: Order) -> StatusSnapshot:
    try:
        status = OrderStatus(order.payment_status)
    except ValueError:
        # Rows written before normalization existed
        status = OrderStatus.PENDING
    return StatusSnapshot(
        order_id=order.id,
        status=status,
        payment_provider=order.payment_provider,
        payment_reference=order.payment_reference,
        status_updated_at=order.payment_status_updated_at,
        total_amount=order.total_amount,
    )


async def write_status(
    db: AsyncSession,
    order_id: int,
    status: OrderStatus,
    *,
    payment_provider: str | None = None,
    payment_reference: str | None = None,
) -> StatusSnapshot:
    """
    Persist a status write and commit it.

    - status_updated_at always advances (never moves backwards, even if the
      wall clock does)
    - provider/reference overwrite only when a value is supplied

    Raises NotFoundError for unknown orders; database errors are rolled back
    and re-raised unchanged.
    """
    try:
        res = await db.execute(select(Order).where(Order.id == order_id))
        order = res.scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order", str(order_id))

        now = _utcnow()
        previous = order.payment_status_updated_at
        if previous is not None and previous > now:
            now = previous

        order.payment_status = status.value
        order.payment_status_updated_at = now
        if payment_provider is not None:
            order.payment_provider = payment_provider
        if payment_reference is not None:
            order.payment_reference = payment_reference

        await db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Status write failed for order {order_id}: {e}")
        await db.rollback()
        raise

    return _snapshot(order)


async def read_status(db: AsyncSession, order_id: int) -> StatusSnapshot | None:
    res = await db.execute(select(Order).where(Order.id == order_id))
    order = res.scalar_one_or_none()
    return _snapshot(order) if order else None


async def find_by_reference(db: AsyncSession, payment_reference: str) -> StatusSnapshot | None:
    """Look up the most recent order carrying a provider reference (webhook routing)."""
    res = await db.execute(
        select(Order)
        .where(Order.payment_reference == payment_reference)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(1)
    )
    order = res.scalar_one_or_none()
    return _snapshot(order) if order else None
