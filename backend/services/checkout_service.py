"""
Checkout service — order creation and order history.

Orders are created with the cart captured as order_items; the initial payment
status (successful for immediate methods, pending otherwise) is written via
payment_status_service like every later status change.
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db_models import Order, OrderItem
from domain.constants import METHOD_NETS
from domain.enums import OrderStatus
from domain.errors import ValidationError
from services import payment_status_service
from services.broadcaster import EventBroadcaster

logger = logging.getLogger(__name__)


def compute_total(cart: list[dict], tax_rate: float) -> float:
    """Cart subtotal plus tax, rounded to cents."""
    subtotal = sum(float(i.get("price") or 0) * int(i.get("quantity") or 0) for i in cart)
    tax = round(subtotal * tax_rate, 2)
    return round(subtotal + tax, 2)


def initial_status_for(method: str) -> OrderStatus:
    if method in settings.immediate_success_methods_set:
        return OrderStatus.SUCCESSFUL
    return OrderStatus.PENDING


async def find_reusable_pending_order(
    db: AsyncSession,
    *,
    method: str,
    customer_email: str | None,
    total: float,
) -> Order | None:
    """
    Most recent pending NETS order for the same e-mail and total, created
    within the reuse window. Stops repeated "Pay with NETS" clicks from
    piling up duplicate orders.
    """
    if method != METHOD_NETS or not customer_email:
        return None

    cutoff = datetime.utcnow() - timedelta(minutes=settings.pending_order_reuse_minutes)
    res = await db.execute(
        select(Order)
        .where(
            Order.customer_email == customer_email,
            Order.payment_method == method,
            Order.payment_status == OrderStatus.PENDING.value,
            Order.created_at >= cutoff,
        )
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(1)
    )
    order = res.scalar_one_or_none()
    if order and abs(order.total_amount - total) < 0.005:
        return order
    return None


async def create_order(
    db: AsyncSession,
    broadcaster: EventBroadcaster,
    *,
    cart: list[dict],
    payment_method: str,
    customer_name: str | None,
    customer_email: str | None,
) -> tuple[Order, bool]:
    """
    Create an order (or reuse a pending NETS one).

    cart: [{product_id:int, quantity:int, price:float, product_name?:str}]

    Returns (order, reused).
    """
    if not cart:
        raise ValidationError("Cart is empty", field="cart")

    method = (payment_method or "unknown").strip().lower()
    total = compute_total(cart, settings.tax_rate)

    existing = await find_reusable_pending_order(
        db, method=method, customer_email=customer_email, total=total
    )
    if existing:
        logger.info(f"Reusing pending order {existing.id} for {customer_email} ({method})")
        return existing, True

    order = Order(
        total_amount=total,
        payment_method=method,
        payment_status=OrderStatus.PENDING.value,
        customer_name=customer_name,
        customer_email=customer_email,
        created_at=datetime.utcnow(),
    )
    db.add(order)
    await db.flush()

    for i in cart:
        db.add(
            OrderItem(
                order_id=order.id,
                product_id=int(i["product_id"]),
                product_name=i.get("product_name"),
                quantity=int(i["quantity"]),
                price=float(i["price"]),
            )
        )

    # Commits the order, its items and the initial status together
    await payment_status_service.update_status(
        db,
        broadcaster,
        order.id,
        initial_status_for(method),
        payment_provider=method,
    )
    return await get_order(db, order.id), False


async def get_order(db: AsyncSession, order_id: int) -> Order | None:
    # populate_existing: items/refund may have changed since this session first loaded the row
    res = await db.execute(
        select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def list_orders(
    db: AsyncSession,
    *,
    customer_email: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Order], int]:
    """Orders newest first, optionally filtered by customer e-mail. Returns (page, total)."""
    query = select(Order)
    count_query = select(func.count(Order.id))
    if customer_email:
        query = query.where(Order.customer_email == customer_email)
        count_query = count_query.where(Order.customer_email == customer_email)

    total = (await db.execute(count_query)).scalar_one()
    res = await db.execute(
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .offset(offset)
        .execution_options(populate_existing=True)
    )
    return list(res.scalars().all()), total


def order_to_dict(order: Order) -> dict:
    refund = order.refund_request
    return {
        "orderId": order.id,
        "totalAmount": order.total_amount,
        "paymentMethod": order.payment_method,
        "paymentStatus": order.payment_status,
        "paymentProvider": order.payment_provider,
        "paymentReference": order.payment_reference,
        "paymentStatusUpdatedAt": (
            order.payment_status_updated_at.isoformat() if order.payment_status_updated_at else None
        ),
        "customerName": order.customer_name,
        "customerEmail": order.customer_email,
        "orderDate": order.created_at.isoformat() if order.created_at else None,
        "items": [
            {
                "orderItemId": it.id,
                "productId": it.product_id,
                "productName": it.product_name,
                "quantity": it.quantity,
                "price": it.price,
            }
            for it in order.items
        ],
        "refund": (
            {
                "reason": refund.reason,
                "createdAt": refund.created_at.isoformat() if refund.created_at else None,
            }
            if refund
            else None
        ),
    }
