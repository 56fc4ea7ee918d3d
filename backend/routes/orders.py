"""
Order endpoints — checkout, order history, payment-status snapshot and
manual override, refund requests.
"""
import logging

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import Pagination, get_broadcaster, pagination_params
from domain.errors import NotFoundError
from domain.responses import paginated_response, success_response
from models import CheckoutRequest, PaymentStatusUpdateRequest, RefundRequestBody
from services import checkout_service, order_store, payment_status_service, refund_service
from services.broadcaster import EventBroadcaster

logger = logging.getLogger(__name__)
router = APIRouter(tags=["orders"])


@router.post("/checkout")
async def checkout(
    request: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Create an order from the submitted cart and record its initial payment status."""
    order, reused = await checkout_service.create_order(
        db,
        broadcaster,
        cart=[item.model_dump() for item in request.cart],
        payment_method=request.payment_method,
        customer_name=request.billing.name,
        customer_email=request.billing.email,
    )
    return success_response(
        data={
            "orderId": order.id,
            "total": order.total_amount,
            "paymentStatus": order.payment_status,
            "email": order.customer_email,
            "reused": reused,
        }
    )


@router.get("/api/orders")
async def list_orders(
    email: str | None = Query(None, max_length=255),
    page: Pagination = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
):
    """Order history, newest first, optionally for one customer e-mail."""
    orders, total = await checkout_service.list_orders(
        db, customer_email=email, limit=page["limit"], offset=page["offset"]
    )
    return paginated_response(
        [checkout_service.order_to_dict(o) for o in orders],
        limit=page["limit"],
        offset=page["offset"],
        total=total,
    )


@router.get("/api/orders/{order_id}")
async def get_order(
    order_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
):
    order = await checkout_service.get_order(db, order_id)
    if not order:
        raise NotFoundError("Order", str(order_id))
    return success_response(data=checkout_service.order_to_dict(order))


@router.get("/api/orders/{order_id}/payment-status")
async def get_payment_status(
    order_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
):
    """Payment-status snapshot for polling clients and initial page load."""
    snapshot = await order_store.read_status(db, order_id)
    if snapshot is None:
        raise NotFoundError("Order", str(order_id))
    return success_response(data=snapshot.to_dict())


@router.post("/api/orders/{order_id}/payment-status")
async def update_payment_status(
    request: PaymentStatusUpdateRequest,
    order_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """
    Manually set an order's payment status (admin corrections, refunds,
    testing). The status is normalized; unrecognized values become pending.
    """
    result = await payment_status_service.update_status(
        db,
        broadcaster,
        order_id,
        request.status,
        payment_provider=request.payment_provider,
        payment_reference=request.payment_reference,
    )
    return success_response(
        data={
            "order": result.snapshot.to_dict(),
            "event": result.event,
        }
    )


@router.post("/api/orders/{order_id}/refund")
async def request_refund(
    request: RefundRequestBody,
    order_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    result = await refund_service.request_refund(
        db, broadcaster, order_id=order_id, reason=request.reason
    )
    return success_response(
        data={
            "order": result.snapshot.to_dict(),
            "event": result.event,
        }
    )
