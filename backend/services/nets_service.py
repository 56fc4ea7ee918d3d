"""
NETS QR payment flow — reference allocation, webhook interpretation, and the
manual/mock confirmation paths.

The NETS API client itself lives outside this service; here NETS is an opaque
caller that reports a transaction retrieval reference and a status. With
settings.nets_mock_enabled the QR step is simulated locally and the buyer
"scans" by posting to /nets/mock-pay.
"""
import logging
import uuid
from typing import Any
from urllib.parse import urlencode

from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from domain.constants import (
    NETS_APPROVED_RESPONSE_CODE,
    NETS_MOCK_REFERENCE_PREFIX,
    NETS_REFERENCE_KEYS,
    NETS_SUCCESS_TXN_STATUSES,
    PROVIDER_NETS,
)
from domain.enums import OrderStatus
from domain.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from services import order_store, payment_status_service
from services.broadcaster import EventBroadcaster

logger = logging.getLogger(__name__)


def new_mock_reference() -> str:
    return f"{NETS_MOCK_REFERENCE_PREFIX}{uuid.uuid4().hex[:16].upper()}"


def mock_pay_url(order_id: int, reference: str) -> str:
    query = urlencode({"orderId": order_id, "txn": reference})
    return f"{settings.public_base_url.rstrip('/')}/nets/mock-pay?{query}"


def extract_reference(payload: dict[str, Any]) -> str | None:
    for key in NETS_REFERENCE_KEYS:
        value = payload.get(key)
        if value:
            return str(value)
    return None


def resolve_webhook_status(payload: dict[str, Any]) -> str:
    """
    Decide the status to record for a NETS callback.

    A callback is a final outcome: successful when response_code is "00" or
    txn_status says paid (NETS numeric "2" included), failed otherwise.
    """
    response_code = str(payload.get("response_code") or payload.get("responseCode") or "").strip()
    txn_status = str(
        payload.get("txn_status") or payload.get("txnStatus") or payload.get("status") or ""
    ).strip().lower()

    if response_code == NETS_APPROVED_RESPONSE_CODE or txn_status in NETS_SUCCESS_TXN_STATUSES:
        return OrderStatus.SUCCESSFUL.value
    return OrderStatus.FAILED.value


async def start_qr_payment(
    db: AsyncSession,
    broadcaster: EventBroadcaster,
    order_id: int,
) -> dict:
    """Allocate a retrieval reference for the order and mark it pending on NETS."""
    current = await order_store.read_status(db, order_id)
    if current is None:
        raise NotFoundError("Order", str(order_id))
    if current.status in (OrderStatus.SUCCESSFUL, OrderStatus.REFUNDED):
        raise ConflictError(f"Order {order_id} is already {current.status.value}")
    if not settings.nets_mock_enabled:
        raise ValidationError("NETS QR generation is not configured on this server")

    reference = new_mock_reference()
    result = await payment_status_service.update_status(
        db,
        broadcaster,
        order_id,
        OrderStatus.PENDING,
        payment_provider=PROVIDER_NETS,
        payment_reference=reference,
    )
    logger.info(f"NETS QR issued for order {order_id} (ref={reference})")
    return {
        "orderId": order_id,
        "totalAmount": current.total_amount,
        "txnRetrievalRef": reference,
        "mockPayUrl": mock_pay_url(order_id, reference),
        "event": result.event,
    }


async def handle_webhook(
    db: AsyncSession,
    broadcaster: EventBroadcaster,
    payload: dict[str, Any],
) -> payment_status_service.StatusUpdateResult:
    """
    Apply a NETS callback. Providers retry callbacks, so repeats simply
    rewrite the same status.
    """
    reference = extract_reference(payload)
    if not reference:
        raise ValidationError("txn_retrieval_ref is required", field="txn_retrieval_ref")

    order = await order_store.find_by_reference(db, reference)
    if order is None:
        raise NotFoundError("Order for reference", reference)

    raw_status = resolve_webhook_status(payload)
    logger.info(f"NETS webhook for order {order.order_id}: ref={reference} outcome={raw_status}")
    return await payment_status_service.update_status(
        db,
        broadcaster,
        order.order_id,
        raw_status,
        payment_provider=PROVIDER_NETS,
        payment_reference=reference,
    )


async def confirm_payment(
    db: AsyncSession,
    broadcaster: EventBroadcaster,
    order_id: int,
    txn: str | None = None,
) -> payment_status_service.StatusUpdateResult:
    """Manual fallback when the webhook never arrives: mark the order paid."""
    current = await order_store.read_status(db, order_id)
    if current is None:
        raise NotFoundError("Order", str(order_id))

    return await payment_status_service.update_status(
        db,
        broadcaster,
        order_id,
        OrderStatus.SUCCESSFUL,
        payment_provider=PROVIDER_NETS,
        payment_reference=txn or current.payment_reference,
    )


async def complete_mock_payment(
    db: AsyncSession,
    broadcaster: EventBroadcaster,
    order_id: int,
    txn_retrieval_ref: str | None,
) -> payment_status_service.StatusUpdateResult:
    """
    Simulated QR scan. The caller must present the reference issued for the
    order, which stands in for the NETS app knowing the transaction.
    """
    if not settings.nets_mock_enabled:
        raise PermissionDeniedError("NETS mock payments are disabled")

    current = await order_store.read_status(db, order_id)
    if current is None:
        raise NotFoundError("Order", str(order_id))
    if not txn_retrieval_ref or txn_retrieval_ref != (current.payment_reference or ""):
        raise PermissionDeniedError("Transaction reference does not match this order")

    return await payment_status_service.update_status(
        db,
        broadcaster,
        order_id,
        OrderStatus.SUCCESSFUL,
        payment_provider=PROVIDER_NETS,
        payment_reference=txn_retrieval_ref,
    )
