"""
Payment provider endpoints — NETS QR and PayPal capture reporting.

Endpoints:
    POST     /api/nets/generate-qr      — issue a (mock) QR reference, order → pending
    GET|POST /api/nets/webhook          — NETS callback (query and/or JSON body)
    GET      /nets-qr/confirm           — manual "I have paid" fallback
    POST     /nets/mock-pay             — simulated QR scan (mock mode only)
    POST     /api/paypal/capture-result — record a PayPal capture outcome
"""
import json
import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import get_broadcaster
from domain.errors import PaymentNotCompletedError, ValidationError
from domain.enums import OrderStatus
from domain.responses import success_response
from models import NetsMockPayRequest, NetsQrRequest, PaypalCaptureResult
from services import nets_service, paypal_service
from services.broadcaster import EventBroadcaster

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])


async def _webhook_payload(request: Request) -> dict:
    """Query parameters merged with a JSON object body (body wins)."""
    payload: dict = dict(request.query_params)
    body = await request.body()
    if body:
        try:
            parsed = json.loads(body)
        except (ValueError, UnicodeDecodeError):
            raise ValidationError("Webhook body must be JSON")
        if isinstance(parsed, dict):
            payload.update(parsed)
    return payload


@router.post("/api/nets/generate-qr")
async def generate_nets_qr(
    request: NetsQrRequest,
    db: AsyncSession = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    data = await nets_service.start_qr_payment(db, broadcaster, request.order_id)
    return success_response(data=data)


@router.api_route("/api/nets/webhook", methods=["GET", "POST"])
async def nets_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    payload = await _webhook_payload(request)
    result = await nets_service.handle_webhook(db, broadcaster, payload)
    return {"ok": True, "orderId": result.snapshot.order_id, "status": result.persisted_status.value}


@router.get("/nets-qr/confirm")
async def confirm_nets_payment(
    order_id: int = Query(..., gt=0, alias="orderId"),
    txn: str | None = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    result = await nets_service.confirm_payment(db, broadcaster, order_id, txn)
    return success_response(data={"order": result.snapshot.to_dict(), "event": result.event})


@router.post("/nets/mock-pay")
async def nets_mock_pay(
    request: NetsMockPayRequest,
    db: AsyncSession = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    result = await nets_service.complete_mock_payment(
        db, broadcaster, request.order_id, request.txn_retrieval_ref
    )
    return success_response(data={"order": result.snapshot.to_dict(), "event": result.event})


@router.post("/api/paypal/capture-result")
async def paypal_capture_result(
    request: PaypalCaptureResult,
    db: AsyncSession = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    result = await paypal_service.record_capture(
        db,
        broadcaster,
        order_id=request.order_id,
        paypal_order_id=request.paypal_order_id,
        capture_status=request.capture_status,
        capture_id=request.capture_id,
    )
    if result.persisted_status != OrderStatus.SUCCESSFUL:
        # Failure is already recorded and broadcast; tell the caller too
        raise PaymentNotCompletedError(details={"captureStatus": request.capture_status})
    return success_response(data={"order": result.snapshot.to_dict(), "event": result.event})
