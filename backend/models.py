"""
Pydantic models for request validation.
"""
from pydantic import BaseModel, ConfigDict, Field


class ApiModel(BaseModel):
    """Shared base — allows construction by Python name or camelCase alias."""
    model_config = ConfigDict(populate_by_name=True)


# ── Checkout ────────────────────────────────────────────────────────

class CartItem(ApiModel):
    product_id: int = Field(..., gt=0, alias="productId")
    product_name: str | None = Field(default=None, alias="productName", max_length=200)
    quantity: int = Field(..., ge=1, le=100)
    price: float = Field(..., ge=0)


class BillingDetails(ApiModel):
    name: str | None = Field(default=None, max_length=100)
    email: str | None = Field(default=None, max_length=255)


class CheckoutRequest(ApiModel):
    cart: list[CartItem] = Field(default_factory=list)
    payment_method: str = Field("unknown", alias="paymentMethod", max_length=50)
    billing: BillingDetails = Field(default_factory=BillingDetails)


# ── Payment status ──────────────────────────────────────────────────

class PaymentStatusUpdateRequest(ApiModel):
    """Manual/admin override. Any status string is accepted and normalized."""
    status: str = Field(..., min_length=1, max_length=50)
    payment_provider: str | None = Field(default=None, alias="paymentProvider", max_length=50)
    payment_reference: str | None = Field(default=None, alias="paymentReference", max_length=100)


class RefundRequestBody(ApiModel):
    reason: str = Field("", max_length=2000)


# ── Providers ───────────────────────────────────────────────────────

class NetsQrRequest(ApiModel):
    order_id: int = Field(..., gt=0, alias="orderId")


class NetsMockPayRequest(ApiModel):
    order_id: int = Field(..., gt=0, alias="orderId")
    txn_retrieval_ref: str | None = Field(default=None, alias="txnRetrievalRef", max_length=100)


class PaypalCaptureResult(ApiModel):
    order_id: int = Field(..., gt=0, alias="orderId")
    paypal_order_id: str = Field(..., min_length=1, alias="paypalOrderId", max_length=100)
    capture_status: str = Field(..., alias="captureStatus", max_length=50)
    capture_id: str | None = Field(default=None, alias="captureId", max_length=100)
