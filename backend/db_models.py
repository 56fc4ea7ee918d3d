"""
SQLAlchemy ORM models for the storefront service.

Tables:
    orders          — checkout orders with their payment-status columns
    order_items     — cart lines captured at checkout
    refund_requests — customer refund reasons (at most one per order)
"""
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Float, DateTime, Text, ForeignKey, Index,
)
from sqlalchemy.orm import relationship

from database import Base
from domain.enums import OrderStatus


class Order(Base):
    """
    A checkout order.

    Payment lifecycle columns (written only through services.order_store):
        payment_status             — canonical OrderStatus value
        payment_provider           — sticky; never blanked by a write without one
        payment_reference          — sticky; provider transaction/capture id
        payment_status_updated_at  — advanced on every status write
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    total_amount = Column(Float, nullable=False, default=0.0)
    payment_method = Column(String(50), nullable=True)
    payment_status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)
    payment_provider = Column(String(50), nullable=True)
    payment_reference = Column(String(100), nullable=True, index=True)
    payment_status_updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    customer_name = Column(String(100), nullable=True)
    customer_email = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    items = relationship("OrderItem", back_populates="order", lazy="selectin")
    refund_request = relationship("RefundRequest", back_populates="order", uselist=False, lazy="selectin")

    __table_args__ = (
        # Pending-order reuse at checkout: filter by email + method + status
        Index("ix_orders_email_method_status", "customer_email", "payment_method", "payment_status"),
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False, index=True)  # catalog lives outside this service
    product_name = Column(String(200), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    price = Column(Float, nullable=False, default=0.0)

    order = relationship("Order", back_populates="items")


class RefundRequest(Base):
    """Customer-submitted refund reason; the unique order_id enforces one per order."""
    __tablename__ = "refund_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True)
    reason = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="refund_request")
