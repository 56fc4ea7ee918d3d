"""
Tests for checkout — totals, initial status per method, pending NETS order
reuse, order history and refunds.
"""
from datetime import datetime, timedelta

import pytest

from db_models import Order
from domain.enums import OrderStatus
from domain.errors import ConflictError, NotFoundError, ValidationError
from services import checkout_service, refund_service
from services.payment_status_service import update_status


CART = [
    {"product_id": 1, "product_name": "Mug", "quantity": 2, "price": 5.0},
    {"product_id": 2, "product_name": "Tee", "quantity": 1, "price": 10.0},
]


class TestTotals:

    @pytest.mark.unit
    def test_total_includes_tax(self):
        # 20.00 subtotal + 7% tax
        assert checkout_service.compute_total(CART, 0.07) == 21.4

    @pytest.mark.unit
    def test_total_of_empty_cart(self):
        assert checkout_service.compute_total([], 0.07) == 0.0

    @pytest.mark.unit
    @pytest.mark.parametrize("method,expected", [
        ("visa", OrderStatus.SUCCESSFUL),
        ("applepay", OrderStatus.SUCCESSFUL),
        ("nets", OrderStatus.PENDING),
        ("paypal", OrderStatus.PENDING),
        ("unknown", OrderStatus.PENDING),
    ])
    def test_initial_status_for(self, method, expected):
        assert checkout_service.initial_status_for(method) == expected


class TestCreateOrder:

    @pytest.mark.unit
    async def test_card_checkout_is_successful_immediately(self, db_session, broadcaster):
        order, reused = await checkout_service.create_order(
            db_session, broadcaster,
            cart=CART, payment_method="Visa",
            customer_name="Ann", customer_email="ann@example.com",
        )

        assert reused is False
        assert order.payment_status == "successful"
        assert order.payment_method == "visa"
        assert order.payment_provider == "visa"
        assert order.total_amount == 21.4
        assert len(order.items) == 2
        assert {i.product_name for i in order.items} == {"Mug", "Tee"}

    @pytest.mark.unit
    async def test_nets_checkout_is_pending(self, db_session, broadcaster):
        order, _ = await checkout_service.create_order(
            db_session, broadcaster,
            cart=CART, payment_method="nets",
            customer_name="Ann", customer_email="ann@example.com",
        )
        assert order.payment_status == "pending"

    @pytest.mark.unit
    async def test_empty_cart_is_rejected(self, db_session, broadcaster):
        with pytest.raises(ValidationError):
            await checkout_service.create_order(
                db_session, broadcaster,
                cart=[], payment_method="visa",
                customer_name=None, customer_email=None,
            )

    @pytest.mark.unit
    async def test_pending_nets_order_is_reused(self, db_session, broadcaster):
        first, _ = await checkout_service.create_order(
            db_session, broadcaster,
            cart=CART, payment_method="nets",
            customer_name="Ann", customer_email="ann@example.com",
        )
        second, reused = await checkout_service.create_order(
            db_session, broadcaster,
            cart=CART, payment_method="nets",
            customer_name="Ann", customer_email="ann@example.com",
        )

        assert reused is True
        assert second.id == first.id

    @pytest.mark.unit
    async def test_different_total_creates_new_order(self, db_session, broadcaster):
        first, _ = await checkout_service.create_order(
            db_session, broadcaster,
            cart=CART, payment_method="nets",
            customer_name="Ann", customer_email="ann@example.com",
        )
        second, reused = await checkout_service.create_order(
            db_session, broadcaster,
            cart=CART[:1], payment_method="nets",
            customer_name="Ann", customer_email="ann@example.com",
        )
        assert reused is False
        assert second.id != first.id

    @pytest.mark.unit
    async def test_stale_pending_order_is_not_reused(self, db_session, broadcaster):
        stale = Order(
            total_amount=21.4,
            payment_method="nets",
            payment_status="pending",
            customer_email="ann@example.com",
            created_at=datetime.utcnow() - timedelta(hours=1),
        )
        db_session.add(stale)
        await db_session.commit()

        order, reused = await checkout_service.create_order(
            db_session, broadcaster,
            cart=CART, payment_method="nets",
            customer_name="Ann", customer_email="ann@example.com",
        )
        assert reused is False
        assert order.id != stale.id

    @pytest.mark.unit
    async def test_checkout_publishes_initial_status(self, db_session, broadcaster, sink_factory):
        # Order ids start at 1 in a fresh database
        sink = sink_factory()
        broadcaster.subscribe(1, sink)

        order, _ = await checkout_service.create_order(
            db_session, broadcaster,
            cart=CART, payment_method="paynow",
            customer_name=None, customer_email=None,
        )

        assert order.id == 1
        assert [e["status"] for e in sink.events] == ["successful"]


class TestOrderHistory:

    @pytest.mark.unit
    async def test_list_orders_by_email(self, db_session, broadcaster):
        for email in ("a@example.com", "a@example.com", "b@example.com"):
            await checkout_service.create_order(
                db_session, broadcaster,
                cart=CART, payment_method="visa",
                customer_name=None, customer_email=email,
            )

        orders, total = await checkout_service.list_orders(db_session, customer_email="a@example.com")
        assert total == 2
        assert all(o.customer_email == "a@example.com" for o in orders)
        # newest first
        assert orders[0].id > orders[1].id

    @pytest.mark.unit
    async def test_order_to_dict(self, db_session, broadcaster):
        order, _ = await checkout_service.create_order(
            db_session, broadcaster,
            cart=CART, payment_method="visa",
            customer_name="Ann", customer_email="ann@example.com",
        )
        data = checkout_service.order_to_dict(order)

        assert data["orderId"] == order.id
        assert data["paymentStatus"] == "successful"
        assert len(data["items"]) == 2
        assert data["refund"] is None


class TestRefunds:

    @pytest.mark.unit
    async def test_refund_successful_order(self, db_session, broadcaster, sample_order):
        await update_status(
            db_session, broadcaster, sample_order.id, "paid",
            payment_provider="nets", payment_reference="T1",
        )

        result = await refund_service.request_refund(
            db_session, broadcaster, order_id=sample_order.id, reason="Item arrived broken",
        )

        assert result.persisted_status == OrderStatus.REFUNDED
        assert result.snapshot.payment_provider == "nets"
        assert result.snapshot.payment_reference == "T1"

        order = await checkout_service.get_order(db_session, sample_order.id)
        assert order.refund_request.reason == "Item arrived broken"

    @pytest.mark.unit
    async def test_refund_requires_reason(self, db_session, broadcaster, sample_order):
        with pytest.raises(ValidationError):
            await refund_service.request_refund(
                db_session, broadcaster, order_id=sample_order.id, reason=" no ",
            )

    @pytest.mark.unit
    async def test_refund_of_pending_order_is_rejected(self, db_session, broadcaster, sample_order):
        with pytest.raises(ValidationError):
            await refund_service.request_refund(
                db_session, broadcaster, order_id=sample_order.id, reason="Changed my mind",
            )

    @pytest.mark.unit
    async def test_refund_unknown_order(self, db_session, broadcaster):
        with pytest.raises(NotFoundError):
            await refund_service.request_refund(
                db_session, broadcaster, order_id=777, reason="Changed my mind",
            )

    @pytest.mark.unit
    async def test_second_refund_request_conflicts(self, db_session, broadcaster, sample_order):
        await update_status(db_session, broadcaster, sample_order.id, "paid")
        await refund_service.request_refund(
            db_session, broadcaster, order_id=sample_order.id, reason="Changed my mind",
        )
        # Put the order back to successful so only the existing request blocks it
        await update_status(db_session, broadcaster, sample_order.id, "paid")

        with pytest.raises(ConflictError):
            await refund_service.request_refund(
                db_session, broadcaster, order_id=sample_order.id, reason="Changed my mind again",
            )

    @pytest.mark.unit
    async def test_racing_refund_request_conflicts(
        self, db_session, broadcaster, sink_factory, sample_order, monkeypatch
    ):
        """Two requests that both pass the duplicate check: the loser gets a conflict."""
        await update_status(db_session, broadcaster, sample_order.id, "paid")
        await refund_service.request_refund(
            db_session, broadcaster, order_id=sample_order.id, reason="Changed my mind",
        )
        await update_status(db_session, broadcaster, sample_order.id, "paid")

        async def no_existing_request(db, order_id):
            return False

        monkeypatch.setattr(refund_service, "_has_refund_request", no_existing_request)
        sink = sink_factory()
        broadcaster.subscribe(sample_order.id, sink)

        with pytest.raises(ConflictError):
            await refund_service.request_refund(
                db_session, broadcaster, order_id=sample_order.id, reason="Changed my mind again",
            )

        assert sink.events == []
        order = await checkout_service.get_order(db_session, sample_order.id)
        assert order.payment_status == "successful"
        assert order.refund_request.reason == "Changed my mind"
