"""Tests for the status guards of the Order aggregate."""

from decimal import Decimal

import pytest

from checkout.order.order import Order, OrderStatus, PaymentStatus, ShippingStatus


def _order(**kwargs):
    kwargs.setdefault("order_total", Decimal("100"))
    return Order(id="order-1", **kwargs)


class TestCancelAndComplete:
    def test_cancelled_order_cannot_be_cancelled_again(self):
        assert _order().can_cancel() is True
        assert _order(order_status=OrderStatus.CANCELLED).can_cancel() is False

    @pytest.mark.parametrize("status", [OrderStatus.CANCELLED, OrderStatus.COMPLETE])
    def test_final_orders_cannot_be_completed(self, status):
        assert _order(order_status=status).can_complete() is False

    def test_processing_order_can_be_completed(self):
        assert _order(order_status=OrderStatus.PROCESSING).can_complete() is True


class TestMarkAs:
    def test_mark_as_authorized_only_when_pending(self):
        assert _order().can_mark_as_authorized() is True
        assert _order(payment_status=PaymentStatus.AUTHORIZED).can_mark_as_authorized() is False

    @pytest.mark.parametrize("status", [PaymentStatus.PAID, PaymentStatus.REFUNDED, PaymentStatus.VOIDED])
    def test_cannot_mark_as_paid(self, status):
        assert _order(payment_status=status).can_mark_as_paid() is False

    def test_cancelled_order_cannot_be_marked_as_paid(self):
        assert _order(order_status=OrderStatus.CANCELLED).can_mark_as_paid() is False


class TestOfflineGuards:
    def test_capture_offline_requires_authorized_processing_order(self):
        order = _order(order_status=OrderStatus.PROCESSING, payment_status=PaymentStatus.AUTHORIZED)
        assert order.can_capture_offline() is True
        order.order_status = OrderStatus.PENDING
        assert order.can_capture_offline() is False

    def test_refund_offline(self):
        assert _order(payment_status=PaymentStatus.PAID).can_refund_offline() is True
        assert _order(payment_status=PaymentStatus.PAID, refunded_amount=Decimal("1")).can_refund_offline() is False
        assert _order(payment_status=PaymentStatus.PAID, order_total=Decimal(0)).can_refund_offline() is False

    def test_partial_refund_offline_is_capped_by_refundable_amount(self):
        order = _order(payment_status=PaymentStatus.PARTIALLY_REFUNDED, refunded_amount=Decimal("60"))
        assert order.refundable_amount == Decimal("40")
        assert order.can_partially_refund_offline(Decimal("40")) is True
        assert order.can_partially_refund_offline(Decimal("40.01")) is False

    def test_void_offline_requires_authorized(self):
        assert _order(payment_status=PaymentStatus.AUTHORIZED).can_void_offline() is True
        assert _order(payment_status=PaymentStatus.PAID).can_void_offline() is False


class TestOrderHelpers:
    def test_add_note_updates_timestamp(self):
        order = _order()
        note = order.add_note("Hello")
        assert order.notes == [note]
        assert order.updated_on == note.created_on

    def test_shipping_required(self):
        assert _order().is_shipping_required is True
        assert _order(shipping_status=ShippingStatus.NOT_REQUIRED).is_shipping_required is False
