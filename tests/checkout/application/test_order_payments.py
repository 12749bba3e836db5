from decimal import Decimal

import pytest

from checkout.exceptions import PaymentError
from checkout.order.order import OrderStatus, PaymentStatus


@pytest.fixture()
def authorized_order(gateway, add_item, place_order):
    gateway.new_payment_status = PaymentStatus.AUTHORIZED
    add_item(price="10.00", quantity=2)
    order = place_order().order
    gateway.new_payment_status = PaymentStatus.PAID
    return order


@pytest.fixture()
def pending_order(gateway, add_item, place_order):
    gateway.new_payment_status = PaymentStatus.PENDING
    add_item(price="10.00", quantity=2)
    return place_order().order


def _last_note(order):
    return order.notes[-1].note


class TestCapture:
    def test_capture_authorized_order(self, services, authorized_order, order_events):
        result = services.order_payments.capture(authorized_order)

        assert result.success
        assert authorized_order.payment_status == PaymentStatus.PAID
        assert authorized_order.paid_date_utc is not None
        assert authorized_order.capture_transaction_id.startswith("fake_cap_")
        assert "Order has been captured" in [n.note for n in authorized_order.notes]
        assert order_events(authorized_order.id).count("Checkout.OrderPaid.v1") == 1

    def test_declined_capture_adds_note(self, services, gateway, authorized_order):
        gateway.configure(should_succeed=False)

        result = services.order_payments.capture(authorized_order)
        assert result.success is False
        assert authorized_order.payment_status == PaymentStatus.AUTHORIZED
        assert _last_note(authorized_order) == f"Unable to capture order #{authorized_order.id}. Card declined"

    def test_capture_exception_is_noted_and_raised(self, services, gateway, authorized_order):
        gateway.configure(should_succeed=False, raise_payment_error=True)

        with pytest.raises(PaymentError):
            services.order_payments.capture(authorized_order)
        assert _last_note(authorized_order) == f"Unable to capture order #{authorized_order.id}. Card declined"
        assert authorized_order.payment_status == PaymentStatus.AUTHORIZED

    def test_paid_order_cannot_be_captured(self, services, placed_order):
        assert services.order_payments.can_capture(placed_order) is False
        with pytest.raises(PaymentError, match="Cannot capture order."):
            services.order_payments.capture(placed_order)

    def test_capture_needs_method_support(self, services, gateway, authorized_order):
        gateway.supports_capture = False
        assert services.order_payments.can_capture(authorized_order) is False


class TestRefund:
    def test_full_refund(self, services, placed_order):
        services.order_payments.refund(placed_order)

        assert placed_order.payment_status == PaymentStatus.REFUNDED
        assert placed_order.refunded_amount == Decimal("20.00")
        assert "Order has been refunded. Amount = 20.00" in [n.note for n in placed_order.notes]

    def test_partial_refunds_add_up(self, services, placed_order):
        services.order_payments.partially_refund(placed_order, Decimal("5.00"))
        assert placed_order.payment_status == PaymentStatus.PARTIALLY_REFUNDED
        assert placed_order.refunded_amount == Decimal("5.00")

        services.order_payments.partially_refund(placed_order, Decimal("15.00"))
        assert placed_order.payment_status == PaymentStatus.REFUNDED
        assert placed_order.refunded_amount == Decimal("20.00")

    def test_partial_refund_over_refundable_amount(self, services, placed_order):
        with pytest.raises(PaymentError, match="Cannot partially refund order."):
            services.order_payments.partially_refund(placed_order, Decimal("20.01"))

    def test_declined_refund_keeps_status(self, services, gateway, placed_order):
        gateway.configure(should_succeed=False)

        result = services.order_payments.refund(placed_order)
        assert result.success is False
        assert placed_order.payment_status == PaymentStatus.PAID
        assert placed_order.refunded_amount == Decimal(0)

    def test_refund_needs_method_support(self, services, gateway, placed_order):
        gateway.supports_refund = False
        with pytest.raises(PaymentError, match="Cannot refund order."):
            services.order_payments.refund(placed_order)


class TestVoid:
    def test_void_authorized_order(self, services, authorized_order):
        services.order_payments.void(authorized_order)
        assert authorized_order.payment_status == PaymentStatus.VOIDED
        assert "Order has been voided" in [n.note for n in authorized_order.notes]

    def test_paid_order_cannot_be_voided(self, services, placed_order):
        with pytest.raises(PaymentError, match="Cannot void order."):
            services.order_payments.void(placed_order)


class TestOfflineOperations:
    def test_pending_order_stays_pending(self, pending_order):
        assert pending_order.order_status == OrderStatus.PENDING
        assert pending_order.payment_status == PaymentStatus.PENDING

    def test_mark_as_authorized_moves_to_processing(self, services, pending_order):
        services.order_payments.mark_as_authorized(pending_order)

        assert pending_order.payment_status == PaymentStatus.AUTHORIZED
        assert pending_order.order_status == OrderStatus.PROCESSING

    def test_mark_as_paid(self, services, pending_order, order_events):
        services.order_payments.mark_as_paid(pending_order)

        assert pending_order.payment_status == PaymentStatus.PAID
        assert pending_order.paid_date_utc is not None
        assert pending_order.order_status == OrderStatus.PROCESSING
        assert order_events(pending_order.id).count("Checkout.OrderPaid.v1") == 1

    def test_mark_paid_order_as_paid_again(self, services, placed_order):
        with pytest.raises(PaymentError, match="Cannot mark order as paid."):
            services.order_payments.mark_as_paid(placed_order)

    def test_capture_offline(self, services, authorized_order):
        services.order_payments.capture_offline(authorized_order)
        assert authorized_order.payment_status == PaymentStatus.PAID

    def test_refund_offline(self, services, placed_order):
        services.order_payments.refund_offline(placed_order)
        assert placed_order.payment_status == PaymentStatus.REFUNDED
        assert placed_order.refunded_amount == Decimal("20.00")

    @pytest.mark.parametrize(
        "amount, expected",
        [
            ("20.00", PaymentStatus.REFUNDED),
            ("19.99", PaymentStatus.PARTIALLY_REFUNDED),
            ("0.01", PaymentStatus.PARTIALLY_REFUNDED),
        ],
    )
    def test_partial_refund_offline_status_at_the_order_total(self, services, orders, placed_order, amount, expected):
        services.order_payments.partially_refund_offline(placed_order, Decimal(amount))

        stored = orders.get(placed_order.id)
        assert stored.payment_status == expected
        assert stored.refunded_amount == Decimal(amount)

    def test_partial_refunds_offline_reaching_the_total_refund(self, services, placed_order):
        services.order_payments.partially_refund_offline(placed_order, Decimal("5.00"))
        services.order_payments.partially_refund_offline(placed_order, Decimal("15.00"))

        assert placed_order.payment_status == PaymentStatus.REFUNDED
        assert placed_order.refundable_amount == Decimal(0)

    def test_partial_refund_offline(self, services, placed_order):
        services.order_payments.partially_refund_offline(placed_order, Decimal("4.00"))
        assert placed_order.payment_status == PaymentStatus.PARTIALLY_REFUNDED
        assert placed_order.refundable_amount == Decimal("16.00")

    def test_void_offline(self, services, authorized_order):
        services.order_payments.void_offline(authorized_order)
        assert authorized_order.payment_status == PaymentStatus.VOIDED

    def test_offline_operations_do_not_call_the_gateway(self, services, gateway, placed_order):
        calls = len(gateway.calls)
        services.order_payments.refund_offline(placed_order)
        assert len(gateway.calls) == calls
