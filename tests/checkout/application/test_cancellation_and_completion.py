import pytest
from protean.exceptions import InvalidOperationError

from checkout.config import CapturePaymentReason
from checkout.order.order import OrderStatus, PaymentStatus, ShippingStatus


class TestCancelOrder:
    def test_cancel(self, services, orders, placed_order):
        services.cancellation.cancel_order(placed_order, notify_customer=False)

        assert orders.get(placed_order.id).order_status == OrderStatus.CANCELLED

        assert placed_order.order_status == OrderStatus.CANCELLED
        assert [n.note for n in placed_order.notes][-2:] == [
            "Order status has been changed to Cancelled",
            "Order has been cancelled",
        ]

    def test_cancel_restores_inventory(self, services, placed_order):
        services.cancellation.cancel_order(placed_order)
        assert services.inventory.adjustments[-1] == {"product_id": 1, "decrease": False, "quantity": 2}

    def test_cancel_notifies_customer(self, services, placed_order):
        services.cancellation.cancel_order(placed_order, notify_customer=True)
        assert any(n.note.startswith('"Order cancelled" email') for n in placed_order.notes)

    def test_cancel_twice(self, services, placed_order):
        services.cancellation.cancel_order(placed_order)
        with pytest.raises(InvalidOperationError, match="Cannot cancel order."):
            services.cancellation.cancel_order(placed_order)

    def test_cancel_stops_recurring_payments(self, services, add_item, place_order):
        add_item(is_recurring=True, recurring_total_cycles=3)
        order = place_order().order

        services.cancellation.cancel_order(order)
        recurring = services.recurring.find_by_initial_order(order.id)[0]
        assert recurring.is_active is False
        assert "Recurring payment has been cancelled" in [n.note for n in order.notes]


class TestDeleteOrder:
    def test_delete_live_order_restores_inventory(self, services, placed_order):
        services.cancellation.delete_order(placed_order)

        assert placed_order.deleted is True
        assert services.inventory.adjustments[-1]["decrease"] is False

    def test_delete_cancelled_order_does_not_restore_twice(self, services, placed_order):
        services.cancellation.cancel_order(placed_order)
        adjustments = len(services.inventory.adjustments)

        services.cancellation.delete_order(placed_order)
        assert len(services.inventory.adjustments) == adjustments
        assert placed_order.deleted is True


class TestCompleteOrder:
    def test_complete_paid_order(self, services, placed_order):
        services.completion.complete_order(placed_order)

        assert placed_order.shipping_status == ShippingStatus.DELIVERED
        assert placed_order.order_status == OrderStatus.COMPLETE

    def test_complete_marks_pending_payment_as_paid(self, services, gateway, add_item, place_order):
        gateway.new_payment_status = PaymentStatus.PENDING
        add_item()
        order = place_order().order

        services.completion.complete_order(order)
        assert order.payment_status == PaymentStatus.PAID
        assert order.order_status == OrderStatus.COMPLETE

    def test_complete_captures_when_configured(self, services, gateway, add_item, place_order):
        services.settings.payment.capture_payment_reason = CapturePaymentReason.ORDER_COMPLETED
        gateway.new_payment_status = PaymentStatus.AUTHORIZED
        add_item()
        order = place_order().order

        services.completion.complete_order(order)
        assert order.payment_status == PaymentStatus.PAID
        assert gateway.calls[-1]["method"] == "capture"
        assert order.order_status == OrderStatus.COMPLETE

    @pytest.mark.parametrize("status", [OrderStatus.COMPLETE, OrderStatus.CANCELLED])
    def test_final_orders_cannot_be_completed(self, services, placed_order, status):
        placed_order.order_status = status
        with pytest.raises(InvalidOperationError, match="Cannot mark order as completed."):
            services.completion.complete_order(placed_order)
