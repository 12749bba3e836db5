"""Completing orders by hand."""

from typing import TYPE_CHECKING

import structlog
from protean.exceptions import InvalidOperationError
from protean.utils.globals import current_domain

from checkout.config import CapturePaymentReason
from checkout.order.lifecycle import OrderLifecycle
from checkout.order.order import Order, ShippingStatus
from checkout.order.payment import OrderPaymentService

if TYPE_CHECKING:
    from checkout.config import CheckoutSettings

logger = structlog.get_logger(__name__)


class OrderCompletionService:
    def __init__(self, settings: "CheckoutSettings", payments: OrderPaymentService, lifecycle: OrderLifecycle) -> None:
        self.settings = settings
        self.payments = payments
        self.lifecycle = lifecycle

    def complete_order(self, order: Order) -> None:
        """Capture or mark the payment as paid, mark shipping delivered and let the lifecycle complete the order."""
        if not order.can_complete():
            raise InvalidOperationError("Cannot mark order as completed.")

        capture_reason = self.settings.payment.capture_payment_reason
        if capture_reason == CapturePaymentReason.ORDER_COMPLETED and self.payments.can_capture(order):
            self.payments.capture(order)

        if order.can_mark_as_paid():
            self.payments.mark_as_paid(order)

        if order.shipping_status != ShippingStatus.NOT_REQUIRED:
            order.shipping_status = ShippingStatus.DELIVERED

        self.lifecycle.check_order_status(order)
        current_domain.repository_for(Order).add(order)
        logger.info("Order completion requested", order_id=order.id, order_status=order.order_status.value)
