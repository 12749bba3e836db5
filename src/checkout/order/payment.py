"""Payment operations on placed orders.

Every operation has a ``can_*`` guard. The mutating operation raises
``PaymentError`` when its guard is not satisfied. Online variants call the
order's payment method: an error result adds an order note, leaves the
payment status unchanged and is returned to the caller; an exception raised
by the method adds an order note and propagates. Offline variants only
record what happened outside the system.
"""

from datetime import UTC, datetime
from decimal import Decimal

import structlog
from protean.utils.globals import current_domain

from checkout.exceptions import PaymentError
from checkout.order.events import OrderPaid
from checkout.order.lifecycle import OrderLifecycle
from checkout.order.order import Order, OrderStatus, PaymentStatus
from checkout.payment.port import (
    CapturePaymentRequest,
    CapturePaymentResult,
    RefundPaymentRequest,
    RefundPaymentResult,
    VoidPaymentRequest,
    VoidPaymentResult,
)
from checkout.payment.service import PaymentService

logger = structlog.get_logger(__name__)


class OrderPaymentService:
    def __init__(self, payment_service: PaymentService, lifecycle: OrderLifecycle) -> None:
        self.payment_service = payment_service
        self.lifecycle = lifecycle

    def _commit(self, order: Order, note: str, paid_event: bool = False) -> None:
        order.add_note(note)
        self.lifecycle.check_order_status(order)
        if paid_event and order.payment_status == PaymentStatus.PAID:
            order.raise_(OrderPaid(order_id=order.id, customer_id=order.customer_id, order_total=order.order_total))
        current_domain.repository_for(Order).add(order)

    def _failure_note(self, order: Order, action: str, errors) -> None:
        message = f"Unable to {action} order #{order.id}. {' '.join(str(e) for e in errors)}"
        order.add_note(message)
        current_domain.repository_for(Order).add(order)
        logger.warning("Payment operation failed", order_id=order.id, action=action, errors=list(errors))

    # -------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------
    def can_capture(self, order: Order) -> bool:
        if order.order_status in (OrderStatus.CANCELLED, OrderStatus.PENDING):
            return False
        return order.payment_status == PaymentStatus.AUTHORIZED and self.payment_service.supports_capture(
            order.payment_method_system_name
        )

    def can_refund(self, order: Order) -> bool:
        return order.can_refund_offline() and self.payment_service.supports_refund(order.payment_method_system_name)

    def can_partially_refund(self, order: Order, amount_to_refund: Decimal) -> bool:
        return order.can_partially_refund_offline(amount_to_refund) and self.payment_service.supports_partial_refund(
            order.payment_method_system_name
        )

    def can_void(self, order: Order) -> bool:
        return order.can_void_offline() and self.payment_service.supports_void(order.payment_method_system_name)

    # -------------------------------------------------------------------
    # Online operations
    # -------------------------------------------------------------------
    def capture(self, order: Order) -> CapturePaymentResult:
        if not self.can_capture(order):
            raise PaymentError("Cannot capture order.")

        try:
            result = self.payment_service.capture(CapturePaymentRequest(order=order))
        except Exception as exc:
            self._failure_note(order, "capture", [exc])
            raise

        if not result.success:
            self._failure_note(order, "capture", result.errors)
            return result

        order.capture_transaction_id = result.capture_transaction_id
        order.capture_transaction_result = (result.capture_transaction_result or "")[:400] or None
        order.payment_status = result.new_payment_status
        if result.new_payment_status == PaymentStatus.PAID:
            order.paid_date_utc = datetime.now(UTC)

        logger.info("Order captured", order_id=order.id, payment_status=order.payment_status.value)
        self._commit(order, "Order has been captured", paid_event=True)
        return result

    def refund(self, order: Order) -> RefundPaymentResult:
        if not self.can_refund(order):
            raise PaymentError("Cannot refund order.")

        amount = order.order_total
        try:
            result = self.payment_service.refund(
                RefundPaymentRequest(order=order, amount_to_refund=amount, is_partial_refund=False)
            )
        except Exception as exc:
            self._failure_note(order, "refund", [exc])
            raise

        if not result.success:
            self._failure_note(order, "refund", result.errors)
            return result

        order.refunded_amount += amount
        order.payment_status = result.new_payment_status

        logger.info("Order refunded", order_id=order.id, amount=str(amount))
        self._commit(order, f"Order has been refunded. Amount = {amount}")
        return result

    def partially_refund(self, order: Order, amount_to_refund: Decimal) -> RefundPaymentResult:
        if not self.can_partially_refund(order, amount_to_refund):
            raise PaymentError("Cannot partially refund order.")

        try:
            result = self.payment_service.refund(
                RefundPaymentRequest(order=order, amount_to_refund=amount_to_refund, is_partial_refund=True)
            )
        except Exception as exc:
            self._failure_note(order, "partially refund", [exc])
            raise

        if not result.success:
            self._failure_note(order, "partially refund", result.errors)
            return result

        order.refunded_amount += amount_to_refund
        order.payment_status = result.new_payment_status

        logger.info("Order partially refunded", order_id=order.id, amount=str(amount_to_refund))
        self._commit(order, f"Order has been partially refunded. Amount = {amount_to_refund}")
        return result

    def void(self, order: Order) -> VoidPaymentResult:
        if not self.can_void(order):
            raise PaymentError("Cannot void order.")

        try:
            result = self.payment_service.void(VoidPaymentRequest(order=order))
        except Exception as exc:
            self._failure_note(order, "void", [exc])
            raise

        if not result.success:
            self._failure_note(order, "void", result.errors)
            return result

        order.payment_status = result.new_payment_status

        logger.info("Order voided", order_id=order.id)
        self._commit(order, "Order has been voided")
        return result

    # -------------------------------------------------------------------
    # Offline operations
    # -------------------------------------------------------------------
    def mark_as_authorized(self, order: Order) -> None:
        if not order.can_mark_as_authorized():
            raise PaymentError("Cannot mark order as authorized.")

        order.payment_status = PaymentStatus.AUTHORIZED
        self._commit(order, "Order has been marked as authorized")

    def mark_as_paid(self, order: Order) -> None:
        if not order.can_mark_as_paid():
            raise PaymentError("Cannot mark order as paid.")

        order.payment_status = PaymentStatus.PAID
        order.paid_date_utc = datetime.now(UTC)
        self._commit(order, "Order has been marked as paid", paid_event=True)

    def capture_offline(self, order: Order) -> None:
        if not order.can_capture_offline():
            raise PaymentError("Cannot capture order.")

        order.payment_status = PaymentStatus.PAID
        order.paid_date_utc = datetime.now(UTC)
        self._commit(order, "Order has been marked as paid", paid_event=True)

    def refund_offline(self, order: Order) -> None:
        if not order.can_refund_offline():
            raise PaymentError("Cannot refund order.")

        amount = order.order_total
        order.refunded_amount += amount
        order.payment_status = PaymentStatus.REFUNDED
        self._commit(order, f"Order has been marked as refunded. Amount = {amount}")

    def partially_refund_offline(self, order: Order, amount_to_refund: Decimal) -> None:
        if not order.can_partially_refund_offline(amount_to_refund):
            raise PaymentError("Cannot partially refund order.")

        order.refunded_amount += amount_to_refund
        if order.refunded_amount >= order.order_total:
            order.payment_status = PaymentStatus.REFUNDED
        else:
            order.payment_status = PaymentStatus.PARTIALLY_REFUNDED
        self._commit(order, f"Order has been marked as partially refunded. Amount = {amount_to_refund}")

    def void_offline(self, order: Order) -> None:
        if not order.can_void_offline():
            raise PaymentError("Cannot void order.")

        order.payment_status = PaymentStatus.VOIDED
        self._commit(order, "Order has been marked as voided")
