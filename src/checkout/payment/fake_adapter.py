"""Configurable fake payment method for development and testing.

Simulates a payment provider without any external calls. It can be
configured at runtime to succeed, to return errors, or to raise
``PaymentError``, and records every call in ``calls``.
"""

from decimal import Decimal
from uuid import uuid4

from checkout.cart.cart import ShoppingCart
from checkout.exceptions import PaymentError
from checkout.order.order import PaymentStatus
from checkout.payment.port import (
    CancelRecurringPaymentRequest,
    CancelRecurringPaymentResult,
    CapturePaymentRequest,
    CapturePaymentResult,
    PaymentMethod,
    PostProcessPaymentRequest,
    ProcessPaymentRequest,
    ProcessPaymentResult,
    RecurringPaymentType,
    RefundPaymentRequest,
    RefundPaymentResult,
    VoidPaymentRequest,
    VoidPaymentResult,
)


class FakePaymentMethod(PaymentMethod):
    """Configurable fake payment method."""

    def __init__(
        self,
        system_name: str = "Payments.Fake",
        new_payment_status: PaymentStatus = PaymentStatus.PAID,
        recurring_payment_type: RecurringPaymentType = RecurringPaymentType.MANUAL,
    ) -> None:
        self.system_name = system_name
        self.friendly_name = "Fake payment"
        self.new_payment_status = new_payment_status
        self.recurring_payment_type = recurring_payment_type
        self.supports_capture = True
        self.supports_refund = True
        self.supports_partial_refund = True
        self.supports_void = True
        self.active = True
        self.fee: Decimal = Decimal(0)
        self.fee_use_percentage = False
        self.redirect_url: str | None = None

        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.raise_payment_error: bool = False
        self.redirect_hint: str | None = None
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool,
        failure_reason: str = "Card declined",
        raise_payment_error: bool = False,
        redirect_hint: str | None = None,
    ) -> None:
        """Configure method behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.raise_payment_error = raise_payment_error
        self.redirect_hint = redirect_hint

    def _check(self) -> tuple[str, ...]:
        if self.raise_payment_error:
            raise PaymentError(self.failure_reason, redirect_hint=self.redirect_hint)
        if self.should_succeed:
            return ()
        return (self.failure_reason,)

    def is_active(self, cart: ShoppingCart | None, store_id: int) -> bool:
        return self.active

    def get_payment_fee_info(self, cart: ShoppingCart) -> tuple[Decimal, bool]:
        return self.fee, self.fee_use_percentage

    def process_payment(self, request: ProcessPaymentRequest) -> ProcessPaymentResult:
        self.calls.append({"method": "process_payment", "order_total": request.order_total})

        errors = self._check()
        if errors:
            return ProcessPaymentResult(errors=errors)

        txn = f"fake_txn_{uuid4().hex[:12]}"
        if self.new_payment_status == PaymentStatus.AUTHORIZED:
            return ProcessPaymentResult(
                new_payment_status=PaymentStatus.AUTHORIZED,
                authorization_transaction_id=txn,
                authorization_transaction_result="Authorized",
            )
        return ProcessPaymentResult(
            new_payment_status=self.new_payment_status,
            capture_transaction_id=txn,
            capture_transaction_result="Captured",
        )

    def process_recurring_payment(self, request: ProcessPaymentRequest) -> ProcessPaymentResult:
        self.calls.append(
            {
                "method": "process_recurring_payment",
                "order_total": request.order_total,
                "initial_order_id": request.initial_order_id,
            }
        )

        errors = self._check()
        if errors:
            return ProcessPaymentResult(errors=errors)
        return ProcessPaymentResult(
            new_payment_status=self.new_payment_status,
            subscription_transaction_id=f"fake_sub_{uuid4().hex[:12]}",
        )

    def post_process_payment(self, request: PostProcessPaymentRequest) -> str | None:
        self.calls.append({"method": "post_process_payment", "order_id": request.order.id})
        return self.redirect_url

    def capture(self, request: CapturePaymentRequest) -> CapturePaymentResult:
        self.calls.append({"method": "capture", "order_id": request.order.id})

        errors = self._check()
        if errors:
            return CapturePaymentResult(new_payment_status=request.order.payment_status, errors=errors)
        return CapturePaymentResult(
            new_payment_status=PaymentStatus.PAID,
            capture_transaction_id=f"fake_cap_{uuid4().hex[:12]}",
            capture_transaction_result="Captured",
        )

    def refund(self, request: RefundPaymentRequest) -> RefundPaymentResult:
        self.calls.append(
            {
                "method": "refund",
                "order_id": request.order.id,
                "amount": request.amount_to_refund,
                "is_partial_refund": request.is_partial_refund,
            }
        )

        errors = self._check()
        if errors:
            return RefundPaymentResult(new_payment_status=request.order.payment_status, errors=errors)

        order = request.order
        fully_refunded = order.refunded_amount + request.amount_to_refund >= order.order_total
        status = PaymentStatus.REFUNDED if fully_refunded else PaymentStatus.PARTIALLY_REFUNDED
        return RefundPaymentResult(new_payment_status=status)

    def void(self, request: VoidPaymentRequest) -> VoidPaymentResult:
        self.calls.append({"method": "void", "order_id": request.order.id})

        errors = self._check()
        if errors:
            return VoidPaymentResult(new_payment_status=request.order.payment_status, errors=errors)
        return VoidPaymentResult(new_payment_status=PaymentStatus.VOIDED)

    def cancel_recurring_payment(self, request: CancelRecurringPaymentRequest) -> CancelRecurringPaymentResult:
        self.calls.append({"method": "cancel_recurring_payment", "order_id": request.order.id})

        errors = self._check()
        return CancelRecurringPaymentResult(errors=errors)
