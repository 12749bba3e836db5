"""Payment service: registry of payment methods and the single entry point
through which the rest of the system talks to them.
"""

from collections.abc import Callable
from decimal import Decimal

import structlog

from checkout.cart.cart import ShoppingCart
from checkout.exceptions import ConfigurationError, PaymentError
from checkout.order.order import PaymentStatus
from checkout.payment.outcome import PaymentFailure, PaymentOutcome, PaymentSuccess
from checkout.payment.port import (
    CancelRecurringPaymentRequest,
    CancelRecurringPaymentResult,
    CapturePaymentRequest,
    CapturePaymentResult,
    PaymentMethod,
    PostProcessPaymentRequest,
    PreProcessPaymentResult,
    ProcessPaymentRequest,
    ProcessPaymentResult,
    RecurringPaymentType,
    RefundPaymentRequest,
    RefundPaymentResult,
    VoidPaymentRequest,
    VoidPaymentResult,
)

logger = structlog.get_logger(__name__)


class PaymentService:
    def __init__(self, methods: list[PaymentMethod] | None = None) -> None:
        self._methods: dict[str, PaymentMethod] = {}
        for method in methods or []:
            self.register(method)

    def register(self, method: PaymentMethod) -> None:
        self._methods[method.system_name] = method

    def load_method(self, system_name: str | None) -> PaymentMethod | None:
        if not system_name:
            return None
        return self._methods.get(system_name)

    def get_method(self, system_name: str | None) -> PaymentMethod:
        method = self.load_method(system_name)
        if method is None:
            raise ConfigurationError(f"Payment method '{system_name}' could not be loaded")
        return method

    def load_active_methods(self, cart: ShoppingCart | None = None, store_id: int = 1) -> list[PaymentMethod]:
        store_id = cart.store_id if cart is not None else store_id
        return [m for m in self._methods.values() if m.is_active(cart, store_id)]

    def is_method_active(self, system_name: str | None, cart: ShoppingCart | None = None, store_id: int = 1) -> bool:
        method = self.load_method(system_name)
        if method is None:
            return False
        return method.is_active(cart, cart.store_id if cart is not None else store_id)

    # -------------------------------------------------------------------
    # Capabilities
    # -------------------------------------------------------------------
    def supports_capture(self, system_name: str | None) -> bool:
        method = self.load_method(system_name)
        return method is not None and method.supports_capture

    def supports_refund(self, system_name: str | None) -> bool:
        method = self.load_method(system_name)
        return method is not None and method.supports_refund

    def supports_partial_refund(self, system_name: str | None) -> bool:
        method = self.load_method(system_name)
        return method is not None and method.supports_partial_refund

    def supports_void(self, system_name: str | None) -> bool:
        method = self.load_method(system_name)
        return method is not None and method.supports_void

    def get_recurring_payment_type(self, system_name: str | None) -> RecurringPaymentType:
        method = self.load_method(system_name)
        if method is None:
            return RecurringPaymentType.NOT_SUPPORTED
        return method.recurring_payment_type

    def get_payment_fee_info(self, system_name: str | None, cart: ShoppingCart) -> tuple[Decimal, bool]:
        method = self.load_method(system_name)
        if method is None:
            return Decimal(0), False
        return method.get_payment_fee_info(cart)

    def rounds_order_total(self, system_name: str | None) -> bool:
        method = self.load_method(system_name)
        return method is not None and method.round_order_total_enabled

    # -------------------------------------------------------------------
    # Placement-time processing
    # -------------------------------------------------------------------
    def pre_process_payment(self, request: ProcessPaymentRequest) -> PaymentOutcome:
        method = self.load_method(request.payment_method_system_name)
        if method is None:
            return PaymentSuccess(PreProcessPaymentResult())
        return self._outcome(lambda: method.pre_process_payment(request))

    def process_payment(self, request: ProcessPaymentRequest) -> PaymentOutcome:
        if request.order_total == 0:
            return PaymentSuccess(ProcessPaymentResult(new_payment_status=PaymentStatus.PAID))

        method = self.get_method(request.payment_method_system_name)
        return self._outcome(lambda: method.process_payment(request))

    def process_recurring_payment(self, request: ProcessPaymentRequest) -> PaymentOutcome:
        if request.order_total == 0:
            return PaymentSuccess(ProcessPaymentResult(new_payment_status=PaymentStatus.PAID))

        method = self.get_method(request.payment_method_system_name)
        return self._outcome(lambda: method.process_recurring_payment(request))

    def post_process_payment(self, request: PostProcessPaymentRequest) -> str | None:
        method = self.load_method(request.order.payment_method_system_name)
        if method is None:
            return None
        return method.post_process_payment(request)

    @staticmethod
    def _outcome(call: Callable[[], ProcessPaymentResult | PreProcessPaymentResult]) -> PaymentOutcome:
        try:
            result = call()
        except PaymentError as exc:
            logger.warning("Payment rejected", error=str(exc), redirect_hint=exc.redirect_hint)
            return PaymentFailure(errors=(str(exc),), redirect_hint=exc.redirect_hint)

        if result.errors:
            logger.info("Payment failed", errors=list(result.errors))
            return PaymentFailure(errors=tuple(result.errors))
        return PaymentSuccess(result)

    # -------------------------------------------------------------------
    # Post-placement operations
    # -------------------------------------------------------------------
    def capture(self, request: CapturePaymentRequest) -> CapturePaymentResult:
        method = self.get_method(request.order.payment_method_system_name)
        return method.capture(request)

    def refund(self, request: RefundPaymentRequest) -> RefundPaymentResult:
        method = self.get_method(request.order.payment_method_system_name)
        return method.refund(request)

    def void(self, request: VoidPaymentRequest) -> VoidPaymentResult:
        method = self.get_method(request.order.payment_method_system_name)
        return method.void(request)

    def cancel_recurring_payment(self, request: CancelRecurringPaymentRequest) -> CancelRecurringPaymentResult:
        if request.order.order_total == 0:
            return CancelRecurringPaymentResult()
        method = self.get_method(request.order.payment_method_system_name)
        return method.cancel_recurring_payment(request)
