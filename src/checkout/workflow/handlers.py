"""Built-in checkout step handlers.

Each handler applies the customer's selection posted for its page (the
context's ``model``), or checks the selection made earlier. A page that
has nothing to select for the current cart reports ``skip_page``.
"""

from typing import TYPE_CHECKING

import structlog

from checkout.calculation.engine import OrderCalculationService
from checkout.cart.cart import CheckoutRequirements
from checkout.payment.port import ProcessPaymentRequest
from checkout.payment.service import PaymentService
from checkout.shipping.shipping import ShippingService
from checkout.workflow.context import CheckoutContext
from checkout.workflow.steps import CheckoutHandler, CheckoutHandlerResult, CheckoutStepMetadata, CheckoutStepRegistry

if TYPE_CHECKING:
    from checkout.config import CheckoutSettings

logger = structlog.get_logger(__name__)

BILLING_ADDRESS_STEP = CheckoutStepMetadata(order=10, actions=("BillingAddress",), progress_label="Address")
SHIPPING_ADDRESS_STEP = CheckoutStepMetadata(order=20, actions=("ShippingAddress",), progress_label="Address")
SHIPPING_METHOD_STEP = CheckoutStepMetadata(order=30, actions=("ShippingMethod",), progress_label="Shipping")
PAYMENT_METHOD_STEP = CheckoutStepMetadata(order=40, actions=("PaymentMethod",), progress_label="Payment")
TERMINAL_STEP = CheckoutStepMetadata(order=0, actions=("Confirm",), progress_label="Confirm")

_FULFILLED = CheckoutHandlerResult(success=True)
_SKIPPED = CheckoutHandlerResult(success=True, skip_page=True)
_UNFULFILLED = CheckoutHandlerResult(success=False)


def _failure(message: str) -> CheckoutHandlerResult:
    return CheckoutHandlerResult(success=False, errors=(message,))


class BillingAddressHandler(CheckoutHandler):
    def __init__(self, settings: "CheckoutSettings") -> None:
        self.settings = settings

    def metadata(self) -> CheckoutStepMetadata:
        return BILLING_ADDRESS_STEP

    def process(self, context: CheckoutContext) -> CheckoutHandlerResult:
        cart = context.cart
        customer = cart.customer

        if CheckoutRequirements.BILLING_ADDRESS not in cart.requirements:
            customer.billing_address = None
            return _SKIPPED

        address_id = context.selection("address_id")
        if address_id is not None:
            address = customer.find_address(int(address_id))
            if address is None:
                return _failure("Billing address not found.")
            customer.billing_address = address
            return _FULFILLED

        quick_checkout = self.settings.shopping_cart.quick_checkout_enabled
        if customer.billing_address is None and quick_checkout and customer.addresses:
            customer.billing_address = customer.addresses[0]

        return _FULFILLED if customer.billing_address is not None else _UNFULFILLED


class ShippingAddressHandler(CheckoutHandler):
    def __init__(self, settings: "CheckoutSettings") -> None:
        self.settings = settings

    def metadata(self) -> CheckoutStepMetadata:
        return SHIPPING_ADDRESS_STEP

    def process(self, context: CheckoutContext) -> CheckoutHandlerResult:
        cart = context.cart
        customer = cart.customer

        if not cart.is_shipping_required():
            customer.shipping_address = None
            return _SKIPPED

        if context.selection("use_billing_address"):
            if customer.billing_address is None:
                return _failure("Billing address is not provided.")
            customer.shipping_address = customer.billing_address
            return _FULFILLED

        address_id = context.selection("address_id")
        if address_id is not None:
            address = customer.find_address(int(address_id))
            if address is None:
                return _failure("Shipping address not found.")
            customer.shipping_address = address
            return _FULFILLED

        if customer.shipping_address is None and self.settings.shopping_cart.quick_checkout_enabled:
            customer.shipping_address = customer.billing_address

        return _FULFILLED if customer.shipping_address is not None else _UNFULFILLED


class ShippingMethodHandler(CheckoutHandler):
    def __init__(self, settings: "CheckoutSettings", shipping_service: ShippingService) -> None:
        self.settings = settings
        self.shipping_service = shipping_service

    def metadata(self) -> CheckoutStepMetadata:
        return SHIPPING_METHOD_STEP

    def process(self, context: CheckoutContext) -> CheckoutHandlerResult:
        cart = context.cart
        checkout = cart.customer.checkout

        if not cart.is_shipping_required():
            checkout.selected_shipping_option = None
            context.state.is_shipping_method_skipped = True
            return _SKIPPED

        response = self.shipping_service.get_shipping_options(cart, cart.customer.shipping_address)
        if not response.success:
            return CheckoutHandlerResult(success=False, errors=tuple(response.errors))

        options = response.options
        checkout.offered_shipping_options = options

        key = context.selection("shipping_option")
        if key is not None:
            option = next((o for o in options if o.selection_key == key), None)
            if option is None:
                return _failure("Selected shipping method can't be loaded.")
            checkout.selected_shipping_option = option
            return _FULFILLED

        if len(options) == 1 and self.settings.shipping.skip_shipping_if_single_option:
            checkout.selected_shipping_option = options[0]
            context.state.is_shipping_method_skipped = True
            logger.debug("Single shipping option selected", option=options[0].name)
            return _SKIPPED

        selected = checkout.selected_shipping_option
        if selected is not None and any(o.selection_key == selected.selection_key for o in options):
            return _FULFILLED

        if self.settings.shopping_cart.quick_checkout_enabled:
            checkout.selected_shipping_option = options[0]
            return _FULFILLED

        return _UNFULFILLED


class PaymentMethodHandler(CheckoutHandler):
    def __init__(
        self,
        settings: "CheckoutSettings",
        payment_service: PaymentService,
        calculation: OrderCalculationService,
    ) -> None:
        self.settings = settings
        self.payment_service = payment_service
        self.calculation = calculation

    def metadata(self) -> CheckoutStepMetadata:
        return PAYMENT_METHOD_STEP

    def process(self, context: CheckoutContext) -> CheckoutHandlerResult:
        cart = context.cart
        customer = cart.customer
        checkout = customer.checkout

        cart_total = self.calculation.get_cart_total(cart, include_payment_fee=False)
        if cart_total.total is not None and cart_total.total == 0:
            checkout.selected_payment_method = None
            context.state.is_payment_selection_skipped = True
            return _SKIPPED

        methods = self.payment_service.load_active_methods(cart)
        if not methods:
            return _failure("No payment methods available.")

        system_name = context.selection("payment_method")
        if system_name is not None:
            if not self.payment_service.is_method_active(system_name, cart):
                return _failure("Please select a payment method.")
            self._select(context, system_name)
            return _FULFILLED

        if len(methods) == 1 and self.settings.payment.bypass_payment_method_selection_if_only_one:
            self._select(context, methods[0].system_name)
            context.state.is_payment_selection_skipped = True
            return _SKIPPED

        if self.payment_service.is_method_active(checkout.selected_payment_method, cart):
            return _FULFILLED
        return _UNFULFILLED

    @staticmethod
    def _select(context: CheckoutContext, system_name: str) -> None:
        customer = context.cart.customer
        customer.checkout.selected_payment_method = system_name
        context.state.payment_request = ProcessPaymentRequest(
            store_id=context.cart.store_id,
            customer_id=customer.id,
            payment_method_system_name=system_name,
        )
        logger.debug("Payment method selected", customer_id=customer.id, payment_method=system_name)


class TerminalCheckoutHandler(CheckoutHandler):
    """Runs every regular step on the single confirmation page."""

    def __init__(self, handlers: list[CheckoutHandler]) -> None:
        self.handlers = sorted(handlers, key=lambda h: h.metadata().order)

    def metadata(self) -> CheckoutStepMetadata:
        return TERMINAL_STEP

    def process(self, context: CheckoutContext) -> CheckoutHandlerResult:
        for handler in self.handlers:
            result = handler.process(context)
            if not result.success:
                return CheckoutHandlerResult(success=False, errors=result.errors, redirect=result.redirect)
        return _FULFILLED


def build_default_registry(
    settings: "CheckoutSettings",
    shipping_service: ShippingService,
    payment_service: PaymentService,
    calculation: OrderCalculationService,
) -> CheckoutStepRegistry:
    registry = CheckoutStepRegistry(settings.shopping_cart)
    registry.register(BILLING_ADDRESS_STEP, lambda: BillingAddressHandler(settings))
    registry.register(SHIPPING_ADDRESS_STEP, lambda: ShippingAddressHandler(settings))
    registry.register(SHIPPING_METHOD_STEP, lambda: ShippingMethodHandler(settings, shipping_service))
    registry.register(PAYMENT_METHOD_STEP, lambda: PaymentMethodHandler(settings, payment_service, calculation))
    registry.register_terminal(
        TERMINAL_STEP,
        lambda: TerminalCheckoutHandler(
            [
                BillingAddressHandler(settings),
                ShippingAddressHandler(settings),
                ShippingMethodHandler(settings, shipping_service),
                PaymentMethodHandler(settings, payment_service, calculation),
            ]
        ),
    )
    return registry
