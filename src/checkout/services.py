"""Checkout application services.

``build_services()`` wires settings, collaborator adapters, the default
payment method and every service into one ``CheckoutServices``. Orders and
recurring payments live in the ``checkout`` domain's repositories; the
services only hold the collaborators around them. The API works against the
module-level current services (``get_services()``), which tests replace with
``set_services()``.
"""

from decimal import Decimal

import structlog

import checkout.order.repository  # noqa: F401  registers the repositories
from checkout.calculation.engine import OrderCalculationService
from checkout.cart.validation import ShoppingCartValidator
from checkout.config import CheckoutSettings, get_settings
from checkout.customer.customer import Customer
from checkout.money.rounding import RoundingHelper
from checkout.notifications.email_port import EmailPort
from checkout.notifications.fake_email import FakeEmailAdapter
from checkout.notifications.messages import MessageFactory
from checkout.order.cancellation import OrderCancellationService
from checkout.order.completion import OrderCompletionService
from checkout.order.fulfillment import ShipmentService
from checkout.order.lifecycle import OrderLifecycle
from checkout.order.modification import OrderModificationService
from checkout.order.payment import OrderPaymentService
from checkout.order.recurring import RecurringPaymentService
from checkout.payment import get_gateway
from checkout.payment.port import PaymentMethod
from checkout.payment.service import PaymentService
from checkout.placement.pipeline import OrderPlacementPipeline
from checkout.providers.memory import (
    InMemoryActivityLogger,
    InMemoryCheckoutAttributeProvider,
    InMemoryCustomerProvider,
    InMemoryDiscountProvider,
    InMemoryGiftCardProvider,
    InMemoryInventoryProvider,
    InMemoryNewsletterProvider,
    InMemoryShoppingCartProvider,
    InMemoryTaxRateProvider,
)
from checkout.shipping.shipping import FixedRateShippingComputation, ShippingMethod, ShippingService
from checkout.tax.calculator import TaxCalculator
from checkout.workflow.context import CheckoutState
from checkout.workflow.handlers import build_default_registry
from checkout.workflow.orchestrator import CheckoutWorkflow

logger = structlog.get_logger(__name__)


def _default_shipping_service() -> ShippingService:
    ground = ShippingMethod(id=1, name="Ground")
    return ShippingService(
        methods=[ground],
        computation_methods=[FixedRateShippingComputation([ground], {ground.id: Decimal(0)})],
    )


class CheckoutServices:
    """All services of one store, sharing one set of adapters."""

    def __init__(
        self,
        settings: CheckoutSettings,
        shipping_service: ShippingService | None = None,
        payment_methods: list[PaymentMethod] | None = None,
        email: EmailPort | None = None,
    ) -> None:
        self.settings = settings
        self.rounding = RoundingHelper(settings.currency.primary)

        self.customers = InMemoryCustomerProvider()
        self.discounts = InMemoryDiscountProvider()
        self.tax_rates = InMemoryTaxRateProvider()
        self.gift_cards = InMemoryGiftCardProvider()
        self.checkout_attributes = InMemoryCheckoutAttributeProvider()
        self.inventory = InMemoryInventoryProvider()
        self.newsletter = InMemoryNewsletterProvider()
        self.activity_logger = InMemoryActivityLogger()
        self.carts = InMemoryShoppingCartProvider()

        self.email = email if email is not None else FakeEmailAdapter()
        self.messages = MessageFactory(self.email, settings.store_name, settings.store_owner_email)

        self.shipping = shipping_service if shipping_service is not None else _default_shipping_service()
        self.payments = PaymentService(payment_methods if payment_methods is not None else [get_gateway()])

        self.tax_calculator = TaxCalculator(settings.tax, self.tax_rates)
        self.calculation = OrderCalculationService(
            settings,
            self.tax_calculator,
            self.discounts,
            self.shipping,
            self.gift_cards,
            self.checkout_attributes,
            self.payments,
            self.rounding,
        )
        self.cart_validator = ShoppingCartValidator(self.checkout_attributes)

        self.lifecycle = OrderLifecycle(settings, self.customers, self.messages, self.gift_cards)
        self.pipeline = OrderPlacementPipeline(
            settings,
            self.customers,
            self.calculation,
            self.payments,
            self.carts,
            self.cart_validator,
            self.checkout_attributes,
            self.discounts,
            self.gift_cards,
            self.inventory,
            self.newsletter,
            self.activity_logger,
            self.messages,
            self.lifecycle,
        )

        self.order_payments = OrderPaymentService(self.payments, self.lifecycle)
        self.recurring = RecurringPaymentService(self.customers, self.payments, self.messages, self.pipeline)
        self.cancellation = OrderCancellationService(self.lifecycle, self.recurring, self.inventory)
        self.completion = OrderCompletionService(settings, self.order_payments, self.lifecycle)
        self.shipments = ShipmentService(settings, self.lifecycle, self.order_payments, self.messages)
        self.modification = OrderModificationService(self.customers, self.lifecycle, self.inventory, self.rounding)

        self.registry = build_default_registry(settings, self.shipping, self.payments, self.calculation)
        self.workflow = CheckoutWorkflow(
            settings, self.registry, self.cart_validator, self.calculation, self.pipeline, self.payments
        )
        self.checkout_states: dict[tuple[int | None, int], CheckoutState] = {}

    def add_customer(self, customer: Customer) -> Customer:
        return self.customers.add(customer)

    def get_checkout_state(self, customer: Customer, store_id: int) -> CheckoutState:
        """Checkout state of a customer, kept between the requests of one checkout."""
        return self.checkout_states.setdefault((customer.id, store_id), CheckoutState())


def build_services(settings: CheckoutSettings | None = None, **kwargs) -> CheckoutServices:
    settings = settings if settings is not None else get_settings()
    services = CheckoutServices(settings, **kwargs)
    logger.info("Checkout services built", store_id=settings.store_id, store_name=settings.store_name)
    return services


_current_services: CheckoutServices | None = None


def get_services() -> CheckoutServices:
    """Return the current services, building them from the environment on first use."""
    global _current_services
    if _current_services is None:
        _current_services = build_services()
    return _current_services


def set_services(services: CheckoutServices) -> None:
    global _current_services
    _current_services = services


def reset_services() -> None:
    global _current_services
    _current_services = None
