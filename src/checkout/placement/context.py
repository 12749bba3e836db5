"""State carried through one order placement and its result."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal

from checkout.calculation.results import CartTotal
from checkout.cart.cart import ShoppingCart
from checkout.customer.customer import Customer
from checkout.discounts.discount import Discount
from checkout.order.order import Order
from checkout.payment.outcome import PaymentFailure
from checkout.payment.port import ProcessPaymentRequest


@dataclass
class PlaceOrderContext:
    request: ProcessPaymentRequest
    extra_data: dict[str, str] = field(default_factory=dict)
    now: datetime = field(default_factory=lambda: datetime.now(UTC))
    order: Order | None = None
    customer: Customer | None = None
    cart: ShoppingCart | None = None
    initial_order: Order | None = None
    warnings: list[str] = field(default_factory=list)
    requires_shipping: bool = False
    payment_required: bool = True
    is_recurring_cart: bool = False
    cart_total: CartTotal | None = None
    applied_discounts: list[Discount] = field(default_factory=list)
    deferred_notes: list[str] = field(default_factory=list)

    def add_discount(self, discount: Discount | None) -> None:
        if discount is not None and not any(d.id == discount.id for d in self.applied_discounts):
            self.applied_discounts.append(discount)


@dataclass(frozen=True)
class OrderPlacementResult:
    order: Order | None = None
    errors: tuple[str, ...] = ()
    payment_failure: PaymentFailure | None = None

    @property
    def success(self) -> bool:
        return not self.errors and self.order is not None


@dataclass(frozen=True)
class OrderTotalValidationResult:
    order_total_minimum: Decimal = Decimal(0)
    order_total_maximum: Decimal = Decimal(0)
    is_above_minimum: bool = True
    is_below_maximum: bool = True

    @property
    def is_valid(self) -> bool:
        return self.is_above_minimum and self.is_below_maximum
