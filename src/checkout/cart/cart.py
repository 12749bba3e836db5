"""Shopping cart: products, cart items (with bundle children) and the
requirement flags that decide which checkout steps apply.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum, Flag

from pydantic import BaseModel, Field

from checkout.customer.customer import Customer


class ProductType(Enum):
    SIMPLE = "Simple"
    BUNDLE = "Bundle"
    GROUPED = "Grouped"


class GiftCardType(Enum):
    VIRTUAL = "Virtual"
    PHYSICAL = "Physical"


class RecurringCyclePeriod(Enum):
    DAYS = "Days"
    WEEKS = "Weeks"
    MONTHS = "Months"
    YEARS = "Years"


class CheckoutRequirements(Flag):
    NONE = 0
    BILLING_ADDRESS = 1
    SHIPPING_ADDRESS = 2
    SHIPPING_METHOD = 4
    PAYMENT = 8
    ALL = 15


class Product(BaseModel):
    id: int
    name: str
    sku: str | None = None
    price: Decimal
    product_type: ProductType = ProductType.SIMPLE
    tax_category_id: int | None = None
    published: bool = True
    deleted: bool = False
    disable_buy_button: bool = False
    is_shipping_enabled: bool = True
    is_free_shipping: bool = False
    additional_shipping_charge: Decimal = Decimal(0)
    weight: Decimal = Decimal(0)
    bundle_per_item_shipping: bool = False
    manage_inventory: bool = False
    stock_quantity: int = 0
    order_minimum_quantity: int = 1
    order_maximum_quantity: int = 10000
    is_gift_card: bool = False
    gift_card_type: GiftCardType = GiftCardType.VIRTUAL
    is_recurring: bool = False
    recurring_cycle_length: int = 1
    recurring_cycle_period: RecurringCyclePeriod = RecurringCyclePeriod.MONTHS
    recurring_total_cycles: int = 0


class GiftCardInfo(BaseModel):
    recipient_name: str | None = None
    recipient_email: str | None = None
    sender_name: str | None = None
    sender_email: str | None = None
    message: str | None = None


class CartItem(BaseModel):
    id: int
    product: Product
    quantity: int = 1
    custom_price: Decimal | None = None
    attribute_description: str | None = None
    gift_card_info: GiftCardInfo | None = None
    child_items: list["CartItem"] = Field(default_factory=list)

    @property
    def unit_price(self) -> Decimal:
        return self.product.price if self.custom_price is None else self.custom_price

    @property
    def is_shippable(self) -> bool:
        return self.product.is_shipping_enabled and not self.product.is_free_shipping


@dataclass(frozen=True)
class RecurringCycleInfo:
    cycle_length: int | None = None
    cycle_period: RecurringCyclePeriod | None = None
    total_cycles: int | None = None
    error: str | None = None


class ShoppingCart(BaseModel):
    customer: Customer
    store_id: int = 1
    items: list[CartItem] = Field(default_factory=list)
    requirements: CheckoutRequirements = CheckoutRequirements.ALL

    @property
    def has_items(self) -> bool:
        return len(self.items) > 0

    def is_shipping_required(self) -> bool:
        if CheckoutRequirements.SHIPPING_ADDRESS not in self.requirements:
            return False
        return any(item.product.is_shipping_enabled for item in self.items)

    def has_recurring_items(self) -> bool:
        return any(item.product.is_recurring for item in self.items)

    def get_recurring_cycle_info(self) -> RecurringCycleInfo:
        """Cycle settings shared by all recurring items.

        Recurring items with differing cycle settings cannot be placed in one
        order and yield an ``error``.
        """
        cycles = {
            (
                item.product.recurring_cycle_length,
                item.product.recurring_cycle_period,
                item.product.recurring_total_cycles,
            )
            for item in self.items
            if item.product.is_recurring
        }
        if not cycles:
            return RecurringCycleInfo()
        if len(cycles) > 1:
            return RecurringCycleInfo(
                error="Your cart has recurring items with conflicting recurring cycle settings."
            )

        length, period, total = cycles.pop()
        return RecurringCycleInfo(cycle_length=length, cycle_period=period, total_cycles=total)

    def get_total_weight(self) -> Decimal:
        return sum(
            (item.product.weight * item.quantity for item in self.items if item.product.is_shipping_enabled),
            Decimal(0),
        )


class CheckoutAttributeValue(BaseModel):
    """A selected value of a checkout attribute (e.g. gift wrapping)."""

    id: int
    attribute_name: str
    name: str
    price_adjustment: Decimal = Decimal(0)
    tax_category_id: int | None = None
