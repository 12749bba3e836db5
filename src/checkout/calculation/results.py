"""Value objects produced by the order total calculation engine."""

from dataclasses import dataclass, field
from decimal import Decimal

from checkout.discounts.discount import Discount
from checkout.giftcards.giftcard import GiftCard
from checkout.tax.rates import TaxRates


@dataclass(frozen=True)
class CartTaxingInfo:
    """Per-item facts used to pick one tax category for shipping and payment fees."""

    tax_category_id: int | None
    tax_rate: Decimal
    subtotal_without_discount: Decimal
    has_highest_cart_amount: bool = False
    has_highest_tax_rate: bool = False


TaxingInfoMap = dict[int, CartTaxingInfo]


@dataclass(frozen=True)
class CartSubtotal:
    subtotal_without_discount: Decimal
    subtotal_with_discount: Decimal
    discount_amount: Decimal = Decimal(0)
    applied_discount: Discount | None = None
    tax_rates: TaxRates = field(default_factory=dict)


@dataclass(frozen=True)
class CartShippingTotal:
    """Shipping total; ``shipping_total`` is None when it cannot be calculated yet."""

    shipping_total: Decimal | None
    tax_rate: Decimal = Decimal(0)
    discount_amount: Decimal = Decimal(0)
    applied_discount: Discount | None = None


@dataclass(frozen=True)
class CartTaxTotal:
    tax_total: Decimal
    tax_rates: TaxRates = field(default_factory=dict)


@dataclass(frozen=True)
class AppliedGiftCard:
    gift_card: GiftCard
    usable_amount: Decimal


@dataclass(frozen=True)
class CartTotal:
    """Grand total; ``total`` is None when shipping cannot be calculated yet."""

    total: Decimal | None
    discount_amount: Decimal = Decimal(0)
    applied_discount: Discount | None = None
    applied_gift_cards: list[AppliedGiftCard] = field(default_factory=list)
    redeemed_reward_points: int = 0
    redeemed_reward_points_amount: Decimal = Decimal(0)
    credit_balance: Decimal = Decimal(0)
    rounding_amount: Decimal = Decimal(0)
