"""In-memory collaborator adapters.

Used as the default wiring of ``CheckoutServices`` and in tests. Each adapter
records what it was asked to do so callers can assert on side effects.
"""

from datetime import UTC, datetime
from decimal import Decimal

import structlog
from protean.exceptions import ObjectNotFoundError

from checkout.cart.cart import CheckoutAttributeValue, Product, ShoppingCart
from checkout.customer.customer import Customer
from checkout.discounts.discount import Discount, DiscountLimitationType, DiscountType, DiscountUsageHistory
from checkout.giftcards.giftcard import GiftCard, generate_gift_card_code
from checkout.providers.ports import (
    ActivityLogger,
    CheckoutAttributeProvider,
    CustomerProvider,
    DiscountProvider,
    GiftCardProvider,
    InventoryProvider,
    NewsletterProvider,
    ShoppingCartProvider,
    TaxRateProvider,
)

logger = structlog.get_logger(__name__)


class InMemoryDiscountProvider(DiscountProvider):
    def __init__(self, discounts: list[Discount] | None = None) -> None:
        self.discounts: list[Discount] = list(discounts or [])
        self.usage: list[DiscountUsageHistory] = []

    def add(self, discount: Discount) -> None:
        self.discounts.append(discount)

    def get_all_discounts(self, discount_type: DiscountType) -> list[Discount]:
        return [d for d in self.discounts if d.discount_type == discount_type]

    def is_discount_valid(self, discount: Discount, customer: Customer | None) -> bool:
        now = datetime.now(UTC)
        if discount.start_date and discount.start_date > now:
            return False
        if discount.end_date and discount.end_date < now:
            return False

        if discount.requires_coupon_code:
            entered = customer.checkout.discount_coupon_code if customer else None
            if not entered or not discount.coupon_code:
                return False
            if entered.strip().lower() != discount.coupon_code.strip().lower():
                return False

        usages = [u for u in self.usage if u.discount_id == discount.id]
        if discount.limitation_type == DiscountLimitationType.N_TIMES_ONLY:
            return len(usages) < discount.limitation_times
        if discount.limitation_type == DiscountLimitationType.N_TIMES_PER_CUSTOMER:
            if customer is None or customer.is_guest:
                return False
            return len([u for u in usages if u.customer_id == customer.id]) < discount.limitation_times

        return True

    def add_usage(self, usage: DiscountUsageHistory) -> None:
        self.usage.append(usage)


class InMemoryTaxRateProvider(TaxRateProvider):
    """Tax rates per tax category id; unknown categories use ``default_rate``."""

    def __init__(self, rates: dict[int, Decimal] | None = None, default_rate: Decimal = Decimal(0)) -> None:
        self.rates = dict(rates or {})
        self.default_rate = default_rate
        self.vat_exempt_customer_ids: set[int] = set()

    def get_tax_rate(self, tax_category_id: int | None, customer: Customer | None) -> Decimal:
        if tax_category_id is None:
            return self.default_rate
        return self.rates.get(tax_category_id, self.default_rate)

    def is_vat_exempt(self, customer: Customer) -> bool:
        return customer.id in self.vat_exempt_customer_ids


class InMemoryGiftCardProvider(GiftCardProvider):
    def __init__(self) -> None:
        self.gift_cards: list[GiftCard] = []
        self._next_id = 1

    def add(self, gift_card: GiftCard) -> GiftCard:
        if gift_card.id is None:
            gift_card.id = self._next_id
            self._next_id += 1
        self.gift_cards.append(gift_card)
        return gift_card

    def get_valid_gift_cards(self, store_id: int, customer: Customer | None) -> list[GiftCard]:
        if customer is None:
            return []
        codes = [c.strip().lower() for c in customer.checkout.gift_card_coupon_codes]
        return [gc for gc in self.gift_cards if gc.coupon_code.lower() in codes and gc.is_valid()]

    def get_by_purchased_order_item(self, order_item_id: str) -> list[GiftCard]:
        return [gc for gc in self.gift_cards if gc.purchased_with_order_item_id == order_item_id]

    def generate_code(self) -> str:
        return generate_gift_card_code()


class InMemoryCheckoutAttributeProvider(CheckoutAttributeProvider):
    def __init__(
        self,
        values: list[CheckoutAttributeValue] | None = None,
        required_attributes: list[str] | None = None,
    ) -> None:
        self.values = {v.id: v for v in values or []}
        self.required_attributes = list(required_attributes or [])

    def get_selected_values(self, cart: ShoppingCart) -> list[CheckoutAttributeValue]:
        ids = cart.customer.checkout.checkout_attribute_value_ids
        return [self.values[i] for i in ids if i in self.values]

    def get_missing_required_attributes(self, cart: ShoppingCart) -> list[str]:
        selected = {v.attribute_name for v in self.get_selected_values(cart)}
        return [name for name in self.required_attributes if name not in selected]

    def format_description(self, cart: ShoppingCart) -> str:
        parts = []
        for value in self.get_selected_values(cart):
            text = f"{value.attribute_name}: {value.name}"
            if value.price_adjustment:
                text += f" [+{value.price_adjustment}]"
            parts.append(text)
        return "<br />".join(parts)


class InMemoryInventoryProvider(InventoryProvider):
    """Adjusts stock of registered products and records every adjustment."""

    def __init__(self, products: list[Product] | None = None) -> None:
        self.products = {p.id: p for p in products or []}
        self.adjustments: list[dict] = []

    def register(self, product: Product) -> None:
        self.products[product.id] = product

    def adjust_inventory(self, product_id: int, decrease: bool, quantity: int) -> None:
        self.adjustments.append({"product_id": product_id, "decrease": decrease, "quantity": quantity})

        product = self.products.get(product_id)
        if product is None or not product.manage_inventory:
            return
        product.stock_quantity += -quantity if decrease else quantity
        logger.debug("Inventory adjusted", product_id=product_id, stock_quantity=product.stock_quantity)


class InMemoryNewsletterProvider(NewsletterProvider):
    def __init__(self) -> None:
        self.subscriptions: set[tuple[str, int]] = set()

    def apply_subscription(self, add: bool, email: str, store_id: int) -> bool | None:
        key = (email.lower(), store_id)
        if add and key not in self.subscriptions:
            self.subscriptions.add(key)
            return True
        if not add and key in self.subscriptions:
            self.subscriptions.remove(key)
            return False
        return None


class InMemoryActivityLogger(ActivityLogger):
    def __init__(self) -> None:
        self.entries: list[dict] = []

    def log_activity(self, kind: str, message: str, customer_id: int | None = None) -> None:
        self.entries.append({"kind": kind, "message": message, "customer_id": customer_id})


class InMemoryShoppingCartProvider(ShoppingCartProvider):
    def __init__(self) -> None:
        self.carts: dict[tuple[int | None, int], ShoppingCart] = {}

    def get_cart(self, customer: Customer, store_id: int) -> ShoppingCart:
        key = (customer.id, store_id)
        cart = self.carts.get(key)
        if cart is None:
            cart = ShoppingCart(customer=customer, store_id=store_id)
            self.carts[key] = cart
        return cart

    def save_cart(self, cart: ShoppingCart) -> None:
        self.carts[(cart.customer.id, cart.store_id)] = cart

    def delete_cart(self, cart: ShoppingCart) -> None:
        cart.items.clear()
        self.carts.pop((cart.customer.id, cart.store_id), None)


class InMemoryCustomerProvider(CustomerProvider):
    """Customers keyed by id. ``add`` assigns the next id to a new customer."""

    def __init__(self) -> None:
        self.customers: dict[int, Customer] = {}
        self._next_id = 1

    def add(self, customer: Customer) -> Customer:
        if customer.id is None:
            customer.id = self._next_id
        self._next_id = max(self._next_id, customer.id + 1)
        self.customers[customer.id] = customer
        return customer

    def get(self, customer_id: int) -> Customer:
        customer = self.customers.get(customer_id)
        if customer is None:
            raise ObjectNotFoundError(f"`Customer` object with identifier {customer_id} does not exist.")
        return customer

    def find(self, customer_id: int | None) -> Customer | None:
        if customer_id is None:
            return None
        return self.customers.get(customer_id)
