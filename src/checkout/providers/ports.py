"""Collaborator ports used by the calculation engine and the placement
pipeline.

Each port is a narrow query or recording interface. In-memory adapters live
in ``checkout.providers.memory``.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from checkout.cart.cart import CheckoutAttributeValue, ShoppingCart
from checkout.customer.customer import Customer
from checkout.discounts.discount import Discount, DiscountType, DiscountUsageHistory
from checkout.giftcards.giftcard import GiftCard


class DiscountProvider(ABC):
    @abstractmethod
    def get_all_discounts(self, discount_type: DiscountType) -> list[Discount]:
        """Discount candidates of a type, in provider order."""
        ...

    @abstractmethod
    def is_discount_valid(self, discount: Discount, customer: Customer | None) -> bool:
        """Date window, coupon code and usage limitations."""
        ...

    @abstractmethod
    def add_usage(self, usage: DiscountUsageHistory) -> None: ...


class TaxRateProvider(ABC):
    @abstractmethod
    def get_tax_rate(self, tax_category_id: int | None, customer: Customer | None) -> Decimal:
        """Tax rate in percent."""
        ...

    @abstractmethod
    def is_vat_exempt(self, customer: Customer) -> bool: ...


class GiftCardProvider(ABC):
    @abstractmethod
    def get_valid_gift_cards(self, store_id: int, customer: Customer | None) -> list[GiftCard]:
        """Activated cards with a remaining balance applied by the customer."""
        ...

    @abstractmethod
    def add(self, gift_card: GiftCard) -> GiftCard: ...

    @abstractmethod
    def get_by_purchased_order_item(self, order_item_id: str) -> list[GiftCard]: ...

    @abstractmethod
    def generate_code(self) -> str: ...


class CheckoutAttributeProvider(ABC):
    @abstractmethod
    def get_selected_values(self, cart: ShoppingCart) -> list[CheckoutAttributeValue]: ...

    @abstractmethod
    def get_missing_required_attributes(self, cart: ShoppingCart) -> list[str]:
        """Names of required attributes the customer has not selected."""
        ...

    @abstractmethod
    def format_description(self, cart: ShoppingCart) -> str: ...


class InventoryProvider(ABC):
    @abstractmethod
    def adjust_inventory(self, product_id: int, decrease: bool, quantity: int) -> None: ...


class NewsletterProvider(ABC):
    @abstractmethod
    def apply_subscription(self, add: bool, email: str, store_id: int) -> bool | None:
        """True when a subscription was added, False when removed, None when nothing changed."""
        ...


class ActivityLogger(ABC):
    @abstractmethod
    def log_activity(self, kind: str, message: str, customer_id: int | None = None) -> None: ...


class ShoppingCartProvider(ABC):
    @abstractmethod
    def get_cart(self, customer: Customer, store_id: int) -> ShoppingCart: ...

    @abstractmethod
    def save_cart(self, cart: ShoppingCart) -> None: ...

    @abstractmethod
    def delete_cart(self, cart: ShoppingCart) -> None: ...


class CustomerProvider(ABC):
    @abstractmethod
    def get(self, customer_id: int) -> Customer:
        """Raises ``ObjectNotFoundError`` for an unknown id."""
        ...

    @abstractmethod
    def find(self, customer_id: int | None) -> Customer | None: ...
