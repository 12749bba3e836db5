"""Customers, their roles and addresses, and the data a customer carries
through checkout (selected shipping option, payment method, coupon codes).
"""

import re
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from checkout.shipping.options import ShippingOption
from checkout.tax.rates import TaxDisplayType

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_email(value: str | None) -> bool:
    return bool(value) and _EMAIL_RE.match(value) is not None


class VatNumberStatus(Enum):
    UNKNOWN = "Unknown"
    EMPTY = "Empty"
    VALID = "Valid"
    INVALID = "Invalid"


class Country(BaseModel):
    id: int
    name: str
    two_letter_iso_code: str
    allows_billing: bool = True
    allows_shipping: bool = True
    subject_to_vat: bool = False


class Address(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str | None = None
    company: str | None = None
    address1: str
    city: str
    zip_postal_code: str
    country: Country | None = None


class CustomerRole(BaseModel):
    id: int
    name: str
    system_name: str | None = None
    active: bool = True
    tax_exempt: bool = False
    free_shipping: bool = False
    order_total_minimum: Decimal | None = None
    order_total_maximum: Decimal | None = None


class RewardPointsHistoryEntry(BaseModel):
    points: int
    points_balance: int
    used_amount: Decimal = Decimal(0)
    message: str
    order_id: str | None = None
    created_on: datetime = Field(default_factory=lambda: datetime.now(UTC))


class CustomerCheckoutData(BaseModel):
    """Selections a customer makes while checking out."""

    selected_shipping_option: ShippingOption | None = None
    offered_shipping_options: list[ShippingOption] = Field(default_factory=list)
    selected_payment_method: str | None = None
    use_reward_points_during_checkout: bool = False
    use_credit_balance_during_checkout: Decimal = Decimal(0)
    discount_coupon_code: str | None = None
    gift_card_coupon_codes: list[str] = Field(default_factory=list)
    checkout_attribute_value_ids: list[int] = Field(default_factory=list)

    def reset(
        self,
        clear_coupon_codes: bool = False,
        clear_checkout_attributes: bool = False,
        clear_reward_points: bool = True,
        clear_shipping_method: bool = True,
        clear_payment_method: bool = True,
        clear_credit_balance: bool = True,
    ) -> None:
        if clear_coupon_codes:
            self.discount_coupon_code = None
            self.gift_card_coupon_codes = []
        if clear_checkout_attributes:
            self.checkout_attribute_value_ids = []
        if clear_reward_points:
            self.use_reward_points_during_checkout = False
        if clear_shipping_method:
            self.selected_shipping_option = None
            self.offered_shipping_options = []
        if clear_payment_method:
            self.selected_payment_method = None
        if clear_credit_balance:
            self.use_credit_balance_during_checkout = Decimal(0)


class Customer(BaseModel):
    id: int | None = None
    email: str | None = None
    username: str | None = None
    is_registered: bool = True
    is_admin: bool = False
    roles: list[CustomerRole] = Field(default_factory=list)
    addresses: list[Address] = Field(default_factory=list)
    billing_address: Address | None = None
    shipping_address: Address | None = None
    tax_display_type: TaxDisplayType | None = None
    is_tax_exempt: bool = False
    vat_number: str | None = None
    vat_number_status: VatNumberStatus = VatNumberStatus.UNKNOWN
    language_code: str = "en"
    currency_code: str | None = None
    credit_balance: Decimal = Decimal(0)
    reward_points_history: list[RewardPointsHistoryEntry] = Field(default_factory=list)
    checkout: CustomerCheckoutData = Field(default_factory=CustomerCheckoutData)

    @property
    def is_guest(self) -> bool:
        return not self.is_registered

    @property
    def active_roles(self) -> list[CustomerRole]:
        return [role for role in self.roles if role.active]

    @property
    def reward_points_balance(self) -> int:
        if not self.reward_points_history:
            return 0
        return self.reward_points_history[-1].points_balance

    def find_address(self, address_id: int) -> Address | None:
        return next((a for a in self.addresses if a.id == address_id), None)

    def add_reward_points_history_entry(
        self,
        points: int,
        message: str,
        order_id: str | None = None,
        used_amount: Decimal = Decimal(0),
    ) -> RewardPointsHistoryEntry:
        entry = RewardPointsHistoryEntry(
            points=points,
            points_balance=self.reward_points_balance + points,
            used_amount=used_amount,
            message=message,
            order_id=order_id,
        )
        self.reward_points_history.append(entry)
        return entry
