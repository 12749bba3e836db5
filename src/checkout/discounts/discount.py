"""Discounts and preferred-discount selection."""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class DiscountType(Enum):
    ASSIGNED_TO_ORDER_TOTAL = "AssignedToOrderTotal"
    ASSIGNED_TO_SKUS = "AssignedToSkus"
    ASSIGNED_TO_CATEGORIES = "AssignedToCategories"
    ASSIGNED_TO_SHIPPING = "AssignedToShipping"
    ASSIGNED_TO_ORDER_SUBTOTAL = "AssignedToOrderSubTotal"


class DiscountLimitationType(Enum):
    UNLIMITED = "Unlimited"
    N_TIMES_ONLY = "NTimesOnly"
    N_TIMES_PER_CUSTOMER = "NTimesPerCustomer"


class Discount(BaseModel):
    id: int
    name: str
    discount_type: DiscountType
    use_percentage: bool = False
    discount_percentage: Decimal = Decimal(0)
    discount_amount: Decimal = Decimal(0)
    start_date: datetime | None = None
    end_date: datetime | None = None
    requires_coupon_code: bool = False
    coupon_code: str | None = None
    limitation_type: DiscountLimitationType = DiscountLimitationType.UNLIMITED
    limitation_times: int = 1

    def get_discount_amount(self, amount: Decimal) -> Decimal:
        if self.use_percentage:
            result = amount * self.discount_percentage / Decimal(100)
        else:
            result = self.discount_amount

        return max(result, Decimal(0))


class DiscountUsageHistory(BaseModel):
    discount_id: int
    order_id: str
    customer_id: int | None = None
    created_on: datetime = Field(default_factory=lambda: datetime.now(UTC))


def get_preferred_discount(discounts: list[Discount], amount: Decimal) -> Discount | None:
    """The discount granting the largest amount. The first one wins a tie."""
    preferred = None
    maximum = None
    for discount in discounts:
        value = discount.get_discount_amount(amount)
        if maximum is None or value > maximum:
            maximum = value
            preferred = discount
    return preferred
