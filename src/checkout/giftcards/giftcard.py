"""Gift cards purchased with an order and redeemed against later orders."""

from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

from pydantic import BaseModel, Field

from checkout.cart.cart import GiftCardType


class GiftCardUsageHistory(BaseModel):
    gift_card_id: int
    order_id: str
    used_value: Decimal
    created_on: datetime = Field(default_factory=lambda: datetime.now(UTC))


class GiftCard(BaseModel):
    id: int | None = None
    gift_card_type: GiftCardType = GiftCardType.VIRTUAL
    amount: Decimal
    is_activated: bool = False
    coupon_code: str
    recipient_name: str | None = None
    recipient_email: str | None = None
    sender_name: str | None = None
    sender_email: str | None = None
    message: str | None = None
    is_recipient_notified: bool = False
    purchased_with_order_item_id: str | None = None
    usage_history: list[GiftCardUsageHistory] = Field(default_factory=list)

    def get_remaining_amount(self) -> Decimal:
        used = sum((h.used_value for h in self.usage_history), Decimal(0))
        return max(self.amount - used, Decimal(0))

    def is_valid(self) -> bool:
        return self.is_activated and self.get_remaining_amount() > 0


def generate_gift_card_code() -> str:
    return str(uuid4())[:13].upper()
