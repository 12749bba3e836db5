"""Tests for discount amounts and preferred-discount selection."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

from checkout.customer.customer import Customer
from checkout.discounts.discount import (
    Discount,
    DiscountLimitationType,
    DiscountType,
    DiscountUsageHistory,
    get_preferred_discount,
)
from checkout.providers.memory import InMemoryDiscountProvider


def _discount(discount_id=1, **kwargs):
    kwargs.setdefault("name", f"Discount {discount_id}")
    kwargs.setdefault("discount_type", DiscountType.ASSIGNED_TO_ORDER_TOTAL)
    return Discount(id=discount_id, **kwargs)


class TestDiscountAmount:
    def test_percentage(self):
        discount = _discount(use_percentage=True, discount_percentage=Decimal("10"))
        assert discount.get_discount_amount(Decimal("250")) == Decimal("25")

    def test_fixed_amount(self):
        discount = _discount(discount_amount=Decimal("5"))
        assert discount.get_discount_amount(Decimal("250")) == Decimal("5")

    def test_never_negative(self):
        discount = _discount(discount_amount=Decimal("-5"))
        assert discount.get_discount_amount(Decimal("250")) == Decimal(0)


class TestPreferredDiscount:
    def test_picks_largest_amount(self):
        small = _discount(1, discount_amount=Decimal("5"))
        large = _discount(2, use_percentage=True, discount_percentage=Decimal("10"))
        assert get_preferred_discount([small, large], Decimal("100")) is large

    def test_first_wins_a_tie(self):
        first = _discount(1, discount_amount=Decimal("10"))
        second = _discount(2, use_percentage=True, discount_percentage=Decimal("10"))
        assert get_preferred_discount([first, second], Decimal("100")) is first

    def test_none_without_candidates(self):
        assert get_preferred_discount([], Decimal("100")) is None


class TestDiscountValidity:
    def test_expired_discount_is_invalid(self):
        provider = InMemoryDiscountProvider()
        discount = _discount(end_date=datetime.now(UTC) - timedelta(days=1))
        assert provider.is_discount_valid(discount, Customer(id=1)) is False

    def test_future_discount_is_invalid(self):
        provider = InMemoryDiscountProvider()
        discount = _discount(start_date=datetime.now(UTC) + timedelta(days=1))
        assert provider.is_discount_valid(discount, Customer(id=1)) is False

    def test_coupon_code_must_match(self):
        provider = InMemoryDiscountProvider()
        discount = _discount(requires_coupon_code=True, coupon_code="SAVE10")
        customer = Customer(id=1)
        assert provider.is_discount_valid(discount, customer) is False

        customer.checkout.discount_coupon_code = " save10 "
        assert provider.is_discount_valid(discount, customer) is True

    def test_n_times_only(self):
        provider = InMemoryDiscountProvider()
        discount = _discount(limitation_type=DiscountLimitationType.N_TIMES_ONLY, limitation_times=1)
        assert provider.is_discount_valid(discount, Customer(id=1)) is True

        provider.add_usage(DiscountUsageHistory(discount_id=discount.id, order_id="order-1", customer_id=2))
        assert provider.is_discount_valid(discount, Customer(id=1)) is False

    def test_n_times_per_customer(self):
        provider = InMemoryDiscountProvider()
        discount = _discount(limitation_type=DiscountLimitationType.N_TIMES_PER_CUSTOMER, limitation_times=1)
        provider.add_usage(DiscountUsageHistory(discount_id=discount.id, order_id="order-1", customer_id=2))

        assert provider.is_discount_valid(discount, Customer(id=1)) is True
        assert provider.is_discount_valid(discount, Customer(id=2)) is False
        assert provider.is_discount_valid(discount, Customer(id=3, is_registered=False)) is False
