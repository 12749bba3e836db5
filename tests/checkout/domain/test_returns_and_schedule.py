"""Tests for return request eligibility and recurring payment date arithmetic."""

from datetime import UTC, datetime, timedelta

from checkout.config import OrderSettings
from checkout.order.order import Order, OrderStatus
from checkout.order.recurring import add_months
from checkout.order.returns import is_return_request_allowed

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)


def _complete_order(days_ago=1, **kwargs):
    return Order(id="order-1", order_status=OrderStatus.COMPLETE, created_on=NOW - timedelta(days=days_ago), **kwargs)


class TestReturnRequests:
    def test_complete_order_within_window(self):
        assert is_return_request_allowed(_complete_order(), OrderSettings(), NOW) is True

    def test_window_elapsed(self):
        settings = OrderSettings(number_of_days_return_request_available=30)
        assert is_return_request_allowed(_complete_order(days_ago=31), settings, NOW) is False

    def test_zero_days_means_no_limit(self):
        settings = OrderSettings(number_of_days_return_request_available=0)
        assert is_return_request_allowed(_complete_order(days_ago=5000), settings, NOW) is True

    def test_only_complete_orders(self):
        order = Order(id="order-1", order_status=OrderStatus.PROCESSING, created_on=NOW)
        assert is_return_request_allowed(order, OrderSettings(), NOW) is False

    def test_deleted_order(self):
        assert is_return_request_allowed(_complete_order(deleted=True), OrderSettings(), NOW) is False

    def test_disabled(self):
        settings = OrderSettings(return_requests_enabled=False)
        assert is_return_request_allowed(_complete_order(), settings, NOW) is False

    def test_missing_order(self):
        assert is_return_request_allowed(None, OrderSettings(), NOW) is False


class TestAddMonths:
    def test_simple_shift(self):
        assert add_months(datetime(2024, 1, 15, tzinfo=UTC), 2) == datetime(2024, 3, 15, tzinfo=UTC)

    def test_clamps_to_end_of_month(self):
        assert add_months(datetime(2024, 1, 31, tzinfo=UTC), 1) == datetime(2024, 2, 29, tzinfo=UTC)

    def test_crosses_year_boundary(self):
        assert add_months(datetime(2024, 11, 30, tzinfo=UTC), 3) == datetime(2025, 2, 28, tzinfo=UTC)
