from datetime import UTC, datetime
from typing import TYPE_CHECKING

from checkout.order.order import Order, OrderStatus

if TYPE_CHECKING:
    from checkout.config import OrderSettings


def is_return_request_allowed(order: Order | None, settings: "OrderSettings", now: datetime | None = None) -> bool:
    """Complete orders accept return requests for a configured number of days (0 = no limit)."""
    if not settings.return_requests_enabled or order is None:
        return False
    if order.deleted or order.order_status != OrderStatus.COMPLETE:
        return False

    days = settings.number_of_days_return_request_available
    if days == 0:
        return True

    now = now or datetime.now(UTC)
    days_passed = (now - order.created_on).total_seconds() / 86400
    return days_passed < days
