"""Cancelling and deleting orders."""

import structlog
from protean.exceptions import InvalidOperationError
from protean.utils.globals import current_domain

from checkout.order.lifecycle import OrderLifecycle
from checkout.order.order import Order, OrderStatus
from checkout.order.recurring import RecurringPaymentService
from checkout.providers.ports import InventoryProvider

logger = structlog.get_logger(__name__)


class OrderCancellationService:
    def __init__(
        self,
        lifecycle: OrderLifecycle,
        recurring: RecurringPaymentService,
        inventory_provider: InventoryProvider,
    ) -> None:
        self.lifecycle = lifecycle
        self.recurring = recurring
        self.inventory_provider = inventory_provider

    def cancel_order(self, order: Order, notify_customer: bool = True) -> None:
        if not order.can_cancel():
            raise InvalidOperationError("Cannot cancel order.")

        self.lifecycle.set_order_status(order, OrderStatus.CANCELLED, notify_customer)
        order.add_note("Order has been cancelled")

        self._release(order)
        current_domain.repository_for(Order).add(order)
        logger.info("Order cancelled", order_id=order.id)

    def delete_order(self, order: Order) -> None:
        """Soft-delete an order. A live order first gives back what it holds."""
        if order.order_status != OrderStatus.CANCELLED:
            self.lifecycle.apply_reward_points(order, reduce=True)
            self._release(order)

        order.deleted = True
        current_domain.repository_for(Order).add(order)
        logger.info("Order deleted", order_id=order.id)

    def _release(self, order: Order) -> None:
        for recurring_payment in self.recurring.find_by_initial_order(order.id):
            self.recurring.cancel_recurring_payment(recurring_payment, initial_order=order)

        for item in order.items:
            self.inventory_provider.adjust_inventory(item.product_id, False, item.quantity)
