"""Shipments of placed orders.

Item counters only look at order items with shipping enabled:

    shippable   = quantity - quantity already put into shipments
    dispatched  = quantity in shipments that have a shipped date
    delivered   = quantity in shipments that have a delivery date
"""

from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

import structlog
from protean.exceptions import InvalidOperationError
from protean.utils.globals import current_domain

from checkout.config import CapturePaymentReason
from checkout.notifications.messages import MessageFactory
from checkout.order.lifecycle import OrderLifecycle
from checkout.order.order import Order, OrderItem, Shipment, ShippingStatus
from checkout.order.payment import OrderPaymentService

if TYPE_CHECKING:
    from checkout.config import CheckoutSettings

logger = structlog.get_logger(__name__)


def _sum_quantity(order: Order, order_item: OrderItem, predicate: Callable[[Shipment], bool] | None) -> int:
    total = 0
    for shipment in order.shipments:
        if predicate is not None and not predicate(shipment):
            continue
        total += shipment.quantity_of(order_item.id)
    return total


def get_shipment_items_count(order: Order, order_item: OrderItem) -> int:
    return _sum_quantity(order, order_item, None)


def get_shippable_items_count(order: Order, order_item: OrderItem) -> int:
    return max(order_item.quantity - get_shipment_items_count(order, order_item), 0)


def get_dispatched_items_count(order: Order, order_item: OrderItem, dispatched: bool) -> int:
    if dispatched:
        return _sum_quantity(order, order_item, lambda s: s.shipped_date is not None)
    return _sum_quantity(order, order_item, lambda s: s.shipped_date is None)


def get_delivered_items_count(order: Order, order_item: OrderItem, delivered: bool) -> int:
    if delivered:
        return _sum_quantity(order, order_item, lambda s: s.delivery_date is not None)
    return _sum_quantity(order, order_item, lambda s: s.delivery_date is None)


def _shippable_items(order: Order) -> list[OrderItem]:
    return [item for item in order.items if item.is_shipping_enabled]


def can_add_items_to_shipment(order: Order) -> bool:
    return any(get_shippable_items_count(order, item) > 0 for item in _shippable_items(order))


def has_items_to_dispatch(order: Order) -> bool:
    return any(get_dispatched_items_count(order, item, False) > 0 for item in _shippable_items(order))


def has_items_to_deliver(order: Order) -> bool:
    return any(
        get_dispatched_items_count(order, item, True) > get_delivered_items_count(order, item, True)
        for item in _shippable_items(order)
    )


class ShipmentService:
    def __init__(
        self,
        settings: "CheckoutSettings",
        lifecycle: OrderLifecycle,
        payments: OrderPaymentService,
        message_factory: MessageFactory,
    ) -> None:
        self.settings = settings
        self.lifecycle = lifecycle
        self.payments = payments
        self.message_factory = message_factory

    def add_shipment(
        self,
        order: Order,
        tracking_number: str | None = None,
        tracking_url: str | None = None,
        quantities: dict[str, int] | None = None,
    ) -> Shipment | None:
        """Create a shipment for shippable quantities.

        Without ``quantities`` every remaining shippable unit is added,
        otherwise the requested quantity per order item id, capped at what is
        still shippable. Returns None when nothing can be shipped.
        """
        shipped: dict[str, int] = {}
        total_weight: Decimal | None = None

        for order_item in _shippable_items(order):
            max_quantity = get_shippable_items_count(order, order_item)
            if max_quantity <= 0:
                continue

            if quantities is None:
                quantity = max_quantity
            else:
                quantity = quantities.get(order_item.id, 0)
            if quantity <= 0:
                continue
            quantity = min(quantity, max_quantity)

            if order_item.item_weight:
                total_weight = (total_weight or Decimal(0)) + order_item.item_weight * quantity

            shipped[order_item.id] = quantity

        if not shipped:
            return None

        shipment = Shipment(
            tracking_number=tracking_number,
            tracking_url=tracking_url,
            total_weight=total_weight,
            quantities=shipped,
        )
        order.add_shipments(shipment)
        current_domain.repository_for(Order).add(order)

        logger.info("Shipment added", order_id=order.id, shipment_id=shipment.id, items=len(shipped))
        return shipment

    def ship(self, order: Order, shipment: Shipment, notify_customer: bool = True) -> None:
        if shipment.shipped_date is not None:
            raise InvalidOperationError("This shipment is already shipped.")

        shipment.shipped_date = datetime.now(UTC)

        if can_add_items_to_shipment(order) or has_items_to_dispatch(order):
            order.shipping_status = ShippingStatus.PARTIALLY_SHIPPED
        else:
            order.shipping_status = ShippingStatus.SHIPPED

        order.add_note(f"Shipment #{shipment.id} has been sent")
        if notify_customer:
            result = self.message_factory.send_shipment_sent_customer_notification(order, shipment)
            if result.email_id is not None:
                order.add_note(f'"Shipped" email (to customer) has been queued. Email id: {result.email_id}.')

        logger.info("Shipment sent", order_id=order.id, shipment_id=shipment.id)
        self._capture_if_due(order, CapturePaymentReason.ORDER_SHIPPED)
        self.lifecycle.check_order_status(order)
        current_domain.repository_for(Order).add(order)

    def deliver(self, order: Order, shipment: Shipment, notify_customer: bool = True) -> None:
        if shipment.delivery_date is not None:
            raise InvalidOperationError("This shipment is already delivered.")

        shipment.delivery_date = datetime.now(UTC)

        fully_delivered = not (
            can_add_items_to_shipment(order) or has_items_to_dispatch(order) or has_items_to_deliver(order)
        )
        if fully_delivered:
            order.shipping_status = ShippingStatus.DELIVERED

        order.add_note(f"Shipment #{shipment.id} has been delivered")
        if notify_customer:
            result = self.message_factory.send_shipment_delivered_customer_notification(order, shipment)
            if result.email_id is not None:
                order.add_note(f'"Delivered" email (to customer) has been queued. Email id: {result.email_id}.')

        logger.info("Shipment delivered", order_id=order.id, shipment_id=shipment.id)
        self._capture_if_due(order, CapturePaymentReason.ORDER_DELIVERED)
        self.lifecycle.check_order_status(order)
        current_domain.repository_for(Order).add(order)

    def _capture_if_due(self, order: Order, reason: CapturePaymentReason) -> None:
        if self.settings.payment.capture_payment_reason == reason and self.payments.can_capture(order):
            self.payments.capture(order)
