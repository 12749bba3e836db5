"""Order status lifecycle.

Status changes are decided and applied in two steps. ``decide()`` and
``decide_status()`` are pure: they look at an order and return an
``OrderChangeSet`` describing the status transitions to make. The
``OrderLifecycle`` applies a change set: it writes the status and the order
note, sends customer notifications, awards or claws back reward points,
activates or deactivates purchased gift cards and raises
``OrderStatusChanged`` on the order. The caller persists the order.

Automatic transitions evaluated by ``decide()``:

    Pending    + payment Authorized/Paid                → Processing
    Pending    + shipping PartiallyShipped/Shipped/Delivered → Processing
    not final  + payment Paid + shipping NotRequired/Delivered → Complete (notify)

A single evaluation may traverse several statuses (Pending → Processing →
Complete). Side effects fire for every traversed status, the order gets one
status note for the final status.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

import structlog

from checkout.cart.cart import GiftCardType
from checkout.customer.customer import Customer
from checkout.notifications.messages import MessageFactory
from checkout.order.events import OrderStatusChanged
from checkout.order.order import Order, OrderStatus, PaymentStatus, ShippingStatus
from checkout.providers.ports import CustomerProvider, GiftCardProvider

if TYPE_CHECKING:
    from checkout.config import CheckoutSettings

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StatusTransition:
    previous: OrderStatus
    status: OrderStatus
    notify_customer: bool = False


@dataclass(frozen=True)
class OrderChangeSet:
    previous_status: OrderStatus
    transitions: tuple[StatusTransition, ...] = ()
    stamp_paid_date: bool = False

    @property
    def new_status(self) -> OrderStatus:
        if not self.transitions:
            return self.previous_status
        return self.transitions[-1].status

    @property
    def is_empty(self) -> bool:
        return not self.transitions and not self.stamp_paid_date


_SHIPPED_STATUSES = (ShippingStatus.PARTIALLY_SHIPPED, ShippingStatus.SHIPPED, ShippingStatus.DELIVERED)


def _needs_paid_date(order: Order) -> bool:
    return order.payment_status == PaymentStatus.PAID and order.paid_date_utc is None


def decide(order: Order) -> OrderChangeSet:
    """Automatic status transitions implied by the payment and shipping status."""
    status = order.order_status
    transitions: list[StatusTransition] = []

    if status == OrderStatus.PENDING and (
        order.payment_status in (PaymentStatus.AUTHORIZED, PaymentStatus.PAID)
        or order.shipping_status in _SHIPPED_STATUSES
    ):
        transitions.append(StatusTransition(status, OrderStatus.PROCESSING))
        status = OrderStatus.PROCESSING

    if (
        status not in (OrderStatus.CANCELLED, OrderStatus.COMPLETE)
        and order.payment_status == PaymentStatus.PAID
        and order.shipping_status in (ShippingStatus.NOT_REQUIRED, ShippingStatus.DELIVERED)
    ):
        transitions.append(StatusTransition(status, OrderStatus.COMPLETE, notify_customer=True))

    return OrderChangeSet(
        previous_status=order.order_status,
        transitions=tuple(transitions),
        stamp_paid_date=_needs_paid_date(order),
    )


def decide_status(order: Order, status: OrderStatus, notify_customer: bool) -> OrderChangeSet:
    """An explicit transition to ``status``; empty when the order already has it."""
    if order.order_status == status:
        return OrderChangeSet(previous_status=status)
    return OrderChangeSet(
        previous_status=order.order_status,
        transitions=(StatusTransition(order.order_status, status, notify_customer),),
    )


class OrderLifecycle:
    def __init__(
        self,
        settings: "CheckoutSettings",
        customers: CustomerProvider,
        message_factory: MessageFactory,
        gift_card_provider: GiftCardProvider,
    ) -> None:
        self.settings = settings
        self.customers = customers
        self.message_factory = message_factory
        self.gift_card_provider = gift_card_provider

    def check_order_status(self, order: Order) -> OrderChangeSet:
        change_set = decide(order)
        self.apply(order, change_set)
        return change_set

    def set_order_status(self, order: Order, status: OrderStatus, notify_customer: bool) -> OrderChangeSet:
        change_set = decide_status(order, status, notify_customer)
        self.apply(order, change_set)
        return change_set

    def apply(self, order: Order, change_set: OrderChangeSet) -> None:
        if change_set.stamp_paid_date and order.paid_date_utc is None:
            order.paid_date_utc = datetime.now(UTC)

        if not change_set.transitions:
            return

        order.order_status = change_set.new_status
        order.add_note(f"Order status has been changed to {change_set.new_status.value}")

        for transition in change_set.transitions:
            self._notify(order, transition)

            rp = self.settings.reward_points
            if transition.status == rp.points_for_purchases_awarded:
                self.apply_reward_points(order, reduce=False)
            elif transition.status == rp.points_for_purchases_canceled:
                self.apply_reward_points(order, reduce=True)

            self.activate_gift_cards(order, transition.status)

        logger.info(
            "Order status changed",
            order_id=order.id,
            previous_status=change_set.previous_status.value,
            new_status=change_set.new_status.value,
        )
        order.raise_(
            OrderStatusChanged(
                order_id=order.id,
                previous_status=change_set.previous_status.value,
                new_status=change_set.new_status.value,
            )
        )

    def _notify(self, order: Order, transition: StatusTransition) -> None:
        if not transition.notify_customer or transition.previous == transition.status:
            return

        if transition.status == OrderStatus.COMPLETE:
            result = self.message_factory.send_order_completed_customer_notification(order)
            if result.email_id is not None:
                order.add_note(f'"Order completed" email (to customer) has been queued. Email id: {result.email_id}.')
        elif transition.status == OrderStatus.CANCELLED:
            result = self.message_factory.send_order_cancelled_customer_notification(order)
            if result.email_id is not None:
                order.add_note(f'"Order cancelled" email (to customer) has been queued. Email id: {result.email_id}.')

    def _get_customer(self, order: Order) -> Customer | None:
        return self.customers.find(order.customer_id)

    def apply_reward_points(self, order: Order, reduce: bool, amount: Decimal | None = None) -> None:
        """Award points for a purchase, or claw them back.

        Points are awarded once per order. Awarding truncates, a clawback
        rounds half up and never takes back more than the order has left.
        """
        rp = self.settings.reward_points
        if not rp.enabled or rp.points_for_purchases_amount <= 0:
            return
        if (not reduce and order.reward_points_were_added) or (reduce and not order.reward_points_were_added):
            return

        customer = self._get_customer(order)
        if customer is None or customer.is_guest:
            return

        base = order.order_total if amount is None else amount
        reward = base / rp.points_for_purchases_amount * rp.points_for_purchases_points

        if reduce:
            points = int(reward.quantize(Decimal(1), rounding=ROUND_HALF_UP))
            if order.reward_points_remaining is not None and order.reward_points_remaining < points:
                points = order.reward_points_remaining

            if points != 0:
                customer.add_reward_points_history_entry(
                    -points, f"Reduced reward points for order #{order.id}", order_id=order.id
                )
                if order.reward_points_remaining is None:
                    total_reward = order.order_total / rp.points_for_purchases_amount * rp.points_for_purchases_points
                    order.reward_points_remaining = int(total_reward.quantize(Decimal(1), rounding=ROUND_HALF_UP))
                order.reward_points_remaining = max(order.reward_points_remaining - points, 0)
                logger.info("Reward points reduced", order_id=order.id, customer_id=customer.id, points=points)
        else:
            points = int(reward)
            if points != 0:
                customer.add_reward_points_history_entry(
                    points, f"Earned reward points for order #{order.id}", order_id=order.id
                )
                order.reward_points_were_added = True
                logger.info("Reward points awarded", order_id=order.id, customer_id=customer.id, points=points)

    def activate_gift_cards(self, order: Order, status: OrderStatus | None = None) -> None:
        """Activate or deactivate gift cards purchased with the order's items."""
        status = status or order.order_status
        activate = self.settings.order.gift_cards_activated_order_status == status
        deactivate = self.settings.order.gift_cards_deactivated_order_status == status
        if not activate and not deactivate:
            return

        for item in order.items:
            for gift_card in self.gift_card_provider.get_by_purchased_order_item(item.id):
                if activate and not gift_card.is_activated:
                    notified = gift_card.is_recipient_notified
                    if (
                        gift_card.gift_card_type == GiftCardType.VIRTUAL
                        and gift_card.recipient_email
                        and gift_card.sender_email
                        and not gift_card.is_recipient_notified
                    ):
                        result = self.message_factory.send_gift_card_notification(gift_card)
                        notified = result.email_id is not None
                    gift_card.is_activated = True
                    gift_card.is_recipient_notified = notified
                    logger.info("Gift card activated", order_id=order.id, gift_card_id=gift_card.id)
                elif deactivate and gift_card.is_activated:
                    gift_card.is_activated = False
                    logger.info("Gift card deactivated", order_id=order.id, gift_card_id=gift_card.id)
