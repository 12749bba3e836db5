"""Customer and store-owner messages sent by order operations.

Sending is fire-and-forget: a message that the email channel refuses or
fails to send yields ``MessageResult(email_id=None)`` and never an exception.
"""

from dataclasses import dataclass

import structlog

from checkout.giftcards.giftcard import GiftCard
from checkout.notifications.email_port import EmailPort
from checkout.notifications.templates import (
    GiftCardCustomerTemplate,
    OrderCancelledCustomerTemplate,
    OrderCompletedCustomerTemplate,
    OrderPlacedCustomerTemplate,
    OrderPlacedStoreOwnerTemplate,
    RecurringPaymentCancelledStoreOwnerTemplate,
    ShipmentDeliveredCustomerTemplate,
    ShipmentSentCustomerTemplate,
)
from checkout.order.order import Order, RecurringPayment, Shipment

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class MessageResult:
    email_id: str | None = None

    @property
    def queued(self) -> bool:
        return self.email_id is not None


class MessageFactory:
    def __init__(self, email: EmailPort, store_name: str, store_owner_email: str) -> None:
        self.email = email
        self.store_name = store_name
        self.store_owner_email = store_owner_email

    def _order_context(self, order: Order) -> dict:
        return {
            "store_name": self.store_name,
            "order_id": order.id,
            "order_total": str(order.order_total),
            "currency": order.customer_currency_code,
            "customer_email": self._customer_email(order),
        }

    @staticmethod
    def _customer_email(order: Order) -> str | None:
        return order.billing_address.email if order.billing_address else None

    def _send(self, template, to: str | None, context: dict) -> MessageResult:
        if not to:
            logger.debug("Message skipped, no recipient", template=template.name)
            return MessageResult()

        rendered = template.render(context)
        try:
            receipt = self.email.send(to=to, subject=rendered["subject"], body=rendered["body"])
        except Exception:
            logger.warning("Email channel failed", template=template.name, to=to, exc_info=True)
            return MessageResult()

        if not receipt.queued:
            logger.warning("Message not queued", template=template.name, to=to, error=receipt.error)
            return MessageResult()

        logger.debug("Message queued", template=template.name, to=to, email_id=receipt.message_id)
        return MessageResult(email_id=receipt.message_id)

    # -------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------
    def send_order_placed_store_owner_notification(self, order: Order) -> MessageResult:
        return self._send(OrderPlacedStoreOwnerTemplate, self.store_owner_email, self._order_context(order))

    def send_order_placed_customer_notification(self, order: Order) -> MessageResult:
        return self._send(OrderPlacedCustomerTemplate, self._customer_email(order), self._order_context(order))

    def send_order_completed_customer_notification(self, order: Order) -> MessageResult:
        return self._send(OrderCompletedCustomerTemplate, self._customer_email(order), self._order_context(order))

    def send_order_cancelled_customer_notification(self, order: Order) -> MessageResult:
        return self._send(OrderCancelledCustomerTemplate, self._customer_email(order), self._order_context(order))

    # -------------------------------------------------------------------
    # Shipments
    # -------------------------------------------------------------------
    def send_shipment_sent_customer_notification(self, order: Order, shipment: Shipment) -> MessageResult:
        context = self._order_context(order) | {"tracking_number": shipment.tracking_number}
        return self._send(ShipmentSentCustomerTemplate, self._customer_email(order), context)

    def send_shipment_delivered_customer_notification(self, order: Order, shipment: Shipment) -> MessageResult:
        return self._send(ShipmentDeliveredCustomerTemplate, self._customer_email(order), self._order_context(order))

    # -------------------------------------------------------------------
    # Gift cards and recurring payments
    # -------------------------------------------------------------------
    def send_gift_card_notification(self, gift_card: GiftCard) -> MessageResult:
        context = {
            "store_name": self.store_name,
            "sender_name": gift_card.sender_name,
            "amount": str(gift_card.amount),
            "coupon_code": gift_card.coupon_code,
            "message": gift_card.message,
        }
        return self._send(GiftCardCustomerTemplate, gift_card.recipient_email, context)

    def send_recurring_payment_cancelled_store_owner_notification(
        self, recurring_payment: RecurringPayment
    ) -> MessageResult:
        context = {
            "store_name": self.store_name,
            "recurring_payment_id": recurring_payment.id,
            "order_id": recurring_payment.initial_order_id,
        }
        return self._send(RecurringPaymentCancelledStoreOwnerTemplate, self.store_owner_email, context)
