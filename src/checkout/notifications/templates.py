"""Message templates for order, shipment and gift card emails.

Each template renders a context dict into ``{"subject": ..., "body": ...}``.
"""


class OrderPlacedStoreOwnerTemplate:
    name = "OrderPlaced.StoreOwner"

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"{context['store_name']}. Purchase Receipt for Order #{context['order_id']}",
            "body": (
                f"Order #{context['order_id']} has been placed by {context['customer_email'] or 'a guest'}.\n\n"
                f"Order Total: {context['currency']} {context['order_total']}"
            ),
        }


class OrderPlacedCustomerTemplate:
    name = "OrderPlaced.Customer"

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"{context['store_name']}. Order receipt #{context['order_id']}",
            "body": (
                f"Thank you for your order #{context['order_id']}.\n\n"
                f"Order Total: {context['currency']} {context['order_total']}\n\n"
                "We'll notify you once your order ships."
            ),
        }


class OrderCompletedCustomerTemplate:
    name = "OrderCompleted.Customer"

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"{context['store_name']}. Your order #{context['order_id']} is completed",
            "body": f"Your order #{context['order_id']} has been completed.",
        }


class OrderCancelledCustomerTemplate:
    name = "OrderCancelled.Customer"

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"{context['store_name']}. Your order #{context['order_id']} has been cancelled",
            "body": f"Your order #{context['order_id']} has been cancelled.",
        }


class ShipmentSentCustomerTemplate:
    name = "ShipmentSent.Customer"

    @staticmethod
    def render(context: dict) -> dict:
        tracking = context.get("tracking_number") or "N/A"
        return {
            "subject": f"{context['store_name']}. Your order #{context['order_id']} has been shipped",
            "body": f"Items of your order #{context['order_id']} are on their way.\n\nTracking number: {tracking}",
        }


class ShipmentDeliveredCustomerTemplate:
    name = "ShipmentDelivered.Customer"

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"{context['store_name']}. Your order #{context['order_id']} has been delivered",
            "body": f"Items of your order #{context['order_id']} have been delivered.",
        }


class GiftCardCustomerTemplate:
    name = "GiftCard.Notification"

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"{context['sender_name'] or 'Someone'} has sent you a gift card for {context['store_name']}",
            "body": (
                f"You have received a gift card worth {context['amount']}.\n\n"
                f"Gift card code: {context['coupon_code']}\n\n"
                f"{context.get('message') or ''}"
            ).rstrip(),
        }


class RecurringPaymentCancelledStoreOwnerTemplate:
    name = "RecurringPaymentCancelled.StoreOwner"

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"{context['store_name']}. Recurring payment cancelled",
            "body": (
                f"The recurring payment #{context['recurring_payment_id']} "
                f"started with order #{context['order_id']} has been cancelled."
            ),
        }
