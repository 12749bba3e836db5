"""Repositories for orders and recurring payments."""

from checkout.domain import checkout
from checkout.order.order import Order, RecurringPayment


@checkout.repository(part_of=Order)
class OrderRepository:
    def find_by_customer(self, customer_id: int, store_id: int | None = None) -> list[Order]:
        """Live orders of a customer, newest first."""
        criteria = {"customer_id": customer_id, "deleted": False}
        if store_id is not None:
            criteria["store_id"] = store_id
        return self.query.filter(**criteria).order_by("-created_on").all().items

    def find_last_by_customer(self, customer_id: int, store_id: int) -> Order | None:
        return self.query.filter(customer_id=customer_id, store_id=store_id, deleted=False).order_by(
            "-created_on"
        ).all().first


@checkout.repository(part_of=RecurringPayment)
class RecurringPaymentRepository:
    def find_by_initial_order(self, order_id: str) -> list[RecurringPayment]:
        return self.query.filter(initial_order_id=order_id, deleted=False).all().items
