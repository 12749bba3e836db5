"""Domain events for the Order aggregate.

Events are raised on the order and written to the event store when the
order is persisted.
"""

from protean.fields import Decimal, Identifier, Integer, String

from checkout.domain import checkout


@checkout.event(part_of="Order")
class OrderPlaced:
    """An order was placed from a shopping cart or for a recurring payment cycle."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Integer()
    order_total = Decimal(required=True)
    currency = String(max_length=3, default="USD")


@checkout.event(part_of="Order")
class OrderPaid:
    """The order's payment status became Paid."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Integer()
    order_total = Decimal(required=True)


@checkout.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(max_length=20, required=True)
    new_status = String(max_length=20, required=True)
