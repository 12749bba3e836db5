from decimal import Decimal

import pytest
from protean.exceptions import InvalidOperationError

from checkout.config import CapturePaymentReason
from checkout.order.fulfillment import (
    can_add_items_to_shipment,
    get_shippable_items_count,
    has_items_to_deliver,
    has_items_to_dispatch,
)
from checkout.order.order import OrderStatus, PaymentStatus, ShippingStatus


class TestAddShipment:
    def test_ships_all_remaining_units(self, services, orders, placed_order):
        shipment = services.shipments.add_shipment(placed_order, tracking_number="TRK-1")

        assert shipment.id is not None
        assert shipment.tracking_number == "TRK-1"
        assert shipment.quantities == {placed_order.items[0].id: 2}
        assert placed_order.shipments == [shipment]
        assert orders.get(placed_order.id).get_shipment(shipment.id).tracking_number == "TRK-1"

    def test_nothing_left_to_ship(self, services, placed_order):
        services.shipments.add_shipment(placed_order)
        assert services.shipments.add_shipment(placed_order) is None

    def test_requested_quantity_is_capped(self, services, placed_order):
        item = placed_order.items[0]
        shipment = services.shipments.add_shipment(placed_order, quantities={item.id: 5})
        assert shipment.quantity_of(item.id) == 2

    def test_total_weight(self, services, add_item, place_order):
        add_item(price="10.00", quantity=2, weight=Decimal("1.5"))
        order = place_order().order

        shipment = services.shipments.add_shipment(order)
        assert shipment.total_weight == Decimal("3.0")

    def test_items_without_shipping_are_skipped(self, services, add_item, place_order):
        add_item(price="10.00", is_shipping_enabled=False)
        order = place_order().order
        assert services.shipments.add_shipment(order) is None


class TestShip:
    def test_partial_shipment(self, services, placed_order):
        item = placed_order.items[0]
        shipment = services.shipments.add_shipment(placed_order, quantities={item.id: 1})

        services.shipments.ship(placed_order, shipment)
        assert placed_order.shipping_status == ShippingStatus.PARTIALLY_SHIPPED
        assert get_shippable_items_count(placed_order, item) == 1
        assert can_add_items_to_shipment(placed_order) is True

    def test_full_shipment(self, services, placed_order):
        shipment = services.shipments.add_shipment(placed_order)

        services.shipments.ship(placed_order, shipment)
        assert shipment.shipped_date is not None
        assert placed_order.shipping_status == ShippingStatus.SHIPPED
        assert f"Shipment #{shipment.id} has been sent" in [n.note for n in placed_order.notes]
        assert has_items_to_dispatch(placed_order) is False
        assert has_items_to_deliver(placed_order) is True

    def test_shipping_twice(self, services, placed_order):
        shipment = services.shipments.add_shipment(placed_order)
        services.shipments.ship(placed_order, shipment)

        with pytest.raises(InvalidOperationError, match="This shipment is already shipped."):
            services.shipments.ship(placed_order, shipment)

    def test_customer_is_notified(self, services, placed_order):
        shipment = services.shipments.add_shipment(placed_order)
        services.shipments.ship(placed_order, shipment)
        assert placed_order.notes[-1].note.startswith('"Shipped" email (to customer) has been queued.')

    def test_capture_on_shipment(self, services, gateway, add_item, place_order):
        services.settings.payment.capture_payment_reason = CapturePaymentReason.ORDER_SHIPPED
        gateway.new_payment_status = PaymentStatus.AUTHORIZED
        add_item()
        order = place_order().order

        services.shipments.ship(order, services.shipments.add_shipment(order))
        assert order.payment_status == PaymentStatus.PAID


class TestDeliver:
    def test_delivery_completes_paid_order(self, services, placed_order):
        shipment = services.shipments.add_shipment(placed_order)
        services.shipments.ship(placed_order, shipment)
        services.shipments.deliver(placed_order, shipment)

        assert placed_order.shipping_status == ShippingStatus.DELIVERED
        assert placed_order.order_status == OrderStatus.COMPLETE

    def test_partial_delivery_keeps_shipping_status(self, services, placed_order):
        item = placed_order.items[0]
        shipment = services.shipments.add_shipment(placed_order, quantities={item.id: 1})
        services.shipments.ship(placed_order, shipment)
        services.shipments.deliver(placed_order, shipment)

        assert placed_order.shipping_status == ShippingStatus.PARTIALLY_SHIPPED
        assert placed_order.order_status == OrderStatus.PROCESSING

    def test_delivering_twice(self, services, placed_order):
        shipment = services.shipments.add_shipment(placed_order)
        services.shipments.deliver(placed_order, shipment)

        with pytest.raises(InvalidOperationError, match="This shipment is already delivered."):
            services.shipments.deliver(placed_order, shipment)
