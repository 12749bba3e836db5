"""Integration tests for the order and shipment endpoints."""

from decimal import Decimal
from uuid import uuid4

import pytest

from checkout.order.order import PaymentStatus


@pytest.fixture()
def authorized_order(gateway, add_item, place_order):
    gateway.new_payment_status = PaymentStatus.AUTHORIZED
    add_item(price="10.00", quantity=2)
    return place_order().order


class TestGetOrderEndpoint:
    def test_get_order(self, client, placed_order):
        response = client.get(f"/orders/{placed_order.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["order_id"] == placed_order.id
        assert data["order_status"] == "Processing"
        assert data["payment_status"] == "Paid"
        assert data["shipping_status"] == "NotYetShipped"
        assert Decimal(data["order_total"]) == Decimal("20.00")
        assert len(data["notes"]) == len(placed_order.notes)

    def test_unknown_order(self, client):
        order_id = str(uuid4())

        response = client.get(f"/orders/{order_id}")
        assert response.status_code == 404
        assert response.json()["error"] == f"`Order` object with identifier {order_id} does not exist."


class TestPaymentEndpoints:
    def test_refund(self, client, placed_order):
        response = client.post(f"/orders/{placed_order.id}/refund")

        data = response.json()
        assert data["success"] is True
        assert data["order"]["payment_status"] == "Refunded"
        assert Decimal(data["order"]["refunded_amount"]) == Decimal("20.00")

    def test_declined_refund(self, client, gateway, placed_order):
        gateway.configure(should_succeed=False)

        response = client.post(f"/orders/{placed_order.id}/refund")
        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["order"]["payment_status"] == "Paid"

    def test_partial_refund(self, client, placed_order):
        response = client.post(f"/orders/{placed_order.id}/partial-refund", json={"amount": "5.00"})

        data = response.json()
        assert data["order"]["payment_status"] == "PartiallyRefunded"
        assert Decimal(data["order"]["refunded_amount"]) == Decimal("5.00")

    def test_partial_refund_over_total(self, client, placed_order):
        response = client.post(f"/orders/{placed_order.id}/partial-refund", json={"amount": "50.00"})
        assert response.status_code == 422
        assert response.json()["error"] == "Cannot partially refund order."

    def test_partial_refund_amount_must_be_positive(self, client, placed_order):
        response = client.post(f"/orders/{placed_order.id}/partial-refund", json={"amount": "0"})
        assert response.status_code == 422

    def test_capture(self, client, authorized_order):
        response = client.post(f"/orders/{authorized_order.id}/capture")
        assert response.json()["order"]["payment_status"] == "Paid"

    def test_capture_paid_order(self, client, placed_order):
        response = client.post(f"/orders/{placed_order.id}/capture")
        assert response.status_code == 422
        assert response.json()["error"] == "Cannot capture order."

    def test_void(self, client, authorized_order):
        response = client.post(f"/orders/{authorized_order.id}/void")
        assert response.json()["order"]["payment_status"] == "Voided"

    def test_mark_as_paid(self, client, gateway, add_item, place_order):
        gateway.new_payment_status = PaymentStatus.PENDING
        add_item()
        order = place_order().order

        response = client.post(f"/orders/{order.id}/mark-paid")
        assert response.json()["payment_status"] == "Paid"


class TestOrderStatusEndpoints:
    def test_cancel(self, client, placed_order):
        response = client.post(f"/orders/{placed_order.id}/cancel", json={"notify_customer": False})

        assert response.status_code == 200
        assert response.json()["order_status"] == "Cancelled"

    def test_cancel_twice(self, client, placed_order):
        client.post(f"/orders/{placed_order.id}/cancel")

        response = client.post(f"/orders/{placed_order.id}/cancel")
        assert response.status_code == 422
        assert response.json()["error"] == "Cannot cancel order."

    def test_complete(self, client, placed_order):
        response = client.post(f"/orders/{placed_order.id}/complete")

        data = response.json()
        assert data["order_status"] == "Complete"
        assert data["shipping_status"] == "Delivered"


class TestShipmentEndpoints:
    def test_ship_and_deliver(self, client, placed_order):
        item = placed_order.items[0]
        shipments = f"/orders/{placed_order.id}/shipments"

        created = client.post(shipments, json={"tracking_number": "TRK-1"})
        assert created.status_code == 201
        shipment = created.json()
        assert shipment["tracking_number"] == "TRK-1"
        assert shipment["items"] == {item.id: 2}

        shipped = client.post(f"{shipments}/{shipment['shipment_id']}/ship")
        assert shipped.json()["shipped_date"] is not None

        delivered = client.post(f"{shipments}/{shipment['shipment_id']}/deliver", json={"notify_customer": False})
        assert delivered.json()["delivery_date"] is not None

        order = client.get(f"/orders/{placed_order.id}").json()
        assert order["shipping_status"] == "Delivered"
        assert order["order_status"] == "Complete"

    def test_partial_shipment(self, client, placed_order):
        item = placed_order.items[0]

        response = client.post(f"/orders/{placed_order.id}/shipments", json={"quantities": {item.id: 1}})
        assert response.json()["items"] == {item.id: 1}

    def test_nothing_to_ship(self, client, placed_order):
        client.post(f"/orders/{placed_order.id}/shipments", json={})

        response = client.post(f"/orders/{placed_order.id}/shipments", json={})
        assert response.status_code == 422
        assert response.json()["error"] == "No items to ship."

    def test_ship_twice(self, client, placed_order):
        shipment = client.post(f"/orders/{placed_order.id}/shipments", json={}).json()
        client.post(f"/orders/{placed_order.id}/shipments/{shipment['shipment_id']}/ship")

        response = client.post(f"/orders/{placed_order.id}/shipments/{shipment['shipment_id']}/ship")
        assert response.status_code == 422
        assert response.json()["error"] == "This shipment is already shipped."

    def test_unknown_shipment(self, client, placed_order):
        response = client.post(f"/orders/{placed_order.id}/shipments/999/ship")
        assert response.status_code == 404
        assert response.json()["error"] == "`Shipment` object with identifier 999 does not exist."
