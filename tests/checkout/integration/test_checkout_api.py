"""Integration tests for the checkout endpoints."""

from decimal import Decimal


class TestHealthEndpoint:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "store": {"id": 1, "name": "Checkoutflow"}}


class TestStartCheckoutEndpoint:
    def test_start(self, client, customer, add_item):
        add_item()

        response = client.post("/checkout/start", json={"customer_id": customer.id})
        assert response.status_code == 200
        assert response.json() == {
            "redirect": "/Checkout/BillingAddress",
            "errors": [],
            "warnings": [],
            "challenge": False,
        }

    def test_empty_cart(self, client, customer):
        response = client.post("/checkout/start", json={"customer_id": customer.id})
        assert response.json()["redirect"] == "/ShoppingCart/Cart"

    def test_guest_is_challenged(self, client, customer, add_item):
        customer.is_registered = False
        add_item()

        response = client.post("/checkout/start", json={"customer_id": customer.id})
        assert response.json()["challenge"] is True

    def test_unknown_customer(self, client, services):
        response = client.post("/checkout/start", json={"customer_id": 999})
        assert response.status_code == 404
        assert response.json()["error"] == "`Customer` object with identifier 999 does not exist."


class TestCheckoutStepEndpoint:
    def test_selection_advances(self, client, customer, add_item):
        add_item()

        response = client.post(
            "/checkout/steps/ShippingMethod",
            json={"customer_id": customer.id, "selection": {"shipping_option": "Ground___Shipping.FixedRate"}},
        )
        assert response.json()["redirect"] == "/Checkout/PaymentMethod"
        assert customer.checkout.selected_shipping_option.name == "Ground"

    def test_invalid_selection_reports_error(self, client, customer, add_item):
        add_item()

        response = client.post(
            "/checkout/steps/BillingAddress",
            json={"customer_id": customer.id, "selection": {"address_id": 42}},
        )
        data = response.json()
        assert data["redirect"] == "/Checkout/BillingAddress"
        assert data["errors"] == [{"property_name": "", "message": "Billing address not found."}]

    def test_skipped_page_follows_referrer(self, client, services, customer, add_item):
        services.settings.shipping.skip_shipping_if_single_option = True
        add_item()

        response = client.post(
            "/checkout/steps/ShippingMethod",
            json={"customer_id": customer.id, "referrer": "/Checkout/PaymentMethod"},
        )
        assert response.json()["redirect"] == "/Checkout/ShippingAddress"

    def test_advance_from_index(self, client, customer, add_item):
        add_item()

        response = client.post("/checkout/advance", json={"customer_id": customer.id, "action": "Index"})
        assert response.json()["redirect"] == "/Checkout/BillingAddress"


class TestConfirmEndpoint:
    def test_payment_method_required(self, client, customer, add_item):
        add_item()

        response = client.post("/checkout/confirm", json={"customer_id": customer.id})
        assert response.json()["redirect"] == "/Checkout/PaymentMethod"

    def test_full_checkout(self, client, orders, customer, add_item):
        add_item(price="12.50", quantity=2)

        client.post("/checkout/start", json={"customer_id": customer.id})
        client.post(
            "/checkout/steps/ShippingMethod",
            json={"customer_id": customer.id, "selection": {"shipping_option": "Ground___Shipping.FixedRate"}},
        )
        selected = client.post(
            "/checkout/steps/PaymentMethod",
            json={"customer_id": customer.id, "selection": {"payment_method": "Payments.Fake"}},
        )
        assert selected.json()["redirect"] == "/Checkout/Confirm"

        response = client.post(
            "/checkout/confirm",
            json={"customer_id": customer.id, "form": {"customercommenthidden": "Leave at the door"}},
        )
        assert response.json()["redirect"] == "/Checkout/Completed"

        order = orders.find_by_customer(customer.id)[0]
        assert order.customer_order_comment == "Leave at the door"

        data = client.get(f"/orders/{order.id}").json()
        assert Decimal(data["order_total"]) == Decimal("25.00")
        assert data["payment_status"] == "Paid"
        assert data["order_status"] == "Processing"
        assert data["payment_method_system_name"] == "Payments.Fake"

    def test_declined_payment(self, client, gateway, customer, add_item):
        add_item()
        client.post(
            "/checkout/steps/PaymentMethod",
            json={"customer_id": customer.id, "selection": {"payment_method": "Payments.Fake"}},
        )
        gateway.configure(should_succeed=False)

        data = client.post("/checkout/confirm", json={"customer_id": customer.id}).json()
        assert data["redirect"] == "/Checkout/PaymentMethod"
        assert [e["message"] for e in data["errors"]] == ["Card declined"]
