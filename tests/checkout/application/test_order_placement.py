from decimal import Decimal

import pytest

from checkout.cart.cart import GiftCardInfo
from checkout.config import NewsletterSubscriptionType
from checkout.customer.customer import CustomerRole
from checkout.discounts.discount import Discount, DiscountType
from checkout.giftcards.giftcard import GiftCard
from checkout.notifications.email_port import EmailPort
from protean.utils.globals import current_domain

from checkout.order.order import OrderStatus, PaymentStatus, RecurringPayment, ShippingStatus
from checkout.payment.port import ProcessPaymentRequest, RecurringPaymentType


def _note_texts(order):
    return [n.note for n in order.notes]


class TestSuccessfulPlacement:
    def test_paid_order_moves_to_processing(self, placed_order):
        assert placed_order.id is not None
        assert placed_order.order_status == OrderStatus.PROCESSING
        assert placed_order.payment_status == PaymentStatus.PAID
        assert placed_order.shipping_status == ShippingStatus.NOT_YET_SHIPPED
        assert placed_order.paid_date_utc is not None
        assert placed_order.order_total == Decimal("20.00")
        assert placed_order.capture_transaction_id.startswith("fake_txn_")

    def test_order_items_lock_prices(self, placed_order):
        assert len(placed_order.items) == 1
        item = placed_order.items[0]
        assert item.quantity == 2
        assert item.unit_price_excl_tax == Decimal("10.00")
        assert item.price_excl_tax == Decimal("20.00")

    def test_notes_in_placement_order(self, placed_order):
        notes = _note_texts(placed_order)
        assert notes[0] == "Order placed"
        assert notes[1].startswith('"Order placed" email (to store owner) has been queued. Email id: ')
        assert notes[2].startswith('"Order placed" email (to customer) has been queued. Email id: ')
        assert notes[3] == "Order status has been changed to Processing"
        assert len(notes) == 4

    def test_cart_and_checkout_data_are_cleared(self, services, cart, customer, placed_order):
        assert cart.items == []
        assert customer.checkout.selected_payment_method is None
        assert services.carts.get_cart(customer, 1).items == []

    def test_side_effects_are_recorded(self, services, orders, customer, placed_order):
        stored = orders.get(placed_order.id)
        assert stored.order_total == placed_order.order_total
        assert [i.quantity for i in stored.items] == [2]
        assert services.inventory.adjustments == [{"product_id": 1, "decrease": True, "quantity": 2}]
        assert services.activity_logger.entries[-1]["kind"] == "PublicStore.PlaceOrder"
        assert services.activity_logger.entries[-1]["customer_id"] == customer.id

    def test_events_are_stored(self, placed_order, order_events):
        assert order_events(placed_order.id) == [
            "Checkout.OrderStatusChanged.v1",
            "Checkout.OrderPlaced.v1",
            "Checkout.OrderPaid.v1",
        ]

    def test_order_placed_payload(self, placed_order):
        messages = current_domain.event_store.store.read(f"checkout::order-{placed_order.id}")
        placed = next(m for m in messages if m.metadata.headers.type == "Checkout.OrderPlaced.v1")
        assert placed.data["order_id"] == placed_order.id
        assert Decimal(placed.data["order_total"]) == Decimal("20.00")
        assert placed.data["currency"] == "USD"

    def test_emails_are_sent(self, services, placed_order):
        assert services.email.subjects_to("owner@example.com")
        assert services.email.subjects_to("jane@example.com")

    def test_order_without_shipping_completes(self, add_item, place_order):
        add_item(price="15.00", is_shipping_enabled=False)

        result = place_order()
        order = result.order
        assert order.shipping_status == ShippingStatus.NOT_REQUIRED
        assert order.order_status == OrderStatus.COMPLETE
        assert order.shipping_address is None
        assert "Order status has been changed to Complete" in _note_texts(order)

    def test_zero_total_needs_no_payment_method(self, gateway, add_item, place_order):
        add_item(price="0.00")

        result = place_order(payment_method="Payments.Unknown")
        assert result.success
        assert result.order.payment_status == PaymentStatus.PAID
        assert result.order.payment_method_system_name is None
        assert gateway.calls == []

    def test_tax_rates_are_serialized(self, services, add_item, place_order):
        services.tax_rates.rates = {1: Decimal("19")}
        add_item(price="100.00", tax_category_id=1)

        order = place_order().order
        assert order.order_tax == Decimal("19.00")
        assert order.tax_rates == "19:19.00;"
        assert order.order_total == Decimal("119.00")


class TestAssociatedData:
    def test_discount_usage_is_recorded(self, services, add_item, place_order):
        services.discounts.add(
            Discount(
                id=7,
                name="Five off",
                discount_type=DiscountType.ASSIGNED_TO_ORDER_TOTAL,
                discount_amount=Decimal("5"),
            )
        )
        add_item(price="20.00")

        order = place_order().order
        assert order.order_discount == Decimal("5.00")
        assert order.applied_discount_ids == [7]
        assert [(u.discount_id, u.order_id) for u in services.discounts.usage] == [(7, order.id)]

    def test_gift_card_usage_is_recorded(self, services, customer, add_item, place_order):
        gift_card = services.gift_cards.add(
            GiftCard(amount=Decimal("30.00"), is_activated=True, coupon_code="GC-30")
        )
        customer.checkout.gift_card_coupon_codes = ["GC-30"]
        add_item(price="50.00")

        order = place_order().order
        assert order.order_total == Decimal("20.00")
        assert gift_card.usage_history[0].order_id == order.id
        assert gift_card.get_remaining_amount() == Decimal(0)
        assert customer.checkout.gift_card_coupon_codes == []

    def test_redeemed_reward_points_are_deducted(self, services, customer, add_item, place_order):
        services.settings.reward_points.enabled = True
        customer.add_reward_points_history_entry(5, "Welcome")
        customer.checkout.use_reward_points_during_checkout = True
        add_item(price="20.00")

        order = place_order().order
        assert order.order_total == Decimal("15.00")
        assert customer.reward_points_balance == 0
        assert customer.reward_points_history[-1].used_amount == Decimal("5.00")

    def test_purchased_gift_cards_are_created_inactive(self, services, add_item, place_order):
        item = add_item(price="25.00", is_gift_card=True, quantity=2)
        item.gift_card_info = GiftCardInfo(
            recipient_name="Sam",
            recipient_email="sam@example.com",
            sender_name="Jane",
            sender_email="jane@example.com",
        )

        order = place_order().order
        created = services.gift_cards.get_by_purchased_order_item(order.items[0].id)
        assert len(created) == 2
        assert all(not gc.is_activated for gc in created)
        assert all(gc.amount == Decimal("25.00") for gc in created)

    def test_recurring_cart_starts_recurring_payment(self, services, gateway, add_item, place_order):
        add_item(price="9.99", is_recurring=True, recurring_total_cycles=3)

        order = place_order().order
        payments = current_domain.repository_for(RecurringPayment).find_by_initial_order(order.id)
        assert len(payments) == 1
        recurring = payments[0]
        assert recurring.initial_order_id == order.id
        assert recurring.total_cycles == 3
        assert [h.order_id for h in recurring.history] == [order.id]
        assert order.subscription_transaction_id.startswith("fake_sub_")
        assert gateway.calls[-1]["method"] == "process_recurring_payment"

    def test_customer_comment_is_stored(self, add_item, place_order):
        add_item()
        order = place_order(extra_data={"CustomerComment": "Leave at the door"}).order
        assert order.customer_order_comment == "Leave at the door"

    def test_newsletter_subscription(self, services, add_item, place_order):
        services.settings.shopping_cart.newsletter_subscription = NewsletterSubscriptionType.CHECKED
        add_item()

        order = place_order(extra_data={"SubscribeToNewsletter": "true"}).order
        assert ("jane@example.com", 1) in services.newsletter.subscriptions
        assert "Newsletter subscription added" in _note_texts(order)

    def test_newsletter_ignored_when_disabled(self, services, add_item, place_order):
        add_item()
        place_order(extra_data={"SubscribeToNewsletter": "true"})
        assert services.newsletter.subscriptions == set()


class TestValidation:
    def test_unknown_customer(self, services, add_item):
        result = services.pipeline.place_order(ProcessPaymentRequest(customer_id=999))
        assert result.errors == ("Customer does not exist.",)
        assert result.order is None

    def test_empty_cart(self, place_order):
        result = place_order()
        assert result.errors == ("Your shopping cart is empty.",)

    def test_guest_needs_anonymous_checkout(self, customer, add_item, place_order):
        customer.is_registered = False
        add_item()
        assert place_order().errors == ("Anonymous checkout is not allowed.",)

    def test_unknown_payment_method(self, add_item, place_order):
        add_item()
        assert place_order(payment_method="Payments.Unknown").errors == ("Payment method is not available.",)

    def test_inactive_payment_method(self, gateway, add_item, place_order):
        gateway.active = False
        add_item()
        assert place_order().errors == ("Payment method is not available.",)

    def test_minimum_order_subtotal(self, services, add_item, place_order):
        services.settings.order.order_total_minimum = Decimal("50")
        add_item(price="10.00")

        errors = place_order().errors
        assert len(errors) == 1
        assert errors[0].startswith("Minimum order sub-total amount is 50")

    def test_wrong_billing_email(self, customer, address, add_item, place_order):
        customer.billing_address = address.model_copy(update={"email": "not-an-email"})
        add_item()
        assert place_order().errors == ("Wrong email.",)

    def test_missing_billing_address(self, customer, add_item, place_order):
        customer.billing_address = None
        add_item()
        assert place_order().errors == ("Billing address is not provided.",)

    def test_missing_shipping_address(self, customer, add_item, place_order):
        customer.shipping_address = None
        add_item()
        assert place_order().errors == ("Shipping address is not provided.",)

    def test_unpublished_product(self, add_item, place_order):
        add_item(published=False)
        assert place_order().errors == ("Product 'Product 1' is not published.",)

    def test_conflicting_recurring_cycles(self, add_item, place_order):
        add_item(is_recurring=True, recurring_cycle_length=1)
        add_item(is_recurring=True, recurring_cycle_length=2)

        errors = place_order().errors
        assert errors == ("Your cart has recurring items with conflicting recurring cycle settings.",)

    def test_recurring_not_supported_by_method(self, gateway, add_item, place_order):
        gateway.recurring_payment_type = RecurringPaymentType.NOT_SUPPORTED
        add_item(is_recurring=True)
        assert place_order().errors == ("Recurring payments are not supported by the selected payment method.",)

    def test_rejected_placement_leaves_cart_intact(self, services, orders, customer, cart, add_item, place_order):
        services.settings.order.order_total_minimum = Decimal("50")
        add_item()

        place_order()
        assert len(cart.items) == 1
        assert orders.find_by_customer(customer.id) == []


class TestPaymentOutcomes:
    def test_declined_payment(self, orders, customer, cart, gateway, add_item, place_order):
        gateway.configure(should_succeed=False)
        add_item()

        result = place_order()
        assert result.success is False
        assert result.errors == ("Card declined",)
        assert result.payment_failure is not None
        assert orders.find_by_customer(customer.id) == []
        assert len(cart.items) == 1

    def test_payment_error_carries_redirect_hint(self, orders, customer, cart, gateway, add_item, place_order):
        gateway.configure(should_succeed=False, raise_payment_error=True, redirect_hint="PaymentMethod")
        add_item()

        result = place_order()
        assert result.order is None
        assert result.errors == ("Card declined",)
        assert result.payment_failure.redirect_hint == "PaymentMethod"
        assert orders.find_by_customer(customer.id) == []
        assert len(cart.items) == 1

    def test_unexpected_payment_error_leaves_order_pending(
        self, gateway, add_item, place_order, order_events, monkeypatch
    ):
        def _boom(request):
            raise RuntimeError("gateway timeout")

        monkeypatch.setattr(gateway, "process_payment", _boom)
        add_item()

        result = place_order()
        assert result.success
        order = result.order
        assert order.payment_status == PaymentStatus.PENDING
        assert order.order_status == OrderStatus.PENDING
        assert order.paid_date_utc is None
        assert _note_texts(order)[0] == "Payment processing error: gateway timeout"
        assert "Checkout.OrderPaid.v1" not in order_events(order.id)

    def test_authorized_payment(self, gateway, add_item, place_order):
        gateway.new_payment_status = PaymentStatus.AUTHORIZED
        add_item()

        order = place_order().order
        assert order.payment_status == PaymentStatus.AUTHORIZED
        assert order.order_status == OrderStatus.PROCESSING
        assert order.authorization_transaction_id.startswith("fake_txn_")
        assert order.paid_date_utc is None

    def test_failing_stage_becomes_order_note(self, services, cart, add_item, place_order, monkeypatch):
        def _boom(order):
            raise RuntimeError("mail server down")

        monkeypatch.setattr(services.messages, "send_order_placed_store_owner_notification", _boom)
        add_item()

        result = place_order()
        assert result.success
        assert "Error while finalizing order placement: mail server down" in _note_texts(result.order)



class _UnreachableEmail(EmailPort):
    def send(self, to, subject, body):
        raise ConnectionError("smtp unreachable")


class TestNotificationFailures:
    def test_email_channel_error_does_not_stop_placement(self, services, cart, add_item, place_order, monkeypatch):
        monkeypatch.setattr(services.messages, "email", _UnreachableEmail())
        add_item()

        result = place_order()
        assert result.success
        assert result.order.order_status == OrderStatus.PROCESSING
        assert _note_texts(result.order) == ["Order placed", "Order status has been changed to Processing"]
        assert cart.items == []

    def test_refused_email_leaves_no_email_note(self, services, add_item, place_order):
        services.email.refuse()
        add_item()

        result = place_order()
        assert result.success
        assert not any("Email id" in note for note in _note_texts(result.order))
        assert services.email.queued == []

    def test_failing_status_check_becomes_order_note(self, services, orders, add_item, place_order, monkeypatch):
        def _boom(order):
            raise RuntimeError("status check failed")

        monkeypatch.setattr(services.lifecycle, "check_order_status", _boom)
        add_item()

        result = place_order()
        assert result.success
        stored = orders.get(result.order.id)
        assert "Error while checking order status: status check failed" in _note_texts(stored)
        assert stored.order_status == OrderStatus.PENDING


class TestPlacementChecks:
    def test_minimum_placement_interval(self, services, customer, placed_order):
        services.settings.order.minimum_order_placement_interval = 30
        assert services.pipeline.is_minimum_order_placement_interval_valid(customer, 1) is False

    def test_interval_ignores_other_stores(self, services, customer, placed_order):
        services.settings.order.minimum_order_placement_interval = 30
        assert services.pipeline.is_minimum_order_placement_interval_valid(customer, 2) is True

    def test_interval_disabled(self, services, customer, placed_order):
        assert services.pipeline.is_minimum_order_placement_interval_valid(customer, 1) is True

    @pytest.mark.parametrize("expand, expected", [(False, False), (True, True)])
    def test_role_minimums(self, services, cart, add_item, expand, expected):
        services.settings.order.multiple_order_total_restrictions_expand_range = expand
        roles = [
            CustomerRole(id=1, name="Retail", order_total_minimum=Decimal("20")),
            CustomerRole(id=2, name="Wholesale", order_total_minimum=Decimal("50")),
        ]
        add_item(price="30.00")

        result = services.pipeline.validate_order_total(cart, roles)
        assert result.is_above_minimum is expected
        assert result.is_below_maximum is True

    def test_validate_order_placement_returns_cart(self, services, customer, cart, add_item):
        add_item()
        warnings, validated_cart = services.pipeline.validate_order_placement(
            ProcessPaymentRequest(customer_id=customer.id, payment_method_system_name="Payments.Fake")
        )
        assert warnings == []
        assert validated_cart is cart
