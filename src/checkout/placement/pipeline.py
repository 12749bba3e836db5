"""Order placement pipeline.

Turns a customer's shopping cart (or, for the next cycle of a recurring
payment, an earlier order) into a persisted order:

    validate → apply customer data → apply pricing data → process payment
      → persist (PENDING) → add items → add associated data → finalize
      → lifecycle check → OrderPlaced / OrderPaid events → persist

Validation warnings and payment failures are returned in the
``OrderPlacementResult``; nothing is persisted in that case and the cart
stays intact. Once payment went through the order is persisted at once,
and a failure in any later stage, the final status check included, only
adds an order note.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from checkout.calculation.engine import OrderCalculationService
from checkout.calculation.results import CartTotal
from checkout.cart.cart import CartItem, CheckoutRequirements, ProductType, ShoppingCart
from checkout.cart.validation import ShoppingCartValidator
from checkout.config import NewsletterSubscriptionType
from checkout.customer.customer import Address, Customer, CustomerRole, VatNumberStatus, is_valid_email
from checkout.discounts.discount import DiscountUsageHistory
from checkout.giftcards.giftcard import GiftCard, GiftCardUsageHistory
from checkout.notifications.messages import MessageFactory
from checkout.order.events import OrderPaid, OrderPlaced
from checkout.order.lifecycle import OrderLifecycle
from checkout.order.order import (
    BundleItemData,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    RecurringPayment,
    ShippingStatus,
)
from checkout.payment.outcome import PaymentFailure, PaymentOutcome, PaymentSuccess
from checkout.payment.port import ProcessPaymentRequest, ProcessPaymentResult, RecurringPaymentType
from checkout.payment.service import PaymentService
from checkout.placement.context import OrderPlacementResult, OrderTotalValidationResult, PlaceOrderContext
from checkout.providers.ports import (
    ActivityLogger,
    CheckoutAttributeProvider,
    CustomerProvider,
    DiscountProvider,
    GiftCardProvider,
    InventoryProvider,
    NewsletterProvider,
    ShoppingCartProvider,
)
from checkout.tax.rates import TaxDisplayType, format_tax_rates

if TYPE_CHECKING:
    from checkout.config import CheckoutSettings

logger = structlog.get_logger(__name__)

_ZERO = Decimal(0)
_RECURRING_NOT_SUPPORTED = "Recurring payments are not supported by the selected payment method."


def _to_bool(value: str | bool | None) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "on")


def _find_order(order_id: str | None) -> Order | None:
    if order_id is None:
        return None
    try:
        return current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError:
        return None


class OrderPlacementPipeline:
    def __init__(
        self,
        settings: "CheckoutSettings",
        customers: CustomerProvider,
        calculation: OrderCalculationService,
        payment_service: PaymentService,
        cart_provider: ShoppingCartProvider,
        cart_validator: ShoppingCartValidator,
        checkout_attribute_provider: CheckoutAttributeProvider,
        discount_provider: DiscountProvider,
        gift_card_provider: GiftCardProvider,
        inventory_provider: InventoryProvider,
        newsletter_provider: NewsletterProvider,
        activity_logger: ActivityLogger,
        message_factory: MessageFactory,
        lifecycle: OrderLifecycle,
    ) -> None:
        self.settings = settings
        self.customers = customers
        self.calculation = calculation
        self.payment_service = payment_service
        self.cart_provider = cart_provider
        self.cart_validator = cart_validator
        self.checkout_attribute_provider = checkout_attribute_provider
        self.discount_provider = discount_provider
        self.gift_card_provider = gift_card_provider
        self.inventory_provider = inventory_provider
        self.newsletter_provider = newsletter_provider
        self.activity_logger = activity_logger
        self.message_factory = message_factory
        self.lifecycle = lifecycle

    # -------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------
    def place_order(
        self, request: ProcessPaymentRequest, extra_data: dict[str, str] | None = None
    ) -> OrderPlacementResult:
        ctx = PlaceOrderContext(request=request, extra_data=dict(extra_data or {}))
        log = logger.bind(customer_id=request.customer_id, order_guid=str(request.order_guid))

        self._validate(ctx)
        if ctx.warnings:
            log.info("Order placement rejected", warnings=ctx.warnings)
            return OrderPlacementResult(errors=tuple(ctx.warnings))

        ctx.order = Order(id=str(request.order_guid))
        self._apply_customer_data(ctx)
        self._apply_pricing_data(ctx)

        try:
            outcome = self._process_payment(ctx)
        except Exception as exc:
            log.exception("Payment processing error")
            ctx.deferred_notes.append(f"Payment processing error: {exc}")
            outcome = PaymentSuccess(ProcessPaymentResult(new_payment_status=PaymentStatus.PENDING))

        if isinstance(outcome, PaymentFailure):
            log.warning("Order placement payment failed", errors=list(outcome.errors))
            return OrderPlacementResult(errors=outcome.errors, payment_failure=outcome)

        self._persist(ctx, outcome.result)
        log = log.bind(order_id=ctx.order.id)

        self._run_stage(ctx, "adding order items", self._add_order_items)
        self._run_stage(ctx, "adding associated data", self._add_associated_data)
        self._run_stage(ctx, "finalizing order placement", self._finalize)

        self._run_stage(ctx, "checking order status", lambda c: self.lifecycle.check_order_status(c.order))

        order = ctx.order
        order.raise_(
            OrderPlaced(
                order_id=order.id,
                customer_id=order.customer_id,
                order_total=order.order_total,
                currency=order.customer_currency_code,
            )
        )
        if order.payment_status == PaymentStatus.PAID:
            order.raise_(OrderPaid(order_id=order.id, customer_id=order.customer_id, order_total=order.order_total))
        current_domain.repository_for(Order).add(order)

        log.info("Order placed", total=str(order.order_total), payment_status=order.payment_status.value)

        return OrderPlacementResult(order=order)

    def _run_stage(self, ctx: PlaceOrderContext, name: str, stage: Callable[[PlaceOrderContext], None]) -> None:
        try:
            stage(ctx)
        except Exception as exc:
            logger.exception("Order placement stage failed", stage=name, order_id=ctx.order.id)
            ctx.order.add_note(f"Error while {name}: {exc}")

    # -------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------
    def validate_order_placement(
        self, request: ProcessPaymentRequest
    ) -> tuple[list[str], ShoppingCart | None]:
        """Warnings that prevent placing an order, and the cart they refer to."""
        ctx = PlaceOrderContext(request=request)
        self._validate(ctx)
        return ctx.warnings, ctx.cart

    def _validate(self, ctx: PlaceOrderContext) -> None:
        request = ctx.request
        warnings = ctx.warnings

        customer = self.customers.find(request.customer_id)
        ctx.customer = customer

        if customer is None:
            warnings.append("Customer does not exist.")
            return
        if customer.is_guest and not self.settings.order.anonymous_checkout_allowed:
            warnings.append("Anonymous checkout is not allowed.")
            return

        if request.is_recurring_payment:
            if not self._validate_recurring_payment(ctx):
                return
        elif not self._validate_cart(ctx):
            return

        if not warnings and ctx.payment_required:
            store_id = request.store_id
            if not request.payment_method_system_name or not self.payment_service.is_method_active(
                request.payment_method_system_name, ctx.cart, store_id
            ):
                warnings.append("Payment method is not available.")

        if request.is_recurring_payment:
            ctx.is_recurring_cart = True
        elif not warnings:
            ctx.is_recurring_cart = ctx.cart.has_recurring_items()
            cycle_info = ctx.cart.get_recurring_cycle_info()
            if cycle_info.error:
                warnings.append(cycle_info.error)

        if not warnings and ctx.payment_required and ctx.is_recurring_cart:
            recurring_type = self.payment_service.get_recurring_payment_type(request.payment_method_system_name)
            if recurring_type == RecurringPaymentType.NOT_SUPPORTED:
                warnings.append(_RECURRING_NOT_SUPPORTED)

    def _validate_cart(self, ctx: PlaceOrderContext) -> bool:
        request = ctx.request
        warnings = ctx.warnings
        customer = ctx.customer

        cart = self.cart_provider.get_cart(customer, request.store_id)
        ctx.cart = cart
        ctx.requires_shipping = cart.is_shipping_required()

        if not cart.has_items:
            warnings.append("Your shopping cart is empty.")
            return False

        if not self.cart_validator.validate_cart(cart, warnings, validate_checkout_attributes=True):
            return False

        for item in cart.items:
            if not self.cart_validator.validate_item(item, cart, warnings):
                return False

        total_validation = self.validate_order_total(cart, customer.active_roles)
        if not total_validation.is_above_minimum:
            warnings.append(f"Minimum order sub-total amount is {total_validation.order_total_minimum}.")
        if not total_validation.is_below_maximum:
            warnings.append(f"Maximum order sub-total amount is {total_validation.order_total_maximum}.")
        if warnings:
            return False

        shipping_incl = self.calculation.get_shipping_total(cart, include_tax=True)
        shipping_excl = self.calculation.get_shipping_total(cart, include_tax=False)
        if shipping_incl.shipping_total is None or shipping_excl.shipping_total is None:
            warnings.append("Shipping total could not be calculated.")
            return False

        cart_total = self.calculation.get_cart_total(cart)
        if cart_total.total is None:
            warnings.append("Order total could not be calculated.")
            return False

        ctx.payment_required = cart_total.total != 0 and CheckoutRequirements.PAYMENT in cart.requirements

        if CheckoutRequirements.BILLING_ADDRESS in cart.requirements:
            self._validate_address(customer.billing_address, warnings, billing=True)
        if ctx.requires_shipping:
            self._validate_address(customer.shipping_address, warnings, billing=False)

        return not warnings

    @staticmethod
    def _validate_address(address: Address | None, warnings: list[str], billing: bool) -> None:
        kind = "Billing" if billing else "Shipping"
        if address is None:
            warnings.append(f"{kind} address is not provided.")
        elif not is_valid_email(address.email):
            warnings.append("Wrong email.")
        elif address.country is not None:
            allowed = address.country.allows_billing if billing else address.country.allows_shipping
            if not allowed:
                usage = "billing" if billing else "shipping"
                warnings.append(f"Country '{address.country.name}' is not allowed for {usage}.")

    def _validate_recurring_payment(self, ctx: PlaceOrderContext) -> bool:
        request = ctx.request
        warnings = ctx.warnings

        initial_order = _find_order(request.initial_order_id)
        ctx.initial_order = initial_order

        if initial_order is None:
            warnings.append("Initial order does not exist for this recurring payment.")
            return False

        request.payment_method_system_name = initial_order.payment_method_system_name
        ctx.requires_shipping = initial_order.shipping_status != ShippingStatus.NOT_REQUIRED
        ctx.payment_required = initial_order.order_total != 0

        billing = initial_order.billing_address
        if billing is not None and billing.country is not None and not billing.country.allows_billing:
            warnings.append(f"Country '{billing.country.name}' is not allowed for billing.")

        if ctx.requires_shipping:
            shipping = initial_order.shipping_address
            if shipping is None:
                warnings.append("Shipping address is not provided.")
            elif shipping.country is not None and not shipping.country.allows_shipping:
                warnings.append(f"Country '{shipping.country.name}' is not allowed for shipping.")

        return not warnings

    def validate_order_total(
        self, cart: ShoppingCart, roles: list[CustomerRole] | None = None
    ) -> OrderTotalValidationResult:
        """Subtotal bounds from the customer's roles, falling back to the order settings.

        With ``multiple_order_total_restrictions_expand_range`` the loosest
        role bounds apply, otherwise the strictest.
        """
        roles = roles or []
        order_settings = self.settings.order
        expand = order_settings.multiple_order_total_restrictions_expand_range

        minimums = [r.order_total_minimum for r in roles if r.order_total_minimum and r.order_total_minimum > 0]
        maximums = [r.order_total_maximum for r in roles if r.order_total_maximum and r.order_total_maximum > 0]

        if minimums:
            minimum = min(minimums) if expand else max(minimums)
        else:
            minimum = order_settings.order_total_minimum or _ZERO
        if maximums:
            maximum = max(maximums) if expand else min(maximums)
        else:
            maximum = order_settings.order_total_maximum or _ZERO

        is_above_minimum = True
        is_below_maximum = True
        if cart.has_items and (minimum > 0 or maximum > 0):
            subtotal = self.calculation.get_subtotal(cart)
            if minimum > 0:
                is_above_minimum = subtotal.subtotal_without_discount >= minimum
            if maximum > 0:
                is_below_maximum = subtotal.subtotal_without_discount <= maximum

        return OrderTotalValidationResult(
            order_total_minimum=minimum,
            order_total_maximum=maximum,
            is_above_minimum=is_above_minimum,
            is_below_maximum=is_below_maximum,
        )

    def is_minimum_order_placement_interval_valid(self, customer: Customer, store_id: int) -> bool:
        """Whether enough time has passed since the customer's last order in the store."""
        interval = self.settings.order.minimum_order_placement_interval
        if interval == 0:
            return True

        last_order = current_domain.repository_for(Order).find_last_by_customer(customer.id, store_id)
        if last_order is None:
            return True

        return (datetime.now(UTC) - last_order.created_on).total_seconds() > interval

    # -------------------------------------------------------------------
    # Order data
    # -------------------------------------------------------------------
    def _apply_customer_data(self, ctx: PlaceOrderContext) -> None:
        order = ctx.order
        customer = ctx.customer
        request = ctx.request

        order.customer_id = customer.id
        order.store_id = request.store_id
        order.shipping_status = ShippingStatus.NOT_YET_SHIPPED if ctx.requires_shipping else ShippingStatus.NOT_REQUIRED

        if not request.is_recurring_payment:
            cart = ctx.cart
            primary = self.settings.currency.primary
            inclusive = self.calculation.is_tax_inclusive(customer)

            order.customer_currency_code = customer.currency_code or primary.code
            order.customer_language = customer.language_code
            order.customer_tax_display_type = (
                TaxDisplayType.INCLUDING_TAX if inclusive else TaxDisplayType.EXCLUDING_TAX
            )
            if self.settings.tax.eu_vat_enabled and customer.vat_number_status == VatNumberStatus.VALID:
                order.vat_number = customer.vat_number
            order.checkout_attribute_description = self.checkout_attribute_provider.format_description(cart) or None

            option = customer.checkout.selected_shipping_option
            if ctx.requires_shipping and option is not None:
                order.shipping_method = option.name
                order.shipping_rate_computation_method_system_name = (
                    option.shipping_rate_computation_method_system_name
                )

            billing_required = CheckoutRequirements.BILLING_ADDRESS in cart.requirements
            order.billing_address = (
                customer.billing_address.model_copy() if billing_required and customer.billing_address else None
            )
            order.shipping_address = (
                customer.shipping_address.model_copy() if ctx.requires_shipping and customer.shipping_address else None
            )
        else:
            initial = ctx.initial_order
            order.customer_currency_code = initial.customer_currency_code
            order.currency_rate = initial.currency_rate
            order.customer_language = initial.customer_language
            order.customer_tax_display_type = initial.customer_tax_display_type
            order.vat_number = initial.vat_number
            order.checkout_attribute_description = initial.checkout_attribute_description
            if ctx.requires_shipping:
                order.shipping_method = initial.shipping_method
                order.shipping_rate_computation_method_system_name = (
                    initial.shipping_rate_computation_method_system_name
                )
            order.billing_address = initial.billing_address.model_copy() if initial.billing_address else None
            order.shipping_address = (
                initial.shipping_address.model_copy() if ctx.requires_shipping and initial.shipping_address else None
            )

        if "CustomerComment" in ctx.extra_data:
            order.customer_order_comment = ctx.extra_data["CustomerComment"]
        hand_over = ctx.extra_data.get("AcceptThirdPartyEmailHandOver")
        if self.settings.shopping_cart.third_party_email_hand_over and hand_over is not None:
            order.accept_third_party_email_hand_over = _to_bool(hand_over)

    def _apply_pricing_data(self, ctx: PlaceOrderContext) -> None:
        order = ctx.order
        request = ctx.request

        if not request.is_recurring_payment:
            cart = ctx.cart
            calc = self.calculation
            rounding = calc.rounding

            subtotal_incl = calc.get_subtotal(cart, include_tax=True)
            subtotal_excl = calc.get_subtotal(cart, include_tax=False)
            order.order_subtotal_incl_tax = subtotal_incl.subtotal_without_discount
            order.order_subtotal_excl_tax = subtotal_excl.subtotal_without_discount
            order.order_subtotal_discount_incl_tax = subtotal_incl.discount_amount
            order.order_subtotal_discount_excl_tax = subtotal_excl.discount_amount
            ctx.add_discount(subtotal_incl.applied_discount)

            shipping_incl = calc.get_shipping_total(cart, include_tax=True)
            shipping_excl = calc.get_shipping_total(cart, include_tax=False)
            order.order_shipping_incl_tax = shipping_incl.shipping_total or _ZERO
            order.order_shipping_excl_tax = shipping_excl.shipping_total or _ZERO
            order.order_shipping_tax_rate = shipping_incl.tax_rate
            ctx.add_discount(shipping_incl.applied_discount)

            fee = calc.get_payment_fee(cart, request.payment_method_system_name)
            fee_tax = calc.get_payment_fee_tax(cart, fee, include_tax=True)
            order.payment_method_additional_fee_incl_tax = rounding.round(fee_tax.price_gross)
            order.payment_method_additional_fee_excl_tax = rounding.round(fee_tax.price_net)
            order.payment_method_additional_fee_tax_rate = fee_tax.rate

            tax = calc.get_tax_total(cart)
            order.order_tax = tax.tax_total
            order.tax_rates = format_tax_rates(tax.tax_rates)

            ctx.cart_total = calc.get_cart_total(cart)
            order.order_total = ctx.cart_total.total
            order.order_total_rounding = ctx.cart_total.rounding_amount
            order.order_discount = ctx.cart_total.discount_amount
            order.credit_balance = ctx.cart_total.credit_balance
            ctx.add_discount(ctx.cart_total.applied_discount)
        else:
            initial = ctx.initial_order
            ctx.cart_total = CartTotal(total=initial.order_total, discount_amount=initial.order_discount)

            for name in (
                "order_subtotal_incl_tax",
                "order_subtotal_excl_tax",
                "order_subtotal_discount_incl_tax",
                "order_subtotal_discount_excl_tax",
                "order_shipping_incl_tax",
                "order_shipping_excl_tax",
                "order_shipping_tax_rate",
                "payment_method_additional_fee_incl_tax",
                "payment_method_additional_fee_excl_tax",
                "payment_method_additional_fee_tax_rate",
                "order_tax",
                "tax_rates",
                "order_total",
                "order_total_rounding",
                "order_discount",
                "credit_balance",
            ):
                setattr(order, name, getattr(initial, name))

        order.refunded_amount = _ZERO
        order.applied_discount_ids = [d.id for d in ctx.applied_discounts]
        request.order_total = order.order_total

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def _process_payment(self, ctx: PlaceOrderContext) -> PaymentOutcome:
        request = ctx.request

        if not ctx.payment_required:
            request.payment_method_system_name = None
            return PaymentSuccess(ProcessPaymentResult(new_payment_status=PaymentStatus.PAID))

        if not request.is_recurring_payment and ctx.is_recurring_cart:
            cycle_info = ctx.cart.get_recurring_cycle_info()
            request.recurring_cycle_length = cycle_info.cycle_length or 0
            if cycle_info.cycle_period is not None:
                request.recurring_cycle_period = cycle_info.cycle_period
            request.recurring_total_cycles = cycle_info.total_cycles or 0

        pre_process = self.payment_service.pre_process_payment(request)
        if isinstance(pre_process, PaymentFailure):
            return pre_process

        recurring_type = self.payment_service.get_recurring_payment_type(request.payment_method_system_name)

        if not request.is_recurring_payment:
            if not ctx.is_recurring_cart:
                return self.payment_service.process_payment(request)
            if recurring_type in (RecurringPaymentType.MANUAL, RecurringPaymentType.AUTOMATIC):
                return self.payment_service.process_recurring_payment(request)
            return PaymentFailure(errors=(_RECURRING_NOT_SUPPORTED,))

        if recurring_type == RecurringPaymentType.MANUAL:
            return self.payment_service.process_recurring_payment(request)
        if recurring_type == RecurringPaymentType.AUTOMATIC:
            # The provider charges the next cycle on its own.
            return PaymentSuccess(ProcessPaymentResult(new_payment_status=PaymentStatus.PENDING))
        return PaymentFailure(errors=(_RECURRING_NOT_SUPPORTED,))

    def _persist(self, ctx: PlaceOrderContext, result: ProcessPaymentResult) -> None:
        order = ctx.order
        order.order_status = OrderStatus.PENDING
        order.payment_method_system_name = ctx.request.payment_method_system_name
        order.authorization_transaction_id = result.authorization_transaction_id
        order.authorization_transaction_code = result.authorization_transaction_code
        order.authorization_transaction_result = result.authorization_transaction_result
        order.capture_transaction_id = result.capture_transaction_id
        if result.capture_transaction_result:
            order.capture_transaction_result = result.capture_transaction_result[:400]
        order.subscription_transaction_id = result.subscription_transaction_id
        order.payment_status = result.new_payment_status
        order.paid_date_utc = ctx.now if order.payment_status == PaymentStatus.PAID else None
        order.created_on = ctx.now

        current_domain.repository_for(Order).add(order)
        logger.debug("Order persisted", order_id=order.id, payment_status=order.payment_status.value)

    # -------------------------------------------------------------------
    # Post-persist stages
    # -------------------------------------------------------------------
    def _add_order_items(self, ctx: PlaceOrderContext) -> None:
        if ctx.request.is_recurring_payment:
            for initial_item in ctx.initial_order.items:
                item = OrderItem(**initial_item.model_dump(exclude={"id"}))
                ctx.order.add_items(item)
                self._create_gift_cards(item)
                self.inventory_provider.adjust_inventory(item.product_id, True, item.quantity)
            return

        for cart_item in ctx.cart.items:
            item = self._create_order_item(cart_item, ctx.customer)
            ctx.order.add_items(item)
            self._create_gift_cards(item)
            self._decrease_inventory(cart_item)

    def _create_order_item(self, cart_item: CartItem, customer: Customer) -> OrderItem:
        product = cart_item.product
        calc = self.calculation
        unit_tax = calc.get_unit_price_tax(cart_item, customer)
        price_excl, price_incl, rate = calc.get_line_amounts(cart_item, customer)

        bundle_data = []
        if product.product_type == ProductType.BUNDLE:
            bundle_data = [
                BundleItemData(
                    product_id=child.product.id,
                    sku=child.product.sku,
                    product_name=child.product.name,
                    quantity=child.quantity,
                )
                for child in cart_item.child_items
            ]

        return OrderItem(
            product_id=product.id,
            product_name=product.name,
            sku=product.sku,
            quantity=cart_item.quantity,
            unit_price_incl_tax=calc.rounding.round_if_enabled(unit_tax.price_gross),
            unit_price_excl_tax=calc.rounding.round_if_enabled(unit_tax.price_net),
            price_incl_tax=price_incl,
            price_excl_tax=price_excl,
            tax_rate=rate,
            attribute_description=cart_item.attribute_description,
            is_shipping_enabled=product.is_shipping_enabled,
            item_weight=product.weight,
            is_gift_card=product.is_gift_card,
            gift_card_type=product.gift_card_type,
            gift_card_info=cart_item.gift_card_info,
            bundle_data=bundle_data,
        )

    def _create_gift_cards(self, item: OrderItem) -> None:
        if not item.is_gift_card or item.gift_card_info is None:
            return

        info = item.gift_card_info
        for _ in range(item.quantity):
            self.gift_card_provider.add(
                GiftCard(
                    gift_card_type=item.gift_card_type,
                    amount=item.unit_price_excl_tax,
                    is_activated=False,
                    coupon_code=self.gift_card_provider.generate_code(),
                    recipient_name=info.recipient_name,
                    recipient_email=info.recipient_email,
                    sender_name=info.sender_name,
                    sender_email=info.sender_email,
                    message=info.message,
                    purchased_with_order_item_id=item.id,
                )
            )

    def _decrease_inventory(self, cart_item: CartItem) -> None:
        self.inventory_provider.adjust_inventory(cart_item.product.id, True, cart_item.quantity)
        if cart_item.product.product_type == ProductType.BUNDLE:
            for child in cart_item.child_items:
                self.inventory_provider.adjust_inventory(child.product.id, True, child.quantity * cart_item.quantity)

    def _add_associated_data(self, ctx: PlaceOrderContext) -> None:
        order = ctx.order
        request = ctx.request

        if not request.is_recurring_payment:
            for discount in ctx.applied_discounts:
                self.discount_provider.add_usage(
                    DiscountUsageHistory(discount_id=discount.id, order_id=order.id, customer_id=order.customer_id)
                )
            for applied in ctx.cart_total.applied_gift_cards:
                applied.gift_card.usage_history.append(
                    GiftCardUsageHistory(
                        gift_card_id=applied.gift_card.id,
                        order_id=order.id,
                        used_value=applied.usable_amount,
                    )
                )

        if ctx.cart_total.redeemed_reward_points_amount > 0:
            ctx.customer.add_reward_points_history_entry(
                -ctx.cart_total.redeemed_reward_points,
                f"Redeemed reward points for order #{order.id}",
                order_id=order.id,
                used_amount=ctx.cart_total.redeemed_reward_points_amount,
            )

        if not request.is_recurring_payment and ctx.is_recurring_cart:
            recurring_payment = RecurringPayment(
                initial_order_id=order.id,
                cycle_length=request.recurring_cycle_length,
                cycle_period=request.recurring_cycle_period,
                total_cycles=request.recurring_total_cycles,
                start_date=ctx.now,
            )
            # Automatic payments record their history when the provider charges.
            recurring_type = self.payment_service.get_recurring_payment_type(request.payment_method_system_name)
            if recurring_type == RecurringPaymentType.MANUAL:
                recurring_payment.record_cycle(order.id, created_on=ctx.now)
            current_domain.repository_for(RecurringPayment).add(recurring_payment)

    def _finalize(self, ctx: PlaceOrderContext) -> None:
        order = ctx.order
        customer = ctx.customer
        request = ctx.request

        notes = list(ctx.deferred_notes)
        notes.append("Order placed")

        result = self.message_factory.send_order_placed_store_owner_notification(order)
        if result.email_id is not None:
            notes.append(f'"Order placed" email (to store owner) has been queued. Email id: {result.email_id}.')
        result = self.message_factory.send_order_placed_customer_notification(order)
        if result.email_id is not None:
            notes.append(f'"Order placed" email (to customer) has been queued. Email id: {result.email_id}.')

        if (
            self.settings.shopping_cart.newsletter_subscription != NewsletterSubscriptionType.NONE
            and "SubscribeToNewsletter" in ctx.extra_data
        ):
            email = customer.email or next((a.email for a in customer.addresses if a.email), None)
            if email:
                subscribed = self.newsletter_provider.apply_subscription(
                    _to_bool(ctx.extra_data["SubscribeToNewsletter"]), email, order.store_id
                )
                if subscribed is not None:
                    notes.append("Newsletter subscription added" if subscribed else "Newsletter subscription removed")

        for note in notes:
            order.add_note(note)

        if not request.is_recurring_payment:
            self.activity_logger.log_activity("PublicStore.PlaceOrder", f"Placed a new order #{order.id}", customer.id)

            customer.checkout.reset(
                clear_coupon_codes=True,
                clear_checkout_attributes=True,
                clear_reward_points=True,
                clear_shipping_method=True,
                clear_payment_method=True,
                clear_credit_balance=True,
            )
            self.cart_provider.delete_cart(ctx.cart)
