"""Order total calculation engine.

Stage order of the grand total:

    subtotal (minus subtotal discount)
      + shipping (after shipping discount)
      + payment fee
      + tax
    = total → order total discount → gift cards → reward points
            → credit balance → cash rounding

Every stage clamps its result to zero before the next stage consumes it. The
only mutation the engine performs is normalizing a customer's "use credit
balance" amount down to what the order actually needs.
"""

from dataclasses import replace
from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal
from typing import TYPE_CHECKING

import structlog

from checkout.calculation.results import (
    AppliedGiftCard,
    CartShippingTotal,
    CartSubtotal,
    CartTaxingInfo,
    CartTaxTotal,
    CartTotal,
    TaxingInfoMap,
)
from checkout.cart.cart import CartItem, ProductType, ShoppingCart
from checkout.customer.customer import Customer
from checkout.discounts.discount import Discount, DiscountType, get_preferred_discount
from checkout.exceptions import ConfigurationError
from checkout.money.rounding import RoundingHelper
from checkout.payment.service import PaymentService
from checkout.providers.ports import CheckoutAttributeProvider, DiscountProvider, GiftCardProvider
from checkout.shipping.options import ShippingOption
from checkout.shipping.shipping import ShippingMethod, ShippingService
from checkout.tax.calculator import TaxCalculator
from checkout.tax.rates import AuxiliaryServicesTaxType, Tax, TaxDisplayType, add_tax_rate

if TYPE_CHECKING:
    from checkout.config import CheckoutSettings

logger = structlog.get_logger(__name__)

_ZERO = Decimal(0)


class OrderCalculationService:
    def __init__(
        self,
        settings: "CheckoutSettings",
        tax_calculator: TaxCalculator,
        discount_provider: DiscountProvider,
        shipping_service: ShippingService,
        gift_card_provider: GiftCardProvider,
        checkout_attribute_provider: CheckoutAttributeProvider,
        payment_service: PaymentService,
        rounding: RoundingHelper,
    ) -> None:
        self.settings = settings
        self.tax_calculator = tax_calculator
        self.discount_provider = discount_provider
        self.shipping_service = shipping_service
        self.gift_card_provider = gift_card_provider
        self.checkout_attribute_provider = checkout_attribute_provider
        self.payment_service = payment_service
        self.rounding = rounding

    def is_tax_inclusive(self, customer: Customer | None) -> bool:
        display = customer.tax_display_type if customer and customer.tax_display_type else None
        display = display or self.settings.tax.tax_display_type
        return display == TaxDisplayType.INCLUDING_TAX

    # -------------------------------------------------------------------
    # Line items and taxing info
    # -------------------------------------------------------------------
    def get_unit_price_tax(self, item: CartItem, customer: Customer | None) -> Tax:
        return self.tax_calculator.calculate_product_tax(item.product, item.unit_price, False, customer)

    def get_line_amounts(self, item: CartItem, customer: Customer | None) -> tuple[Decimal, Decimal, Decimal]:
        """Line total excl. tax, incl. tax and the tax rate of a cart item."""
        tax = self.get_unit_price_tax(item, customer)
        currency = self.rounding.currency

        if currency.round_order_items_enabled and currency.round_unit_prices:
            net = self.rounding.round(tax.price_net) * item.quantity
            gross = self.rounding.round(tax.price_gross) * item.quantity
        else:
            net = self.rounding.round_if_enabled(tax.price_net * item.quantity)
            gross = self.rounding.round_if_enabled(tax.price_gross * item.quantity)

        return net, gross, tax.rate

    def get_taxing_infos(self, cart: ShoppingCart) -> TaxingInfoMap:
        """Taxing info per cart item id, built once per calculation."""
        infos: TaxingInfoMap = {}
        for item in cart.items:
            net, _, rate = self.get_line_amounts(item, cart.customer)
            infos[item.id] = CartTaxingInfo(
                tax_category_id=item.product.tax_category_id,
                tax_rate=rate,
                subtotal_without_discount=net,
            )
        if not infos:
            return infos

        amount_per_category: dict[int | None, Decimal] = {}
        for info in infos.values():
            amount_per_category[info.tax_category_id] = (
                amount_per_category.get(info.tax_category_id, _ZERO) + info.subtotal_without_discount
            )
        highest_amount_category = max(amount_per_category, key=amount_per_category.get)

        highest_rate_info = max(infos.values(), key=lambda i: i.tax_rate)
        highest_rate_category = highest_rate_info.tax_category_id

        return {
            item_id: replace(
                info,
                has_highest_cart_amount=info.tax_category_id == highest_amount_category,
                has_highest_tax_rate=info.tax_category_id == highest_rate_category,
            )
            for item_id, info in infos.items()
        }

    def get_ancillary_tax_category(self, default_category_id: int | None, taxing_infos: TaxingInfoMap) -> int | None:
        """Tax category for shipping and payment fees under the configured policy."""
        policy = self.settings.tax.auxiliary_services_taxing_type
        if policy == AuxiliaryServicesTaxType.HIGHEST_CART_AMOUNT:
            info = next((i for i in taxing_infos.values() if i.has_highest_cart_amount), None)
        elif policy == AuxiliaryServicesTaxType.HIGHEST_TAX_RATE:
            info = next((i for i in taxing_infos.values() if i.has_highest_tax_rate), None)
        else:
            return default_category_id

        return info.tax_category_id if info is not None else default_category_id

    # -------------------------------------------------------------------
    # Discounts
    # -------------------------------------------------------------------
    def _get_preferred_discount(
        self, discount_type: DiscountType, customer: Customer | None, amount: Decimal
    ) -> tuple[Decimal, Discount | None]:
        if self.settings.price.ignore_discounts:
            return _ZERO, None

        candidates: list[Discount] = []
        for discount in self.discount_provider.get_all_discounts(discount_type):
            if discount.discount_type != discount_type:
                continue
            if any(c.id == discount.id for c in candidates):
                continue
            if self.discount_provider.is_discount_valid(discount, customer):
                candidates.append(discount)

        preferred = get_preferred_discount(candidates, amount)
        if preferred is None:
            return _ZERO, None

        value = self.rounding.round_if_enabled(preferred.get_discount_amount(amount))
        value = min(max(value, _ZERO), max(amount, _ZERO))
        return value, preferred

    def get_order_subtotal_discount(
        self, customer: Customer | None, amount: Decimal
    ) -> tuple[Decimal, Discount | None]:
        return self._get_preferred_discount(DiscountType.ASSIGNED_TO_ORDER_SUBTOTAL, customer, amount)

    def get_shipping_discount(self, customer: Customer | None, amount: Decimal) -> tuple[Decimal, Discount | None]:
        return self._get_preferred_discount(DiscountType.ASSIGNED_TO_SHIPPING, customer, amount)

    def get_order_total_discount(self, customer: Customer | None, amount: Decimal) -> tuple[Decimal, Discount | None]:
        return self._get_preferred_discount(DiscountType.ASSIGNED_TO_ORDER_TOTAL, customer, amount)

    # -------------------------------------------------------------------
    # Subtotal
    # -------------------------------------------------------------------
    def get_subtotal(
        self,
        cart: ShoppingCart,
        include_tax: bool | None = None,
    ) -> CartSubtotal:
        customer = cart.customer
        if include_tax is None:
            include_tax = self.is_tax_inclusive(customer)

        subtotal_excl = _ZERO
        subtotal_incl = _ZERO
        tax_rates: dict[Decimal, Decimal] = {}

        for item in cart.items:
            net, gross, rate = self.get_line_amounts(item, customer)
            subtotal_excl += net
            subtotal_incl += gross

            item_tax = gross - net
            if rate > 0 and item_tax > 0:
                add_tax_rate(tax_rates, rate, item_tax)

        for value in self.checkout_attribute_provider.get_selected_values(cart):
            tax = self.tax_calculator.calculate_checkout_attribute_tax(
                value.price_adjustment, value.tax_category_id, False, customer
            )
            net = self.rounding.round_if_enabled(tax.price_net)
            gross = self.rounding.round_if_enabled(tax.price_gross)
            subtotal_excl += net
            subtotal_incl += gross

            attribute_tax = gross - net
            if tax.rate > 0 and attribute_tax > 0:
                add_tax_rate(tax_rates, tax.rate, attribute_tax)

        subtotal_excl_without_discount = self.rounding.round(max(subtotal_excl, _ZERO))
        subtotal_incl_without_discount = self.rounding.round(max(subtotal_incl, _ZERO))

        discount_excl, applied_discount = self.get_order_subtotal_discount(customer, subtotal_excl_without_discount)
        discount_excl = min(discount_excl, subtotal_excl_without_discount)
        discount_incl = discount_excl

        subtotal_excl_with_discount = subtotal_excl_without_discount - discount_excl

        # Pro-rate the discount over the tax buckets.
        if subtotal_excl_without_discount > 0:
            for rate in list(tax_rates):
                bucket = tax_rates[rate]
                if bucket == 0:
                    continue
                discount_tax = bucket * (discount_excl / subtotal_excl_without_discount)
                discount_incl += discount_tax
                tax_rates[rate] = self.rounding.round(bucket - discount_tax)

        subtotal_incl_with_discount = subtotal_excl_with_discount + sum(tax_rates.values(), _ZERO)

        subtotal_excl_with_discount = self.rounding.round(max(subtotal_excl_with_discount, _ZERO))
        subtotal_incl_with_discount = self.rounding.round(max(subtotal_incl_with_discount, _ZERO))
        discount_incl = self.rounding.round(discount_incl)

        if include_tax:
            return CartSubtotal(
                subtotal_without_discount=subtotal_incl_without_discount,
                subtotal_with_discount=subtotal_incl_with_discount,
                discount_amount=discount_incl,
                applied_discount=applied_discount,
                tax_rates=tax_rates,
            )
        return CartSubtotal(
            subtotal_without_discount=subtotal_excl_without_discount,
            subtotal_with_discount=subtotal_excl_with_discount,
            discount_amount=discount_excl,
            applied_discount=applied_discount,
            tax_rates=tax_rates,
        )

    # -------------------------------------------------------------------
    # Shipping
    # -------------------------------------------------------------------
    def is_free_shipping(self, cart: ShoppingCart) -> bool:
        customer = cart.customer
        if customer is not None and any(role.free_shipping for role in customer.active_roles):
            return True
        if not cart.is_shipping_required():
            return True
        if not any(item.is_shippable for item in cart.items):
            return True

        shipping_settings = self.settings.shipping
        if shipping_settings.free_shipping_over_x_enabled:
            subtotal = self.get_subtotal(cart, include_tax=shipping_settings.free_shipping_over_x_including_tax)
            if subtotal.subtotal_with_discount > shipping_settings.free_shipping_over_x_value:
                return True

        return False

    def get_shipping_charge(self, cart: ShoppingCart) -> Decimal:
        """Additional shipping charges of the cart's products."""
        charges: list[tuple[Decimal, int]] = []
        for item in cart.items:
            if not item.is_shippable:
                continue
            product = item.product
            if product.product_type == ProductType.BUNDLE and product.bundle_per_item_shipping:
                charge = sum(
                    (c.product.additional_shipping_charge * c.quantity for c in item.child_items if c.is_shippable),
                    _ZERO,
                )
            else:
                charge = product.additional_shipping_charge
            charges.append((charge, item.quantity))

        if self.settings.shipping.charge_only_highest_product_shipping_surcharge:
            return max((charge for charge, _ in charges), default=_ZERO)
        return sum((charge * quantity for charge, quantity in charges), _ZERO)

    def adjust_shipping_rate(
        self,
        cart: ShoppingCart,
        shipping_rate: Decimal,
        shipping_option: ShippingOption | None,
        shipping_methods: list[ShippingMethod],
    ) -> tuple[Decimal, Decimal, Discount | None]:
        """Apply bundle rates, additional charges and the shipping discount to a base rate.

        Returns the adjusted rate, the discount amount and the applied discount.
        """
        if self.is_free_shipping(cart):
            return _ZERO, _ZERO, None

        adjusted = _ZERO
        bundle_per_item_shipping = _ZERO
        for item in cart.items:
            product = item.product
            if product.product_type == ProductType.BUNDLE and product.bundle_per_item_shipping:
                for child in item.child_items:
                    if child.is_shippable:
                        bundle_per_item_shipping += shipping_rate
            elif adjusted == 0:
                adjusted = shipping_rate

        adjusted += bundle_per_item_shipping

        ignore_charges = False
        if shipping_option is not None:
            method = next((m for m in shipping_methods if m.id == shipping_option.shipping_method_id), None)
            ignore_charges = method is not None and method.ignore_charges

        if not ignore_charges:
            adjusted += self.get_shipping_charge(cart)

        discount_amount, discount = self.get_shipping_discount(cart.customer, adjusted)
        adjusted = self.rounding.round(max(adjusted - discount_amount, _ZERO))
        return adjusted, discount_amount, discount

    def get_shipping_total(
        self,
        cart: ShoppingCart,
        include_tax: bool | None = None,
        taxing_infos: TaxingInfoMap | None = None,
    ) -> CartShippingTotal:
        customer = cart.customer
        if include_tax is None:
            include_tax = self.is_tax_inclusive(customer)

        if self.is_free_shipping(cart):
            return CartShippingTotal(shipping_total=_ZERO)

        shipping_methods = self.shipping_service.get_all_shipping_methods(cart.store_id)
        option = customer.checkout.selected_shipping_option if customer else None

        if option is not None:
            adjusted, discount_amount, discount = self.adjust_shipping_rate(
                cart, option.rate, option, shipping_methods
            )
        else:
            computation_methods = self.shipping_service.load_enabled_computation_methods(cart.store_id)
            if not computation_methods:
                raise ConfigurationError("Shipping rate computation method could not be loaded")
            if len(computation_methods) > 1:
                return CartShippingTotal(shipping_total=None)

            request = self.shipping_service.create_request(cart, customer.shipping_address if customer else None)
            fixed_rate = computation_methods[0].get_fixed_rate(request)
            if fixed_rate is None:
                return CartShippingTotal(shipping_total=None)
            adjusted, discount_amount, discount = self.adjust_shipping_rate(
                cart, fixed_rate, None, shipping_methods
            )

        if taxing_infos is None:
            taxing_infos = self.get_taxing_infos(cart)
        category_id = self.get_ancillary_tax_category(self.settings.tax.shipping_tax_class_id, taxing_infos)
        tax = self.tax_calculator.calculate_shipping_tax(adjusted, include_tax, customer, category_id)

        return CartShippingTotal(
            shipping_total=self.rounding.round(max(tax.price, _ZERO)),
            tax_rate=tax.rate,
            discount_amount=discount_amount,
            applied_discount=discount,
        )

    # -------------------------------------------------------------------
    # Payment fee
    # -------------------------------------------------------------------
    def get_payment_fee(self, cart: ShoppingCart, payment_method_system_name: str | None) -> Decimal:
        if not payment_method_system_name:
            return _ZERO

        amount, use_percentage = self.payment_service.get_payment_fee_info(payment_method_system_name, cart)
        if use_percentage:
            cart_total = self.get_cart_total(cart, include_payment_fee=False)
            if cart_total.total is None:
                return _ZERO
            result = cart_total.total * amount / Decimal(100)
        else:
            result = amount

        return self.rounding.round(result)

    def get_payment_fee_tax(
        self,
        cart: ShoppingCart,
        fee: Decimal,
        include_tax: bool,
        taxing_infos: TaxingInfoMap | None = None,
    ) -> Tax:
        if taxing_infos is None:
            taxing_infos = self.get_taxing_infos(cart)
        category_id = self.get_ancillary_tax_category(self.settings.tax.payment_fee_tax_class_id, taxing_infos)
        return self.tax_calculator.calculate_payment_fee_tax(fee, include_tax, cart.customer, category_id)

    # -------------------------------------------------------------------
    # Tax
    # -------------------------------------------------------------------
    def get_tax_total(
        self,
        cart: ShoppingCart,
        include_payment_fee: bool = True,
        taxing_infos: TaxingInfoMap | None = None,
    ) -> CartTaxTotal:
        customer = cart.customer
        if self.tax_calculator.is_vat_exempt(customer):
            return CartTaxTotal(tax_total=_ZERO, tax_rates={_ZERO: _ZERO})

        if taxing_infos is None:
            taxing_infos = self.get_taxing_infos(cart)

        subtotal = self.get_subtotal(cart, include_tax=False)
        tax_rates = dict(subtotal.tax_rates)

        if self.settings.tax.shipping_is_taxable and not self.is_free_shipping(cart):
            shipping_excl = self.get_shipping_total(cart, False, taxing_infos)
            shipping_incl = self.get_shipping_total(cart, True, taxing_infos)
            if shipping_excl.shipping_total is not None and shipping_incl.shipping_total is not None:
                shipping_tax = self.rounding.round(
                    max(shipping_incl.shipping_total - shipping_excl.shipping_total, _ZERO)
                )
                if shipping_excl.tax_rate > 0 and shipping_tax > 0:
                    add_tax_rate(tax_rates, shipping_excl.tax_rate, shipping_tax)

        if include_payment_fee and self.settings.tax.payment_fee_is_taxable and customer is not None:
            fee = self.get_payment_fee(cart, customer.checkout.selected_payment_method)
            if fee != 0:
                fee_excl = self.get_payment_fee_tax(cart, fee, False, taxing_infos)
                fee_incl = self.get_payment_fee_tax(cart, fee, True, taxing_infos)
                fee_tax = self.rounding.round(fee_incl.price - fee_excl.price)
                if fee_excl.rate > 0 and fee_tax != 0:
                    add_tax_rate(tax_rates, fee_excl.rate, fee_tax)

        if not tax_rates:
            tax_rates[_ZERO] = _ZERO

        total = self.rounding.round(max(sum(tax_rates.values(), _ZERO), _ZERO))
        return CartTaxTotal(tax_total=total, tax_rates=tax_rates)

    # -------------------------------------------------------------------
    # Grand total
    # -------------------------------------------------------------------
    def get_cart_total(
        self,
        cart: ShoppingCart,
        include_reward_points: bool = True,
        include_payment_fee: bool = True,
        include_credit_balance: bool = True,
    ) -> CartTotal:
        customer = cart.customer
        taxing_infos = self.get_taxing_infos(cart)

        subtotal = self.get_subtotal(cart, include_tax=False)
        shipping = self.get_shipping_total(cart, include_tax=False, taxing_infos=taxing_infos)

        payment_fee_excl = _ZERO
        payment_method = customer.checkout.selected_payment_method if customer else None
        if include_payment_fee and customer is not None:
            fee = self.get_payment_fee(cart, payment_method)
            if fee != 0:
                payment_fee_excl = self.rounding.round(self.get_payment_fee_tax(cart, fee, False, taxing_infos).price)

        tax = self.get_tax_total(cart, include_payment_fee, taxing_infos)

        result = subtotal.subtotal_with_discount + (shipping.shipping_total or _ZERO) + payment_fee_excl + tax.tax_total
        result = self.rounding.round(result)

        discount_amount, applied_discount = self.get_order_total_discount(customer, result)
        discount_amount = min(discount_amount, result)
        result = self.rounding.round(max(result - discount_amount, _ZERO))

        applied_gift_cards: list[AppliedGiftCard] = []
        if not cart.has_recurring_items():
            for gift_card in self.gift_card_provider.get_valid_gift_cards(cart.store_id, customer):
                if result <= 0:
                    break
                usable = min(result, gift_card.get_remaining_amount())
                result -= usable
                applied_gift_cards.append(AppliedGiftCard(gift_card=gift_card, usable_amount=usable))
        result = max(result, _ZERO)

        redeemed_points, redeemed_amount = 0, _ZERO
        if include_reward_points:
            redeemed_points, redeemed_amount = self._get_redeemable_reward_points(customer, result)

        result = self.rounding.round(max(result, _ZERO))

        total = None
        credit_balance = _ZERO
        rounding_amount = _ZERO
        if shipping.shipping_total is not None:
            total = max(result - redeemed_amount, _ZERO)
            if include_credit_balance:
                credit_balance = self._apply_credit_balance(customer, total)
            total = self.rounding.round(total - credit_balance)

            if self.rounding.is_cash_rounding_enabled(self.payment_service.rounds_order_total(payment_method)):
                total, rounding_amount = self.rounding.to_nearest(total)

        return CartTotal(
            total=total,
            discount_amount=discount_amount,
            applied_discount=applied_discount,
            applied_gift_cards=applied_gift_cards,
            redeemed_reward_points=redeemed_points,
            redeemed_reward_points_amount=redeemed_amount,
            credit_balance=credit_balance,
            rounding_amount=rounding_amount,
        )

    def _get_redeemable_reward_points(self, customer: Customer | None, total: Decimal) -> tuple[int, Decimal]:
        if not self.settings.reward_points.enabled or total <= 0 or customer is None:
            return 0, _ZERO
        if not customer.checkout.use_reward_points_during_checkout:
            return 0, _ZERO

        balance = customer.reward_points_balance
        balance_amount = self.convert_reward_points_to_amount(balance)
        if total > balance_amount:
            return balance, balance_amount
        return self.convert_amount_to_reward_points(total), total

    def _apply_credit_balance(self, customer: Customer | None, total: Decimal) -> Decimal:
        if customer is None:
            return _ZERO

        credit = customer.checkout.use_credit_balance_during_checkout
        if credit <= 0:
            return _ZERO
        if credit > total:
            credit = total
            customer.checkout.use_credit_balance_during_checkout = credit
            logger.info("Credit balance normalized", customer_id=customer.id, credit_balance=str(credit))
        return credit

    # -------------------------------------------------------------------
    # Reward points
    # -------------------------------------------------------------------
    def convert_reward_points_to_amount(self, points: int) -> Decimal:
        if points <= 0:
            return _ZERO
        return self.rounding.round_if_enabled(points * self.settings.reward_points.exchange_rate)

    def convert_amount_to_reward_points(self, amount: Decimal) -> int:
        """Points needed to pay ``amount``, floored or ceiled per ``round_down_reward_points``."""
        rate = self.settings.reward_points.exchange_rate
        if amount <= 0 or rate <= 0:
            return 0

        rounding = ROUND_FLOOR if self.settings.reward_points.round_down_reward_points else ROUND_CEILING
        return int((amount / rate).to_integral_value(rounding=rounding))
