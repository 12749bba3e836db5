"""Editing an order item after placement.

Totals are not recalculated from scratch. The price difference of the
edited line is applied as a delta to the order's subtotal, total, tax and
the tax amount bucket of the item's rate. Totals are only touched while the
order is still pending.
"""

from dataclasses import dataclass
from decimal import Decimal

import structlog
from protean.utils.globals import current_domain

from checkout.money.rounding import RoundingHelper
from checkout.order.lifecycle import OrderLifecycle
from checkout.order.order import Order, OrderItem, OrderStatus
from checkout.providers.ports import CustomerProvider, InventoryProvider
from checkout.tax.rates import format_tax_rates, parse_tax_rates

logger = structlog.get_logger(__name__)

_ZERO = Decimal(0)


@dataclass
class UpdateOrderDetailsContext:
    """What to change on an order item and which follow-up updates to run.

    ``old_reward_points`` and ``new_reward_points`` are filled in with the
    customer's balance before and after the update.
    """

    old_quantity: int | None = None
    new_quantity: int | None = None
    reduce_quantity: int = 0
    old_price_incl_tax: Decimal | None = None
    old_price_excl_tax: Decimal | None = None

    update_order_item: bool = False
    new_unit_price_incl_tax: Decimal | None = None
    new_unit_price_excl_tax: Decimal | None = None
    new_tax_rate: Decimal | None = None
    new_discount_incl_tax: Decimal | None = None
    new_discount_excl_tax: Decimal | None = None
    new_price_incl_tax: Decimal | None = None
    new_price_excl_tax: Decimal | None = None

    update_totals: bool = False
    adjust_inventory: bool = False
    update_reward_points: bool = False

    old_reward_points: int = 0
    new_reward_points: int = 0


class OrderModificationService:
    def __init__(
        self,
        customers: CustomerProvider,
        lifecycle: OrderLifecycle,
        inventory_provider: InventoryProvider,
        rounding: RoundingHelper,
    ) -> None:
        self.customers = customers
        self.lifecycle = lifecycle
        self.inventory_provider = inventory_provider
        self.rounding = rounding

    def _reward_points_balance(self, order: Order) -> int:
        customer = self.customers.find(order.customer_id)
        return customer.reward_points_balance if customer is not None else 0

    def update_order_details(self, order: Order, item: OrderItem, context: UpdateOrderDetailsContext) -> None:
        old_quantity = context.old_quantity if context.old_quantity is not None else item.quantity
        new_quantity = context.new_quantity if context.new_quantity is not None else item.quantity
        old_price_incl = context.old_price_incl_tax if context.old_price_incl_tax is not None else item.price_incl_tax
        old_price_excl = context.old_price_excl_tax if context.old_price_excl_tax is not None else item.price_excl_tax

        if context.reduce_quantity > 0:
            new_quantity = max(item.quantity - min(context.reduce_quantity, item.quantity), 0)

        if context.update_order_item:
            if new_quantity == 0:
                return
            self._update_item(item, new_quantity, context)

        context.old_reward_points = context.new_reward_points = self._reward_points_balance(order)

        if context.update_totals and order.order_status == OrderStatus.PENDING:
            self._update_totals(order, item, old_quantity, new_quantity, old_price_incl, old_price_excl)

        quantity_diff = new_quantity - old_quantity

        if context.adjust_inventory and quantity_diff != 0:
            self.inventory_provider.adjust_inventory(item.product_id, quantity_diff > 0, abs(quantity_diff))

        if context.update_reward_points and quantity_diff < 0:
            # Points are awarded once per order, so a decrease only claws back.
            self.lifecycle.apply_reward_points(order, reduce=True, amount=abs(quantity_diff) * item.unit_price_incl_tax)
            context.new_reward_points = self._reward_points_balance(order)

        current_domain.repository_for(Order).add(order)
        logger.info(
            "Order item updated",
            order_id=order.id,
            order_item_id=item.id,
            old_quantity=old_quantity,
            new_quantity=new_quantity,
        )

    @staticmethod
    def _update_item(item: OrderItem, quantity: int, context: UpdateOrderDetailsContext) -> None:
        item.quantity = quantity
        for field, value in (
            ("unit_price_incl_tax", context.new_unit_price_incl_tax),
            ("unit_price_excl_tax", context.new_unit_price_excl_tax),
            ("tax_rate", context.new_tax_rate),
            ("discount_amount_incl_tax", context.new_discount_incl_tax),
            ("discount_amount_excl_tax", context.new_discount_excl_tax),
            ("price_incl_tax", context.new_price_incl_tax),
            ("price_excl_tax", context.new_price_excl_tax),
        ):
            if value is not None:
                setattr(item, field, value)

    def _update_totals(
        self,
        order: Order,
        item: OrderItem,
        old_quantity: int,
        new_quantity: int,
        old_price_incl: Decimal,
        old_price_excl: Decimal,
    ) -> None:
        round_ = self.rounding.round_if_enabled

        price_incl = round_(new_quantity * item.unit_price_incl_tax)
        price_excl = round_(new_quantity * item.unit_price_excl_tax)
        diff_incl = price_incl - old_price_incl
        diff_excl = price_excl - old_price_excl

        item.quantity = new_quantity
        item.price_incl_tax = price_incl
        item.price_excl_tax = price_excl

        order.order_subtotal_incl_tax = round_(order.order_subtotal_incl_tax + diff_incl)
        order.order_subtotal_excl_tax = round_(order.order_subtotal_excl_tax + diff_excl)

        factor = Decimal(new_quantity) / Decimal(old_quantity) if old_quantity != 0 else Decimal(1)
        item.discount_amount_incl_tax = round_(item.discount_amount_incl_tax * factor)
        item.discount_amount_excl_tax = round_(item.discount_amount_excl_tax * factor)

        delta_tax = diff_incl - diff_excl
        order.order_total = round_(max(order.order_total + diff_incl, _ZERO))
        order.order_tax = round_(max(order.order_tax + delta_tax, _ZERO))

        if delta_tax != 0:
            tax_rates = parse_tax_rates(order.tax_rates)
            tax_rates[item.tax_rate] = max(tax_rates.get(item.tax_rate, _ZERO) + delta_tax, _ZERO)
            order.tax_rates = format_tax_rates(dict(sorted(tax_rates.items())))
