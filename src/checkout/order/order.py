"""Order aggregate: the order row with its items, notes and shipments, and
the recurring payment schedule an order may have started.

Three independent statuses describe an order:

    OrderStatus:    PENDING → PROCESSING → COMPLETE, any → CANCELLED
    PaymentStatus:  PENDING → AUTHORIZED → PAID → PARTIALLY_REFUNDED → REFUNDED,
                    AUTHORIZED → VOIDED
    ShippingStatus: NOT_REQUIRED | NOT_YET_SHIPPED → PARTIALLY_SHIPPED → SHIPPED → DELIVERED

The order status is derived from the other two by the lifecycle rules in
``checkout.order.lifecycle``. The guards below only look at the order itself;
guards that also need the payment method live in ``checkout.order.payment``.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from protean.fields import (
    Boolean,
    DateTime,
    Dict,
    HasMany,
    Identifier,
    Integer,
    List,
    String,
    Text,
    ValueObject,
)
from protean.fields import Decimal as DecimalField

from checkout.cart.cart import GiftCardInfo, GiftCardType, RecurringCyclePeriod
from checkout.customer.customer import Address
from checkout.domain import checkout
from checkout.tax.rates import TaxDisplayType


def _now() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETE = "Complete"
    CANCELLED = "Cancelled"


class PaymentStatus(Enum):
    PENDING = "Pending"
    AUTHORIZED = "Authorized"
    PAID = "Paid"
    PARTIALLY_REFUNDED = "PartiallyRefunded"
    REFUNDED = "Refunded"
    VOIDED = "Voided"


class ShippingStatus(Enum):
    NOT_REQUIRED = "NotRequired"
    NOT_YET_SHIPPED = "NotYetShipped"
    PARTIALLY_SHIPPED = "PartiallyShipped"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@checkout.value_object(part_of="Order")
class BundleItemData:
    """A bundled child product, recorded with its bundle's order item."""

    product_id = Integer(required=True)
    sku = String(max_length=100)
    product_name = String(required=True, sanitize=False)
    quantity = Integer(default=1)


@checkout.value_object(part_of="RecurringPayment")
class RecurringPaymentHistory:
    order_id = Identifier(required=True)
    created_on = DateTime(default=_now)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@checkout.entity(part_of="Order")
class OrderNote:
    note = Text(required=True, sanitize=False)
    display_to_customer = Boolean(default=False)
    created_on = DateTime(default=_now)


@checkout.entity(part_of="Order")
class OrderItem:
    """An ordered product with its prices locked at placement time."""

    product_id = Integer(required=True)
    product_name = String(required=True, sanitize=False)
    sku = String(max_length=100)
    quantity = Integer(required=True, min_value=0)
    unit_price_incl_tax = DecimalField(default=Decimal(0))
    unit_price_excl_tax = DecimalField(default=Decimal(0))
    price_incl_tax = DecimalField(default=Decimal(0))
    price_excl_tax = DecimalField(default=Decimal(0))
    tax_rate = DecimalField(default=Decimal(0))
    discount_amount_incl_tax = DecimalField(default=Decimal(0))
    discount_amount_excl_tax = DecimalField(default=Decimal(0))
    attribute_description = Text(sanitize=False)
    is_shipping_enabled = Boolean(default=True)
    item_weight = DecimalField(default=Decimal(0))
    is_gift_card = Boolean(default=False)
    gift_card_type: GiftCardType = GiftCardType.VIRTUAL
    gift_card_info: GiftCardInfo | None = None
    bundle_data = List(content_type=ValueObject(BundleItemData))


@checkout.entity(part_of="Order")
class Shipment:
    """A parcel of order items. ``quantities`` maps order item ids to shipped units."""

    tracking_number = String(max_length=100)
    tracking_url = String(max_length=1000, sanitize=False)
    total_weight = DecimalField()
    shipped_date = DateTime()
    delivery_date = DateTime()
    quantities = Dict()
    created_on = DateTime(default=_now)

    def quantity_of(self, order_item_id: str) -> int:
        return self.quantities.get(order_item_id, 0)


# ---------------------------------------------------------------------------
# Aggregate Roots
# ---------------------------------------------------------------------------
@checkout.aggregate
class Order:
    store_id = Integer(default=1)
    customer_id = Integer()

    # Snapshot of customer data at placement time
    customer_language = String(max_length=10, default="en")
    customer_currency_code = String(max_length=3, default="USD")
    currency_rate = DecimalField(default=Decimal(1))
    customer_tax_display_type: TaxDisplayType = TaxDisplayType.EXCLUDING_TAX
    vat_number = String(max_length=50)
    checkout_attribute_description = Text(sanitize=False)
    customer_order_comment = Text(sanitize=False)
    accept_third_party_email_hand_over = Boolean(default=False)
    billing_address: Address | None = None
    shipping_address: Address | None = None
    shipping_method = String(sanitize=False)
    shipping_rate_computation_method_system_name = String()

    # Payment
    payment_method_system_name = String()
    authorization_transaction_id = String(sanitize=False)
    authorization_transaction_code = String(sanitize=False)
    authorization_transaction_result = Text(sanitize=False)
    capture_transaction_id = String(sanitize=False)
    capture_transaction_result = Text(sanitize=False)
    subscription_transaction_id = String(sanitize=False)
    paid_date_utc = DateTime()

    # Amounts
    order_subtotal_incl_tax = DecimalField(default=Decimal(0))
    order_subtotal_excl_tax = DecimalField(default=Decimal(0))
    order_subtotal_discount_incl_tax = DecimalField(default=Decimal(0))
    order_subtotal_discount_excl_tax = DecimalField(default=Decimal(0))
    order_shipping_incl_tax = DecimalField(default=Decimal(0))
    order_shipping_excl_tax = DecimalField(default=Decimal(0))
    order_shipping_tax_rate = DecimalField(default=Decimal(0))
    payment_method_additional_fee_incl_tax = DecimalField(default=Decimal(0))
    payment_method_additional_fee_excl_tax = DecimalField(default=Decimal(0))
    payment_method_additional_fee_tax_rate = DecimalField(default=Decimal(0))
    tax_rates = Text(default="", sanitize=False)
    order_tax = DecimalField(default=Decimal(0))
    order_discount = DecimalField(default=Decimal(0))
    order_total_rounding = DecimalField(default=Decimal(0))
    order_total = DecimalField(default=Decimal(0))
    refunded_amount = DecimalField(default=Decimal(0))
    credit_balance = DecimalField(default=Decimal(0))
    applied_discount_ids = List(content_type=Integer())

    # Reward points
    reward_points_were_added = Boolean(default=False)
    reward_points_remaining = Integer()

    # Statuses
    order_status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    shipping_status: ShippingStatus = ShippingStatus.NOT_YET_SHIPPED

    deleted = Boolean(default=False)
    created_on = DateTime(default=_now)
    updated_on = DateTime(default=_now)

    items = HasMany(OrderItem)
    notes = HasMany(OrderNote)
    shipments = HasMany(Shipment)

    def add_note(self, note: str, display_to_customer: bool = False) -> OrderNote:
        entry = OrderNote(note=note, display_to_customer=display_to_customer)
        self.add_notes(entry)
        self.updated_on = entry.created_on
        return entry

    def get_item(self, order_item_id: str) -> OrderItem | None:
        return next((i for i in self.items if i.id == order_item_id), None)

    def get_shipment(self, shipment_id: str) -> Shipment | None:
        return next((s for s in self.shipments if s.id == shipment_id), None)

    @property
    def is_shipping_required(self) -> bool:
        return self.shipping_status != ShippingStatus.NOT_REQUIRED

    @property
    def refundable_amount(self) -> Decimal:
        return self.order_total - self.refunded_amount

    # -------------------------------------------------------------------
    # Status guards
    # -------------------------------------------------------------------
    def can_cancel(self) -> bool:
        return self.order_status != OrderStatus.CANCELLED

    def can_complete(self) -> bool:
        return self.order_status not in (OrderStatus.CANCELLED, OrderStatus.COMPLETE)

    def can_mark_as_authorized(self) -> bool:
        return self.order_status != OrderStatus.CANCELLED and self.payment_status == PaymentStatus.PENDING

    def can_mark_as_paid(self) -> bool:
        if self.order_status == OrderStatus.CANCELLED:
            return False
        return self.payment_status not in (PaymentStatus.PAID, PaymentStatus.REFUNDED, PaymentStatus.VOIDED)

    def can_capture_offline(self) -> bool:
        if self.order_status in (OrderStatus.CANCELLED, OrderStatus.PENDING):
            return False
        return self.payment_status == PaymentStatus.AUTHORIZED

    def can_refund_offline(self) -> bool:
        if self.order_total == 0 or self.refunded_amount > 0:
            return False
        return self.payment_status == PaymentStatus.PAID

    def can_partially_refund_offline(self, amount_to_refund: Decimal) -> bool:
        if self.order_total == 0:
            return False
        can_be_refunded = self.refundable_amount
        if can_be_refunded <= 0 or amount_to_refund > can_be_refunded:
            return False
        return self.payment_status in (PaymentStatus.PAID, PaymentStatus.PARTIALLY_REFUNDED)

    def can_void_offline(self) -> bool:
        if self.order_total == 0:
            return False
        return self.payment_status == PaymentStatus.AUTHORIZED


@checkout.aggregate
class RecurringPayment:
    """Repeating charges started by an order with recurring items.

    ``history`` holds one entry per placed cycle order. It is replaced, not
    appended to, so the change is persisted.
    """

    initial_order_id = Identifier(required=True)
    cycle_length = Integer(required=True)
    cycle_period: RecurringCyclePeriod = RecurringCyclePeriod.MONTHS
    total_cycles = Integer(required=True)
    start_date = DateTime(default=_now)
    is_active = Boolean(default=True)
    deleted = Boolean(default=False)
    history = List(content_type=ValueObject(RecurringPaymentHistory))

    def record_cycle(self, order_id: str, created_on: datetime | None = None) -> None:
        entry = RecurringPaymentHistory(order_id=order_id, created_on=created_on or _now())
        self.history = [*self.history, entry]
