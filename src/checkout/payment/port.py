"""Payment method port (abstract interface).

Defines the contract that all payment method adapters implement: processing
a payment during placement, and capture, refund and void afterwards.
Results carry structured errors instead of raising. The only exception a
method raises on purpose is ``PaymentError``, used to send the customer back
to a specific checkout step.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from checkout.cart.cart import RecurringCyclePeriod, ShoppingCart
from checkout.order.order import Order, PaymentStatus


class RecurringPaymentType(Enum):
    NOT_SUPPORTED = "NotSupported"
    MANUAL = "Manual"
    AUTOMATIC = "Automatic"


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
@dataclass
class ProcessPaymentRequest:
    """Everything a payment method needs to charge for an order being placed."""

    store_id: int = 1
    customer_id: int | None = None
    order_guid: UUID = field(default_factory=uuid4)
    order_total: Decimal = Decimal(0)
    payment_method_system_name: str | None = None
    is_recurring_payment: bool = False
    initial_order_id: str | None = None
    recurring_cycle_length: int = 0
    recurring_cycle_period: RecurringCyclePeriod = RecurringCyclePeriod.MONTHS
    recurring_total_cycles: int = 0
    custom_properties: dict = field(default_factory=dict)


@dataclass(frozen=True)
class PostProcessPaymentRequest:
    order: Order


@dataclass(frozen=True)
class CapturePaymentRequest:
    order: Order


@dataclass(frozen=True)
class RefundPaymentRequest:
    order: Order
    amount_to_refund: Decimal
    is_partial_refund: bool = False


@dataclass(frozen=True)
class VoidPaymentRequest:
    order: Order


@dataclass(frozen=True)
class CancelRecurringPaymentRequest:
    order: Order


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class PreProcessPaymentResult:
    errors: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class ProcessPaymentResult:
    new_payment_status: PaymentStatus = PaymentStatus.PENDING
    authorization_transaction_id: str | None = None
    authorization_transaction_code: str | None = None
    authorization_transaction_result: str | None = None
    capture_transaction_id: str | None = None
    capture_transaction_result: str | None = None
    subscription_transaction_id: str | None = None
    errors: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class CapturePaymentResult:
    new_payment_status: PaymentStatus = PaymentStatus.PENDING
    capture_transaction_id: str | None = None
    capture_transaction_result: str | None = None
    errors: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class RefundPaymentResult:
    new_payment_status: PaymentStatus = PaymentStatus.PENDING
    errors: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class VoidPaymentResult:
    new_payment_status: PaymentStatus = PaymentStatus.PENDING
    errors: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class CancelRecurringPaymentResult:
    errors: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# Port
# ---------------------------------------------------------------------------
class PaymentMethod(ABC):
    """Abstract payment method interface."""

    system_name: str
    friendly_name: str = ""
    supports_capture: bool = False
    supports_refund: bool = False
    supports_partial_refund: bool = False
    supports_void: bool = False
    recurring_payment_type: RecurringPaymentType = RecurringPaymentType.NOT_SUPPORTED
    requires_interaction: bool = False
    round_order_total_enabled: bool = False

    @abstractmethod
    def is_active(self, cart: ShoppingCart | None, store_id: int) -> bool:
        """Whether the method may be offered for this cart."""
        ...

    @abstractmethod
    def get_payment_fee_info(self, cart: ShoppingCart) -> tuple[Decimal, bool]:
        """Additional fee as ``(fixed amount or percentage, use_percentage)``."""
        ...

    def pre_process_payment(self, request: ProcessPaymentRequest) -> PreProcessPaymentResult:
        return PreProcessPaymentResult()

    @abstractmethod
    def process_payment(self, request: ProcessPaymentRequest) -> ProcessPaymentResult: ...

    @abstractmethod
    def process_recurring_payment(self, request: ProcessPaymentRequest) -> ProcessPaymentResult: ...

    def post_process_payment(self, request: PostProcessPaymentRequest) -> str | None:
        """Redirect URL of an external payment page, if the method needs one."""
        return None

    @abstractmethod
    def capture(self, request: CapturePaymentRequest) -> CapturePaymentResult: ...

    @abstractmethod
    def refund(self, request: RefundPaymentRequest) -> RefundPaymentResult: ...

    @abstractmethod
    def void(self, request: VoidPaymentRequest) -> VoidPaymentResult: ...

    @abstractmethod
    def cancel_recurring_payment(self, request: CancelRecurringPaymentRequest) -> CancelRecurringPaymentResult: ...
