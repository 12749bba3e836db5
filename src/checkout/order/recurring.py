"""Recurring payments: schedule, cancellation and processing of the next cycle."""

import calendar
from datetime import datetime, timedelta
from uuid import uuid4

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from checkout.cart.cart import RecurringCyclePeriod
from checkout.customer.customer import Customer
from checkout.exceptions import PaymentError
from checkout.notifications.messages import MessageFactory
from checkout.order.order import Order, OrderStatus, RecurringPayment
from checkout.payment.port import CancelRecurringPaymentRequest, ProcessPaymentRequest
from checkout.payment.service import PaymentService
from checkout.placement.pipeline import OrderPlacementPipeline
from checkout.providers.ports import CustomerProvider

logger = structlog.get_logger(__name__)


def add_months(value: datetime, months: int) -> datetime:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


class RecurringPaymentService:
    def __init__(
        self,
        customers: CustomerProvider,
        payment_service: PaymentService,
        message_factory: MessageFactory,
        pipeline: OrderPlacementPipeline,
    ) -> None:
        self.customers = customers
        self.payment_service = payment_service
        self.message_factory = message_factory
        self.pipeline = pipeline

    def find_by_initial_order(self, order_id: str) -> list[RecurringPayment]:
        return current_domain.repository_for(RecurringPayment).find_by_initial_order(order_id)

    def _initial_order(self, recurring_payment: RecurringPayment) -> Order | None:
        try:
            return current_domain.repository_for(Order).get(recurring_payment.initial_order_id)
        except ObjectNotFoundError:
            return None

    # -------------------------------------------------------------------
    # Schedule
    # -------------------------------------------------------------------
    def get_next_payment_date(self, recurring_payment: RecurringPayment) -> datetime | None:
        if not recurring_payment.is_active:
            return None

        history_count = len(recurring_payment.history)
        if history_count >= recurring_payment.total_cycles:
            return None

        start = recurring_payment.start_date
        length = recurring_payment.cycle_length

        if history_count > 0:
            period = recurring_payment.cycle_period
            if period == RecurringCyclePeriod.DAYS:
                return start + timedelta(days=length * history_count)
            if period == RecurringCyclePeriod.WEEKS:
                return start + timedelta(weeks=length * history_count)
            if period == RecurringCyclePeriod.MONTHS:
                return add_months(start, length * history_count)
            if period == RecurringCyclePeriod.YEARS:
                return add_months(start, 12 * length * history_count)
            raise ValueError(f"Unsupported cycle period: {period}")

        if recurring_payment.total_cycles > 0:
            return start
        return None

    def get_remaining_cycles(self, recurring_payment: RecurringPayment) -> int:
        return max(recurring_payment.total_cycles - len(recurring_payment.history), 0)

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def can_cancel_recurring_payment(self, recurring_payment: RecurringPayment, customer: Customer) -> bool:
        initial_order = self._initial_order(recurring_payment)
        if initial_order is None or initial_order.order_status == OrderStatus.CANCELLED:
            return False
        if initial_order.customer_id is None:
            return False
        if initial_order.customer_id != customer.id and not customer.is_admin:
            return False

        return self.get_next_payment_date(recurring_payment) is not None

    def cancel_recurring_payment(self, recurring_payment: RecurringPayment, initial_order: Order | None = None) -> None:
        """Stop the schedule at the payment provider and deactivate it.

        Pass ``initial_order`` when the caller already holds it; both the
        recurring payment and the initial order are saved.
        """
        if initial_order is None:
            initial_order = self._initial_order(recurring_payment)
        if initial_order is None:
            raise PaymentError("Initial order does not exist for this recurring payment.")

        orders = current_domain.repository_for(Order)
        try:
            result = self.payment_service.cancel_recurring_payment(CancelRecurringPaymentRequest(order=initial_order))
            if not result.success:
                raise PaymentError(" ".join(result.errors))
        except Exception as exc:
            initial_order.add_note(f"Unable to cancel recurring payment for order #{initial_order.id}. {exc}")
            orders.add(initial_order)
            logger.warning(
                "Recurring payment cancellation failed",
                recurring_payment_id=recurring_payment.id,
                order_id=initial_order.id,
                error=str(exc),
            )
            raise

        recurring_payment.is_active = False
        current_domain.repository_for(RecurringPayment).add(recurring_payment)
        initial_order.add_note("Recurring payment has been cancelled")
        orders.add(initial_order)
        logger.info("Recurring payment cancelled", recurring_payment_id=recurring_payment.id)

        self.message_factory.send_recurring_payment_cancelled_store_owner_notification(recurring_payment)

    # -------------------------------------------------------------------
    # Next cycle
    # -------------------------------------------------------------------
    def process_next_recurring_payment(self, recurring_payment: RecurringPayment) -> Order:
        """Place the order for the next cycle and record it in the payment history."""
        if not recurring_payment.is_active:
            raise PaymentError("Recurring payment is not active.")

        initial_order = self._initial_order(recurring_payment)
        if initial_order is None:
            raise PaymentError("Initial order does not exist for this recurring payment.")
        if self.customers.find(initial_order.customer_id) is None:
            raise ObjectNotFoundError("Customer does not exist.")

        if self.get_next_payment_date(recurring_payment) is None:
            raise PaymentError("Next payment date could not be calculated.")

        request = ProcessPaymentRequest(
            store_id=initial_order.store_id,
            customer_id=initial_order.customer_id,
            order_guid=uuid4(),
            is_recurring_payment=True,
            initial_order_id=initial_order.id,
            recurring_cycle_length=recurring_payment.cycle_length,
            recurring_cycle_period=recurring_payment.cycle_period,
            recurring_total_cycles=recurring_payment.total_cycles,
        )

        result = self.pipeline.place_order(request)
        if not result.success:
            raise PaymentError(" ".join(result.errors))

        recurring_payment.record_cycle(result.order.id)
        current_domain.repository_for(RecurringPayment).add(recurring_payment)
        logger.info(
            "Recurring payment processed",
            recurring_payment_id=recurring_payment.id,
            order_id=result.order.id,
            cycle=len(recurring_payment.history),
        )
        return result.order
