"""Checkout workflow.

Four entry points drive a checkout:

    start     validate the cart, reset stale selections, then advance
    process   run the step of the current page; a page that must be skipped
              redirects to the adjacent step
    advance   run the current step (or every step in quick checkout) and
              redirect to the next one
    complete  place the order and redirect to the payment page or the
              "completed" page

Every entry point first runs the same preliminary checks: anonymous
checkout policy, then an empty cart.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from checkout.calculation.engine import OrderCalculationService
from checkout.cart.validation import ShoppingCartValidator
from checkout.exceptions import PaymentError
from checkout.payment.outcome import PaymentFailure
from checkout.payment.port import PostProcessPaymentRequest, ProcessPaymentRequest
from checkout.payment.service import PaymentService
from checkout.placement.pipeline import OrderPlacementPipeline
from checkout.utils.logging import add_context, clear_context
from checkout.workflow.context import CheckoutContext, ReferrerDirection, RouteIdentity
from checkout.workflow.steps import (
    CART,
    COMPLETED,
    CONFIRM,
    PAYMENT_METHOD,
    CheckoutRedirect,
    CheckoutStep,
    CheckoutStepRegistry,
)

if TYPE_CHECKING:
    from checkout.config import CheckoutSettings

logger = structlog.get_logger(__name__)

# Form fields forwarded to order placement.
_EXTRA_DATA_FIELDS = {
    "customercommenthidden": "CustomerComment",
    "SubscribeToNewsletter": "SubscribeToNewsletter",
    "AcceptThirdPartyEmailHandOver": "AcceptThirdPartyEmailHandOver",
}


@dataclass(frozen=True)
class CheckoutWorkflowError:
    property_name: str
    message: str


@dataclass(frozen=True)
class CheckoutWorkflowResult:
    """Outcome of a workflow call.

    ``redirect`` is None when the current page should be shown again.
    ``challenge`` asks the caller to authenticate the customer.
    """

    redirect: CheckoutRedirect | None = None
    errors: tuple[CheckoutWorkflowError, ...] = ()
    warnings: tuple[str, ...] = ()
    challenge: bool = False


def _errors(messages) -> tuple[CheckoutWorkflowError, ...]:
    return tuple(CheckoutWorkflowError("", str(m)) for m in messages)


class CheckoutWorkflow:
    def __init__(
        self,
        settings: "CheckoutSettings",
        registry: CheckoutStepRegistry,
        cart_validator: ShoppingCartValidator,
        calculation: OrderCalculationService,
        pipeline: OrderPlacementPipeline,
        payment_service: PaymentService,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.cart_validator = cart_validator
        self.calculation = calculation
        self.pipeline = pipeline
        self.payment_service = payment_service

    @property
    def max_warnings(self) -> int:
        return self.settings.shopping_cart.max_warnings

    def _preliminary(self, context: CheckoutContext) -> CheckoutWorkflowResult | None:
        self.registry.ensure_configured()

        cart = context.cart
        add_context(customer_id=cart.customer.id)

        if not self.settings.order.anonymous_checkout_allowed and cart.customer.is_guest:
            logger.info("Checkout requires authentication")
            return CheckoutWorkflowResult(challenge=True)
        if not cart.has_items:
            logger.debug("Checkout redirected to cart, cart is empty")
            return CheckoutWorkflowResult(redirect=CART)
        return None

    # -------------------------------------------------------------------
    # Start
    # -------------------------------------------------------------------
    def start(self, context: CheckoutContext) -> CheckoutWorkflowResult:
        try:
            preliminary = self._preliminary(context)
            if preliminary is not None:
                return preliminary

            cart = context.cart
            cart.customer.checkout.reset()
            context.state.abandon()

            warnings: list[str] = []
            if self.cart_validator.validate_cart(cart, warnings, validate_checkout_attributes=True):
                for item in cart.items:
                    if warnings:
                        break
                    self.cart_validator.validate_item(item, cart, warnings)

            if warnings:
                logger.info("Checkout start rejected", warnings=warnings)
                return CheckoutWorkflowResult(redirect=CART, warnings=tuple(warnings[: self.max_warnings]))

            return self._advance(context)
        finally:
            clear_context()

    # -------------------------------------------------------------------
    # Process
    # -------------------------------------------------------------------
    def process(self, context: CheckoutContext) -> CheckoutWorkflowResult:
        try:
            preliminary = self._preliminary(context)
            if preliminary is not None:
                return preliminary

            step = self.registry.get_step_for_route(context.route)
            if step is None:
                return CheckoutWorkflowResult()

            result = step.process(context)
            if result.skip_page and result.redirect is None:
                return CheckoutWorkflowResult(redirect=self.adjacent(step, context.referrer))

            return CheckoutWorkflowResult(redirect=result.redirect, errors=_errors(result.errors))
        finally:
            clear_context()

    def referrer_direction(self, step: CheckoutStep, referrer: str | None) -> ReferrerDirection:
        route = RouteIdentity.parse(referrer)
        if route is None:
            logger.debug("Referrer not usable, continuing forward", referrer=referrer)
            return ReferrerDirection.FALLBACK_FORWARD

        if route.is_checkout_index:
            return ReferrerDirection.FORWARD
        if route.is_confirm:
            return ReferrerDirection.BACKWARD

        referrer_step = self.registry.get_step_for_route(route)
        referrer_order = referrer_step.order if referrer_step is not None else 0
        return ReferrerDirection.FORWARD if referrer_order < step.order else ReferrerDirection.BACKWARD

    def adjacent(self, step: CheckoutStep, referrer: str | None) -> CheckoutRedirect:
        """Redirect for a page that must not be shown, in the direction the customer came from."""
        direction = self.referrer_direction(step, referrer)
        adjacent = self.registry.get_adjacent_step(step, direction.is_forward)

        if adjacent is not None:
            redirect = adjacent.redirect()
        else:
            redirect = CONFIRM if direction.is_forward else CART

        logger.debug("Checkout page skipped", step=step.metadata.default_action, direction=direction.value,
                     redirect=redirect.target)
        return redirect

    # -------------------------------------------------------------------
    # Advance
    # -------------------------------------------------------------------
    def advance(self, context: CheckoutContext) -> CheckoutWorkflowResult:
        try:
            preliminary = self._preliminary(context)
            if preliminary is not None:
                return preliminary
            return self._advance(context)
        finally:
            clear_context()

    def _advance(self, context: CheckoutContext) -> CheckoutWorkflowResult:
        steps = self.registry.get_steps()

        if self.settings.shopping_cart.quick_checkout_enabled:
            for step in steps:
                result = step.process(context)
                if not result.success:
                    return CheckoutWorkflowResult(
                        redirect=result.redirect or step.redirect(), errors=_errors(result.errors)
                    )
            return CheckoutWorkflowResult(redirect=CONFIRM)

        if context.route.is_checkout_index:
            return CheckoutWorkflowResult(redirect=steps[0].redirect())

        step = self.registry.get_step_for_route(context.route)
        if step is None:
            return CheckoutWorkflowResult()

        result = step.process(context)
        if not result.success:
            return CheckoutWorkflowResult(redirect=result.redirect or step.redirect(), errors=_errors(result.errors))

        next_step = self.registry.get_adjacent_step(step, forward=True)
        if next_step is None:
            return CheckoutWorkflowResult(redirect=CONFIRM)

        logger.debug("Checkout step completed", step=step.metadata.default_action,
                     next_step=next_step.metadata.default_action)
        return CheckoutWorkflowResult(redirect=next_step.redirect())

    # -------------------------------------------------------------------
    # Complete
    # -------------------------------------------------------------------
    def complete(self, context: CheckoutContext) -> CheckoutWorkflowResult:
        try:
            preliminary = self._preliminary(context)
            if preliminary is not None:
                return preliminary
            return self._complete(context)
        finally:
            clear_context()

    def _complete(self, context: CheckoutContext) -> CheckoutWorkflowResult:
        cart = context.cart
        customer = cart.customer

        warnings: list[str] = []
        self.cart_validator.validate_cart(cart, warnings, validate_checkout_attributes=True)
        if warnings:
            return CheckoutWorkflowResult(redirect=CART, warnings=tuple(warnings[: self.max_warnings]))

        if not self.pipeline.is_minimum_order_placement_interval_valid(customer, cart.store_id):
            return CheckoutWorkflowResult(
                redirect=CONFIRM,
                warnings=("Please wait several seconds before placing a new order.",),
            )

        request = context.state.payment_request
        if request is None:
            cart_total = self.calculation.get_cart_total(cart, include_reward_points=False)
            payment_needed = cart_total.total is None or cart_total.total != 0
            if payment_needed and not context.state.is_payment_selection_skipped:
                return CheckoutWorkflowResult(redirect=PAYMENT_METHOD)
            request = ProcessPaymentRequest()

        request.store_id = cart.store_id
        request.customer_id = customer.id
        request.payment_method_system_name = customer.checkout.selected_payment_method

        extra_data = {key: context.form[field] for field, key in _EXTRA_DATA_FIELDS.items() if field in context.form}

        try:
            placement = self.pipeline.place_order(request, extra_data)
        except PaymentError as exc:
            return self._payment_failure(PaymentFailure(errors=(str(exc),), redirect_hint=exc.redirect_hint))
        except Exception as exc:
            logger.exception("Order placement failed", customer_id=customer.id)
            return CheckoutWorkflowResult(errors=_errors([exc]))

        if not placement.success:
            if placement.payment_failure is not None:
                return self._payment_failure(placement.payment_failure)
            return CheckoutWorkflowResult(errors=_errors(placement.errors[: self.max_warnings]))

        redirect_url = None
        try:
            redirect_url = self.payment_service.post_process_payment(PostProcessPaymentRequest(order=placement.order))
        except PaymentError as exc:
            return self._payment_failure(PaymentFailure(errors=(str(exc),), redirect_hint=exc.redirect_hint))
        except Exception:
            logger.exception("Payment post-processing failed", order_id=placement.order.id)
        finally:
            context.state.abandon()

        if redirect_url:
            return CheckoutWorkflowResult(redirect=CheckoutRedirect(url=redirect_url))
        return CheckoutWorkflowResult(redirect=COMPLETED)

    def _payment_failure(self, failure: PaymentFailure) -> CheckoutWorkflowResult:
        logger.warning("Checkout payment failed", errors=list(failure.errors), redirect_hint=failure.redirect_hint)

        if failure.redirect_hint:
            redirect = CheckoutRedirect(action=failure.redirect_hint)
        else:
            redirect = PAYMENT_METHOD
        return CheckoutWorkflowResult(redirect=redirect, errors=_errors(failure.errors[: self.max_warnings]))
