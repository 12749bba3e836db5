"""FastAPI routes for checkout, orders and shipments.

Routes resolve customers through the current services and orders through the
``checkout`` domain repository, then delegate to the services. Shipments are
reached through their order. Errors are mapped to HTTP responses by the
exception handlers registered in ``app.py``.
"""

from fastapi import APIRouter
from protean.exceptions import InvalidOperationError, ObjectNotFoundError
from protean.utils.globals import current_domain

from checkout.api.schemas import (
    AdvanceRequest,
    CancelOrderRequest,
    CheckoutRequest,
    CheckoutWorkflowResponse,
    ConfirmRequest,
    CreateShipmentRequest,
    OrderResponse,
    PartialRefundRequest,
    PaymentOperationResponse,
    ProcessStepRequest,
    ShipmentResponse,
    ShipmentStatusRequest,
)
from checkout.order.order import Order, Shipment
from checkout.services import get_services
from checkout.workflow.context import CheckoutContext, RouteIdentity


def _load_order(order_id: str) -> Order:
    return current_domain.repository_for(Order).get(order_id)


def _load_shipment(order: Order, shipment_id: str) -> Shipment:
    shipment = order.get_shipment(shipment_id)
    if shipment is None:
        raise ObjectNotFoundError(f"`Shipment` object with identifier {shipment_id} does not exist.")
    return shipment


def _checkout_context(body: CheckoutRequest, route: RouteIdentity, model=None) -> CheckoutContext:
    services = get_services()
    customer = services.customers.get(body.customer_id)
    return CheckoutContext(
        cart=services.carts.get_cart(customer, body.store_id),
        route=route,
        form=body.form,
        model=model,
        referrer=body.referrer,
        state=services.get_checkout_state(customer, body.store_id),
    )


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("/start", response_model=CheckoutWorkflowResponse)
async def start_checkout(body: CheckoutRequest) -> CheckoutWorkflowResponse:
    context = _checkout_context(body, RouteIdentity("Index"))
    return CheckoutWorkflowResponse.from_result(get_services().workflow.start(context))


@checkout_router.post("/steps/{action}", response_model=CheckoutWorkflowResponse)
async def process_step(action: str, body: ProcessStepRequest) -> CheckoutWorkflowResponse:
    """Process the page of a checkout step.

    With a selection the step applies it and the customer moves on to the
    next step, otherwise the page is processed for display.
    """
    services = get_services()
    context = _checkout_context(body, RouteIdentity(action), model=body.selection or None)
    if body.selection:
        result = services.workflow.advance(context)
    else:
        result = services.workflow.process(context)
    return CheckoutWorkflowResponse.from_result(result)


@checkout_router.post("/advance", response_model=CheckoutWorkflowResponse)
async def advance_checkout(body: AdvanceRequest) -> CheckoutWorkflowResponse:
    context = _checkout_context(body, RouteIdentity(body.action))
    return CheckoutWorkflowResponse.from_result(get_services().workflow.advance(context))


@checkout_router.post("/confirm", response_model=CheckoutWorkflowResponse)
async def confirm_checkout(body: ConfirmRequest) -> CheckoutWorkflowResponse:
    context = _checkout_context(body, RouteIdentity("Confirm"))
    return CheckoutWorkflowResponse.from_result(get_services().workflow.complete(context))


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    return OrderResponse.from_order(_load_order(order_id))


def _payment_response(result, order) -> PaymentOperationResponse:
    return PaymentOperationResponse(
        success=result.success, errors=list(result.errors), order=OrderResponse.from_order(order)
    )


@order_router.post("/{order_id}/capture", response_model=PaymentOperationResponse)
async def capture_order(order_id: str) -> PaymentOperationResponse:
    services = get_services()
    order = _load_order(order_id)
    return _payment_response(services.order_payments.capture(order), order)


@order_router.post("/{order_id}/refund", response_model=PaymentOperationResponse)
async def refund_order(order_id: str) -> PaymentOperationResponse:
    services = get_services()
    order = _load_order(order_id)
    return _payment_response(services.order_payments.refund(order), order)


@order_router.post("/{order_id}/partial-refund", response_model=PaymentOperationResponse)
async def partially_refund_order(order_id: str, body: PartialRefundRequest) -> PaymentOperationResponse:
    services = get_services()
    order = _load_order(order_id)
    return _payment_response(services.order_payments.partially_refund(order, body.amount), order)


@order_router.post("/{order_id}/void", response_model=PaymentOperationResponse)
async def void_order(order_id: str) -> PaymentOperationResponse:
    services = get_services()
    order = _load_order(order_id)
    return _payment_response(services.order_payments.void(order), order)


@order_router.post("/{order_id}/mark-paid", response_model=OrderResponse)
async def mark_order_as_paid(order_id: str) -> OrderResponse:
    services = get_services()
    order = _load_order(order_id)
    services.order_payments.mark_as_paid(order)
    return OrderResponse.from_order(order)


@order_router.post("/{order_id}/mark-authorized", response_model=OrderResponse)
async def mark_order_as_authorized(order_id: str) -> OrderResponse:
    services = get_services()
    order = _load_order(order_id)
    services.order_payments.mark_as_authorized(order)
    return OrderResponse.from_order(order)


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest | None = None) -> OrderResponse:
    services = get_services()
    order = _load_order(order_id)
    services.cancellation.cancel_order(order, notify_customer=body.notify_customer if body else True)
    return OrderResponse.from_order(order)


@order_router.post("/{order_id}/complete", response_model=OrderResponse)
async def complete_order(order_id: str) -> OrderResponse:
    services = get_services()
    order = _load_order(order_id)
    services.completion.complete_order(order)
    return OrderResponse.from_order(order)


@order_router.post("/{order_id}/shipments", status_code=201, response_model=ShipmentResponse)
async def create_shipment(order_id: str, body: CreateShipmentRequest) -> ShipmentResponse:
    services = get_services()
    order = _load_order(order_id)
    shipment = services.shipments.add_shipment(
        order,
        tracking_number=body.tracking_number,
        tracking_url=body.tracking_url,
        quantities=body.quantities,
    )
    if shipment is None:
        raise InvalidOperationError("No items to ship.")
    return ShipmentResponse.from_shipment(order, shipment)


@order_router.post("/{order_id}/shipments/{shipment_id}/ship", response_model=ShipmentResponse)
async def ship_shipment(order_id: str, shipment_id: str, body: ShipmentStatusRequest | None = None) -> ShipmentResponse:
    services = get_services()
    order = _load_order(order_id)
    shipment = _load_shipment(order, shipment_id)
    services.shipments.ship(order, shipment, notify_customer=body.notify_customer if body else True)
    return ShipmentResponse.from_shipment(order, shipment)


@order_router.post("/{order_id}/shipments/{shipment_id}/deliver", response_model=ShipmentResponse)
async def deliver_shipment(
    order_id: str, shipment_id: str, body: ShipmentStatusRequest | None = None
) -> ShipmentResponse:
    services = get_services()
    order = _load_order(order_id)
    shipment = _load_shipment(order, shipment_id)
    services.shipments.deliver(order, shipment, notify_customer=body.notify_customer if body else True)
    return ShipmentResponse.from_shipment(order, shipment)
