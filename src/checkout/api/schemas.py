"""Pydantic request/response schemas for the Checkout API.

These are external contracts, separate from the domain models.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from checkout.order.order import Order, Shipment
from checkout.workflow.orchestrator import CheckoutWorkflowResult


# ---------------------------------------------------------------------------
# Checkout Request Schemas
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    customer_id: int
    store_id: int = 1
    referrer: str | None = None
    form: dict[str, str] = Field(default_factory=dict)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": 1,
                    "store_id": 1,
                    "referrer": "/Checkout/BillingAddress",
                    "form": {},
                }
            ]
        }
    }


class AdvanceRequest(CheckoutRequest):
    action: str = "Index"


class ProcessStepRequest(CheckoutRequest):
    selection: dict[str, str | int | bool] = Field(default_factory=dict)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": 1,
                    "referrer": "/Checkout/ShippingMethod",
                    "selection": {"payment_method": "Payments.Fake"},
                }
            ]
        }
    }


class ConfirmRequest(CheckoutRequest):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": 1,
                    "form": {
                        "customercommenthidden": "Leave at the door",
                        "SubscribeToNewsletter": "true",
                    },
                }
            ]
        }
    }


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class PartialRefundRequest(BaseModel):
    amount: Decimal = Field(gt=0)


class CancelOrderRequest(BaseModel):
    notify_customer: bool = True


class CreateShipmentRequest(BaseModel):
    tracking_number: str | None = None
    tracking_url: str | None = None
    quantities: dict[str, int] | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "tracking_number": "1Z999AA10123456784",
                    "quantities": {"9b2f7c1e-5d3a-4e8b-a6f0-2c4d8e1b7a93": 2},
                }
            ]
        }
    }


class ShipmentStatusRequest(BaseModel):
    notify_customer: bool = True


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class WorkflowErrorSchema(BaseModel):
    property_name: str = ""
    message: str


class CheckoutWorkflowResponse(BaseModel):
    redirect: str | None = None
    errors: list[WorkflowErrorSchema] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    challenge: bool = False

    @classmethod
    def from_result(cls, result: CheckoutWorkflowResult) -> "CheckoutWorkflowResponse":
        return cls(
            redirect=result.redirect.target if result.redirect is not None else None,
            errors=[WorkflowErrorSchema(property_name=e.property_name, message=e.message) for e in result.errors],
            warnings=list(result.warnings),
            challenge=result.challenge,
        )


class OrderNoteSchema(BaseModel):
    note: str
    created_on: datetime


class OrderResponse(BaseModel):
    order_id: str
    customer_id: int | None
    order_status: str
    payment_status: str
    shipping_status: str
    payment_method_system_name: str | None
    order_subtotal_incl_tax: Decimal
    order_subtotal_excl_tax: Decimal
    order_shipping_incl_tax: Decimal
    order_tax: Decimal
    tax_rates: str
    order_discount: Decimal
    order_total: Decimal
    refunded_amount: Decimal
    notes: list[OrderNoteSchema]

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            order_id=order.id,
            customer_id=order.customer_id,
            order_status=order.order_status.value,
            payment_status=order.payment_status.value,
            shipping_status=order.shipping_status.value,
            payment_method_system_name=order.payment_method_system_name,
            order_subtotal_incl_tax=order.order_subtotal_incl_tax,
            order_subtotal_excl_tax=order.order_subtotal_excl_tax,
            order_shipping_incl_tax=order.order_shipping_incl_tax,
            order_tax=order.order_tax,
            tax_rates=order.tax_rates,
            order_discount=order.order_discount,
            order_total=order.order_total,
            refunded_amount=order.refunded_amount,
            notes=[OrderNoteSchema(note=n.note, created_on=n.created_on) for n in order.notes],
        )


class PaymentOperationResponse(BaseModel):
    success: bool
    errors: list[str] = Field(default_factory=list)
    order: OrderResponse


class ShipmentResponse(BaseModel):
    shipment_id: str
    order_id: str
    tracking_number: str | None
    total_weight: Decimal | None
    shipped_date: datetime | None
    delivery_date: datetime | None
    items: dict[str, int]

    @classmethod
    def from_shipment(cls, order: Order, shipment: Shipment) -> "ShipmentResponse":
        return cls(
            shipment_id=shipment.id,
            order_id=order.id,
            tracking_number=shipment.tracking_number,
            total_weight=shipment.total_weight,
            shipped_date=shipment.shipped_date,
            delivery_date=shipment.delivery_date,
            items=dict(shipment.quantities),
        )
