"""Shipping methods, rate computation methods and the shipping service.

A rate computation method either quotes a fixed rate for the whole cart
(used when the customer has not selected an option yet) or returns the
options a customer can choose from.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal

import structlog
from pydantic import BaseModel

from checkout.cart.cart import CartItem, ShoppingCart
from checkout.customer.customer import Address, Customer
from checkout.shipping.options import ShippingOption

logger = structlog.get_logger(__name__)


class ShippingMethod(BaseModel):
    id: int
    name: str
    description: str | None = None
    display_order: int = 0
    ignore_charges: bool = False


@dataclass
class ShippingOptionRequest:
    customer: Customer
    items: list[CartItem]
    shipping_address: Address | None
    store_id: int


@dataclass
class ShippingOptionResponse:
    options: list[ShippingOption] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.options) and not self.errors


class ShippingRateComputationMethod(ABC):
    system_name: str
    is_active: bool = True

    @abstractmethod
    def get_fixed_rate(self, request: ShippingOptionRequest) -> Decimal | None:
        """A rate valid for the whole cart, or None when the rate depends on the option chosen."""
        ...

    @abstractmethod
    def get_shipping_options(self, request: ShippingOptionRequest) -> ShippingOptionResponse: ...


class FixedRateShippingComputation(ShippingRateComputationMethod):
    """One fixed rate per shipping method."""

    def __init__(
        self,
        methods: list[ShippingMethod],
        rates: dict[int, Decimal],
        system_name: str = "Shipping.FixedRate",
    ) -> None:
        self.methods = methods
        self.rates = rates
        self.system_name = system_name

    def get_fixed_rate(self, request: ShippingOptionRequest) -> Decimal | None:
        rates = {self.rates.get(m.id, Decimal(0)) for m in self.methods}
        if len(rates) == 1:
            return rates.pop()
        return None

    def get_shipping_options(self, request: ShippingOptionRequest) -> ShippingOptionResponse:
        if not request.items:
            return ShippingOptionResponse(errors=["No shipment items"])
        if request.shipping_address is None:
            return ShippingOptionResponse(errors=["Shipping address is not set"])

        options = [
            ShippingOption(
                shipping_method_id=m.id,
                name=m.name,
                description=m.description,
                rate=self.rates.get(m.id, Decimal(0)),
                shipping_rate_computation_method_system_name=self.system_name,
            )
            for m in sorted(self.methods, key=lambda m: m.display_order)
        ]
        return ShippingOptionResponse(options=options)


class ShippingService:
    def __init__(
        self,
        methods: list[ShippingMethod] | None = None,
        computation_methods: list[ShippingRateComputationMethod] | None = None,
    ) -> None:
        self.methods: list[ShippingMethod] = list(methods or [])
        self.computation_methods: list[ShippingRateComputationMethod] = list(computation_methods or [])

    def get_all_shipping_methods(self, store_id: int = 0) -> list[ShippingMethod]:
        return sorted(self.methods, key=lambda m: m.display_order)

    def load_enabled_computation_methods(self, store_id: int = 0) -> list[ShippingRateComputationMethod]:
        return [m for m in self.computation_methods if m.is_active]

    def create_request(self, cart: ShoppingCart, shipping_address: Address | None) -> ShippingOptionRequest:
        items = [item for item in cart.items if item.product.is_shipping_enabled]
        return ShippingOptionRequest(
            customer=cart.customer,
            items=items,
            shipping_address=shipping_address,
            store_id=cart.store_id,
        )

    def get_shipping_options(
        self,
        cart: ShoppingCart,
        shipping_address: Address | None,
        allowed_computation_method: str | None = None,
    ) -> ShippingOptionResponse:
        request = self.create_request(cart, shipping_address)
        response = ShippingOptionResponse()

        methods = self.load_enabled_computation_methods(cart.store_id)
        if allowed_computation_method:
            methods = [m for m in methods if m.system_name == allowed_computation_method]
        if not methods:
            response.errors.append("Shipping rate computation method could not be loaded")
            return response

        for method in methods:
            result = method.get_shipping_options(request)
            response.options.extend(result.options)
            if result.errors:
                logger.warning("Shipping options error", method=method.system_name, errors=result.errors)
                response.errors.extend(result.errors)

        if response.options:
            response.errors = []
        return response
