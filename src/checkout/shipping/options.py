"""Shipping options offered to and selected by a customer."""

from decimal import Decimal

from pydantic import BaseModel


class ShippingOption(BaseModel):
    shipping_method_id: int
    name: str
    description: str | None = None
    rate: Decimal = Decimal(0)
    shipping_rate_computation_method_system_name: str

    @property
    def selection_key(self) -> str:
        """Form value identifying this option, e.g. ``"Ground___Shipping.FixedRate"``."""
        return f"{self.name}___{self.shipping_rate_computation_method_system_name}"
