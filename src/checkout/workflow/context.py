"""Per-request state handed to checkout handlers and the workflow."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlsplit

from checkout.cart.cart import ShoppingCart
from checkout.payment.port import ProcessPaymentRequest


@dataclass(frozen=True)
class RouteIdentity:
    """Route of a checkout page: ``(action, controller, area)``, compared case-insensitively."""

    action: str
    controller: str = "Checkout"
    area: str | None = None

    def matches(self, action: str, controller: str, area: str | None = None) -> bool:
        return (
            self.action.lower() == action.lower()
            and self.controller.lower() == controller.lower()
            and (self.area or "").lower() == (area or "").lower()
        )

    @property
    def is_checkout_index(self) -> bool:
        return self.matches("Index", "Checkout", self.area)

    @property
    def is_confirm(self) -> bool:
        return self.matches("Confirm", "Checkout", self.area)

    @classmethod
    def parse(cls, url: str | None) -> "RouteIdentity | None":
        """Match a URL or path against ``{controller}/{action}/{id?}``.

        Returns None for an empty value or a path with fewer than two or
        more than three segments.
        """
        if not url:
            return None

        path = urlsplit(url).path
        segments = [s for s in path.split("/") if s]
        if len(segments) < 2 or len(segments) > 3:
            return None

        controller, action = segments[0], segments[1]
        return cls(action=action, controller=controller)


class ReferrerDirection(Enum):
    FORWARD = "forward"
    BACKWARD = "backward"
    # No usable referrer: continue forward.
    FALLBACK_FORWARD = "fallback_forward"

    @property
    def is_forward(self) -> bool:
        return self is not ReferrerDirection.BACKWARD


@dataclass
class CheckoutState:
    """Checkout selections kept between requests of one checkout."""

    is_payment_selection_skipped: bool = False
    is_shipping_method_skipped: bool = False
    payment_request: ProcessPaymentRequest | None = None
    custom_properties: dict[str, Any] = field(default_factory=dict)

    def abandon(self) -> None:
        self.is_payment_selection_skipped = False
        self.is_shipping_method_skipped = False
        self.payment_request = None
        self.custom_properties.clear()


@dataclass
class CheckoutContext:
    cart: ShoppingCart
    route: RouteIdentity
    form: dict[str, str] = field(default_factory=dict)
    model: Any = None
    referrer: str | None = None
    state: CheckoutState = field(default_factory=CheckoutState)

    def get_form_value(self, key: str, default: str | None = None) -> str | None:
        return self.form.get(key, default)

    def selection(self, key: str) -> Any:
        """A value of the selection model, which is either a mapping or an object."""
        if self.model is None:
            return None
        if isinstance(self.model, dict):
            return self.model.get(key)
        return getattr(self.model, key, None)
