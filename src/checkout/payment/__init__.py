"""Default payment method factory.

Provides get_gateway() / set_gateway() to swap the method that a freshly
built checkout domain registers by default:
- FakePaymentMethod for development and testing
- a real provider adapter in production
"""

from checkout.payment.fake_adapter import FakePaymentMethod
from checkout.payment.port import PaymentMethod

_current_gateway: PaymentMethod | None = None


def get_gateway() -> PaymentMethod:
    """Return the current default payment method. Defaults to FakePaymentMethod."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = FakePaymentMethod()
    return _current_gateway


def set_gateway(gateway: PaymentMethod) -> None:
    """Override the default payment method (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default payment method."""
    global _current_gateway
    _current_gateway = None
