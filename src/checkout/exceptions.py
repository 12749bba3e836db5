"""Checkout errors that are not covered by ``protean.exceptions``.

Validation warnings raised during checkout and placement are plain strings
and never travel as exceptions. Lifecycle guards raise
``protean.exceptions.InvalidOperationError`` and unknown records raise
``protean.exceptions.ObjectNotFoundError``.
"""


class CheckoutError(Exception):
    """Base class for checkout errors."""


class ConfigurationError(CheckoutError):
    """Fatal setup problem: no checkout handlers, no shipping rate method, unknown payment method."""


class PaymentError(CheckoutError):
    """A payment operation cannot proceed.

    Raised when a mutating payment operation is called without its guard being
    satisfied, or by a payment method that wants the checkout to go back to a
    specific step. ``redirect_hint`` names that step's action.
    """

    def __init__(self, message: str, redirect_hint: str | None = None) -> None:
        self.redirect_hint = redirect_hint
        super().__init__(message)
