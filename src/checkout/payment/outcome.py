"""Tagged outcome of processing a payment during order placement.

Callers switch on the type instead of catching exceptions:

    match outcome:
        case PaymentSuccess(result=result): ...
        case PaymentFailure(errors=errors, redirect_hint=hint): ...
"""

from dataclasses import dataclass

from checkout.payment.port import PreProcessPaymentResult, ProcessPaymentResult


@dataclass(frozen=True)
class PaymentSuccess:
    result: ProcessPaymentResult | PreProcessPaymentResult


@dataclass(frozen=True)
class PaymentFailure:
    errors: tuple[str, ...]
    redirect_hint: str | None = None


PaymentOutcome = PaymentSuccess | PaymentFailure
