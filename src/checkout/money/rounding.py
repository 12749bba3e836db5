"""Currency-aware rounding of monetary amounts.

Every stage of the total calculation rounds through ``RoundingHelper`` so the
number of decimals, the midpoint policy and cash rounding of order totals
("round to nearest 0.05") are decided in one place.
"""

from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_DOWN, ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal
from enum import Enum

from pydantic import BaseModel, Field


class MidpointRounding(Enum):
    AWAY_FROM_ZERO = "AwayFromZero"
    TO_EVEN = "ToEven"


class CashRoundingRule(Enum):
    """How an order total is snapped to the currency's smallest denomination."""

    ROUND_MIDPOINT_UP = "RoundMidpointUp"
    ROUND_MIDPOINT_DOWN = "RoundMidpointDown"
    ALWAYS_ROUND_DOWN = "AlwaysRoundDown"
    ALWAYS_ROUND_UP = "AlwaysRoundUp"


_CASH_ROUNDING_MODES = {
    CashRoundingRule.ROUND_MIDPOINT_UP: ROUND_HALF_UP,
    CashRoundingRule.ROUND_MIDPOINT_DOWN: ROUND_HALF_DOWN,
    CashRoundingRule.ALWAYS_ROUND_DOWN: ROUND_FLOOR,
    CashRoundingRule.ALWAYS_ROUND_UP: ROUND_CEILING,
}


class Currency(BaseModel):
    code: str = "USD"
    exchange_rate: Decimal = Decimal(1)
    decimals: int = Field(default=2, ge=0, le=8)
    midpoint_rounding: MidpointRounding = MidpointRounding.AWAY_FROM_ZERO
    round_order_items_enabled: bool = True
    round_unit_prices: bool = True
    round_order_total_enabled: bool = False
    round_order_total_denominator: Decimal = Decimal("0.05")
    round_order_total_rule: CashRoundingRule = CashRoundingRule.ROUND_MIDPOINT_UP


class RoundingHelper:
    """Rounds amounts according to a currency's settings."""

    def __init__(self, currency: Currency) -> None:
        self.currency = currency

    def _mode(self) -> str:
        if self.currency.midpoint_rounding == MidpointRounding.TO_EVEN:
            return ROUND_HALF_EVEN
        return ROUND_HALF_UP

    def round(self, amount: Decimal, decimals: int | None = None) -> Decimal:
        decimals = self.currency.decimals if decimals is None else decimals
        return Decimal(amount).quantize(Decimal(1).scaleb(-decimals), rounding=self._mode())

    def round_if_enabled(self, amount: Decimal) -> Decimal:
        """Round only when the currency rounds order item amounts."""
        if self.currency.round_order_items_enabled:
            return self.round(amount)
        return Decimal(amount)

    def is_cash_rounding_enabled(self, payment_method_rounds_total: bool) -> bool:
        return (
            self.currency.round_order_total_enabled
            and payment_method_rounds_total
            and self.currency.round_order_total_denominator > 0
        )

    def to_nearest(self, amount: Decimal) -> tuple[Decimal, Decimal]:
        """Snap ``amount`` to the currency's denomination.

        Returns the rounded amount and the rounding remainder
        (``rounded - amount``).
        """
        denominator = self.currency.round_order_total_denominator
        if denominator <= 0:
            return amount, Decimal(0)

        mode = _CASH_ROUNDING_MODES[self.currency.round_order_total_rule]
        units = (Decimal(amount) / denominator).quantize(Decimal(1), rounding=mode)
        rounded = self.round(units * denominator)
        return rounded, rounded - amount
