"""Tax value objects and the per-rate tax bucket map.

Tax rates are percentages (``Decimal("19")`` for 19 %). A bucket map holds the
accumulated tax amount per distinct rate.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

TaxRates = dict[Decimal, Decimal]


class TaxDisplayType(Enum):
    INCLUDING_TAX = "IncludingTax"
    EXCLUDING_TAX = "ExcludingTax"


@dataclass(frozen=True)
class Tax:
    """Result of a tax calculation for one price."""

    rate: Decimal
    price_net: Decimal
    price_gross: Decimal
    inclusive: bool

    @property
    def amount(self) -> Decimal:
        return self.price_gross - self.price_net

    @property
    def price(self) -> Decimal:
        """The price in the requested view (gross when inclusive)."""
        return self.price_gross if self.inclusive else self.price_net


def add_tax_rate(rates: TaxRates, rate: Decimal, amount: Decimal) -> None:
    """Accumulate ``amount`` into the bucket for ``rate``."""
    rates[rate] = rates.get(rate, Decimal(0)) + amount


def format_tax_rates(rates: TaxRates) -> str:
    """Serialize buckets as ``"19:19.00;   7:0.70;"``."""
    return "   ".join(f"{_plain(rate)}:{_plain(amount)};" for rate, amount in rates.items())


def parse_tax_rates(text: str | None) -> TaxRates:
    rates: TaxRates = {}
    if not text:
        return rates

    for chunk in text.split(";"):
        chunk = chunk.strip()
        if not chunk or ":" not in chunk:
            continue
        rate, amount = chunk.split(":", 1)
        rates[Decimal(rate.strip())] = Decimal(amount.strip())
    return rates


def _plain(value: Decimal) -> str:
    return format(value, "f")


class AuxiliaryServicesTaxType(Enum):
    """Which tax category applies to shipping and payment fees."""

    SPECIFIED_TAX_CATEGORY = "SpecifiedTaxCategory"
    HIGHEST_CART_AMOUNT = "HighestCartAmount"
    HIGHEST_TAX_RATE = "HighestTaxRate"
