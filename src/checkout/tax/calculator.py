"""Net/gross tax calculation for products, shipping, payment fees and
checkout attributes.

Amounts are returned unrounded; the calculation engine decides where to
round.
"""

from decimal import Decimal
from typing import TYPE_CHECKING

from checkout.cart.cart import Product
from checkout.customer.customer import Customer
from checkout.providers.ports import TaxRateProvider
from checkout.tax.rates import Tax

if TYPE_CHECKING:
    from checkout.config import TaxSettings

_HUNDRED = Decimal(100)


class TaxCalculator:
    def __init__(self, settings: "TaxSettings", rate_provider: TaxRateProvider) -> None:
        self.settings = settings
        self.rate_provider = rate_provider

    def is_vat_exempt(self, customer: Customer | None) -> bool:
        if customer is None:
            return False
        if customer.is_tax_exempt or any(role.tax_exempt for role in customer.active_roles):
            return True
        return self.rate_provider.is_vat_exempt(customer)

    def get_tax_rate(self, tax_category_id: int | None, customer: Customer | None) -> Decimal:
        if self.is_vat_exempt(customer):
            return Decimal(0)
        return self.rate_provider.get_tax_rate(tax_category_id, customer)

    @staticmethod
    def calculate(price: Decimal, rate: Decimal, input_includes_tax: bool, inclusive: bool) -> Tax:
        if input_includes_tax:
            gross = price
            net = price / (1 + rate / _HUNDRED)
        else:
            net = price
            gross = price * (1 + rate / _HUNDRED)
        return Tax(rate=rate, price_net=net, price_gross=gross, inclusive=inclusive)

    def calculate_product_tax(
        self, product: Product, price: Decimal, inclusive: bool, customer: Customer | None
    ) -> Tax:
        rate = self.get_tax_rate(product.tax_category_id, customer)
        return self.calculate(price, rate, self.settings.prices_include_tax, inclusive)

    def calculate_shipping_tax(
        self,
        price: Decimal,
        inclusive: bool,
        customer: Customer | None,
        tax_category_id: int | None = None,
    ) -> Tax:
        if not self.settings.shipping_is_taxable:
            return Tax(rate=Decimal(0), price_net=price, price_gross=price, inclusive=inclusive)

        if tax_category_id is None:
            tax_category_id = self.settings.shipping_tax_class_id
        rate = self.get_tax_rate(tax_category_id, customer)
        return self.calculate(price, rate, self.settings.shipping_price_includes_tax, inclusive)

    def calculate_payment_fee_tax(
        self,
        price: Decimal,
        inclusive: bool,
        customer: Customer | None,
        tax_category_id: int | None = None,
    ) -> Tax:
        if not self.settings.payment_fee_is_taxable:
            return Tax(rate=Decimal(0), price_net=price, price_gross=price, inclusive=inclusive)

        if tax_category_id is None:
            tax_category_id = self.settings.payment_fee_tax_class_id
        rate = self.get_tax_rate(tax_category_id, customer)
        return self.calculate(price, rate, self.settings.payment_fee_includes_tax, inclusive)

    def calculate_checkout_attribute_tax(
        self,
        price: Decimal,
        tax_category_id: int | None,
        inclusive: bool,
        customer: Customer | None,
    ) -> Tax:
        rate = self.get_tax_rate(tax_category_id, customer)
        return self.calculate(price, rate, self.settings.prices_include_tax, inclusive)
