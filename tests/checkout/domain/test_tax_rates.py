"""Tests for tax rate buckets and net/gross tax calculation."""

from decimal import Decimal

from checkout.config import TaxSettings
from checkout.customer.customer import Customer, CustomerRole
from checkout.providers.memory import InMemoryTaxRateProvider
from checkout.tax.calculator import TaxCalculator
from checkout.tax.rates import add_tax_rate, format_tax_rates, parse_tax_rates


class TestTaxRateBuckets:
    def test_add_tax_rate_accumulates_per_rate(self):
        rates = {}
        add_tax_rate(rates, Decimal("19"), Decimal("1.90"))
        add_tax_rate(rates, Decimal("19"), Decimal("0.10"))
        add_tax_rate(rates, Decimal("7"), Decimal("0.70"))
        assert rates == {Decimal("19"): Decimal("2.00"), Decimal("7"): Decimal("0.70")}

    def test_format(self):
        text = format_tax_rates({Decimal("19"): Decimal("19.00"), Decimal("7"): Decimal("0.70")})
        assert text == "19:19.00;   7:0.70;"

    def test_parse(self):
        assert parse_tax_rates("19:19.00;   7:0.70;") == {
            Decimal("19"): Decimal("19.00"),
            Decimal("7"): Decimal("0.70"),
        }

    def test_parse_ignores_empty_and_malformed_chunks(self):
        assert parse_tax_rates("") == {}
        assert parse_tax_rates(None) == {}
        assert parse_tax_rates("garbage;5:1.00;") == {Decimal("5"): Decimal("1.00")}


class TestTaxCalculator:
    def _calculator(self, **settings):
        provider = InMemoryTaxRateProvider(rates={1: Decimal("19")}, default_rate=Decimal("7"))
        return TaxCalculator(TaxSettings(**settings), provider), provider

    def test_adds_tax_to_net_price(self):
        tax = TaxCalculator.calculate(Decimal("100"), Decimal("19"), input_includes_tax=False, inclusive=True)
        assert tax.price_gross == Decimal("119")
        assert tax.amount == Decimal("19")
        assert tax.price == Decimal("119")

    def test_removes_tax_from_gross_price(self):
        tax = TaxCalculator.calculate(Decimal("119"), Decimal("19"), input_includes_tax=True, inclusive=False)
        assert tax.price_net == Decimal("100")
        assert tax.price == Decimal("100")

    def test_rate_per_category_with_default(self):
        calculator, _ = self._calculator()
        customer = Customer(id=1)
        assert calculator.get_tax_rate(1, customer) == Decimal("19")
        assert calculator.get_tax_rate(99, customer) == Decimal("7")
        assert calculator.get_tax_rate(None, customer) == Decimal("7")

    def test_tax_exempt_customer_pays_no_tax(self):
        calculator, _ = self._calculator()
        assert calculator.get_tax_rate(1, Customer(id=1, is_tax_exempt=True)) == Decimal(0)

    def test_tax_exempt_role(self):
        calculator, _ = self._calculator()
        customer = Customer(id=1, roles=[CustomerRole(id=1, name="Reseller", tax_exempt=True)])
        assert calculator.is_vat_exempt(customer) is True

    def test_inactive_tax_exempt_role_is_ignored(self):
        calculator, _ = self._calculator()
        customer = Customer(id=1, roles=[CustomerRole(id=1, name="Reseller", tax_exempt=True, active=False)])
        assert calculator.is_vat_exempt(customer) is False

    def test_vat_exempt_by_provider(self):
        calculator, provider = self._calculator()
        provider.vat_exempt_customer_ids.add(5)
        assert calculator.is_vat_exempt(Customer(id=5)) is True

    def test_shipping_not_taxable_by_default(self):
        calculator, _ = self._calculator()
        tax = calculator.calculate_shipping_tax(Decimal("5"), True, Customer(id=1))
        assert tax.rate == Decimal(0)
        assert tax.price == Decimal("5")

    def test_taxable_shipping_uses_shipping_tax_class(self):
        calculator, _ = self._calculator(shipping_is_taxable=True, shipping_tax_class_id=1)
        tax = calculator.calculate_shipping_tax(Decimal("10"), True, Customer(id=1))
        assert tax.rate == Decimal("19")
        assert tax.price == Decimal("11.9")
