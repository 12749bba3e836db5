from decimal import Decimal

import pytest
from protean.integrations.pytest import DomainFixture
from protean.utils.globals import current_domain

from checkout.cart.cart import CartItem, Product
from checkout.config import CheckoutSettings, OrderSettings
from checkout.customer.customer import Address, Customer
from checkout.order.order import Order
from checkout.payment.fake_adapter import FakePaymentMethod
from checkout.payment.port import ProcessPaymentRequest
from checkout.services import build_services, set_services
from checkout.workflow.context import CheckoutContext, RouteIdentity


@pytest.fixture(scope="session")
def checkout_bed():
    from checkout.domain import checkout

    bed = DomainFixture(checkout)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(checkout_bed):
    with checkout_bed.domain_context():
        yield


@pytest.fixture()
def settings():
    return CheckoutSettings(order=OrderSettings(minimum_order_placement_interval=0))


@pytest.fixture()
def gateway():
    return FakePaymentMethod()


@pytest.fixture()
def services(settings, gateway):
    services = build_services(settings, payment_methods=[gateway])
    set_services(services)
    return services


@pytest.fixture()
def address():
    return Address(
        id=1,
        first_name="Jane",
        last_name="Doe",
        email="jane@example.com",
        address1="1 Main Street",
        city="Springfield",
        zip_postal_code="12345",
    )


@pytest.fixture()
def customer(services, address):
    customer = Customer(
        email="jane@example.com",
        addresses=[address],
        billing_address=address,
        shipping_address=address,
    )
    return services.add_customer(customer)


@pytest.fixture()
def cart(services, customer):
    return services.carts.get_cart(customer, 1)


@pytest.fixture()
def add_item(cart):
    """Add ``quantity`` units of a new product to the customer's cart."""

    def _add(price="10.00", quantity=1, **product_fields):
        item_id = len(cart.items) + 1
        product_fields.setdefault("name", f"Product {item_id}")
        product = Product(id=item_id, price=Decimal(price), **product_fields)
        item = CartItem(id=item_id, product=product, quantity=quantity)
        cart.items.append(item)
        return item

    return _add


@pytest.fixture()
def checkout_context(services, cart, customer):
    def _context(action="Index", model=None, form=None, referrer=None):
        return CheckoutContext(
            cart=cart,
            route=RouteIdentity(action),
            form=form or {},
            model=model,
            referrer=referrer,
            state=services.get_checkout_state(customer, cart.store_id),
        )

    return _context


@pytest.fixture()
def place_order(services, customer, gateway):
    def _place(extra_data=None, payment_method=None):
        request = ProcessPaymentRequest(
            store_id=1,
            customer_id=customer.id,
            payment_method_system_name=payment_method or gateway.system_name,
        )
        return services.pipeline.place_order(request, extra_data)

    return _place


@pytest.fixture()
def placed_order(add_item, place_order):
    """A paid order for two units at 10.00 that still needs shipping."""
    add_item(price="10.00", quantity=2)
    result = place_order()
    assert result.success, result.errors
    return result.order


@pytest.fixture()
def orders():
    return current_domain.repository_for(Order)


@pytest.fixture()
def order_events():
    """Types of the events stored for an order, oldest first."""

    def _types(order_id):
        messages = current_domain.event_store.store.read(f"checkout::order-{order_id}")
        return [m.metadata.headers.type for m in messages]

    return _types
