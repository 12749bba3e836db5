"""Shopping cart and cart item validation.

Validation collects human readable warnings into a list supplied by the
caller. Nothing here raises for invalid cart contents.
"""

import structlog

from checkout.cart.cart import CartItem, GiftCardType, ShoppingCart
from checkout.customer.customer import is_valid_email
from checkout.providers.ports import CheckoutAttributeProvider

logger = structlog.get_logger(__name__)


class ShoppingCartValidator:
    def __init__(self, checkout_attribute_provider: CheckoutAttributeProvider) -> None:
        self.checkout_attribute_provider = checkout_attribute_provider

    def validate_cart(
        self,
        cart: ShoppingCart,
        warnings: list[str],
        validate_checkout_attributes: bool = True,
    ) -> bool:
        """Cart-level checks. Returns True when no warning was added."""
        count = len(warnings)

        recurring = cart.get_recurring_cycle_info()
        if recurring.error:
            warnings.append(recurring.error)

        if validate_checkout_attributes:
            for name in self.checkout_attribute_provider.get_missing_required_attributes(cart):
                warnings.append(f"Please select {name}.")

        if len(warnings) > count:
            logger.info("Cart validation failed", customer_id=cart.customer.id, warnings=warnings[count:])
        return len(warnings) == count

    def validate_item(self, item: CartItem, cart: ShoppingCart, warnings: list[str]) -> bool:
        """Item-level checks. Returns True when no warning was added."""
        count = len(warnings)
        product = item.product

        if product.deleted:
            warnings.append(f"Product '{product.name}' is deleted.")
        if not product.published:
            warnings.append(f"Product '{product.name}' is not published.")
        if product.disable_buy_button:
            warnings.append(f"Buying is disabled for '{product.name}'.")

        if item.quantity <= 0:
            warnings.append("Quantity should be positive.")
        else:
            if item.quantity < product.order_minimum_quantity:
                warnings.append(
                    f"The minimum quantity allowed for '{product.name}' is {product.order_minimum_quantity}."
                )
            if item.quantity > product.order_maximum_quantity:
                warnings.append(
                    f"The maximum quantity allowed for '{product.name}' is {product.order_maximum_quantity}."
                )
            if product.manage_inventory and item.quantity > product.stock_quantity:
                if product.stock_quantity <= 0:
                    warnings.append(f"'{product.name}' is out of stock.")
                else:
                    warnings.append(f"Only {product.stock_quantity} of '{product.name}' remain in stock.")

        if product.is_gift_card:
            info = item.gift_card_info
            if info is None or not info.recipient_name:
                warnings.append("Enter the gift card recipient's name.")
            if product.gift_card_type == GiftCardType.VIRTUAL:
                if info is None or not is_valid_email(info.recipient_email):
                    warnings.append("Enter a valid recipient email for the gift card.")
                if info is None or not is_valid_email(info.sender_email):
                    warnings.append("Enter a valid sender email for the gift card.")
            if info is None or not info.sender_name:
                warnings.append("Enter the gift card sender's name.")

        return len(warnings) == count
