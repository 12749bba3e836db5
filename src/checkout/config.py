"""Checkout configuration.

Settings are read from the environment with the ``CHECKOUT_`` prefix; nested
groups use ``__`` as delimiter, e.g. ``CHECKOUT_TAX__PRICES_INCLUDE_TAX=true``
or ``CHECKOUT_SHOPPING_CART__QUICK_CHECKOUT_ENABLED=true``.
"""

from decimal import Decimal
from enum import Enum
from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from checkout.money.rounding import Currency
from checkout.order.order import OrderStatus
from checkout.tax.rates import AuxiliaryServicesTaxType, TaxDisplayType


class CheckoutProcess(Enum):
    STANDARD = "Standard"
    TERMINAL = "Terminal"


class CapturePaymentReason(Enum):
    NONE = "None"
    ORDER_SHIPPED = "OrderShipped"
    ORDER_DELIVERED = "OrderDelivered"
    ORDER_COMPLETED = "OrderCompleted"


class OrderSettings(BaseModel):
    anonymous_checkout_allowed: bool = False
    minimum_order_placement_interval: int = Field(default=30, ge=0, description="Seconds")
    order_total_minimum: Decimal | None = None
    order_total_maximum: Decimal | None = None
    multiple_order_total_restrictions_expand_range: bool = False
    return_requests_enabled: bool = True
    number_of_days_return_request_available: int = Field(default=365, ge=0)
    gift_cards_activated_order_status: OrderStatus | None = None
    gift_cards_deactivated_order_status: OrderStatus | None = None


class NewsletterSubscriptionType(Enum):
    NONE = "None"
    CHECKED = "Checked"
    UNCHECKED = "Unchecked"


class ShoppingCartSettings(BaseModel):
    quick_checkout_enabled: bool = False
    checkout_process: CheckoutProcess = CheckoutProcess.STANDARD
    newsletter_subscription: NewsletterSubscriptionType = NewsletterSubscriptionType.NONE
    third_party_email_hand_over: bool = False
    max_warnings: int = Field(default=3, ge=1)


class TaxSettings(BaseModel):
    prices_include_tax: bool = False
    tax_display_type: TaxDisplayType = TaxDisplayType.EXCLUDING_TAX
    shipping_is_taxable: bool = False
    shipping_price_includes_tax: bool = False
    shipping_tax_class_id: int | None = None
    payment_fee_is_taxable: bool = False
    payment_fee_includes_tax: bool = False
    payment_fee_tax_class_id: int | None = None
    auxiliary_services_taxing_type: AuxiliaryServicesTaxType = AuxiliaryServicesTaxType.SPECIFIED_TAX_CATEGORY
    eu_vat_enabled: bool = False


class ShippingSettings(BaseModel):
    free_shipping_over_x_enabled: bool = False
    free_shipping_over_x_value: Decimal = Decimal(0)
    free_shipping_over_x_including_tax: bool = False
    charge_only_highest_product_shipping_surcharge: bool = False
    skip_shipping_if_single_option: bool = False


class RewardPointsSettings(BaseModel):
    enabled: bool = False
    exchange_rate: Decimal = Decimal(1)
    round_down_reward_points: bool = True
    points_for_purchases_amount: Decimal = Decimal(10)
    points_for_purchases_points: int = 1
    points_for_purchases_awarded: OrderStatus = OrderStatus.COMPLETE
    points_for_purchases_canceled: OrderStatus = OrderStatus.CANCELLED


class PaymentSettings(BaseModel):
    capture_payment_reason: CapturePaymentReason = CapturePaymentReason.NONE
    bypass_payment_method_selection_if_only_one: bool = False


class CurrencySettings(BaseModel):
    primary: Currency = Field(default_factory=Currency)


class PriceSettings(BaseModel):
    ignore_discounts: bool = False


class CheckoutSettings(BaseSettings):
    """Application settings loaded from environment"""

    model_config = SettingsConfigDict(
        env_prefix="CHECKOUT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    store_id: int = 1
    store_name: str = "Checkoutflow"
    store_owner_email: str = "owner@example.com"
    order: OrderSettings = Field(default_factory=OrderSettings)
    shopping_cart: ShoppingCartSettings = Field(default_factory=ShoppingCartSettings)
    tax: TaxSettings = Field(default_factory=TaxSettings)
    shipping: ShippingSettings = Field(default_factory=ShippingSettings)
    reward_points: RewardPointsSettings = Field(default_factory=RewardPointsSettings)
    payment: PaymentSettings = Field(default_factory=PaymentSettings)
    currency: CurrencySettings = Field(default_factory=CurrencySettings)
    price: PriceSettings = Field(default_factory=PriceSettings)


@lru_cache()
def get_settings() -> CheckoutSettings:
    """Get cached settings instance"""
    return CheckoutSettings()
