"""WooCommerce integration."""

from .client import WooCommerceConfig, WooCommerceIntegration
from .schemas import (
    WooCommerceCategory,
    WooCommerceCoupon,
    WooCommerceCustomer,
    WooCommerceOrder,
    WooCommerceProduct,
    WooCommerceSalesReport,
)

__all__ = [
    "WooCommerceCategory",
    "WooCommerceConfig",
    "WooCommerceCoupon",
    "WooCommerceCustomer",
    "WooCommerceIntegration",
    "WooCommerceOrder",
    "WooCommerceProduct",
    "WooCommerceSalesReport",
]
