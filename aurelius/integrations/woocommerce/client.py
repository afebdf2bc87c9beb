"""
WooCommerce REST API adapter.

Each store exposes its own API under {store_url}/wp-json/wc/v3 and
authenticates with a consumer key/secret pair over HTTP Basic. Keys do
not expire, so refresh_token() only re-validates them.

List caches are keyed by the query that produced them
("page=1:per_page=25:status=all") and cleared wholesale by writes and by
webhooks for the same resource.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable

from aurelius.integrations.base import BaseIntegration, IntegrationConfig
from aurelius.integrations.schemas import IntegrationCapability

from .schemas import (
    WooCommerceCategory,
    WooCommerceCoupon,
    WooCommerceCustomer,
    WooCommerceOrder,
    WooCommerceProduct,
    WooCommerceSalesReport,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WooCommerceConfig(IntegrationConfig):
    """Configuration for a WooCommerce store. api_key/api_secret hold the consumer key pair."""

    def __post_init__(self):
        if not self.store_url:
            raise ValueError("WooCommerce store URL is required")
        if not self.api_key or not self.api_secret:
            raise ValueError("WooCommerce consumer key and secret are required")


class WooCommerceIntegration(BaseIntegration):
    provider = "woocommerce"
    name = "WooCommerce"
    version = "3.0.0"
    config_class = WooCommerceConfig

    cache_resources = ("products", "orders", "customers")

    webhook_events = {
        "order.*": ("orders",),
        "product.*": ("products",),
        "customer.*": ("customers",),
    }
    webhook_event_header = "x-wc-webhook-topic"
    webhook_event_fields = ("topic", "action")

    signature_header = "x-wc-webhook-signature"
    signature_encoding = "base64"

    @property
    def base_url(self) -> str:
        if self.config.base_url:
            return self.config.base_url
        return f"{(self.config.store_url or '').rstrip('/')}/wp-json/wc/v3"

    def _get_auth_headers(self) -> dict[str, str]:
        key = self.config.api_key or ""
        secret = self.config.api_secret or ""
        token = base64.b64encode(f"{key}:{secret}".encode()).decode("ascii")
        return {"Authorization": f"Basic {token}"}

    # =========================================================================
    # Contract
    # =========================================================================

    async def _verify_credentials(self) -> dict[str, Any]:
        return await self.get_system_status()

    def _connection_details(self, profile: dict[str, Any]) -> dict[str, Any]:
        environment = profile.get("environment") or {}
        return {
            "store_url": self.config.store_url,
            "wc_version": environment.get("version"),
            "wp_version": environment.get("wp_version"),
        }

    def get_capabilities(self) -> list[IntegrationCapability]:
        return [
            IntegrationCapability(name="products", description="Manage the product catalogue", required_scopes=["read_write"]),
            IntegrationCapability(name="orders", description="Read orders and update their status", required_scopes=["read_write"]),
            IntegrationCapability(name="customers", description="Read and create customers", required_scopes=["read_write"]),
            IntegrationCapability(name="coupons", description="Manage discount coupons", required_scopes=["read_write"]),
            IntegrationCapability(name="reports", description="Sales and top seller reports", required_scopes=["read"]),
        ]

    def _sync_branches(self, last_sync_time: datetime | None) -> dict[str, Awaitable[Any]]:
        return {
            "products": self.get_products(page=1, per_page=50),
            "orders": self.get_orders(page=1, per_page=50),
            "customers": self.get_customers(page=1, per_page=50),
        }

    # =========================================================================
    # Products
    # =========================================================================

    async def get_products(self, page: int = 1, per_page: int = 25) -> list[WooCommerceProduct]:
        key = f"page={page}:per_page={per_page}"
        cached = self.cache.get("products", key)
        if cached is not None:
            return cached

        body = await self._call(
            "get_products", "GET", "/products", params={"page": page, "per_page": per_page}
        )
        products = [WooCommerceProduct.model_validate(p) for p in body or []]
        self.cache.set("products", key, products)
        return products

    async def get_product(self, product_id: int) -> WooCommerceProduct:
        body = await self._call("get_product", "GET", f"/products/{product_id}")
        return WooCommerceProduct.model_validate(body)

    async def create_product(self, product: dict[str, Any]) -> WooCommerceProduct:
        body = await self._call("create_product", "POST", "/products", json=product)
        self.cache.clear("products")
        return WooCommerceProduct.model_validate(body)

    async def update_product(self, product_id: int, changes: dict[str, Any]) -> WooCommerceProduct:
        body = await self._call("update_product", "PUT", f"/products/{product_id}", json=changes)
        self.cache.clear("products")
        return WooCommerceProduct.model_validate(body)

    async def delete_product(self, product_id: int, force: bool = True) -> bool:
        await self._call("delete_product", "DELETE", f"/products/{product_id}", params={"force": str(force).lower()})
        self.cache.clear("products")
        return True

    async def get_categories(self) -> list[WooCommerceCategory]:
        body = await self._call("get_categories", "GET", "/products/categories")
        return [WooCommerceCategory.model_validate(c) for c in body or []]

    async def create_category(self, name: str, parent: int = 0, description: str = "") -> WooCommerceCategory:
        body = await self._call(
            "create_category",
            "POST",
            "/products/categories",
            json={"name": name, "parent": parent, "description": description},
        )
        return WooCommerceCategory.model_validate(body)

    # =========================================================================
    # Orders
    # =========================================================================

    async def get_orders(
        self,
        page: int = 1,
        per_page: int = 25,
        status: str | None = None,
    ) -> list[WooCommerceOrder]:
        key = f"page={page}:per_page={per_page}:status={status or 'all'}"
        cached = self.cache.get("orders", key)
        if cached is not None:
            return cached

        params: dict[str, Any] = {"page": page, "per_page": per_page}
        if status:
            params["status"] = status

        body = await self._call("get_orders", "GET", "/orders", params=params)
        orders = [WooCommerceOrder.model_validate(o) for o in body or []]
        self.cache.set("orders", key, orders)
        return orders

    async def get_order(self, order_id: int) -> WooCommerceOrder:
        body = await self._call("get_order", "GET", f"/orders/{order_id}")
        return WooCommerceOrder.model_validate(body)

    async def update_order_status(self, order_id: int, status: str) -> WooCommerceOrder:
        body = await self._call("update_order_status", "PUT", f"/orders/{order_id}", json={"status": status})
        self.cache.clear("orders")
        logger.info(f"[woocommerce] Order {order_id} -> {status}")
        return WooCommerceOrder.model_validate(body)

    # =========================================================================
    # Customers
    # =========================================================================

    async def get_customers(self, page: int = 1, per_page: int = 25) -> list[WooCommerceCustomer]:
        key = f"page={page}:per_page={per_page}"
        cached = self.cache.get("customers", key)
        if cached is not None:
            return cached

        body = await self._call(
            "get_customers", "GET", "/customers", params={"page": page, "per_page": per_page}
        )
        customers = [WooCommerceCustomer.model_validate(c) for c in body or []]
        self.cache.set("customers", key, customers)
        return customers

    async def get_customer(self, customer_id: int) -> WooCommerceCustomer:
        body = await self._call("get_customer", "GET", f"/customers/{customer_id}")
        return WooCommerceCustomer.model_validate(body)

    async def create_customer(self, customer: dict[str, Any]) -> WooCommerceCustomer:
        body = await self._call("create_customer", "POST", "/customers", json=customer)
        self.cache.clear("customers")
        return WooCommerceCustomer.model_validate(body)

    # =========================================================================
    # Coupons and reports
    # =========================================================================

    async def get_coupons(self) -> list[WooCommerceCoupon]:
        body = await self._call("get_coupons", "GET", "/coupons")
        return [WooCommerceCoupon.model_validate(c) for c in body or []]

    async def create_coupon(self, code: str, amount: str, discount_type: str = "percent", **extra: Any) -> WooCommerceCoupon:
        body = await self._call(
            "create_coupon",
            "POST",
            "/coupons",
            json={"code": code, "amount": amount, "discount_type": discount_type, **extra},
        )
        return WooCommerceCoupon.model_validate(body)

    async def get_sales_report(self, period: str = "week") -> WooCommerceSalesReport:
        body = await self._call("get_sales_report", "GET", "/reports/sales", params={"period": period})
        rows = body or [{}]
        return WooCommerceSalesReport.model_validate(rows[0] if isinstance(rows, list) else rows)

    async def get_top_sellers(self, period: str = "week") -> list[dict[str, Any]]:
        body = await self._call("get_top_sellers", "GET", "/reports/top_sellers", params={"period": period})
        return body or []

    async def get_system_status(self) -> dict[str, Any]:
        return await self._call("get_system_status", "GET", "/system_status") or {}
