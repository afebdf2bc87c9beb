"""
Pydantic schemas for the WooCommerce REST API (wc/v3).

WooCommerce returns money amounts as strings ("19.99"); they are kept as
strings to avoid float rounding.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _WooModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Address(_WooModel):
    first_name: str = ""
    last_name: str = ""
    company: str = ""
    address_1: str = ""
    address_2: str = ""
    city: str = ""
    state: str = ""
    postcode: str = ""
    country: str = ""
    email: str | None = None
    phone: str | None = None


class WooCommerceCategoryRef(_WooModel):
    id: int
    name: str = ""
    slug: str = ""


class WooCommerceProduct(_WooModel):
    id: int
    name: str
    slug: str = ""
    type: str = "simple"
    status: str = "publish"
    sku: str = ""
    price: str = ""
    regular_price: str = ""
    sale_price: str = ""
    on_sale: bool = False
    stock_quantity: int | None = None
    stock_status: str = "instock"
    manage_stock: bool = False
    total_sales: int = 0
    categories: list[WooCommerceCategoryRef] = Field(default_factory=list)
    images: list[dict[str, Any]] = Field(default_factory=list)
    date_created: str | None = None
    date_modified: str | None = None


class LineItem(_WooModel):
    id: int
    name: str = ""
    product_id: int | None = None
    variation_id: int | None = None
    quantity: int = 0
    sku: str | None = None
    price: float | str | None = None
    total: str = "0"


class WooCommerceOrder(_WooModel):
    id: int
    parent_id: int = 0
    number: str = ""
    status: str
    currency: str = ""
    total: str = "0"
    total_tax: str = "0"
    shipping_total: str = "0"
    discount_total: str = "0"
    customer_id: int = 0
    customer_note: str = ""
    billing: Address = Field(default_factory=Address)
    shipping: Address = Field(default_factory=Address)
    payment_method: str = ""
    payment_method_title: str = ""
    transaction_id: str = ""
    line_items: list[LineItem] = Field(default_factory=list)
    date_created: str | None = None
    date_modified: str | None = None
    date_paid: str | None = None
    date_completed: str | None = None


class WooCommerceCustomer(_WooModel):
    id: int
    email: str
    first_name: str = ""
    last_name: str = ""
    username: str = ""
    role: str = "customer"
    billing: Address = Field(default_factory=Address)
    shipping: Address = Field(default_factory=Address)
    is_paying_customer: bool = False
    avatar_url: str | None = None
    date_created: str | None = None


class WooCommerceCategory(_WooModel):
    id: int
    name: str
    slug: str = ""
    parent: int = 0
    description: str = ""
    count: int = 0


class WooCommerceCoupon(_WooModel):
    id: int
    code: str
    amount: str = "0"
    discount_type: str = "fixed_cart"
    description: str = ""
    date_expires: str | None = None
    usage_count: int = 0
    usage_limit: int | None = None
    individual_use: bool = False
    free_shipping: bool = False


class WooCommerceSalesReport(_WooModel):
    total_sales: str = "0"
    net_sales: str = "0"
    average_sales: str = "0"
    total_orders: int = 0
    total_items: int = 0
    total_tax: str = "0"
    total_shipping: str = "0"
    total_refunds: float = 0
    total_discount: str = "0"
    totals_grouped_by: str = "day"
    totals: dict[str, Any] = Field(default_factory=dict)
