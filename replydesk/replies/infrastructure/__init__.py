"""
Replies Infrastructure Layer
============================

Storefront (Shopify) client and order lookup.
"""

from replydesk.replies.infrastructure.external import (
    ShopifyClient,
    OrderLookupService,
    OrderLookupResult,
    Order,
    LineItem,
    Fulfillment,
    ShippingAddress,
    format_order,
    format_orders,
    build_search_params,
    NO_ORDERS_TEXT,
)

__all__ = [
    "ShopifyClient",
    "OrderLookupService",
    "OrderLookupResult",
    "Order",
    "LineItem",
    "Fulfillment",
    "ShippingAddress",
    "format_order",
    "format_orders",
    "build_search_params",
    "NO_ORDERS_TEXT",
]
