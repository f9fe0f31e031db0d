"""
Replies External Service Integrations
=====================================

Shopify Admin REST client and the order-lookup service built on it.

Storefront payloads are validated into pydantic records at the boundary;
every field the formatter does not strictly need is optional.
"""

import re
from datetime import datetime
from typing import Callable, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from replydesk.config import settings
from replydesk.core import StorefrontException, ValidationException, ResourceNotFoundException
from replydesk.knowledge.application import ITenantRepository
from replydesk.knowledge.domain import Tenant
from replydesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

NO_ORDERS_TEXT = "No orders found for this customer."
MAX_ITEMS_LISTED = 5

_ORDER_NUMBER = re.compile(r"^#?\d+$")
_PHONE = re.compile(r"^[\d\s\-+()]+$")


# ========== Storefront records ==========

class ShippingAddress(BaseModel):
    model_config = ConfigDict(extra="ignore")

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    country: Optional[str] = None
    zip: Optional[str] = None


class LineItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    title: str = ""
    quantity: int = 1
    price: Optional[str] = None
    sku: Optional[str] = None


class Fulfillment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    tracking_company: Optional[str] = None


class Order(BaseModel):
    """Storefront order with tracking details merged from its fulfillments."""
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str = ""  # order number like #1001
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None
    financial_status: Optional[str] = None
    fulfillment_status: Optional[str] = None
    total_price: Optional[str] = None
    currency: Optional[str] = None
    line_items: List[LineItem] = Field(default_factory=list)
    shipping_address: Optional[ShippingAddress] = None
    note: Optional[str] = None
    tracking_numbers: List[str] = Field(default_factory=list)
    tracking_urls: List[str] = Field(default_factory=list)
    tracking_companies: List[str] = Field(default_factory=list)

    def attach_fulfillments(self, fulfillments: List[Fulfillment]) -> None:
        for f in fulfillments:
            if f.tracking_number:
                self.tracking_numbers.append(f.tracking_number)
            if f.tracking_url:
                self.tracking_urls.append(f.tracking_url)
            if f.tracking_company:
                self.tracking_companies.append(f.tracking_company)


class OrderLookupResult(BaseModel):
    found: bool
    orders: List[Order] = Field(default_factory=list)
    formatted_text: str = NO_ORDERS_TEXT


def format_order(order: Order) -> str:
    """Render an order as plain text for the generation prompt."""
    status = order.financial_status or "unknown"
    if order.fulfillment_status:
        status += f", {order.fulfillment_status}"

    lines = [
        f"Order {order.name}:",
        f"- Status: {status}",
        f"- Total: {order.total_price or '?'} {order.currency or ''}".rstrip(),
    ]
    if order.created_at:
        d = order.created_at
        lines.append(f"- Date: {d.month}/{d.day}/{d.year}")

    if order.line_items:
        lines.append("- Items:")
        for item in order.line_items[:MAX_ITEMS_LISTED]:
            lines.append(f"  * {item.title} x{item.quantity} - {item.price or ''}".rstrip(" -"))
        if len(order.line_items) > MAX_ITEMS_LISTED:
            lines.append(f"  ... and {len(order.line_items) - MAX_ITEMS_LISTED} more items")

    if order.tracking_numbers:
        lines.append(f"- Tracking: {', '.join(order.tracking_numbers)}")

    if order.shipping_address:
        addr = order.shipping_address
        place = ", ".join(p for p in (addr.city, addr.province, addr.country) if p)
        if place:
            lines.append(f"- Ship to: {place}")

    return "\n".join(lines)


def format_orders(orders: List[Order]) -> str:
    if not orders:
        return NO_ORDERS_TEXT
    return "\n\n".join(format_order(o) for o in orders)


def build_search_params(query: str) -> List[dict]:
    """
    Order searches implied by a free-form query.

    An order number searches by name, an email by email, a phone-like string
    by phone. Anything else is tried as an email.
    """
    query = query.strip()
    searches: List[dict] = []

    if _ORDER_NUMBER.match(query):
        searches.append({"name": f"#{query.lstrip('#')}"})

    if "@" in query:
        searches.append({"email": query})

    if _PHONE.match(query) and len(query) >= 7:
        searches.append({"query": f"phone:{re.sub(r'[^0-9]', '', query)}"})

    if not searches:
        searches.append({"email": query})

    return searches


# ========== Client ==========

class ShopifyClient:
    """Shopify Admin REST API client authenticated with an access token."""

    def __init__(
        self,
        domain: str,
        access_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        domain = domain.strip().removeprefix("https://").removeprefix("http://").rstrip("/")
        self._http_client = httpx.AsyncClient(
            base_url=f"https://{domain}/admin/api/{settings.storefront_api_version}",
            headers={
                "X-Shopify-Access-Token": access_token,
                "Content-Type": "application/json"
            },
            timeout=settings.storefront_timeout_seconds,
            transport=transport
        )

    async def _get(self, path: str, params: Optional[dict] = None) -> dict:
        try:
            response = await self._http_client.get(path, params=params)
        except httpx.HTTPError as e:
            raise StorefrontException(f"Request to {path} failed: {str(e)}")

        if response.status_code >= 400:
            raise StorefrontException(
                f"GET {path} returned {response.status_code}",
                {"status_code": response.status_code}
            )

        try:
            data = response.json()
        except ValueError:
            raise StorefrontException(f"GET {path} returned a non-JSON body")
        if not isinstance(data, dict):
            raise StorefrontException(f"GET {path} returned an unexpected payload")
        return data

    async def search_orders(self, params: dict) -> List[Order]:
        data = await self._get("/orders.json", {"status": "any", "limit": 10, **params})
        try:
            return [Order.model_validate(o) for o in data.get("orders") or []]
        except (TypeError, ValidationError) as e:
            raise StorefrontException(f"Unexpected order payload: {e}")

    async def get_fulfillments(self, order_id: int) -> List[Fulfillment]:
        data = await self._get(f"/orders/{order_id}/fulfillments.json")
        try:
            return [Fulfillment.model_validate(f) for f in data.get("fulfillments") or []]
        except (TypeError, ValidationError) as e:
            raise StorefrontException(f"Unexpected fulfillment payload: {e}")

    async def close(self) -> None:
        """Close HTTP client."""
        await self._http_client.aclose()


# ========== Lookup service ==========

class OrderLookupService:
    """
    Looks up a tenant's storefront orders by order number, email or phone.

    Failed searches and fulfillment calls are logged and skipped; the result
    reports whatever was found.
    """

    def __init__(
        self,
        tenant_repository: ITenantRepository,
        client_factory: Callable[[str, str], ShopifyClient] = ShopifyClient
    ):
        self._tenants = tenant_repository
        self._client_factory = client_factory

    async def lookup(self, tenant_id: str, search_query: str) -> OrderLookupResult:
        """
        Raises:
            ValidationException: Missing fields or no storefront configured
            ResourceNotFoundException: Unknown tenant
        """
        if not tenant_id or not (search_query or "").strip():
            raise ValidationException("tenant_id and search_query are required")

        tenant = await self._tenants.get_by_id(tenant_id)
        if tenant is None:
            raise ResourceNotFoundException("Tenant", tenant_id)

        return await self.lookup_for_tenant(tenant, search_query)

    async def lookup_for_tenant(self, tenant: Tenant, search_query: str) -> OrderLookupResult:
        if not tenant.has_storefront:
            raise ValidationException("Storefront not configured for this tenant")

        client = self._client_factory(tenant.storefront_domain, tenant.storefront_access_token)
        orders: dict = {}
        try:
            for params in build_search_params(search_query):
                try:
                    found = await client.search_orders(params)
                except StorefrontException as e:
                    logger.warning(
                        "Order search failed",
                        extra={"tenant_id": tenant.id, "search": params, "error": e.message}
                    )
                    continue

                for order in found:
                    if order.id in orders:
                        continue
                    try:
                        order.attach_fulfillments(await client.get_fulfillments(order.id))
                    except (StorefrontException, ValidationError) as e:
                        logger.warning(
                            "Fulfillment lookup failed",
                            extra={"order_id": order.id, "error": str(e)}
                        )
                    orders[order.id] = order
        finally:
            await client.close()

        result = list(orders.values())
        return OrderLookupResult(
            found=bool(result),
            orders=result,
            formatted_text=format_orders(result)
        )
