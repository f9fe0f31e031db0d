"""Tests for storefront order lookup."""

from uuid import uuid4

import httpx
import pytest

from conftest import ORDER_1001, shopify_factory
from replydesk.core import ResourceNotFoundException, ValidationException
from replydesk.replies.infrastructure import (
    Order,
    OrderLookupService,
    build_search_params,
    format_order,
)
from replydesk.replies.infrastructure.external import NO_ORDERS_TEXT


class FakeShopify:
    """Serves canned orders keyed by search parameter."""

    def __init__(self, orders_by_search=None, fulfillments=None, fail_fulfillments=False):
        self.orders_by_search = orders_by_search or {}
        self.fulfillments = fulfillments or []
        self.fail_fulfillments = fail_fulfillments
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/fulfillments.json"):
            if self.fail_fulfillments:
                return httpx.Response(502)
            return httpx.Response(200, json={"fulfillments": self.fulfillments})

        if path.endswith("/orders.json"):
            params = request.url.params
            for key in ("name", "email", "query"):
                if key in params:
                    orders = self.orders_by_search.get((key, params[key]), [])
                    return httpx.Response(200, json={"orders": orders})

        return httpx.Response(404)


@pytest.fixture
def make_lookup(tenant_repository):
    def build(fake: FakeShopify) -> OrderLookupService:
        return OrderLookupService(tenant_repository, client_factory=shopify_factory(fake))
    return build


class TestBuildSearchParams:
    """Tests for mapping a free-form query to order searches."""

    @pytest.mark.parametrize("query,expected", [
        ("#1001", [{"name": "#1001"}]),
        ("1001", [{"name": "#1001"}]),
        ("jane@example.com", [{"email": "jane@example.com"}]),
        ("+1 (555) 123-4567", [{"query": "phone:15551234567"}]),
        ("5551234567", [{"name": "#5551234567"}, {"query": "phone:5551234567"}]),
        ("jane", [{"email": "jane"}]),
    ])
    def test_params(self, query, expected):
        assert build_search_params(query) == expected


class TestFormatOrder:
    """Tests for the plain-text order rendering."""

    def test_full_order(self):
        order = Order.model_validate(ORDER_1001)
        order.tracking_numbers.append("1Z999AA10123456784")

        text = format_order(order)

        assert text.splitlines() == [
            "Order #1001:",
            "- Status: paid, fulfilled",
            "- Total: 59.00 USD",
            "- Date: 3/2/2024",
            "- Items:",
            "  * Rain Jacket x1 - 59.00",
            "- Tracking: 1Z999AA10123456784",
            "- Ship to: Portland, Oregon, United States",
        ]

    def test_long_item_lists_are_truncated(self):
        order = Order.model_validate({
            "id": 1,
            "name": "#2000",
            "line_items": [{"title": f"Sock {i}", "quantity": 2} for i in range(8)],
        })

        text = format_order(order)

        assert "Sock 4" in text
        assert "Sock 5" not in text
        assert "... and 3 more items" in text


class TestOrderLookupService:
    """Tests for OrderLookupService."""

    async def test_finds_order_with_tracking(self, make_lookup, tenant):
        fake = FakeShopify(
            orders_by_search={("name", "#1001"): [ORDER_1001]},
            fulfillments=[{"tracking_number": "1Z999", "tracking_company": "UPS"}],
        )

        result = await make_lookup(fake).lookup(tenant.id, "#1001")

        assert result.found is True
        assert result.orders[0].tracking_numbers == ["1Z999"]
        assert "- Tracking: 1Z999" in result.formatted_text
        search = fake.requests[0]
        assert search.headers["X-Shopify-Access-Token"] == "shpat_test"
        assert search.url.params["status"] == "any"
        assert search.url.host == "acme.myshopify.com"

    async def test_orders_are_deduplicated_across_searches(self, make_lookup, tenant):
        fake = FakeShopify(orders_by_search={
            ("name", "#5551234567"): [ORDER_1001],
            ("query", "phone:5551234567"): [ORDER_1001],
        })

        result = await make_lookup(fake).lookup(tenant.id, "5551234567")

        assert len(result.orders) == 1

    async def test_fulfillment_failure_still_returns_order(self, make_lookup, tenant):
        fake = FakeShopify(orders_by_search={("name", "#1001"): [ORDER_1001]}, fail_fulfillments=True)

        result = await make_lookup(fake).lookup(tenant.id, "1001")

        assert result.found is True
        assert result.orders[0].tracking_numbers == []

    async def test_failed_search_reports_not_found(self, make_lookup, tenant):
        result = await make_lookup(lambda request: httpx.Response(500)).lookup(tenant.id, "#1001")

        assert result.found is False
        assert result.formatted_text == NO_ORDERS_TEXT

    @pytest.mark.parametrize("body", [
        {"text": "<html>Store unavailable</html>"},
        {"json": ["not", "an", "object"]},
        {"json": {"orders": 42}},
    ])
    async def test_unreadable_search_response_reports_not_found(self, make_lookup, tenant, body):
        lookup = make_lookup(lambda request: httpx.Response(200, **body))

        result = await lookup.lookup(tenant.id, "#1001")

        assert result.found is False
        assert result.formatted_text == NO_ORDERS_TEXT

    async def test_unreadable_fulfillments_still_return_order(self, make_lookup, tenant):
        def handler(request):
            if request.url.path.endswith("/fulfillments.json"):
                return httpx.Response(200, text="<html>oops</html>")
            return httpx.Response(200, json={"orders": [ORDER_1001]})

        result = await make_lookup(handler).lookup(tenant.id, "#1001")

        assert result.found is True
        assert result.orders[0].tracking_numbers == []

    async def test_storefront_not_configured(self, make_lookup, other_tenant):
        with pytest.raises(ValidationException):
            await make_lookup(FakeShopify()).lookup(other_tenant.id, "#1001")

    async def test_unknown_tenant(self, make_lookup):
        with pytest.raises(ResourceNotFoundException):
            await make_lookup(FakeShopify()).lookup(str(uuid4()), "#1001")

    async def test_empty_query(self, make_lookup, tenant):
        with pytest.raises(ValidationException):
            await make_lookup(FakeShopify()).lookup(tenant.id, "  ")
