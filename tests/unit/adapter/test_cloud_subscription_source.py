"""Unit tests for CloudSubscriptionSource

The provider is faked with httpx.MockTransport.
"""

import httpx
import json
import pytest
from datetime import datetime
from decimal import Decimal

from src.adapter.services.cloud_subscription_source import CloudSubscriptionSource
from src.app.services.usage_source import CloudProduct, ResourceStatus
from src.domain.customer import Customer
from src.domain.errors import SchemaMismatch, SourceUnavailable

BASE_URL = "https://provider.test/api"


def make_source(handler) -> CloudSubscriptionSource:
    return CloudSubscriptionSource(
        base_url=BASE_URL, api_key="secret", transport=httpx.MockTransport(handler)
    )


def subscriptions_handler(payload, status_code=200):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/customers/tenant-nf/subscriptions"
        assert request.headers["Authorization"] == "Bearer secret"
        return httpx.Response(status_code, json=payload)
    return handler


@pytest.mark.asyncio
class TestListQuantities:

    async def test_lines_sharing_a_sku_are_merged(self):
        """
        Given: Two line items for SKU X with quantities 3 and 2
        When: Quantities are listed
        Then: One entry with quantity 5 keeps the first line's fields
        """
        source = make_source(subscriptions_handler([
            {"sku": "X", "skuName": "Product X", "quantity": 3, "lineStatus": "Active"},
            {"sku": "X", "sku_name": "Other name", "quantity": 2, "line_status": "Inactive"},
        ]))

        quantities = await source.list_quantities("tenant-nf")

        assert len(quantities) == 1
        assert quantities[0].resource_key == "X"
        assert quantities[0].quantity == Decimal("5")
        assert quantities[0].name == "Product X"
        assert quantities[0].status == ResourceStatus.ACTIVE

    async def test_add_ons_are_flattened(self):
        source = make_source(subscriptions_handler([
            {
                "sku": "BASE",
                "quantity": 10,
                "lineStatus": "active",
                "addOns": [
                    {
                        "sku": "ADDON",
                        "quantity": 4,
                        "addOnStatus": "Inactive",
                        "additionalData": {
                            "subscriptionHistory": [
                                {"createdOn": "2024-03-10T09:30:00Z", "createdBy": "Jane Admin"}
                            ]
                        },
                    }
                ],
            }
        ]))

        quantities = await source.list_quantities("tenant-nf")

        assert [q.resource_key for q in quantities] == ["BASE", "ADDON"]
        add_on = quantities[1]
        assert add_on.quantity == Decimal("4")
        assert add_on.status == ResourceStatus.INACTIVE
        assert add_on.history[0].changed_by == "Jane Admin"
        assert add_on.history[0].changed_at == datetime(2024, 3, 10, 9, 30)

    async def test_wrapped_line_items_are_accepted(self):
        source = make_source(subscriptions_handler([
            {"sub-123": {"sku": "WRAPPED", "quantity": 7, "lineStatus": "active"}},
            {"sku": "PLAIN", "quantity": 1},
        ]))

        quantities = await source.list_quantities("tenant-nf")

        assert [(q.resource_key, q.quantity) for q in quantities] == [
            ("WRAPPED", Decimal("7")),
            ("PLAIN", Decimal("1")),
        ]
        assert quantities[1].status is None

    async def test_unrecognized_entry_raises_schema_mismatch(self):
        source = make_source(subscriptions_handler([{"foo": 1, "bar": 2}]))

        with pytest.raises(SchemaMismatch):
            await source.list_quantities("tenant-nf")

    async def test_non_list_payload_raises_schema_mismatch(self):
        source = make_source(subscriptions_handler({"items": []}))

        with pytest.raises(SchemaMismatch):
            await source.list_quantities("tenant-nf")

    async def test_http_error_raises_source_unavailable(self):
        source = make_source(subscriptions_handler({"message": "down"}, status_code=503))

        with pytest.raises(SourceUnavailable):
            await source.list_quantities("tenant-nf")

    async def test_timeout_raises_source_unavailable(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(SourceUnavailable):
            await make_source(handler).list_quantities("tenant-nf")


@pytest.mark.asyncio
class TestCatalog:

    async def test_get_product(self):
        def handler(request):
            assert request.url.path == "/api/products/DZH318Z0BQ3Q"
            return httpx.Response(200, json={
                "sku": "DZH318Z0BQ3Q",
                "skuName": "Exchange Online (Plan 1)",
                "description": "Hosted email",
                "qtyMin": 1,
                "billingType": "Annual",
            })

        product = await make_source(handler).get_product("DZH318Z0BQ3Q")

        assert product.sku_name == "Exchange Online (Plan 1)"
        assert product.billing_type == "Annual"

    async def test_get_product_not_found(self):
        product = await make_source(lambda request: httpx.Response(404)).get_product("NOPE")

        assert product is None

    async def test_unit_price_is_msrp_per_minimum_quantity(self):
        def handler(request):
            assert request.method == "POST"
            assert json.loads(request.content) == {"sku": "PACK", "quantity": "5"}
            return httpx.Response(200, json={"msrp": "100.00"})

        product = CloudProduct(sku="PACK", sku_name="Five pack", qty_min=Decimal("5"))

        price = await make_source(handler).get_unit_price(product)

        assert price == Decimal("20")

    async def test_list_products_flattens_add_ons_once_per_sku(self):
        def handler(request):
            assert request.url.path == "/api/products"
            return httpx.Response(200, json=[
                {
                    "sku": "CFQ7TTC0LCHC",
                    "skuName": "Business Premium",
                    "billingType": "Monthly",
                    "addOns": [
                        {"sku": "ADV-THREAT", "skuName": "Defender", "qtyMin": 1},
                    ],
                },
                {
                    "sku": "DZH318Z0BQ3Q",
                    "sku_name": "Exchange Online (Plan 1)",
                    "billing_type": "Annual",
                    "add_ons": [{"sku": "ADV-THREAT", "skuName": "Defender again"}],
                },
            ])

        products = await make_source(handler).list_products()

        assert [p.sku for p in products] == ["CFQ7TTC0LCHC", "ADV-THREAT", "DZH318Z0BQ3Q"]
        assert products[1].sku_name == "Defender"
        assert products[1].billing_type is None
        assert products[2].billing_type == "Annual"

    async def test_list_products_invalid_entry_raises_schema_mismatch(self):
        source = make_source(lambda request: httpx.Response(200, json=[{"name": "no sku"}]))

        with pytest.raises(SchemaMismatch):
            await source.list_products()

    async def test_list_products_http_error_raises_source_unavailable(self):
        source = make_source(lambda request: httpx.Response(503))

        with pytest.raises(SourceUnavailable):
            await source.list_products()


class TestCorrelation:

    def test_external_id_is_cloud_tenant(self):
        source = make_source(lambda request: httpx.Response(200, json=[]))

        assert source.external_id_for(Customer(id=1, name="A", cloud_tenant_id="t-1")) == "t-1"
        assert source.external_id_for(Customer(id=2, name="B")) is None
