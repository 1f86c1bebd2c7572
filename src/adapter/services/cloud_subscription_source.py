"""Cloud Subscription Usage Source

HTTP client for the cloud subscription provider. Reports seat quantities per
SKU for a customer tenant and exposes the provider's product catalog for
auto-provisioning of missing catalog subscriptions.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from src.app.services.usage_source import (
    CloudCatalog,
    CloudProduct,
    ResourceStatus,
    SourceKind,
    UsageChange,
    UsageQuantity,
    UsageSource,
)
from src.domain.customer import Customer
from src.domain.errors import SchemaMismatch, SourceUnavailable

logger = logging.getLogger(__name__)


class _ProviderModel(BaseModel):
    # The provider mixes camelCase and snake_case field names
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class HistoryEntry(_ProviderModel):
    created_on: datetime
    created_by: Optional[str] = None


class AddOnData(_ProviderModel):
    subscription_history: List[HistoryEntry] = Field(default_factory=list)


class AddOnItem(_ProviderModel):
    sku: str
    sku_name: Optional[str] = None
    name: Optional[str] = None
    quantity: Decimal
    add_on_status: Optional[str] = None
    created_date: Optional[datetime] = None
    updated_date: Optional[datetime] = None
    additional_data: AddOnData = Field(default_factory=AddOnData)


class LineItem(_ProviderModel):
    sku: str
    sku_name: Optional[str] = None
    name: Optional[str] = None
    quantity: Decimal
    line_status: Optional[str] = None
    created_date: Optional[datetime] = None
    updated_date: Optional[datetime] = None
    subscription_history: List[HistoryEntry] = Field(default_factory=list)
    add_ons: List[AddOnItem] = Field(default_factory=list)


class ProductPayload(_ProviderModel):
    sku: str
    sku_name: str
    description: Optional[str] = None
    qty_min: Decimal = Decimal("1")
    billing_type: Optional[str] = None


class CatalogProductPayload(ProductPayload):
    add_ons: List[ProductPayload] = Field(default_factory=list)


class PricingPayload(_ProviderModel):
    msrp: Decimal


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _status(raw: Optional[str]) -> Optional[ResourceStatus]:
    try:
        return ResourceStatus((raw or "").strip().lower())
    except ValueError:
        return None


def parse_line_entry(raw: Any) -> LineItem:
    """
    Parse one entry of a subscriptions payload

    An entry is either a line item (it has a "sku") or a single-key object
    wrapping a line item under its subscription id.

    Raises:
        SchemaMismatch: the entry is neither variant or fails validation
    """
    if not isinstance(raw, dict):
        raise SchemaMismatch(f"Expected an object, got {type(raw).__name__}")

    if "sku" in raw:
        payload = raw
    elif len(raw) == 1 and isinstance(next(iter(raw.values())), dict):
        payload = next(iter(raw.values()))
    else:
        raise SchemaMismatch(f"Unrecognized subscription entry with keys {sorted(raw)}")

    try:
        return LineItem.model_validate(payload)
    except ValidationError as e:
        raise SchemaMismatch(f"Invalid subscription entry: {e}") from e


def _history(entries: List[HistoryEntry]) -> List[UsageChange]:
    return [
        UsageChange(changed_at=_naive_utc(entry.created_on), changed_by=entry.created_by)
        for entry in entries
    ]


def flatten_line_items(items: List[LineItem]) -> List[UsageQuantity]:
    """Turn line items and their nested add-ons into top-level quantities"""
    quantities: List[UsageQuantity] = []
    for item in items:
        quantities.append(
            UsageQuantity(
                resource_key=item.sku,
                quantity=item.quantity,
                status=_status(item.line_status),
                history=_history(item.subscription_history),
                name=item.name or item.sku_name,
                created_at=_naive_utc(item.created_date),
                updated_at=_naive_utc(item.updated_date),
            )
        )
        for add_on in item.add_ons:
            quantities.append(
                UsageQuantity(
                    resource_key=add_on.sku,
                    quantity=add_on.quantity,
                    status=_status(add_on.add_on_status),
                    history=_history(add_on.additional_data.subscription_history),
                    name=add_on.name or add_on.sku_name,
                    created_at=_naive_utc(add_on.created_date),
                    updated_at=_naive_utc(add_on.updated_date),
                )
            )
    return quantities


def merge_by_sku(quantities: List[UsageQuantity]) -> List[UsageQuantity]:
    """
    Merge entries sharing a SKU

    Quantities are summed; every other field comes from the first entry
    seen for the SKU. Output keeps first-seen order.
    """
    merged: Dict[str, UsageQuantity] = {}
    for quantity in quantities:
        existing = merged.get(quantity.resource_key)
        if existing is None:
            merged[quantity.resource_key] = quantity.model_copy()
        else:
            existing.quantity = existing.quantity + quantity.quantity
    return list(merged.values())


class CloudSubscriptionSource(UsageSource, CloudCatalog):
    """
    Usage source and product catalog of the cloud subscription provider

    Features:
    - Strict payload parsing at the boundary (SchemaMismatch on surprises)
    - Add-on flattening and duplicate SKU merging
    - Per-call timeout; HTTP failures surface as SourceUnavailable
    """

    name = "cloud subscriptions"
    kind = SourceKind.CLOUD_SUBSCRIPTION

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Provider API root
            api_key: Bearer token
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=headers,
            transport=self.transport,
        )

    def external_id_for(self, customer: Customer) -> Optional[str]:
        return customer.cloud_tenant_id

    async def list_quantities(self, customer_external_id: str) -> List[UsageQuantity]:
        try:
            async with self._client() as client:
                response = await client.get(f"/customers/{customer_external_id}/subscriptions")
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            raise SourceUnavailable(
                f"Cloud subscriptions unavailable for tenant {customer_external_id}: {e}"
            ) from e
        except ValueError as e:
            raise SchemaMismatch(
                f"Cloud subscriptions for tenant {customer_external_id} are not valid JSON"
            ) from e

        if not isinstance(payload, list):
            raise SchemaMismatch(
                f"Expected a list of subscriptions for tenant {customer_external_id}, "
                f"got {type(payload).__name__}"
            )

        items = [parse_line_entry(entry) for entry in payload]
        quantities = merge_by_sku(flatten_line_items(items))
        logger.debug(
            f"Tenant {customer_external_id}: {len(payload)} entries, {len(quantities)} SKUs"
        )
        return quantities

    async def list_products(self) -> List[CloudProduct]:
        try:
            async with self._client() as client:
                response = await client.get("/products")
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            raise SourceUnavailable(f"Product catalog unavailable: {e}") from e
        except ValueError as e:
            raise SchemaMismatch("Product catalog is not valid JSON") from e

        if not isinstance(payload, list):
            raise SchemaMismatch(
                f"Expected a list of products, got {type(payload).__name__}"
            )

        try:
            entries = [CatalogProductPayload.model_validate(entry) for entry in payload]
        except ValidationError as e:
            raise SchemaMismatch(f"Invalid product catalog entry: {e}") from e

        products: Dict[str, CloudProduct] = {}
        for entry in entries:
            for item in [entry, *entry.add_ons]:
                if item.sku not in products:
                    products[item.sku] = CloudProduct(
                        **item.model_dump(include=set(ProductPayload.model_fields))
                    )
        logger.debug(f"Product catalog: {len(entries)} entries, {len(products)} SKUs")
        return list(products.values())

    async def get_product(self, sku: str) -> Optional[CloudProduct]:
        try:
            async with self._client() as client:
                response = await client.get(f"/products/{sku}")
                if response.status_code == httpx.codes.NOT_FOUND:
                    return None
                response.raise_for_status()
                product = ProductPayload.model_validate(response.json())
        except httpx.HTTPError as e:
            raise SourceUnavailable(f"Product lookup for SKU {sku} failed: {e}") from e
        except (ValidationError, ValueError) as e:
            raise SchemaMismatch(f"Invalid product payload for SKU {sku}: {e}") from e

        return CloudProduct(**product.model_dump())

    async def get_unit_price(self, product: CloudProduct) -> Decimal:
        qty_min = product.qty_min if product.qty_min > 0 else Decimal("1")
        try:
            async with self._client() as client:
                response = await client.post(
                    "/products/pricing",
                    json={"sku": product.sku, "quantity": str(qty_min)},
                )
                response.raise_for_status()
                pricing = PricingPayload.model_validate(response.json())
        except httpx.HTTPError as e:
            raise SourceUnavailable(f"Pricing lookup for SKU {product.sku} failed: {e}") from e
        except (ValidationError, ValueError) as e:
            raise SchemaMismatch(f"Invalid pricing payload for SKU {product.sku}: {e}") from e

        return pricing.msrp / qty_min
