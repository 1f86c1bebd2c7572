"""SyncCloudCatalog Use Case

Keeps the cloud-subscription part of the catalog in line with the provider:
creates catalog subscriptions for provider products that are missing and
refreshes the list price of the ones that exist.
"""

import logging
from decimal import Decimal
from typing import Optional
from libs.result import Result, Return, Error
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.usage_source import CloudCatalog, CloudProduct
from src.domain.errors import BillingError, ConfigurationError, SourceUnavailable
from src.domain.subscription import BillingEngine, PaymentFrequency, Subscription
from .dtos import CatalogSyncResultDTO

logger = logging.getLogger(__name__)

BILLING_TYPE_FREQUENCIES = {
    "monthly": PaymentFrequency.MONTHLY,
    "annual": PaymentFrequency.YEARLY,
}


def catalog_subscription_fields(
    product: CloudProduct,
    unit_price: Decimal,
    product_number: int,
    group_id: Optional[int],
) -> dict:
    """Column values of the catalog subscription for a provider product"""
    billing_type = (product.billing_type or "").strip().lower()
    return {
        "product": product_number,
        "name": f"{product.sku_name} - {product.billing_type or 'AddOn'}",
        "description": product.description,
        "billing_engine": BillingEngine.CLOUD_SUBSCRIPTION,
        "payment_frequency": BILLING_TYPE_FREQUENCIES.get(
            billing_type, PaymentFrequency.MONTHLY
        ).value,
        "group_id": group_id,
        "sku": product.sku,
        "price": unit_price,
    }


class SyncCloudCatalog:
    """
    Use Case: Synchronize catalog subscriptions with the provider's products

    Business Rules:
    1. Every provider product and add-on is priced at msrp / minimum quantity
    2. Unknown SKUs get a new cloud-subscription catalog entry
    3. Known SKUs get their price refreshed when it changed
    4. A product without a list price is reported and left untouched
    5. A failure on one product is reported and the others proceed
    """

    def __init__(
        self,
        uow: UnitOfWork,
        subscription_repo: SubscriptionRepository,
        catalog: CloudCatalog,
        cloud_product_number: int = 40011000,
        cloud_group_id: Optional[int] = None,
    ):
        self.uow = uow
        self.subscription_repo = subscription_repo
        self.catalog = catalog
        self.cloud_product_number = cloud_product_number
        self.cloud_group_id = cloud_group_id

    async def execute(self) -> Result[CatalogSyncResultDTO]:
        """
        Execute catalog synchronization

        Returns:
            Result[CatalogSyncResultDTO]: Counts of created and repriced
            subscriptions plus one error line per failed product
        """
        try:
            products = await self.catalog.list_products()
        except SourceUnavailable as e:
            logger.error(f"Cloud catalog unavailable: {e}")
            return Return.err(
                Error(
                    code="CATALOG_UNAVAILABLE",
                    message="Failed to fetch the cloud provider's product catalog",
                    reason=str(e),
                )
            )

        result = CatalogSyncResultDTO(products_seen=len(products))

        for product in products:
            try:
                outcome = await self._sync_product(product)
            except BillingError as e:
                await self.uow.rollback()
                logger.warning(f"Catalog sync of SKU {product.sku}: {e.code}: {e}")
                result.errors.append(str(e))
                continue
            except Exception as e:
                await self.uow.rollback()
                logger.error(f"Unexpected error syncing SKU {product.sku}: {e}")
                result.errors.append(f"Unexpected error syncing SKU {product.sku}: {e}")
                continue

            if outcome == "created":
                result.subscriptions_created += 1
            elif outcome == "repriced":
                result.prices_updated += 1

        logger.info(
            f"Catalog sync complete: {result.products_seen} products, "
            f"{result.subscriptions_created} created, {result.prices_updated} repriced, "
            f"{len(result.errors)} errors"
        )
        return Return.ok(result)

    async def _sync_product(self, product: CloudProduct) -> Optional[str]:
        unit_price = await self.catalog.get_unit_price(product)
        if unit_price <= 0:
            raise ConfigurationError(
                f"SKU {product.sku} has no list price at the provider; catalog left unchanged"
            )

        subscription = await self.subscription_repo.get_by_sku(product.sku)

        if subscription is None:
            fields = catalog_subscription_fields(
                product, unit_price, self.cloud_product_number, self.cloud_group_id
            )
            await self.subscription_repo.create(Subscription(**fields))
            await self.uow.commit()
            logger.info(f"Created catalog subscription \"{fields['name']}\" for SKU {product.sku}")
            return "created"

        if subscription.price == unit_price:
            return None

        previous = subscription.price
        subscription.price = unit_price
        await self.subscription_repo.update(subscription)
        await self.uow.commit()
        logger.info(f"SKU {product.sku}: price {previous} -> {unit_price}")
        return "repriced"
