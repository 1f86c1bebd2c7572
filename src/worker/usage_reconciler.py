"""Usage Reconciliation Background Worker

Periodically reconciles every customer's usage from the configured sources
against the billing ledger and emails the outcome.
Can be run as a standalone script or integrated with a scheduler.
"""

import asyncio
import logging
import time
from datetime import date, datetime
from typing import List, Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.adapter.repositories import (
    SqlAlchemyCustomerRepository,
    SqlAlchemyCustomerLogRepository,
    SqlAlchemySubscriptionRepository,
    SqlAlchemySubscriptionInstanceRepository,
    SqlAlchemySubscriptionInstancePostRepository,
)
from src.adapter.services.cloud_subscription_source import CloudSubscriptionSource
from src.adapter.services.email_service import create_email_service
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.adapter.services.virtualization_usage_source import VirtualizationUsageSource
from src.app.services.email_service import EmailService
from src.app.services.usage_source import CloudCatalog, UsageSource
from src.app.use_cases.billing import (
    CatalogSyncResultDTO,
    CustomerReconciliationLog,
    NotifyReconciliationOutcome,
    ReconcileCustomerUsage,
    ReconciliationRunResultDTO,
    SyncCloudCatalog,
)

logger = logging.getLogger(__name__)


class UsageReconcilerWorker:
    """
    Background worker for usage reconciliation

    Features:
    - Reconciles customers one at a time, each in its own session
    - A fresh log per customer; nothing accumulates across customers
    - A failing customer is logged and the run moves on (no global rollback)
    - Can run once or continuously

    Usage:
        # Run once
        worker = UsageReconcilerWorker()
        result = await worker.run_once()

        # Run continuously
        worker = UsageReconcilerWorker()
        await worker.run_forever(interval_seconds=86400)  # Daily
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        sources: Optional[List[UsageSource]] = None,
        email_service: Optional[EmailService] = None,
        catalog: Optional[CloudCatalog] = None,
    ):
        """
        Initialize the worker

        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
            sources: Usage sources (defaults to the configured ones)
            email_service: Email sink (defaults to create_email_service(ApplicationConfig))
            catalog: Provider catalog for auto-provisioning (defaults to the
                     first source that is also a catalog)
        """
        self.db_uri = db_uri or ApplicationConfig.DB_URI

        # Create engine and session factory
        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        self.sources = sources if sources is not None else self._default_sources()
        self.email_service = email_service or create_email_service(ApplicationConfig)
        self.catalog = catalog or next(
            (source for source in self.sources if isinstance(source, CloudCatalog)), None
        )

        logger.info(
            f"UsageReconcilerWorker initialized with sources: "
            f"{', '.join(source.name for source in self.sources) or 'none'}"
        )

    def _default_sources(self) -> List[UsageSource]:
        sources: List[UsageSource] = []
        if ApplicationConfig.VIRTUALIZATION_SOURCE_ENABLED:
            sources.append(VirtualizationUsageSource(self.async_session_factory))
        if ApplicationConfig.CLOUD_PROVIDER_BASE_URL:
            sources.append(
                CloudSubscriptionSource(
                    base_url=ApplicationConfig.CLOUD_PROVIDER_BASE_URL,
                    api_key=ApplicationConfig.CLOUD_PROVIDER_API_KEY or None,
                    timeout=float(ApplicationConfig.CLOUD_PROVIDER_TIMEOUT_SECONDS),
                )
            )
        return sources

    async def _list_customer_ids(self) -> List[int]:
        async with self.async_session_factory() as session:
            customers = await SqlAlchemyCustomerRepository(session).list_all()
            return [customer.id for customer in customers]

    async def sync_catalog(self) -> Optional[CatalogSyncResultDTO]:
        """
        Create missing cloud catalog subscriptions and refresh their prices

        Returns:
            CatalogSyncResultDTO, or None without a catalog or when it is unreachable
        """
        if self.catalog is None:
            logger.info("No cloud catalog configured, skipping catalog sync")
            return None

        async with self.async_session_factory() as session:
            use_case = SyncCloudCatalog(
                uow=SqlAlchemyUnitOfWork(session),
                subscription_repo=SqlAlchemySubscriptionRepository(session),
                catalog=self.catalog,
                cloud_product_number=int(ApplicationConfig.CLOUD_SUBSCRIPTION_PRODUCT_NUMBER),
                cloud_group_id=ApplicationConfig.CLOUD_SUBSCRIPTION_GROUP_ID,
            )
            result = await use_case.execute()

        if result.is_err():
            logger.error(f"Catalog sync failed: {result.error.message}: {result.error.reason}")
            return None
        for line in result.value.errors:
            logger.warning(f"Catalog sync: {line}")
        return result.value

    async def reconcile_customer(
        self, customer_id: int, today: date
    ) -> Optional[tuple[CustomerReconciliationLog, int]]:
        """
        Reconcile one customer against every source and send its emails

        Returns:
            (log, emails sent), or None when the customer no longer exists
        """
        async with self.async_session_factory() as session:
            uow = SqlAlchemyUnitOfWork(session)
            customer_repo = SqlAlchemyCustomerRepository(session)

            use_case = ReconcileCustomerUsage(
                uow=uow,
                customer_repo=customer_repo,
                subscription_repo=SqlAlchemySubscriptionRepository(session),
                instance_repo=SqlAlchemySubscriptionInstanceRepository(session),
                post_repo=SqlAlchemySubscriptionInstancePostRepository(session),
                log_repo=SqlAlchemyCustomerLogRepository(session),
                catalog=self.catalog,
                cloud_product_number=int(ApplicationConfig.CLOUD_SUBSCRIPTION_PRODUCT_NUMBER),
                cloud_group_id=ApplicationConfig.CLOUD_SUBSCRIPTION_GROUP_ID,
            )

            log: Optional[CustomerReconciliationLog] = None
            for source in self.sources:
                # Reload after every source; a rollback expires loaded rows
                customer = await customer_repo.get_by_id(customer_id)
                if customer is None:
                    return None
                if log is None:
                    log = CustomerReconciliationLog(
                        customer_id=customer.id, customer_name=customer.name
                    )

                result = await use_case.execute(customer, source, log=log, today=today)
                if result.is_err():
                    await uow.rollback()
                    logger.error(
                        f"Customer {customer_id}, {source.name}: "
                        f"{result.error.message}: {result.error.reason}"
                    )
                    log.add_error(
                        f"Reconciliation against {source.name} failed for customer "
                        f"{log.customer_name}: {result.error.reason}"
                    )

            customer = await customer_repo.get_by_id(customer_id)
            if customer is None:
                return None
            if log is None:
                log = CustomerReconciliationLog(customer_id=customer.id, customer_name=customer.name)

            salesperson = await customer_repo.get_salesperson(customer)
            salesperson_email = salesperson.email if salesperson else None

        return log, await self._notify(log, salesperson_email)

    async def _notify(
        self, log: CustomerReconciliationLog, salesperson_email: Optional[str]
    ) -> int:
        notifier = NotifyReconciliationOutcome(
            email_service=self.email_service,
            operations_email=ApplicationConfig.OPERATIONS_ALERT_EMAIL,
        )
        notified = await notifier.execute(log, salesperson_email)
        return notified.value.emails_sent if notified.is_ok() else 0

    async def _report_failure(self, customer_id: int, error: Exception) -> int:
        """Send operations the error of a customer whose reconciliation crashed"""
        log = CustomerReconciliationLog(
            customer_id=customer_id, customer_name=f"Customer {customer_id}"
        )
        log.add_error(f"Reconciliation of customer {customer_id} failed: {error}")
        return await self._notify(log, None)

    async def run_once(self, today: Optional[date] = None) -> ReconciliationRunResultDTO:
        """
        Run reconciliation once over all customers

        Args:
            today: Effective day of ledger changes (default: today)

        Returns:
            ReconciliationRunResultDTO with run totals
        """
        start_time = time.time()
        run_time = datetime.utcnow()
        today = today or date.today()

        if not ApplicationConfig.RECONCILIATION_ENABLED:
            logger.info("Usage reconciliation is disabled, skipping")
            return ReconciliationRunResultDTO(
                customers_processed=0,
                run_time=run_time,
                execution_time_ms=0,
            )

        if ApplicationConfig.CATALOG_SYNC_ENABLED and self.catalog is not None:
            await self.sync_catalog()

        customer_ids = await self._list_customer_ids()
        logger.info(f"Reconciling {len(customer_ids)} customers for {today.isoformat()}")

        processed = failed = changes = errors = emails = 0

        for customer_id in customer_ids:
            try:
                outcome = await self.reconcile_customer(customer_id, today)
            except Exception as e:
                failed += 1
                errors += 1
                logger.error(f"Reconciliation of customer {customer_id} failed: {e}")
                emails += await self._report_failure(customer_id, e)
                continue

            if outcome is None:
                continue

            log, emails_sent = outcome
            processed += 1
            changes += len(log.changes)
            errors += len(log.errors)
            emails += emails_sent

        execution_time_ms = int((time.time() - start_time) * 1000)

        logger.info(
            f"Reconciliation complete: {processed} customers processed, {failed} failed, "
            f"{changes} changes, {errors} errors, {emails} emails in {execution_time_ms}ms"
        )

        return ReconciliationRunResultDTO(
            customers_processed=processed,
            customers_failed=failed,
            changes_made=changes,
            errors_found=errors,
            notifications_sent=emails,
            run_time=run_time,
            execution_time_ms=execution_time_ms,
        )

    async def run_forever(self, interval_seconds: int = 86400):
        """
        Run reconciliation continuously at specified interval

        Args:
            interval_seconds: Seconds between runs (default: 24 hours)
        """
        logger.info(
            f"Starting continuous usage reconciliation with {interval_seconds}s interval"
        )

        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Reconciliation cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Cleanup resources"""
        await self.engine.dispose()
        logger.info("UsageReconcilerWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        # Run once
        python -m src.worker.usage_reconciler --once

        # Run continuously (default: RECONCILIATION_INTERVAL_SECONDS)
        python -m src.worker.usage_reconciler

        # Run continuously with custom interval (in seconds)
        python -m src.worker.usage_reconciler --interval 3600

        # Synchronize the cloud catalog only
        python -m src.worker.usage_reconciler --sync-catalog
    """
    import argparse

    logging.basicConfig(
        level=getattr(logging, str(ApplicationConfig.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Usage Reconciliation Worker")
    parser.add_argument(
        "--once", action="store_true", help="Run once and exit"
    )
    parser.add_argument(
        "--sync-catalog", action="store_true",
        help="Synchronize the cloud catalog with the provider and exit"
    )
    parser.add_argument(
        "--interval", type=int, default=int(ApplicationConfig.RECONCILIATION_INTERVAL_SECONDS),
        help="Interval between runs in seconds (default: 86400 = 24 hours)"
    )
    args = parser.parse_args()

    worker = UsageReconcilerWorker()

    if ApplicationConfig.AUTO_CREATE_TABLES:
        from src.depends import create_tables

        await create_tables(worker.engine)

    try:
        if args.sync_catalog:
            synced = await worker.sync_catalog()
            if synced is not None:
                print("Catalog sync complete:")
                print(f"  Products seen: {synced.products_seen}")
                print(f"  Subscriptions created: {synced.subscriptions_created}")
                print(f"  Prices updated: {synced.prices_updated}")
                print(f"  Errors: {len(synced.errors)}")
        elif args.once:
            result = await worker.run_once()
            print("Reconciliation complete:")
            print(f"  Customers processed: {result.customers_processed}")
            print(f"  Customers failed: {result.customers_failed}")
            print(f"  Changes made: {result.changes_made}")
            print(f"  Errors found: {result.errors_found}")
            print(f"  Emails sent: {result.notifications_sent}")
            print(f"  Execution time: {result.execution_time_ms}ms")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
