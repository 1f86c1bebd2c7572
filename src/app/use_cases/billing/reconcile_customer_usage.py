"""ReconcileCustomerUsage Use Case

Compares the quantities a usage source reports for one customer against the
billing ledger and applies the minimal corrective ledger mutations.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Awaitable, Callable, Optional, TypeVar
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.usage_source import (
    CloudCatalog,
    ResourceStatus,
    SourceKind,
    UsageQuantity,
    UsageSource,
)
from src.app.repositories.customer_repository import CustomerRepository
from src.app.repositories.customer_log_repository import CustomerLogRepository
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.app.repositories.subscription_instance_repository import SubscriptionInstanceRepository
from src.app.repositories.subscription_instance_post_repository import (
    SubscriptionInstancePostRepository,
)
from src.domain.customer import Customer
from src.domain.customer_log import CustomerLog, CustomerLogType
from src.domain.errors import (
    BillingError,
    ConfigurationError,
    LedgerStateError,
    LedgerWriteConflict,
    MappingNotFound,
    SourceUnavailable,
)
from src.domain.subscription import BillingEngine, Subscription
from src.domain.subscription_instance import SubscriptionInstance
from .dtos import CustomerReconciliationLog
from .sync_cloud_catalog import catalog_subscription_fields

logger = logging.getLogger(__name__)

T = TypeVar("T")

def format_units(value: Decimal) -> str:
    """Render 8.000000 as 8 and 2.500000 as 2.5"""
    return format(Decimal(value).normalize(), "f")


class ReconcileCustomerUsage:
    """
    Use Case: Reconcile one customer's usage from one source against the ledger

    Business Rules:
    1. Resources are reconciled independently; a failure on one resource
       becomes an error line and the others proceed
    2. Unchanged quantities never touch the ledger (re-running is a no-op)
    3. A changed quantity supersedes the current post: it is closed
       yesterday and a new post starts today at the previous unit price
    4. An inactive cloud resource closes its open post on the day it was
       deactivated, attributed to the employee who deactivated it
    5. Missing cloud instances are provisioned (catalog subscription first
       when needed); missing virtualization instances are only reported
    6. Every ledger write is committed on its own and retried once on
       LedgerWriteConflict

    Flow:
    1. Fetch quantities from the source (SourceUnavailable -> error line)
    2. For each quantity: correlate instance(s), decide, write, log
    3. Return the customer's log
    """

    def __init__(
        self,
        uow: UnitOfWork,
        customer_repo: CustomerRepository,
        subscription_repo: SubscriptionRepository,
        instance_repo: SubscriptionInstanceRepository,
        post_repo: SubscriptionInstancePostRepository,
        log_repo: CustomerLogRepository,
        catalog: Optional[CloudCatalog] = None,
        cloud_product_number: int = 40011000,
        cloud_group_id: Optional[int] = None,
    ):
        self.uow = uow
        self.customer_repo = customer_repo
        self.subscription_repo = subscription_repo
        self.instance_repo = instance_repo
        self.post_repo = post_repo
        self.log_repo = log_repo
        self.catalog = catalog
        self.cloud_product_number = cloud_product_number
        self.cloud_group_id = cloud_group_id

    async def execute(
        self,
        customer: Customer,
        source: UsageSource,
        log: Optional[CustomerReconciliationLog] = None,
        today: Optional[date] = None,
    ) -> Result[CustomerReconciliationLog]:
        """
        Execute reconciliation of one customer against one source

        Args:
            customer: Customer to reconcile
            source: Usage source to reconcile against
            log: Log to extend (a new one is created when omitted)
            today: Effective day of ledger changes (default: today)

        Returns:
            Result[CustomerReconciliationLog]: The extended log
        """
        today = today or date.today()
        customer_id, customer_name = customer.id, customer.name
        if log is None:
            log = CustomerReconciliationLog(customer_id=customer_id, customer_name=customer_name)

        try:
            external_id = source.external_id_for(customer)
            if not external_id:
                return Return.ok(log)

            try:
                quantities = await source.list_quantities(external_id)
            except SourceUnavailable as e:
                logger.warning(
                    f"Skipping {source.name} for customer {customer_id}: {e}"
                )
                log.add_error(
                    f"Could not fetch usage from {source.name} for customer "
                    f"{customer_name} ({external_id}): {e}"
                )
                return Return.ok(log)

            logger.info(
                f"Reconciling {len(quantities)} {source.name} resources for customer {customer_id}"
            )

            for usage in quantities:
                try:
                    if source.kind == SourceKind.VIRTUALIZATION:
                        await self._reconcile_virtualization(
                            customer_id, customer_name, source, usage, log, today
                        )
                    else:
                        await self._reconcile_cloud(
                            customer_id, customer_name, source, usage, log, today
                        )
                except BillingError as e:
                    await self.uow.rollback()
                    logger.warning(
                        f"Customer {customer_id}, {source.name} resource "
                        f"{usage.resource_key}: {e.code}: {e}"
                    )
                    log.add_error(str(e))
                except Exception as e:
                    await self.uow.rollback()
                    logger.error(
                        f"Unexpected error reconciling {usage.resource_key} for "
                        f"customer {customer_id}: {e}"
                    )
                    log.add_error(
                        f"Unexpected error reconciling {source.name} resource "
                        f"{usage.resource_key}: {e}"
                    )

            return Return.ok(log)

        except Exception as e:
            logger.error(f"Reconciliation of customer {customer_id} failed: {e}")
            return Return.err(
                Error(
                    code="RECONCILIATION_FAILED",
                    message=f"Failed to reconcile customer {customer_id}",
                    reason=str(e),
                )
            )

    async def _write(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run a ledger operation and commit it, retrying once on conflict"""
        for attempt in (1, 2):
            try:
                result = await operation()
                await self.uow.commit()
                return result
            except LedgerWriteConflict as e:
                await self.uow.rollback()
                if attempt == 2:
                    raise
                logger.warning(f"Ledger write conflict, retrying once: {e}")

    async def _reconcile_virtualization(
        self,
        customer_id: int,
        customer_name: str,
        source: UsageSource,
        usage: UsageQuantity,
        log: CustomerReconciliationLog,
        today: date,
    ) -> None:
        try:
            engine = BillingEngine(usage.resource_key)
        except ValueError:
            raise MappingNotFound(
                f"{source.name} reports unknown resource {usage.resource_key!r} "
                f"for customer {customer_name}"
            )

        candidates = await self.instance_repo.list_by_engine(customer_id, engine)
        live = []
        for instance in candidates:
            latest = await self.post_repo.latest_post(instance.id)
            if latest is None or (latest.is_open and not latest.has_ended(today)):
                live.append((instance.id, instance.name, instance.subscription_id))

        if not live:
            if usage.quantity > 0:
                raise MappingNotFound(
                    f"{source.name} shows active usage of {engine.value} "
                    f"({format_units(usage.quantity)}) for customer {customer_name}, "
                    f"but no matching subscription instance exists"
                )
            return

        if len(live) > 1:
            raise MappingNotFound(
                f"{source.name} shows {format_units(usage.quantity)} of {engine.value} "
                f"for customer {customer_name}, but {len(live)} subscription instances "
                f"track it ({', '.join(str(instance_id) for instance_id, _, _ in live)}); "
                f"the quantity was not applied"
            )

        instance_id, instance_name, subscription_id = live[0]
        await self._apply_quantity(
            instance_id, instance_name, subscription_id, source, usage, log, today
        )

    async def _reconcile_cloud(
        self,
        customer_id: int,
        customer_name: str,
        source: UsageSource,
        usage: UsageQuantity,
        log: CustomerReconciliationLog,
        today: date,
    ) -> None:
        instance = await self.instance_repo.find_by_sku(customer_id, usage.resource_key)

        if instance is None:
            if usage.status == ResourceStatus.ACTIVE:
                await self._provision(customer_id, customer_name, source, usage, log, today)
                return
            status = usage.status.value if usage.status else "unknown"
            raise MappingNotFound(
                f"{source.name} reports SKU {usage.resource_key} as {status} "
                f"({format_units(usage.quantity)} units) for customer {customer_name}, "
                f"but no matching subscription instance exists"
            )

        if usage.status == ResourceStatus.INACTIVE:
            await self._close_inactive(customer_id, instance, source, usage, log, today)
            return

        await self._apply_quantity(
            instance.id, instance.name, instance.subscription_id, source, usage, log, today
        )

    async def _apply_quantity(
        self,
        instance_id: int,
        instance_name: str,
        subscription_id: int,
        source: UsageSource,
        usage: UsageQuantity,
        log: CustomerReconciliationLog,
        today: date,
    ) -> None:
        latest = await self.post_repo.latest_post(instance_id)

        if latest is not None and (not latest.is_open or latest.has_ended(today)):
            raise LedgerStateError(
                f'Subscription instance {instance_id}: "{instance_name}" has ended in the '
                f"ledger, but {source.name} shows {format_units(usage.quantity)} units in use."
            )

        if latest is not None and latest.units == usage.quantity:
            return
        if latest is None and usage.quantity == 0:
            return

        if latest is not None:
            previous_units, unit_price = latest.units, latest.unit_price
        else:
            subscription = await self.subscription_repo.get_by_id(subscription_id)
            previous_units = Decimal("0")
            unit_price = subscription.price if subscription else Decimal("0")

        await self._write(
            lambda: self.post_repo.supersede(instance_id, usage.quantity, unit_price, today)
        )

        log.add_change(
            f'Subscription instance {instance_id}: "{instance_name}" automatically '
            f"synchronized with {source.name}. {source.name} shows: "
            f"{format_units(usage.quantity)} units. Subscription showed: "
            f"{format_units(previous_units)} units."
        )
        logger.info(
            f"Instance {instance_id}: {format_units(previous_units)} -> "
            f"{format_units(usage.quantity)} units"
        )

    async def _close_inactive(
        self,
        customer_id: int,
        instance: SubscriptionInstance,
        source: UsageSource,
        usage: UsageQuantity,
        log: CustomerReconciliationLog,
        today: date,
    ) -> None:
        instance_id, instance_name = instance.id, instance.name
        latest = await self.post_repo.latest_post(instance_id)
        if latest is None or not latest.is_open:
            return

        change = usage.last_changed
        changed_at = change.changed_at if change else None
        effective_date = changed_at.date() if changed_at else today

        employee = None
        if change is not None and change.changed_by:
            employee = await self.customer_repo.get_employee_by_name(change.changed_by)
        employee_id = employee.id if employee else None
        employee_name = employee.name if employee else None

        when = changed_at.strftime("%Y-%m-%d %H:%M:%S") if changed_at else effective_date.isoformat()
        if employee_id is not None:
            message = (
                f"Subscription {instance_name} with id: {instance_id} was set as inactive "
                f"by {employee_name} on {when} and has been closed."
            )
        else:
            message = (
                f"Subscription {instance_name} with id: {instance_id} was set as inactive "
                f"in {source.name} on {when} and has been closed."
            )

        async def operation():
            post = await self.post_repo.close_as_inactive(instance_id, effective_date)
            if post is None:
                return None
            await self.log_repo.create(
                CustomerLog(
                    customer_id=customer_id,
                    employee_id=employee_id,
                    log_type=CustomerLogType.SUBSCRIPTION_CHANGE,
                    message=message,
                )
            )
            return post

        closed = await self._write(operation)
        if closed is None:
            return

        attribution = f" by {employee_name}" if employee_name else " (system)"
        log.add_change(
            f'Subscription instance {instance_id}: "{instance_name}" automatically closed '
            f"since it is inactive in {source.name}{attribution}, "
            f"effective {effective_date.isoformat()}."
        )

    async def _provision(
        self,
        customer_id: int,
        customer_name: str,
        source: UsageSource,
        usage: UsageQuantity,
        log: CustomerReconciliationLog,
        today: date,
    ) -> None:
        sku = usage.resource_key
        subscription = await self.subscription_repo.get_by_sku(sku)

        if subscription is not None:
            subscription_id = subscription.id
            subscription_name = subscription.name
            unit_price = subscription.price
            new_subscription = None
        else:
            new_subscription = await self._catalog_entry(sku, customer_name, source)
            subscription_id = None
            subscription_name = new_subscription["name"]
            unit_price = new_subscription["price"]

        instance_name = usage.name or subscription_name
        start_date = usage.created_at.date() if usage.created_at else today

        async def operation():
            sub_id = subscription_id
            if sub_id is None:
                created = await self.subscription_repo.create(Subscription(**new_subscription))
                sub_id = created.id
            instance = await self.instance_repo.create(
                SubscriptionInstance(
                    subscription_id=sub_id,
                    customer_id=customer_id,
                    name=instance_name,
                    sku=sku,
                )
            )
            instance_id = instance.id
            await self.post_repo.open_post(instance_id, usage.quantity, unit_price, start_date)
            return instance_id

        instance_id = await self._write(operation)

        if new_subscription is not None:
            log.add_change(
                f'Catalog subscription "{subscription_name}" created for SKU {sku} '
                f"at {format_units(unit_price)} per unit."
            )
        log.add_change(
            f'Subscription instance {instance_id}: "{instance_name}" created from '
            f"{source.name} with {format_units(usage.quantity)} units starting "
            f"{start_date.isoformat()}."
        )

    async def _catalog_entry(self, sku: str, customer_name: str, source: UsageSource) -> dict:
        """Build the catalog subscription for an unknown SKU from the provider's catalog"""
        if self.catalog is None:
            raise MappingNotFound(
                f"{source.name} shows SKU {sku} for customer {customer_name}, "
                f"but it is not in the subscription catalog"
            )

        product = await self.catalog.get_product(sku)
        if product is None:
            raise MappingNotFound(
                f"{source.name} shows SKU {sku} for customer {customer_name}, "
                f"but the provider has no product with that SKU"
            )

        unit_price = await self.catalog.get_unit_price(product)
        if unit_price <= 0:
            raise ConfigurationError(
                f"SKU {sku} has no list price at the provider; "
                f"subscription for customer {customer_name} was not created"
            )

        return catalog_subscription_fields(
            product, unit_price, self.cloud_product_number, self.cloud_group_id
        )
