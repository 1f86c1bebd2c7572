"""Virtualization Usage Source

Reads the virtualization metrics exporter's snapshot table and reports VM,
CPU, memory and storage quantities per customer from the most recent
snapshot date.
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select
from src.app.services.usage_source import SourceKind, UsageQuantity, UsageSource
from src.domain.customer import Customer
from src.domain.errors import SourceUnavailable
from src.domain.subscription import BillingEngine
from src.domain.vmm_snapshot import VmmSnapshot, parse_cloud_label

logger = logging.getLogger(__name__)

SNAPSHOT_COLUMNS = {
    BillingEngine.VM_COUNT: "vm_count",
    BillingEngine.CPU_COUNT: "cpu_count",
    BillingEngine.MEMORY_GB: "memory_gb",
    BillingEngine.STORAGE_GB: "storage_gb",
}


class VirtualizationUsageSource(UsageSource):
    """
    Usage source backed by vmm_snapshots

    Resource keys are the virtualization billing engines. Status is not
    modeled, so every quantity is reported with status None.
    """

    name = "virtualization"
    kind = SourceKind.VIRTUALIZATION

    def __init__(self, session_factory):
        """
        Args:
            session_factory: Callable returning an AsyncSession context manager
        """
        self.session_factory = session_factory

    def external_id_for(self, customer: Customer) -> Optional[str]:
        return customer.virtualization_id

    async def list_quantities(self, customer_external_id: str) -> List[UsageQuantity]:
        try:
            async with self.session_factory() as session:
                latest_date = (
                    await session.execute(select(func.max(VmmSnapshot.snapshot_date)))
                ).scalar_one_or_none()
                if latest_date is None:
                    return []

                statement = select(VmmSnapshot).where(
                    VmmSnapshot.snapshot_date == latest_date,
                    VmmSnapshot.cloud.like(f"%({customer_external_id})%"),
                )
                rows = list((await session.execute(statement)).scalars().all())
        except SQLAlchemyError as e:
            raise SourceUnavailable(
                f"Virtualization snapshots unavailable for customer {customer_external_id}: {e}"
            ) from e

        rows = [row for row in rows if parse_cloud_label(row.cloud) == customer_external_id]
        if not rows:
            logger.info(
                f"Customer {customer_external_id} not present in virtualization snapshot "
                f"of {latest_date.isoformat()}"
            )
            return []

        totals: Dict[BillingEngine, Decimal] = {engine: Decimal("0") for engine in SNAPSHOT_COLUMNS}
        for row in rows:
            for engine, column in SNAPSHOT_COLUMNS.items():
                totals[engine] += Decimal(getattr(row, column) or 0)

        return [
            UsageQuantity(resource_key=engine.value, quantity=quantity, name=rows[0].cloud)
            for engine, quantity in totals.items()
        ]
