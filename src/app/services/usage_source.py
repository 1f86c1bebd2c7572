"""Usage Source Interface

Upstream systems that report the current billable quantity of a customer's
resources. Every source is normalized into UsageQuantity entries before the
reconciliation use case sees it.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field
from src.domain.customer import Customer


class SourceKind(str, Enum):
    VIRTUALIZATION = "virtualization"
    CLOUD_SUBSCRIPTION = "cloud-subscription"


class ResourceStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class UsageChange(BaseModel):
    """One entry of the upstream change history of a resource"""

    changed_at: datetime
    changed_by: Optional[str] = None


class UsageQuantity(BaseModel):
    """Current quantity of one billable resource of one customer"""

    resource_key: str = Field(..., description="Billing engine value or provider SKU")
    quantity: Decimal = Field(..., description="Currently observed quantity")
    status: Optional[ResourceStatus] = Field(
        default=None,
        description="Active/inactive when the source models it, None otherwise"
    )
    history: List[UsageChange] = Field(default_factory=list)
    name: Optional[str] = Field(default=None, description="Display name at the source")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def last_changed(self) -> Optional[UsageChange]:
        """
        Most recent change at or after updated_at

        Returns the latest history entry not older than updated_at, or a
        changer-less entry at updated_at when the history has nothing newer.
        """
        latest: Optional[UsageChange] = (
            UsageChange(changed_at=self.updated_at) if self.updated_at else None
        )
        for change in self.history:
            if latest is None or change.changed_at > latest.changed_at:
                latest = change
        return latest


class UsageSource(ABC):
    """
    Abstract usage source

    Implementations raise SourceUnavailable (or SchemaMismatch) for a
    customer whose quantities could not be fetched; they never abort a
    whole reconciliation run.
    """

    name: str = "usage source"
    kind: SourceKind

    @abstractmethod
    def external_id_for(self, customer: Customer) -> Optional[str]:
        """
        Correlation id of the customer at this source

        Returns:
            External id, None if the customer is not tracked by the source
        """
        pass

    @abstractmethod
    async def list_quantities(self, customer_external_id: str) -> List[UsageQuantity]:
        """
        Fetch the current quantities of one customer

        Raises:
            SourceUnavailable: the source could not be read for this customer
        """
        pass


class CloudProduct(BaseModel):
    """Catalog entry at the cloud subscription provider"""

    sku: str
    sku_name: str
    description: Optional[str] = None
    qty_min: Decimal = Decimal("1")
    billing_type: Optional[str] = None


class CloudCatalog(ABC):
    """Product catalog of the cloud subscription provider"""

    @abstractmethod
    async def list_products(self) -> List[CloudProduct]:
        """
        Every product the provider offers, add-ons included, one per SKU

        Raises:
            SourceUnavailable: the catalog could not be fetched
        """
        pass

    @abstractmethod
    async def get_product(self, sku: str) -> Optional[CloudProduct]:
        pass

    @abstractmethod
    async def get_unit_price(self, product: CloudProduct) -> Decimal:
        """
        Unit list price of a product (msrp divided by minimum quantity)

        Raises:
            SourceUnavailable: pricing could not be fetched
        """
        pass
