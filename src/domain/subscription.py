"""Subscription Domain Entity

Catalog-level billable items and the groups they are presented in.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import BigInteger, Boolean, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy import Enum as SAEnum
from src.domain.base import BaseModel, IdType


class BillingEngine(str, Enum):
    """Resource kind a subscription tracks"""
    MANUAL = "manual"
    VM_COUNT = "vm-count"
    CPU_COUNT = "cpu-count"
    MEMORY_GB = "memory-gb"
    STORAGE_GB = "storage-gb"
    CLOUD_SUBSCRIPTION = "cloud-subscription"


VIRTUALIZATION_ENGINES = (
    BillingEngine.VM_COUNT,
    BillingEngine.CPU_COUNT,
    BillingEngine.MEMORY_GB,
    BillingEngine.STORAGE_GB,
)


class PaymentFrequency(str, Enum):
    """How often a subscription is invoiced"""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    HALF_YEARLY = "half-yearly"
    YEARLY = "yearly"


def enum_column(enum_cls, nullable: bool = False) -> Column:
    """Store enum values (not member names) in a portable VARCHAR column"""
    return Column(
        SAEnum(
            enum_cls,
            values_callable=lambda members: [m.value for m in members],
            native_enum=False,
            validate_strings=True,
            length=32,
        ),
        nullable=nullable,
    )


class SubscriptionGroup(BaseModel, table=True):
    """Presentation group for subscriptions on invoices"""

    __tablename__ = "subscription_groups"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
    )

    name: str = Field(sa_column=Column(String(100), nullable=False))

    sort_order: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, default=0),
    )


class Subscription(BaseModel, table=True):
    """
    Subscription - Catalog-level billable item

    Domain Rules:
    - billing_engine decides which usage source reconciles its instances
    - payment_frequency decides the invoicing period of its instances
    - sku correlates cloud provider line items with the catalog
    - price is the list unit price used when an instance is provisioned
    - Immutable once in active use, except administrative edits
    """

    __tablename__ = "subscriptions"
    __table_args__ = (
        Index('ix_subscriptions_sku', 'sku'),
        Index('ix_subscriptions_group_id', 'group_id'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique subscription identifier (auto-increment)"
    )

    product: int = Field(
        sa_column=Column(BigInteger, nullable=False),
        description="Product number in the accounting system"
    )

    name: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Name of the subscription"
    )

    description: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
    )

    billing_engine: BillingEngine = Field(
        sa_column=enum_column(BillingEngine),
        description="Resource kind tracked (manual = not reconciled)"
    )

    # Unknown values still load; compute_period rejects them per instance
    payment_frequency: str = Field(
        sa_column=Column(String(32), nullable=False),
        description="Invoicing frequency (monthly, quarterly, half-yearly, yearly)"
    )

    group_id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigInteger, ForeignKey("subscription_groups.id", ondelete="SET NULL"), nullable=True),
        description="Presentation group"
    )

    sku: Optional[str] = Field(
        default=None,
        sa_column=Column(String(100), nullable=True),
        description="Cloud provider SKU (None for non-cloud subscriptions)"
    )

    price: Decimal = Field(
        default=Decimal("0"),
        sa_column=Column(Numeric(18, 6), nullable=False, default=0),
        description="List unit price (precision: 18,6)"
    )

    active: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False, default=True),
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Subscription creation timestamp"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": 12,
                "product": 40011000,
                "name": "Microsoft 365 Business Premium - Monthly",
                "billing_engine": "cloud-subscription",
                "payment_frequency": "monthly",
                "group_id": 13,
                "sku": "CFQ7TTC0LCHC:0002",
                "price": "164.900000",
                "active": True,
                "created_at": "2024-01-01T00:00:00Z"
            }
        }
