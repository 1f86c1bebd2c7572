"""Subscription Instance Domain Entity

A catalog subscription assigned to one customer.
"""

from datetime import datetime
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import BigInteger, ForeignKey, String, Text
from src.domain.base import BaseModel, IdType


class SubscriptionInstance(BaseModel, table=True):
    """
    Subscription Instance - Subscription billed to a customer

    Domain Rules:
    - Usually one instance per (customer, subscription), multiples allowed
    - Quantity and price history lives in SubscriptionInstancePost rows
    - last_invoiced gates how soon the next invoice may be drafted
    """

    __tablename__ = "subscription_instances"
    __table_args__ = (
        Index('ix_subscription_instances_customer_id', 'customer_id'),
        Index('ix_subscription_instances_customer_sku', 'customer_id', 'sku'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique instance identifier (auto-increment)"
    )

    subscription_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("subscriptions.id"), nullable=False),
        description="Foreign key to Subscription"
    )

    customer_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False),
        description="Foreign key to Customer"
    )

    name: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Display name"
    )

    description: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
    )

    sku: Optional[str] = Field(
        default=None,
        sa_column=Column(String(100), nullable=True),
        description="External correlation key at the cloud provider"
    )

    last_invoiced: Optional[datetime] = Field(
        default=None,
        description="When the instance was last included in an invoice"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Instance creation timestamp"
    )
