"""Subscription Instance Post Domain Entity

Append-only, effective-dated ledger of quantity and unit price per
subscription instance.
"""

from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import BigInteger, Date, ForeignKey, Numeric, text
from src.domain.base import BaseModel, IdType
from src.domain.subscription import enum_column


class PostStatus(str, Enum):
    """Lifecycle of a ledger post"""
    OPEN = "open"              # Current post of the instance
    SUPERSEDED = "superseded"  # Closed because a newer post replaced it
    INACTIVE = "inactive"      # Closed because the source reported the resource inactive


class SubscriptionInstancePost(BaseModel, table=True):
    """
    Subscription Instance Post - Who was billed what, for which date range

    Domain Rules:
    - [start_date, end_date] is inclusive on both ends, end_date None = ongoing
    - At most one OPEN post per instance (partial unique index)
    - Posts are never edited after insert except to close them
      (end_date + status) and to record how far they were invoiced
    - open -> superseded and open -> inactive are the only transitions
    """

    __tablename__ = "subscription_instance_posts"
    __table_args__ = (
        Index('ix_subscription_instance_posts_instance_id', 'instance_id'),
        Index(
            'uq_subscription_instance_posts_open',
            'instance_id',
            unique=True,
            sqlite_where=text("status = 'open'"),
            postgresql_where=text("status = 'open'"),
        ),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique post identifier (auto-increment)"
    )

    instance_id: int = Field(
        sa_column=Column(
            BigInteger,
            ForeignKey("subscription_instances.id", ondelete="CASCADE"),
            nullable=False,
        ),
        description="Foreign key to SubscriptionInstance"
    )

    units: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
        description="Billed quantity (precision: 18,6)"
    )

    unit_price: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
        description="Price per unit (precision: 18,6)"
    )

    start_date: date = Field(
        sa_column=Column(Date, nullable=False),
        description="First billable day"
    )

    end_date: Optional[date] = Field(
        default=None,
        sa_column=Column(Date, nullable=True),
        description="Last billable day (None = ongoing)"
    )

    status: PostStatus = Field(
        default=PostStatus.OPEN,
        sa_column=enum_column(PostStatus),
        description="Post lifecycle status (open, superseded, inactive)"
    )

    invoiced_through: Optional[date] = Field(
        default=None,
        sa_column=Column(Date, nullable=True),
        description="Last day of this post already covered by an invoice"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Post creation timestamp (immutable)"
    )

    @property
    def is_open(self) -> bool:
        return self.status == PostStatus.OPEN

    def has_ended(self, today: date) -> bool:
        """True when the post's range finished before today"""
        return self.end_date is not None and self.end_date < today

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": 981,
                "instance_id": 310,
                "units": "8.000000",
                "unit_price": "45.000000",
                "start_date": "2024-03-14",
                "end_date": None,
                "status": "open",
                "invoiced_through": None,
                "created_at": "2024-03-14T02:00:00Z"
            }
        }
