"""Customer Log Domain Entity

Activity log shown on the customer. Reconciliation writes an entry whenever
it closes a subscription instance because the provider marked it inactive.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import BigInteger, ForeignKey, Text
from src.domain.base import BaseModel, IdType
from src.domain.subscription import enum_column


class CustomerLogType(str, Enum):
    NOTE = "note"
    SUBSCRIPTION_CHANGE = "subscription_change"


class CustomerLog(BaseModel, table=True):
    """
    Customer Log - Attributed activity entry

    employee_id None means the entry is attributed to the system.
    """

    __tablename__ = "customer_logs"
    __table_args__ = (
        Index('ix_customer_logs_customer_created', 'customer_id', 'created_at'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
    )

    customer_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False),
    )

    employee_id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigInteger, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True),
    )

    log_type: CustomerLogType = Field(
        default=CustomerLogType.NOTE,
        sa_column=enum_column(CustomerLogType),
    )

    message: str = Field(sa_column=Column(Text, nullable=False))

    created_at: datetime = Field(default_factory=datetime.utcnow)
