"""Customer Domain Entity

Billing party. Carries the correlation ids used by each usage source.
"""

from datetime import datetime
from typing import Optional
from sqlmodel import Field, Column
from sqlalchemy import BigInteger, ForeignKey, String
from src.domain.base import BaseModel, IdType


class Customer(BaseModel, table=True):
    """
    Customer - Party that subscription instances are billed to

    Domain Rules:
    - virtualization_id correlates the customer with virtualization snapshots
    - cloud_tenant_id correlates the customer with the cloud provider
    - employee_id is the salesperson who receives change notifications
    """

    __tablename__ = "customers"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Customer number"
    )

    name: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Customer display name"
    )

    virtualization_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True, index=True),
        description="Id carried in the virtualization feed cloud label"
    )

    cloud_tenant_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True, index=True),
        description="Tenant id at the cloud subscription provider"
    )

    employee_id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigInteger, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True),
        description="Salesperson responsible for the customer"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Customer creation timestamp"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "id": 1042,
                "name": "Nordic Freight A/S",
                "virtualization_id": "1042",
                "cloud_tenant_id": "034d9169-3d19-4ae4-bb45-29f2cbb738fa",
                "employee_id": 7,
                "created_at": "2024-01-01T00:00:00Z"
            }
        }
