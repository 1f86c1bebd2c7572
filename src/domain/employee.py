"""Employee Domain Entity

Employees own customers as salespeople and are named in upstream change
history when they edit a cloud subscription.
"""

from typing import Optional
from sqlmodel import Field, Column
from sqlalchemy import String
from src.domain.base import BaseModel, IdType


class Employee(BaseModel, table=True):
    __tablename__ = "employees"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
    )

    name: str = Field(
        sa_column=Column(String(255), nullable=False, index=True),
        description="Full name as it appears in upstream change history"
    )

    email: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="Address used for change notifications"
    )

    external_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True, unique=True),
        description="Directory identifier of the employee"
    )
