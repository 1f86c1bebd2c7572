"""Virtualization Snapshot Domain Entity

Rows written by the virtualization metrics exporter: one row per customer
cloud per snapshot date.
"""

import re
from datetime import date
from decimal import Decimal
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import Date, Numeric, String
from src.domain.base import BaseModel, IdType

_CLOUD_ID_PATTERN = re.compile(r"\(([^()]*)\)\s*$")


def parse_cloud_label(cloud: str) -> Optional[str]:
    """Extract the customer id from a cloud label like 'Nordic Freight (1042)'"""
    match = _CLOUD_ID_PATTERN.search(cloud or "")
    if not match or not match.group(1).strip():
        return None
    return match.group(1).strip()


class VmmSnapshot(BaseModel, table=True):
    __tablename__ = "vmm_snapshots"
    __table_args__ = (
        Index('ix_vmm_snapshots_snapshot_date', 'snapshot_date'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
    )

    cloud: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Cloud label, '<customer name> (<customer id>)'"
    )

    snapshot_date: date = Field(sa_column=Column(Date, nullable=False))

    vm_count: Decimal = Field(default=Decimal("0"), sa_column=Column(Numeric(18, 6), nullable=False, default=0))
    cpu_count: Decimal = Field(default=Decimal("0"), sa_column=Column(Numeric(18, 6), nullable=False, default=0))
    memory_gb: Decimal = Field(default=Decimal("0"), sa_column=Column(Numeric(18, 6), nullable=False, default=0))
    storage_gb: Decimal = Field(default=Decimal("0"), sa_column=Column(Numeric(18, 6), nullable=False, default=0))
