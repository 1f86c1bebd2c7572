from .unit_of_work import UnitOfWork
from .email_service import EmailService
from .usage_source import (
    CloudCatalog,
    CloudProduct,
    ResourceStatus,
    SourceKind,
    UsageChange,
    UsageQuantity,
    UsageSource,
)

__all__ = [
    "UnitOfWork",
    "EmailService",
    "CloudCatalog",
    "CloudProduct",
    "ResourceStatus",
    "SourceKind",
    "UsageChange",
    "UsageQuantity",
    "UsageSource",
]
