from .unit_of_work import SqlAlchemyUnitOfWork
from .email_service import (
    LoggingEmailService,
    SmtpEmailService,
    CompositeEmailService,
    create_email_service,
)
from .virtualization_usage_source import VirtualizationUsageSource
from .cloud_subscription_source import CloudSubscriptionSource

__all__ = [
    "SqlAlchemyUnitOfWork",
    "LoggingEmailService",
    "SmtpEmailService",
    "CompositeEmailService",
    "create_email_service",
    "VirtualizationUsageSource",
    "CloudSubscriptionSource",
]
