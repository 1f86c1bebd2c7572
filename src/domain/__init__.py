from .base import BaseModel
from .employee import Employee
from .customer import Customer
from .customer_log import CustomerLog, CustomerLogType
from .subscription import (
    BillingEngine,
    PaymentFrequency,
    Subscription,
    SubscriptionGroup,
    VIRTUALIZATION_ENGINES,
)
from .subscription_instance import SubscriptionInstance
from .subscription_instance_post import SubscriptionInstancePost, PostStatus
from .vmm_snapshot import VmmSnapshot, parse_cloud_label
from .billing_period import BillingPeriod, compute_period

__all__ = [
    "BaseModel",
    "Employee",
    "Customer",
    "CustomerLog",
    "CustomerLogType",
    "BillingEngine",
    "PaymentFrequency",
    "Subscription",
    "SubscriptionGroup",
    "VIRTUALIZATION_ENGINES",
    "SubscriptionInstance",
    "SubscriptionInstancePost",
    "PostStatus",
    "VmmSnapshot",
    "parse_cloud_label",
    "BillingPeriod",
    "compute_period",
]
