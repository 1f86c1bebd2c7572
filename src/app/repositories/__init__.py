from .customer_repository import CustomerRepository
from .customer_log_repository import CustomerLogRepository
from .subscription_repository import SubscriptionRepository
from .subscription_instance_repository import SubscriptionInstanceRepository
from .subscription_instance_post_repository import SubscriptionInstancePostRepository

__all__ = [
    "CustomerRepository",
    "CustomerLogRepository",
    "SubscriptionRepository",
    "SubscriptionInstanceRepository",
    "SubscriptionInstancePostRepository",
]
