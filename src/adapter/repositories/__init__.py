from .customer_repository import SqlAlchemyCustomerRepository
from .customer_log_repository import SqlAlchemyCustomerLogRepository
from .subscription_repository import SqlAlchemySubscriptionRepository
from .subscription_instance_repository import SqlAlchemySubscriptionInstanceRepository
from .subscription_instance_post_repository import SqlAlchemySubscriptionInstancePostRepository

__all__ = [
    "SqlAlchemyCustomerRepository",
    "SqlAlchemyCustomerLogRepository",
    "SqlAlchemySubscriptionRepository",
    "SqlAlchemySubscriptionInstanceRepository",
    "SqlAlchemySubscriptionInstancePostRepository",
]
