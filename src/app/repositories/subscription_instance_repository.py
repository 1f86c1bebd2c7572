"""Subscription Instance Repository Interface

Defines the contract for locating and creating a customer's subscription
instances.
"""

from abc import ABC, abstractmethod
from typing import Optional, List, Tuple
from src.domain.subscription import BillingEngine, Subscription
from src.domain.subscription_instance import SubscriptionInstance


class SubscriptionInstanceRepository(ABC):
    """Repository interface for SubscriptionInstance persistence"""

    @abstractmethod
    async def get_by_id(self, instance_id: int) -> Optional[SubscriptionInstance]:
        pass

    @abstractmethod
    async def list_by_customer(
        self, customer_id: int
    ) -> List[Tuple[SubscriptionInstance, Subscription]]:
        """
        Retrieve the customer's instances together with their subscription

        Returns:
            (instance, subscription) pairs ordered by instance id
        """
        pass

    @abstractmethod
    async def list_by_engine(
        self, customer_id: int, engine: BillingEngine
    ) -> List[SubscriptionInstance]:
        """
        Retrieve the customer's instances whose subscription tracks engine

        Args:
            customer_id: Customer ID
            engine: Billing engine of the subscription

        Returns:
            Matching instances ordered by id
        """
        pass

    @abstractmethod
    async def find_by_sku(
        self, customer_id: int, sku: str
    ) -> Optional[SubscriptionInstance]:
        """
        Find the customer's instance correlated to a provider SKU

        Matches the instance's own SKU first, then its subscription's SKU.
        """
        pass

    @abstractmethod
    async def create(self, instance: SubscriptionInstance) -> SubscriptionInstance:
        pass
