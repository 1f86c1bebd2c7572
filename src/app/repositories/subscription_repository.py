"""Subscription Repository Interface

Defines the contract for catalog subscription persistence operations.
"""

from abc import ABC, abstractmethod
from typing import Optional, List
from src.domain.subscription import Subscription, SubscriptionGroup


class SubscriptionRepository(ABC):
    """
    Repository interface for Subscription persistence

    Provides catalog access for reconciliation (SKU lookup, provisioning)
    and for invoice eligibility (grouping).
    """

    @abstractmethod
    async def get_by_id(self, subscription_id: int) -> Optional[Subscription]:
        pass

    @abstractmethod
    async def get_by_sku(self, sku: str) -> Optional[Subscription]:
        """
        Retrieve the catalog subscription for a cloud provider SKU

        Args:
            sku: Provider SKU

        Returns:
            Subscription if found, None otherwise
        """
        pass

    @abstractmethod
    async def create(self, subscription: Subscription) -> Subscription:
        """
        Create a new catalog subscription

        Returns:
            Created Subscription with generated ID
        """
        pass

    @abstractmethod
    async def update(self, subscription: Subscription) -> Subscription:
        pass

    @abstractmethod
    async def list_groups(self) -> List[SubscriptionGroup]:
        """Retrieve subscription groups in presentation order"""
        pass
