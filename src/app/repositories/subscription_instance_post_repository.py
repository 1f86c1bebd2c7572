"""Billing Ledger Store Interface

Defines the contract for the effective-dated SubscriptionInstancePost
ledger. The store, not its callers, guarantees that an instance never has
more than one open post.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from src.domain.billing_period import BillingPeriod
from src.domain.subscription_instance_post import SubscriptionInstancePost


class SubscriptionInstancePostRepository(ABC):
    """
    Repository interface for the billing ledger

    Mutating methods lock the owning instance row (SELECT FOR UPDATE) and
    only flush; the caller's unit of work commits or rolls back, so a
    close without its matching insert is never observable.
    """

    @abstractmethod
    async def latest_post(self, instance_id: int) -> Optional[SubscriptionInstancePost]:
        """
        Retrieve the current post of an instance

        Returns:
            The open post, or the most recently started post when none is
            open, None for an instance without posts
        """
        pass

    @abstractmethod
    async def posts_overlapping(
        self,
        instance_id: int,
        period: BillingPeriod,
        last_invoiced: Optional[datetime],
        today: date,
    ) -> List[SubscriptionInstancePost]:
        """
        Retrieve the posts an invoice for period would cover

        A post qualifies when it starts on or before the period end, and
        its end date lies inside the period, is on or after today, or is
        unset. Empty ranges and zero-unit posts never qualify. Nothing
        qualifies until period.minimum_days_since_last_invoice days have
        passed since last_invoiced.

        Args:
            instance_id: Subscription instance ID
            period: Billing period of the instance
            last_invoiced: When the instance was last invoiced (None = never)
            today: Evaluation day

        Returns:
            Qualifying posts ordered by start date
        """
        pass

    @abstractmethod
    async def supersede(
        self,
        instance_id: int,
        new_units: Decimal,
        new_unit_price: Decimal,
        today: date,
    ) -> SubscriptionInstancePost:
        """
        Close the current post yesterday and open a new one today

        The new post inherits the previous post's end date when it had one.

        Raises:
            LedgerStateError: the latest post ended before today
            LedgerWriteConflict: the database rejected the change
        """
        pass

    @abstractmethod
    async def close_as_inactive(
        self, instance_id: int, effective_date: date
    ) -> Optional[SubscriptionInstancePost]:
        """
        Close the open post because the resource is no longer active

        Returns:
            The closed post, None when there was nothing to close

        Raises:
            LedgerWriteConflict: the database rejected the change
        """
        pass

    @abstractmethod
    async def open_post(
        self,
        instance_id: int,
        units: Decimal,
        unit_price: Decimal,
        start_date: date,
        end_date: Optional[date] = None,
    ) -> SubscriptionInstancePost:
        """
        Insert the first post of a newly provisioned instance

        Raises:
            LedgerWriteConflict: the instance already has an open post
        """
        pass

    @abstractmethod
    async def mark_invoiced(
        self, instance_id: int, period: BillingPeriod, invoiced_at: datetime
    ) -> List[SubscriptionInstancePost]:
        """
        Record that an invoice covered the instance's posts for period

        Returns:
            Posts that were marked
        """
        pass

    @abstractmethod
    async def count_open_posts(self, instance_id: int) -> int:
        pass
