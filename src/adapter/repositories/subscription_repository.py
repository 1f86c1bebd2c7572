"""SQLAlchemy Subscription Repository Implementation

Implements catalog subscription persistence using SQLAlchemy async session.
"""

from typing import Optional, List
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.domain.subscription import Subscription, SubscriptionGroup


class SqlAlchemySubscriptionRepository(SubscriptionRepository):
    """
    SQLAlchemy implementation of SubscriptionRepository

    Uses async session for database operations.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, subscription_id: int) -> Optional[Subscription]:
        statement = select(Subscription).where(Subscription.id == subscription_id)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_sku(self, sku: str) -> Optional[Subscription]:
        """
        Retrieve subscription by SKU

        Several catalog rows may share a SKU after administrative edits;
        the oldest one wins.

        Args:
            sku: Provider SKU

        Returns:
            Subscription if found, None otherwise
        """
        statement = (
            select(Subscription)
            .where(Subscription.sku == sku)
            .order_by(Subscription.id)
            .limit(1)
        )
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def create(self, subscription: Subscription) -> Subscription:
        self.session.add(subscription)
        await self.session.flush()
        await self.session.refresh(subscription)
        return subscription

    async def update(self, subscription: Subscription) -> Subscription:
        self.session.add(subscription)
        await self.session.flush()
        await self.session.refresh(subscription)
        return subscription

    async def list_groups(self) -> List[SubscriptionGroup]:
        statement = select(SubscriptionGroup).order_by(
            SubscriptionGroup.sort_order, SubscriptionGroup.id
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())
