"""SQLAlchemy Subscription Instance Repository Implementation"""

from typing import Optional, List, Tuple
from sqlalchemy import case, or_
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.subscription_instance_repository import SubscriptionInstanceRepository
from src.domain.subscription import BillingEngine, Subscription
from src.domain.subscription_instance import SubscriptionInstance


class SqlAlchemySubscriptionInstanceRepository(SubscriptionInstanceRepository):
    """
    SQLAlchemy implementation of SubscriptionInstanceRepository

    Correlation queries join the catalog subscription so callers can match
    on billing engine or on the catalog SKU.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, instance_id: int) -> Optional[SubscriptionInstance]:
        statement = select(SubscriptionInstance).where(SubscriptionInstance.id == instance_id)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def list_by_customer(
        self, customer_id: int
    ) -> List[Tuple[SubscriptionInstance, Subscription]]:
        statement = (
            select(SubscriptionInstance, Subscription)
            .join(Subscription, SubscriptionInstance.subscription_id == Subscription.id)
            .where(SubscriptionInstance.customer_id == customer_id)
            .order_by(SubscriptionInstance.id)
        )
        result = await self.session.execute(statement)
        return [(instance, subscription) for instance, subscription in result.all()]

    async def list_by_engine(
        self, customer_id: int, engine: BillingEngine
    ) -> List[SubscriptionInstance]:
        statement = (
            select(SubscriptionInstance)
            .join(Subscription, SubscriptionInstance.subscription_id == Subscription.id)
            .where(
                SubscriptionInstance.customer_id == customer_id,
                Subscription.billing_engine == engine,
            )
            .order_by(SubscriptionInstance.id)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def find_by_sku(
        self, customer_id: int, sku: str
    ) -> Optional[SubscriptionInstance]:
        statement = (
            select(SubscriptionInstance)
            .join(Subscription, SubscriptionInstance.subscription_id == Subscription.id)
            .where(
                SubscriptionInstance.customer_id == customer_id,
                or_(SubscriptionInstance.sku == sku, Subscription.sku == sku),
            )
            # Prefer an instance that carries the SKU itself
            .order_by(case((SubscriptionInstance.sku == sku, 0), else_=1), SubscriptionInstance.id)
            .limit(1)
        )
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def create(self, instance: SubscriptionInstance) -> SubscriptionInstance:
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance
