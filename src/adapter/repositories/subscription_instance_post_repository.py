"""SQLAlchemy implementation of the Billing Ledger Store

Persists SubscriptionInstancePost rows. Every mutation first locks the
owning SubscriptionInstance row so that concurrent reconciliation runs
serialize per instance, and the partial unique index on open posts rejects
anything that slips through.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional, List
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.subscription_instance_post_repository import (
    SubscriptionInstancePostRepository,
)
from src.domain.billing_period import BillingPeriod
from src.domain.errors import LedgerStateError, LedgerWriteConflict
from src.domain.subscription_instance import SubscriptionInstance
from src.domain.subscription_instance_post import PostStatus, SubscriptionInstancePost


class SqlAlchemySubscriptionInstancePostRepository(SubscriptionInstancePostRepository):
    """
    SQLAlchemy implementation of SubscriptionInstancePostRepository

    Features:
    - Pessimistic per-instance locking via SELECT FOR UPDATE
    - Insert-then-close history, posts are never rewritten
    - Flush only, the unit of work owns commit/rollback
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _lock_instance(self, instance_id: int) -> SubscriptionInstance:
        stmt = (
            select(SubscriptionInstance)
            .where(SubscriptionInstance.id == instance_id)
            .with_for_update()
        )
        result = await self.session.execute(stmt)
        instance = result.scalar_one_or_none()
        if instance is None:
            raise LedgerStateError(f"Subscription instance {instance_id} does not exist")
        return instance

    async def _get_open_post(self, instance_id: int) -> Optional[SubscriptionInstancePost]:
        stmt = select(SubscriptionInstancePost).where(
            SubscriptionInstancePost.instance_id == instance_id,
            SubscriptionInstancePost.status == PostStatus.OPEN,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _flush(self, instance_id: int) -> None:
        try:
            await self.session.flush()
        except (IntegrityError, OperationalError) as e:
            raise LedgerWriteConflict(
                f"Ledger write for instance {instance_id} rejected: {e.orig}"
            ) from e

    async def latest_post(self, instance_id: int) -> Optional[SubscriptionInstancePost]:
        open_post = await self._get_open_post(instance_id)
        if open_post is not None:
            return open_post

        stmt = (
            select(SubscriptionInstancePost)
            .where(SubscriptionInstancePost.instance_id == instance_id)
            .order_by(
                SubscriptionInstancePost.start_date.desc(),
                SubscriptionInstancePost.id.desc(),
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def posts_overlapping(
        self,
        instance_id: int,
        period: BillingPeriod,
        last_invoiced: Optional[datetime],
        today: date,
    ) -> List[SubscriptionInstancePost]:
        if last_invoiced is not None:
            days_since_invoice = (today - last_invoiced.date()).days
            if days_since_invoice < period.minimum_days_since_last_invoice:
                return []

        stmt = (
            select(SubscriptionInstancePost)
            .where(
                SubscriptionInstancePost.instance_id == instance_id,
                SubscriptionInstancePost.start_date <= period.end,
                or_(
                    SubscriptionInstancePost.end_date.between(period.start, period.end),
                    SubscriptionInstancePost.end_date >= today,
                    SubscriptionInstancePost.end_date.is_(None),
                ),
                or_(
                    SubscriptionInstancePost.end_date.is_(None),
                    SubscriptionInstancePost.end_date >= SubscriptionInstancePost.start_date,
                ),
                SubscriptionInstancePost.units > 0,
            )
            .order_by(SubscriptionInstancePost.start_date, SubscriptionInstancePost.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def supersede(
        self,
        instance_id: int,
        new_units: Decimal,
        new_unit_price: Decimal,
        today: date,
    ) -> SubscriptionInstancePost:
        """
        Close the current post yesterday and open a new one today

        Note:
            A post that started today is closed with an empty range
            (end = start - 1), so same-day corrections never double-bill.
        """
        await self._lock_instance(instance_id)
        previous = await self.latest_post(instance_id)
        carried_end_date: Optional[date] = None

        if previous is not None:
            if not previous.is_open or previous.has_ended(today):
                raise LedgerStateError(
                    f"Instance {instance_id} was closed on {previous.end_date}; "
                    f"a quantity change cannot reopen it"
                )
            carried_end_date = previous.end_date
            previous.end_date = today - timedelta(days=1)
            previous.status = PostStatus.SUPERSEDED
            self.session.add(previous)
            await self._flush(instance_id)

        post = SubscriptionInstancePost(
            instance_id=instance_id,
            units=new_units,
            unit_price=new_unit_price,
            start_date=today,
            end_date=carried_end_date,
            status=PostStatus.OPEN,
        )
        self.session.add(post)
        await self._flush(instance_id)
        await self.session.refresh(post)
        return post

    async def close_as_inactive(
        self, instance_id: int, effective_date: date
    ) -> Optional[SubscriptionInstancePost]:
        await self._lock_instance(instance_id)
        post = await self._get_open_post(instance_id)
        if post is None:
            return None
        if post.end_date is not None and post.end_date <= effective_date:
            return None

        # A post never ends before it starts
        post.end_date = max(effective_date, post.start_date)
        post.status = PostStatus.INACTIVE
        self.session.add(post)
        await self._flush(instance_id)
        return post

    async def open_post(
        self,
        instance_id: int,
        units: Decimal,
        unit_price: Decimal,
        start_date: date,
        end_date: Optional[date] = None,
    ) -> SubscriptionInstancePost:
        await self._lock_instance(instance_id)
        if await self._get_open_post(instance_id) is not None:
            raise LedgerWriteConflict(f"Instance {instance_id} already has an open post")

        post = SubscriptionInstancePost(
            instance_id=instance_id,
            units=units,
            unit_price=unit_price,
            start_date=start_date,
            end_date=end_date,
            status=PostStatus.OPEN,
        )
        self.session.add(post)
        await self._flush(instance_id)
        await self.session.refresh(post)
        return post

    async def mark_invoiced(
        self, instance_id: int, period: BillingPeriod, invoiced_at: datetime
    ) -> List[SubscriptionInstancePost]:
        instance = await self._lock_instance(instance_id)

        stmt = select(SubscriptionInstancePost).where(
            SubscriptionInstancePost.instance_id == instance_id,
            SubscriptionInstancePost.start_date <= period.end,
            or_(
                SubscriptionInstancePost.end_date.is_(None),
                SubscriptionInstancePost.end_date >= period.start,
            ),
            or_(
                SubscriptionInstancePost.end_date.is_(None),
                SubscriptionInstancePost.end_date >= SubscriptionInstancePost.start_date,
            ),
            SubscriptionInstancePost.units > 0,
        )
        result = await self.session.execute(stmt)
        posts = list(result.scalars().all())

        for post in posts:
            covered_until = min(post.end_date or period.end, period.end)
            if post.invoiced_through is None or post.invoiced_through < covered_until:
                post.invoiced_through = covered_until
                self.session.add(post)

        instance.last_invoiced = invoiced_at
        self.session.add(instance)
        await self._flush(instance_id)
        return posts

    async def count_open_posts(self, instance_id: int) -> int:
        stmt = select(func.count()).select_from(SubscriptionInstancePost).where(
            SubscriptionInstancePost.instance_id == instance_id,
            SubscriptionInstancePost.status == PostStatus.OPEN,
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())
