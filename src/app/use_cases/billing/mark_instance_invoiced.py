"""MarkInstanceInvoiced Use Case

Records that an invoice covered an instance's current billing period.
"""

import logging
from datetime import date, datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.app.repositories.subscription_instance_repository import SubscriptionInstanceRepository
from src.app.repositories.subscription_instance_post_repository import (
    SubscriptionInstancePostRepository,
)
from src.domain.billing_period import compute_period
from src.domain.errors import BillingError
from .dtos import MarkInvoicedResponseDTO

logger = logging.getLogger(__name__)


class MarkInstanceInvoiced:
    """
    Use Case: Mark an instance invoiced for its current period

    Sets invoiced_through on the covered posts and last_invoiced on the
    instance, so the instance drops out of eligibility until the next period.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        subscription_repo: SubscriptionRepository,
        instance_repo: SubscriptionInstanceRepository,
        post_repo: SubscriptionInstancePostRepository,
    ):
        self.uow = uow
        self.subscription_repo = subscription_repo
        self.instance_repo = instance_repo
        self.post_repo = post_repo

    async def execute(
        self, instance_id: int, today: Optional[date] = None
    ) -> Result[MarkInvoicedResponseDTO]:
        today = today or date.today()
        invoiced_at = datetime.utcnow()

        try:
            instance = await self.instance_repo.get_by_id(instance_id)
            if instance is None:
                return Return.err(
                    Error(
                        code="INSTANCE_NOT_FOUND",
                        message=f"Subscription instance {instance_id} not found",
                    )
                )

            subscription = await self.subscription_repo.get_by_id(instance.subscription_id)
            if subscription is None:
                return Return.err(
                    Error(
                        code="SUBSCRIPTION_NOT_FOUND",
                        message=f"Subscription {instance.subscription_id} not found",
                    )
                )

            period = compute_period(subscription.payment_frequency, today)
            posts = await self.post_repo.mark_invoiced(instance_id, period, invoiced_at)
            posts_marked = len(posts)
            await self.uow.commit()

            logger.info(
                f"Instance {instance_id} invoiced for {period.start.isoformat()}.."
                f"{period.end.isoformat()} ({posts_marked} posts)"
            )

            return Return.ok(
                MarkInvoicedResponseDTO(
                    instance_id=instance_id,
                    period_start=period.start,
                    period_end=period.end,
                    posts_marked=posts_marked,
                    invoiced_at=invoiced_at,
                )
            )

        except BillingError as e:
            await self.uow.rollback()
            logger.warning(f"Marking instance {instance_id} invoiced failed: {e}")
            return Return.err(Error(code=e.code, message=str(e)))
        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Marking instance {instance_id} invoiced failed: {e}")
            return Return.err(
                Error(
                    code="MARK_INVOICED_FAILED",
                    message=f"Failed to mark instance {instance_id} invoiced",
                    reason=str(e),
                )
            )
