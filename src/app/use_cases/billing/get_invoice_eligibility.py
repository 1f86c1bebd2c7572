"""GetInvoiceEligibility Use Case

Selects a customer's subscription instances that are ready to be invoiced
for their current billing period, grouped for invoice drafting.
"""

import logging
from datetime import date
from typing import Dict, List, Optional
from libs.result import Result, Return, Error
from src.app.repositories.customer_repository import CustomerRepository
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.app.repositories.subscription_instance_repository import SubscriptionInstanceRepository
from src.app.repositories.subscription_instance_post_repository import (
    SubscriptionInstancePostRepository,
)
from src.domain.billing_period import BillingPeriod, compute_period
from src.domain.errors import ConfigurationError
from src.domain.subscription import PaymentFrequency
from src.domain.subscription_instance_post import SubscriptionInstancePost
from .dtos import (
    InvoiceEligibilityResponseDTO,
    InvoiceGroupDTO,
    InvoiceInstanceDTO,
    InvoicePostDTO,
    InvoiceSubscriptionDTO,
    SkippedInstanceDTO,
)

logger = logging.getLogger(__name__)

UNGROUPED_NAME = "Ungrouped"


def billable_end(post: SubscriptionInstancePost, period: BillingPeriod) -> date:
    """Last day of period the post is billed for"""
    if post.end_date is None:
        return period.end
    return min(post.end_date, period.end)


def is_invoiced_for(post: SubscriptionInstancePost, period: BillingPeriod) -> bool:
    return post.invoiced_through is not None and post.invoiced_through >= billable_end(post, period)


def is_eligible(posts: List[SubscriptionInstancePost], period: BillingPeriod) -> bool:
    """
    An instance is eligible when its selected posts are non-empty, all carry
    units and none of them has been invoiced for period yet
    """
    if not posts:
        return False
    if any(post.units <= 0 for post in posts):
        return False
    return not any(is_invoiced_for(post, period) for post in posts)


def to_post_dto(post: SubscriptionInstancePost, period: BillingPeriod) -> InvoicePostDTO:
    start = max(post.start_date, period.start)
    end = billable_end(post, period)
    return InvoicePostDTO(
        post_id=post.id,
        units=post.units,
        unit_price=post.unit_price,
        start_date=post.start_date,
        end_date=post.end_date,
        billable_start=start,
        billable_end=end,
        billable_days=(end - start).days + 1,
    )


class GetInvoiceEligibility:
    """
    Use Case: List a customer's instances that are ready for invoicing

    Business Rules:
    1. Only instances of active catalog subscriptions are considered
    2. The period comes from the subscription's payment frequency
    3. Posts are selected by the ledger store's overlap rule, which also
       enforces the minimum number of days since the last invoice
    4. Unknown frequencies skip the instance and are reported
    5. Subscriptions and groups without eligible instances are left out
    """

    def __init__(
        self,
        customer_repo: CustomerRepository,
        subscription_repo: SubscriptionRepository,
        instance_repo: SubscriptionInstanceRepository,
        post_repo: SubscriptionInstancePostRepository,
    ):
        self.customer_repo = customer_repo
        self.subscription_repo = subscription_repo
        self.instance_repo = instance_repo
        self.post_repo = post_repo

    async def execute(
        self, customer_id: int, today: Optional[date] = None
    ) -> Result[InvoiceEligibilityResponseDTO]:
        """
        Execute eligibility evaluation

        Args:
            customer_id: Customer to evaluate
            today: Evaluation day (default: today)

        Returns:
            Result[InvoiceEligibilityResponseDTO]: Eligible instances grouped
            by subscription group and subscription
        """
        today = today or date.today()

        try:
            customer = await self.customer_repo.get_by_id(customer_id)
            if customer is None:
                return Return.err(
                    Error(
                        code="CUSTOMER_NOT_FOUND",
                        message=f"Customer {customer_id} not found",
                    )
                )

            pairs = await self.instance_repo.list_by_customer(customer_id)
            subscriptions: Dict[int, InvoiceSubscriptionDTO] = {}
            subscription_groups: Dict[int, Optional[int]] = {}
            skipped: List[SkippedInstanceDTO] = []

            for instance, subscription in pairs:
                if not subscription.active:
                    continue

                try:
                    period = compute_period(subscription.payment_frequency, today)
                except ConfigurationError as e:
                    logger.warning(f"Skipping instance {instance.id}: {e}")
                    skipped.append(SkippedInstanceDTO(instance_id=instance.id, reason=str(e)))
                    continue

                posts = await self.post_repo.posts_overlapping(
                    instance.id, period, instance.last_invoiced, today
                )
                if not is_eligible(posts, period):
                    continue

                entry = subscriptions.get(subscription.id)
                if entry is None:
                    entry = InvoiceSubscriptionDTO(
                        subscription_id=subscription.id,
                        product=subscription.product,
                        name=subscription.name,
                        payment_frequency=PaymentFrequency(subscription.payment_frequency).value,
                        instances=[],
                    )
                    subscriptions[subscription.id] = entry
                    subscription_groups[subscription.id] = subscription.group_id

                entry.instances.append(
                    InvoiceInstanceDTO(
                        instance_id=instance.id,
                        name=instance.name,
                        description=instance.description,
                        last_invoiced=instance.last_invoiced,
                        period_start=period.start,
                        period_end=period.end,
                        period_days=period.days,
                        posts=[to_post_dto(post, period) for post in posts],
                    )
                )

            groups = await self._group(subscriptions, subscription_groups)

            logger.info(
                f"Customer {customer_id}: "
                f"{sum(len(s.instances) for s in subscriptions.values())} eligible instances, "
                f"{len(skipped)} skipped"
            )

            return Return.ok(
                InvoiceEligibilityResponseDTO(
                    customer_id=customer_id,
                    evaluated_on=today,
                    groups=groups,
                    skipped_instances=skipped,
                )
            )

        except Exception as e:
            logger.error(f"Invoice eligibility for customer {customer_id} failed: {e}")
            return Return.err(
                Error(
                    code="ELIGIBILITY_FAILED",
                    message=f"Failed to evaluate invoice eligibility for customer {customer_id}",
                    reason=str(e),
                )
            )

    async def _group(
        self,
        subscriptions: Dict[int, InvoiceSubscriptionDTO],
        subscription_groups: Dict[int, Optional[int]],
    ) -> List[InvoiceGroupDTO]:
        if not subscriptions:
            return []

        groups: List[InvoiceGroupDTO] = []
        for group in await self.subscription_repo.list_groups():
            members = [
                subscriptions[sub_id]
                for sub_id, group_id in subscription_groups.items()
                if group_id == group.id
            ]
            if members:
                groups.append(InvoiceGroupDTO(group_id=group.id, name=group.name, subscriptions=members))

        known = {group.group_id for group in groups}
        ungrouped = [
            subscriptions[sub_id]
            for sub_id, group_id in subscription_groups.items()
            if group_id is None or group_id not in known
        ]
        if ungrouped:
            groups.append(InvoiceGroupDTO(group_id=None, name=UNGROUPED_NAME, subscriptions=ungrouped))

        return groups
