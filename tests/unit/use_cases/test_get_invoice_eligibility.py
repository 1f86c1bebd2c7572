"""Unit tests for GetInvoiceEligibility use case

Tests cover:
- Eligible instances grouped by subscription group and subscription
- Zero-unit and already invoiced posts make an instance ineligible
- Inactive subscriptions and unknown frequencies
- Unknown customer
"""

import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from src.app.use_cases.billing.get_invoice_eligibility import GetInvoiceEligibility
from src.domain.customer import Customer
from src.domain.subscription import BillingEngine, PaymentFrequency, Subscription, SubscriptionGroup
from src.domain.subscription_instance import SubscriptionInstance
from src.domain.subscription_instance_post import SubscriptionInstancePost

TODAY = date(2024, 3, 14)


@pytest.fixture
def repos():
    customer_repo = MagicMock()
    customer_repo.get_by_id = AsyncMock(return_value=Customer(id=1, name="Nordic Freight A/S"))
    subscription_repo = MagicMock()
    subscription_repo.list_groups = AsyncMock(
        return_value=[SubscriptionGroup(id=13, name="Microsoft 365", sort_order=1)]
    )
    return {
        "customer_repo": customer_repo,
        "subscription_repo": subscription_repo,
        "instance_repo": MagicMock(),
        "post_repo": MagicMock(),
    }


@pytest.fixture
def eligibility_use_case(repos):
    return GetInvoiceEligibility(**repos)


def make_subscription(subscription_id=12, group_id=13, frequency=PaymentFrequency.MONTHLY, active=True):
    return Subscription(
        id=subscription_id,
        product=40011000,
        name=f"Subscription {subscription_id}",
        billing_engine=BillingEngine.MANUAL,
        payment_frequency=frequency,
        group_id=group_id,
        price=Decimal("10"),
        active=active,
    )


def make_instance(instance_id, subscription_id=12):
    return SubscriptionInstance(
        id=instance_id, subscription_id=subscription_id, customer_id=1, name=f"Instance {instance_id}"
    )


def make_post(post_id, units="5", start=date(2024, 1, 1), end=None, invoiced_through=None):
    return SubscriptionInstancePost(
        id=post_id,
        instance_id=1,
        units=Decimal(units),
        unit_price=Decimal("10"),
        start_date=start,
        end_date=end,
        invoiced_through=invoiced_through,
    )


@pytest.mark.asyncio
class TestGetInvoiceEligibility:

    async def test_eligible_instance_is_grouped(self, eligibility_use_case, repos):
        """
        Given: A monthly instance with one open post
        When: Eligibility is evaluated
        Then: It is listed under its group and subscription with clipped billable days
        """
        # Arrange
        repos["instance_repo"].list_by_customer = AsyncMock(
            return_value=[(make_instance(310), make_subscription())]
        )
        repos["post_repo"].posts_overlapping = AsyncMock(
            return_value=[make_post(981, start=date(2024, 3, 14))]
        )

        # Act
        result = await eligibility_use_case.execute(1, today=TODAY)

        # Assert
        assert result.is_ok()
        response = result.value
        assert response.evaluated_on == TODAY
        assert len(response.groups) == 1
        group = response.groups[0]
        assert group.group_id == 13
        assert group.name == "Microsoft 365"
        instance = group.subscriptions[0].instances[0]
        assert instance.instance_id == 310
        assert instance.period_start == date(2024, 3, 1)
        assert instance.period_end == date(2024, 3, 31)
        assert instance.period_days == 31
        post = instance.posts[0]
        assert post.billable_start == date(2024, 3, 14)
        assert post.billable_end == date(2024, 3, 31)
        assert post.billable_days == 18
        period = repos["post_repo"].posts_overlapping.await_args.args[1]
        assert period.minimum_days_since_last_invoice == 28

    async def test_zero_unit_posts_are_not_eligible(self, eligibility_use_case, repos):
        repos["instance_repo"].list_by_customer = AsyncMock(
            return_value=[(make_instance(310), make_subscription())]
        )
        repos["post_repo"].posts_overlapping = AsyncMock(
            return_value=[make_post(981, units="0")]
        )

        result = await eligibility_use_case.execute(1, today=TODAY)

        assert result.value.groups == []

    async def test_no_posts_is_not_eligible(self, eligibility_use_case, repos):
        repos["instance_repo"].list_by_customer = AsyncMock(
            return_value=[(make_instance(310), make_subscription())]
        )
        repos["post_repo"].posts_overlapping = AsyncMock(return_value=[])

        result = await eligibility_use_case.execute(1, today=TODAY)

        assert result.value.groups == []

    async def test_already_invoiced_period_is_not_eligible(self, eligibility_use_case, repos):
        repos["instance_repo"].list_by_customer = AsyncMock(
            return_value=[(make_instance(310), make_subscription())]
        )
        repos["post_repo"].posts_overlapping = AsyncMock(
            return_value=[make_post(981, invoiced_through=date(2024, 3, 31))]
        )

        result = await eligibility_use_case.execute(1, today=TODAY)

        assert result.value.groups == []

    async def test_inactive_subscription_is_ignored(self, eligibility_use_case, repos):
        repos["instance_repo"].list_by_customer = AsyncMock(
            return_value=[(make_instance(310), make_subscription(active=False))]
        )
        repos["post_repo"].posts_overlapping = AsyncMock()

        result = await eligibility_use_case.execute(1, today=TODAY)

        assert result.value.groups == []
        repos["post_repo"].posts_overlapping.assert_not_awaited()

    async def test_unknown_frequency_is_skipped(self, eligibility_use_case, repos):
        subscription = make_subscription()
        subscription.payment_frequency = "fortnightly"
        repos["instance_repo"].list_by_customer = AsyncMock(
            return_value=[(make_instance(310), subscription)]
        )
        repos["post_repo"].posts_overlapping = AsyncMock()

        result = await eligibility_use_case.execute(1, today=TODAY)

        assert result.is_ok()
        assert result.value.groups == []
        assert len(result.value.skipped_instances) == 1
        assert result.value.skipped_instances[0].instance_id == 310

    async def test_subscriptions_without_group_are_collected(self, eligibility_use_case, repos):
        repos["instance_repo"].list_by_customer = AsyncMock(
            return_value=[
                (make_instance(310), make_subscription(12, group_id=13)),
                (make_instance(311, 14), make_subscription(14, group_id=None)),
                (make_instance(312, 14), make_subscription(14, group_id=None)),
            ]
        )
        repos["post_repo"].posts_overlapping = AsyncMock(return_value=[make_post(1)])

        result = await eligibility_use_case.execute(1, today=TODAY)

        groups = result.value.groups
        assert [g.group_id for g in groups] == [13, None]
        assert groups[1].name == "Ungrouped"
        assert [i.instance_id for i in groups[1].subscriptions[0].instances] == [311, 312]

    async def test_unknown_customer(self, eligibility_use_case, repos):
        repos["customer_repo"].get_by_id = AsyncMock(return_value=None)

        result = await eligibility_use_case.execute(999, today=TODAY)

        assert result.is_err()
        assert result.error.code == "CUSTOMER_NOT_FOUND"
