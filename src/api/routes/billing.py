"""Billing API Routes

FastAPI routes for invoice drafting: eligible subscription instances per
customer and recording an invoiced period.
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.use_cases.billing.dtos import (
    InvoiceEligibilityResponseDTO,
    MarkInvoicedResponseDTO,
)
from src.app.use_cases.billing.get_invoice_eligibility import GetInvoiceEligibility
from src.app.use_cases.billing.mark_instance_invoiced import MarkInstanceInvoiced
from src.adapter.repositories.customer_repository import SqlAlchemyCustomerRepository
from src.adapter.repositories.subscription_repository import SqlAlchemySubscriptionRepository
from src.adapter.repositories.subscription_instance_repository import (
    SqlAlchemySubscriptionInstanceRepository,
)
from src.adapter.repositories.subscription_instance_post_repository import (
    SqlAlchemySubscriptionInstancePostRepository,
)
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_session
from src.api.error import ClientError

router = APIRouter(prefix="/billing", tags=["Billing"])


@router.get(
    "/customers/{customer_id}/invoice-data",
    response_model=InvoiceEligibilityResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={
        404: {
            "description": "Customer not found",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "CUSTOMER_NOT_FOUND",
                            "message": "Customer 1042 not found"
                        }
                    }
                }
            }
        }
    }
)
async def get_invoice_data(
    customer_id: int,
    on: Optional[date] = Query(default=None, description="Evaluation day (default: today)"),
    session: AsyncSession = Depends(get_session)
):
    """
    List the customer's subscription instances that are ready for invoicing.

    Each instance is evaluated for the billing period of its subscription's
    payment frequency. Instances are grouped by subscription group, then by
    subscription; groups and subscriptions without eligible instances are
    left out.

    **Path parameters:**
    - `customer_id` (required): Customer ID

    **Query parameters:**
    - `on` (optional): Evaluation day in ISO format

    **Returns:**
    - 200: Grouped eligible instances with their billable posts
    - 404: Customer not found
    """
    use_case = GetInvoiceEligibility(
        customer_repo=SqlAlchemyCustomerRepository(session),
        subscription_repo=SqlAlchemySubscriptionRepository(session),
        instance_repo=SqlAlchemySubscriptionInstanceRepository(session),
        post_repo=SqlAlchemySubscriptionInstancePostRepository(session),
    )
    result = await use_case.execute(customer_id, today=on)

    if result.is_err():
        if result.error.code == "CUSTOMER_NOT_FOUND":
            raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)
        raise ClientError(result.error, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return result.value


@router.post(
    "/instances/{instance_id}/invoiced",
    response_model=MarkInvoicedResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={
        404: {
            "description": "Subscription instance not found",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "INSTANCE_NOT_FOUND",
                            "message": "Subscription instance 310 not found"
                        }
                    }
                }
            }
        }
    }
)
async def mark_instance_invoiced(
    instance_id: int,
    on: Optional[date] = Query(default=None, description="Day inside the invoiced period"),
    session: AsyncSession = Depends(get_session)
):
    """
    Record that the instance's current billing period has been invoiced.

    Sets `invoiced_through` on the covered posts and `last_invoiced` on the
    instance, so it is not offered for invoicing again in the same period.

    **Returns:**
    - 200: Period recorded
    - 404: Subscription instance not found
    - 400: The instance's subscription cannot be invoiced (e.g. unknown frequency)
    """
    use_case = MarkInstanceInvoiced(
        uow=SqlAlchemyUnitOfWork(session),
        subscription_repo=SqlAlchemySubscriptionRepository(session),
        instance_repo=SqlAlchemySubscriptionInstanceRepository(session),
        post_repo=SqlAlchemySubscriptionInstancePostRepository(session),
    )
    result = await use_case.execute(instance_id, today=on)

    if result.is_err():
        if result.error.code in ("INSTANCE_NOT_FOUND", "SUBSCRIPTION_NOT_FOUND"):
            raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)
        raise ClientError(result.error)

    return result.value
