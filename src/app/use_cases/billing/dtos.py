"""Data Transfer Objects for Billing Use Cases

Pydantic models for use case inputs, outputs and the per-customer
reconciliation log.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field


class CustomerReconciliationLog(BaseModel):
    """
    Change and error lines gathered while reconciling one customer

    A fresh log is passed into every per-customer reconciliation call and
    returned from it; nothing is shared between customers.
    """

    customer_id: int = Field(
        ...,
        description="Customer identifier"
    )

    customer_name: str = Field(
        ...,
        description="Customer display name used in email subjects"
    )

    changes: List[str] = Field(
        default_factory=list,
        description="Ledger corrections applied automatically"
    )

    errors: List[str] = Field(
        default_factory=list,
        description="Problems that need an operator"
    )

    def add_change(self, line: str) -> None:
        self.changes.append(line)

    def add_error(self, line: str) -> None:
        self.errors.append(line)

    class Config:
        json_schema_extra = {
            "example": {
                "customer_id": 1042,
                "customer_name": "Nordic Freight A/S",
                "changes": [
                    'Subscription instance 310: "Virtual CPUs" automatically synchronized '
                    'with virtualization. virtualization shows: 8 units. Subscription showed: 5 units.'
                ],
                "errors": []
            }
        }


class NotificationResultDTO(BaseModel):
    """Which of the two reconciliation emails went out for a customer"""

    customer_id: int
    change_email_sent: bool = False
    error_email_sent: bool = False

    @property
    def emails_sent(self) -> int:
        return int(self.change_email_sent) + int(self.error_email_sent)


class CatalogSyncResultDTO(BaseModel):
    """Outcome of one cloud catalog synchronization"""

    products_seen: int = 0
    subscriptions_created: int = 0
    prices_updated: int = 0
    errors: List[str] = Field(default_factory=list)


class ReconciliationRunResultDTO(BaseModel):
    """
    Summary of one reconciliation run over all customers

    Returned by UsageReconcilerWorker.run_once.
    """

    customers_processed: int = Field(
        ...,
        description="Customers whose reconciliation completed"
    )

    customers_failed: int = Field(
        default=0,
        description="Customers skipped because of an unexpected failure"
    )

    changes_made: int = Field(
        default=0,
        description="Total change lines across customers"
    )

    errors_found: int = Field(
        default=0,
        description="Total error lines across customers"
    )

    notifications_sent: int = Field(
        default=0,
        description="Emails handed to the email service"
    )

    run_time: datetime = Field(
        ...,
        description="When the run started"
    )

    execution_time_ms: int = Field(
        ...,
        description="Run duration in milliseconds"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "customers_processed": 214,
                "customers_failed": 0,
                "changes_made": 9,
                "errors_found": 2,
                "notifications_sent": 8,
                "run_time": "2024-03-14T02:00:00Z",
                "execution_time_ms": 48211
            }
        }


class InvoicePostDTO(BaseModel):
    """Ledger post covered by an invoice, clipped to the billing period"""

    post_id: int
    units: Decimal
    unit_price: Decimal
    start_date: date
    end_date: Optional[date] = None
    billable_start: date = Field(..., description="max(post start, period start)")
    billable_end: date = Field(..., description="min(post end, period end)")
    billable_days: int = Field(..., description="Inclusive day count of the billable range")


class InvoiceInstanceDTO(BaseModel):
    instance_id: int
    name: str
    description: Optional[str] = None
    last_invoiced: Optional[datetime] = None
    period_start: date
    period_end: date
    period_days: int
    posts: List[InvoicePostDTO]


class InvoiceSubscriptionDTO(BaseModel):
    subscription_id: int
    product: int
    name: str
    payment_frequency: str
    instances: List[InvoiceInstanceDTO]


class InvoiceGroupDTO(BaseModel):
    group_id: Optional[int] = Field(
        default=None,
        description="Subscription group ID (None = subscriptions without a group)"
    )
    name: str
    subscriptions: List[InvoiceSubscriptionDTO]


class SkippedInstanceDTO(BaseModel):
    instance_id: int
    reason: str


class InvoiceEligibilityResponseDTO(BaseModel):
    """
    Response DTO for invoice eligibility

    Eligible instances grouped by subscription group, then subscription.
    Groups and subscriptions without eligible instances are left out.
    """

    customer_id: int = Field(
        ...,
        description="Customer identifier"
    )

    evaluated_on: date = Field(
        ...,
        description="Day the periods were computed for"
    )

    groups: List[InvoiceGroupDTO] = Field(
        default_factory=list,
        description="Eligible instances grouped for invoice drafting"
    )

    skipped_instances: List[SkippedInstanceDTO] = Field(
        default_factory=list,
        description="Instances that could not be evaluated"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "customer_id": 1042,
                "evaluated_on": "2024-03-14",
                "groups": [
                    {
                        "group_id": 13,
                        "name": "Microsoft 365",
                        "subscriptions": [
                            {
                                "subscription_id": 12,
                                "product": 40011000,
                                "name": "Microsoft 365 Business Premium - Monthly",
                                "payment_frequency": "monthly",
                                "instances": [
                                    {
                                        "instance_id": 310,
                                        "name": "Business Premium",
                                        "period_start": "2024-03-01",
                                        "period_end": "2024-03-31",
                                        "period_days": 31,
                                        "posts": [
                                            {
                                                "post_id": 981,
                                                "units": "8.000000",
                                                "unit_price": "164.900000",
                                                "start_date": "2024-03-14",
                                                "end_date": None,
                                                "billable_start": "2024-03-14",
                                                "billable_end": "2024-03-31",
                                                "billable_days": 18
                                            }
                                        ]
                                    }
                                ]
                            }
                        ]
                    }
                ],
                "skipped_instances": []
            }
        }


class MarkInvoicedResponseDTO(BaseModel):
    """Response DTO for recording an invoiced period"""

    instance_id: int
    period_start: date
    period_end: date
    posts_marked: int
    invoiced_at: datetime
