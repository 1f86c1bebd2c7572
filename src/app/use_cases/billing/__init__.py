"""Billing domain use cases"""
from .reconcile_customer_usage import ReconcileCustomerUsage
from .notify_reconciliation_outcome import NotifyReconciliationOutcome
from .get_invoice_eligibility import GetInvoiceEligibility
from .mark_instance_invoiced import MarkInstanceInvoiced
from .sync_cloud_catalog import SyncCloudCatalog
from .dtos import (
    CatalogSyncResultDTO,
    CustomerReconciliationLog,
    NotificationResultDTO,
    ReconciliationRunResultDTO,
    InvoicePostDTO,
    InvoiceInstanceDTO,
    InvoiceSubscriptionDTO,
    InvoiceGroupDTO,
    SkippedInstanceDTO,
    InvoiceEligibilityResponseDTO,
    MarkInvoicedResponseDTO,
)

__all__ = [
    "ReconcileCustomerUsage",
    "NotifyReconciliationOutcome",
    "GetInvoiceEligibility",
    "MarkInstanceInvoiced",
    "SyncCloudCatalog",
    "CatalogSyncResultDTO",
    "CustomerReconciliationLog",
    "NotificationResultDTO",
    "ReconciliationRunResultDTO",
    "InvoicePostDTO",
    "InvoiceInstanceDTO",
    "InvoiceSubscriptionDTO",
    "InvoiceGroupDTO",
    "SkippedInstanceDTO",
    "InvoiceEligibilityResponseDTO",
    "MarkInvoicedResponseDTO",
]
