"""Background workers for billing service"""
from .usage_reconciler import UsageReconcilerWorker

__all__ = ["UsageReconcilerWorker"]
