"""Background workers for billing service"""
from .overdue_sweeper import OverdueSweepWorker
from .payment_auditor import PaymentAuditWorker

__all__ = ["OverdueSweepWorker", "PaymentAuditWorker"]
