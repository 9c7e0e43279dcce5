"""MarkOverdueInvoices Use Case

Moves pending invoices past their due date with money still owing to
overdue.
"""

import logging
import time
from datetime import datetime
from typing import Optional
from aeroclub_billing.libs.result import Result, Return, Error
from aeroclub_billing.app.services.unit_of_work import UnitOfWork
from aeroclub_billing.app.repositories.invoice_repository import InvoiceRepository
from aeroclub_billing.app.repositories.payment_repository import PaymentRepository
from aeroclub_billing.domain.invoice import InvoiceStatus
from aeroclub_billing.domain.invoice_aggregator import derive_status
from .dtos import OverdueSweepResultDTO

logger = logging.getLogger(__name__)


class MarkOverdueInvoices:
    """
    Use Case: Mark past-due invoices overdue

    Business Rules:
    1. Only pending invoices whose due_date has passed are considered
    2. The status comes from the aggregator rule, so an invoice that is
       fully paid is never marked overdue
    3. Writes are version-checked; an invoice paid concurrently is skipped
       and counted as a conflict
    """

    def __init__(
        self,
        uow: UnitOfWork,
        invoice_repo: InvoiceRepository,
        payment_repo: PaymentRepository,
    ):
        self.uow = uow
        self.invoice_repo = invoice_repo
        self.payment_repo = payment_repo

    async def execute(self, as_of: Optional[datetime] = None) -> Result[OverdueSweepResultDTO]:
        """
        Execute the overdue sweep

        Args:
            as_of: Reference time (defaults to now)

        Returns:
            Result[OverdueSweepResultDTO]: Sweep summary or error
        """
        start_time = time.time()
        as_of = as_of or datetime.utcnow()

        try:
            invoices = await self.invoice_repo.get_past_due(as_of.date())
            logger.info(f"Found {len(invoices)} pending invoices past due as of {as_of.date()}")

            marked = 0
            conflicts = 0
            for invoice in invoices:
                payments = await self.payment_repo.get_by_invoice_id(invoice.id)
                if derive_status(invoice, payments, as_of) != InvoiceStatus.OVERDUE:
                    continue

                if await self.invoice_repo.update_status(
                    invoice.id, invoice.version, InvoiceStatus.OVERDUE, None
                ):
                    marked += 1
                    logger.info(f"Invoice {invoice.invoice_number} marked overdue")
                else:
                    conflicts += 1
                    logger.warning(
                        f"Invoice {invoice.invoice_number} changed during sweep; skipped"
                    )

            await self.uow.commit()

            return Return.ok(
                OverdueSweepResultDTO(
                    invoices_checked=len(invoices),
                    invoices_marked_overdue=marked,
                    conflicts=conflicts,
                    sweep_time=as_of,
                    execution_time_ms=int((time.time() - start_time) * 1000),
                )
            )

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Overdue sweep failed: {e}")
            return Return.err(
                Error(
                    code="OVERDUE_SWEEP_FAILED",
                    message="Failed to mark overdue invoices",
                    reason=str(e),
                )
            )
