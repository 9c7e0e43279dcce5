"""Get Invoice Balance Use Case

Read-only view of an invoice's total, payments and remaining balance.
Callers re-query with this after CONFLICT or INDETERMINATE.
"""

from aeroclub_billing.libs.result import Result, Return, Error
from aeroclub_billing.app.repositories.invoice_repository import InvoiceRepository
from aeroclub_billing.app.repositories.payment_repository import PaymentRepository
from aeroclub_billing.domain.invoice_aggregator import amount_paid, remaining_balance
from .dtos import InvoiceBalanceResponseDTO


class GetInvoiceBalance:
    """
    Get Invoice Balance Use Case

    Amounts are always derived from the recorded payments, never from a
    cached field. status is the stored status.
    """

    def __init__(self, invoice_repo: InvoiceRepository, payment_repo: PaymentRepository):
        self.invoice_repo = invoice_repo
        self.payment_repo = payment_repo

    async def execute(self, invoice_id: int) -> Result[InvoiceBalanceResponseDTO]:
        """
        Execute get invoice balance

        Args:
            invoice_id: Invoice ID

        Returns:
            Result[InvoiceBalanceResponseDTO]: Balance data, or INVOICE_NOT_FOUND
        """
        invoice = await self.invoice_repo.get_by_id(invoice_id)
        if not invoice:
            return Return.err(
                Error(
                    code="INVOICE_NOT_FOUND",
                    message=f"Invoice {invoice_id} not found",
                )
            )

        payments = await self.payment_repo.get_by_invoice_id(invoice.id)

        return Return.ok(
            InvoiceBalanceResponseDTO(
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                user_id=invoice.user_id,
                total_amount=invoice.total_amount,
                amount_paid=amount_paid(payments),
                remaining_balance=remaining_balance(invoice, payments),
                status=invoice.status.value,
                due_date=invoice.due_date,
                paid_date=invoice.paid_date,
            )
        )
