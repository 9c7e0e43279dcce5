"""
List Invoice Payments Use Case

Retrieves every payment recorded against an invoice, reversals included.
"""
from aeroclub_billing.libs.result import Result, Return, Error
from aeroclub_billing.app.repositories.invoice_repository import InvoiceRepository
from aeroclub_billing.app.repositories.payment_repository import PaymentRepository
from .dtos import ListPaymentsResponseDTO, PaymentDTO


class ListInvoicePayments:
    """
    Use case: View payments on an invoice

    Payments are ordered oldest first, matching receipt order.
    """

    def __init__(self, invoice_repo: InvoiceRepository, payment_repo: PaymentRepository):
        self.invoice_repo = invoice_repo
        self.payment_repo = payment_repo

    async def execute(self, invoice_id: int) -> Result[ListPaymentsResponseDTO]:
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
            ListPaymentsResponseDTO(
                invoice_id=invoice.id,
                payments=[PaymentDTO.from_entity(p) for p in payments],
                total=len(payments),
            )
        )
