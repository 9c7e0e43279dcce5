"""CreateInvoice Use Case

Creates a member invoice from flight and additional charges when a booking
is checked out or invoiced manually.
"""

from datetime import datetime, timedelta
from aeroclub_billing.libs.result import Result, Return, Error
from aeroclub_billing.app.services.unit_of_work import UnitOfWork
from aeroclub_billing.app.repositories.invoice_repository import InvoiceRepository
from aeroclub_billing.app.repositories.invoice_line_repository import InvoiceLineRepository
from aeroclub_billing.domain.invoice import Invoice, InvoiceStatus
from aeroclub_billing.domain.invoice_line import InvoiceLine, ChargeType
from aeroclub_billing.domain.invoice_aggregator import compute_total, line_amount
from aeroclub_billing.domain.money import ZERO, to_money
from .dtos import CreateInvoiceCommandDTO, InvoiceResponseDTO, InvoiceLineDTO


class CreateInvoice:
    """
    Use Case: Create an invoice from charge line items

    Business Rules:
    1. Invoice number is auto-generated (INV-YYYY-NNNNNN)
    2. Flight charges come first, then additional charges, in entry order
    3. total_amount is computed once from the lines and never recomputed
    4. An invoice with no charges totals 0.00 and is paid immediately
    5. due_date defaults to today + due_days

    Flow:
    1. Build line items and compute total
    2. Generate unique invoice number
    3. Create invoice and lines
    4. Commit transaction
    5. Return response
    """

    def __init__(
        self,
        uow: UnitOfWork,
        invoice_repo: InvoiceRepository,
        invoice_line_repo: InvoiceLineRepository,
        due_days: int = 14,
    ):
        self.uow = uow
        self.invoice_repo = invoice_repo
        self.invoice_line_repo = invoice_line_repo
        self.due_days = due_days

    async def execute(self, command: CreateInvoiceCommandDTO) -> Result[InvoiceResponseDTO]:
        """
        Execute invoice creation

        Args:
            command: CreateInvoiceCommandDTO with member, charges and due date

        Returns:
            Result[InvoiceResponseDTO]: Success with invoice details or error
        """
        try:
            # Step 1: Build lines and total
            lines = [
                InvoiceLine(
                    charge_type=ChargeType.FLIGHT,
                    description=charge.description,
                    unit_rate=to_money(charge.rate),
                    quantity=charge.units,
                    amount=line_amount(charge.rate, charge.units),
                )
                for charge in command.flight_charges
            ] + [
                InvoiceLine(
                    charge_type=ChargeType.ADDITIONAL,
                    description=charge.description,
                    unit_rate=to_money(charge.amount),
                    quantity=charge.quantity,
                    amount=line_amount(charge.amount, charge.quantity),
                )
                for charge in command.additional_charges
            ]
            total_amount = compute_total(lines)

            now = datetime.utcnow()
            settled = total_amount == ZERO

            # Step 2: Generate unique invoice number
            invoice_number = await self.invoice_repo.generate_invoice_number()

            # Step 3: Create invoice and its lines
            invoice = Invoice(
                invoice_number=invoice_number,
                user_id=command.user_id,
                booking_id=command.booking_id,
                status=InvoiceStatus.PAID if settled else InvoiceStatus.PENDING,
                total_amount=total_amount,
                due_date=command.due_date or (now.date() + timedelta(days=self.due_days)),
                paid_date=now if settled else None,
                notes=command.notes,
            )
            created_invoice = await self.invoice_repo.create(invoice)

            created_lines = []
            for position, line in enumerate(lines):
                line.invoice_id = created_invoice.id
                line.position = position
                created_lines.append(await self.invoice_line_repo.create(line))

            # Step 4: Commit transaction
            await self.uow.commit()

            # Step 5: Build response
            return Return.ok(
                InvoiceResponseDTO(
                    invoice_id=created_invoice.id,
                    invoice_number=created_invoice.invoice_number,
                    user_id=created_invoice.user_id,
                    booking_id=created_invoice.booking_id,
                    status=created_invoice.status.value,
                    total_amount=created_invoice.total_amount,
                    due_date=created_invoice.due_date,
                    paid_date=created_invoice.paid_date,
                    line_items=[
                        InvoiceLineDTO(
                            position=line.position,
                            charge_type=line.charge_type.value,
                            description=line.description,
                            unit_rate=line.unit_rate,
                            quantity=line.quantity,
                            amount=line.amount,
                        )
                        for line in created_lines
                    ],
                    created_at=created_invoice.created_at,
                )
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="CREATE_INVOICE_FAILED",
                    message="Failed to create invoice",
                    reason=str(e),
                )
            )
