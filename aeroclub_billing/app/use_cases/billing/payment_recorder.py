"""Payment Recorder

Validates and writes a single payment record against an invoice.
"""

import logging
from datetime import datetime
from typing import Optional
from aeroclub_billing.libs.result import Result, Return, Error
from aeroclub_billing.app.repositories.invoice_repository import InvoiceRepository
from aeroclub_billing.app.repositories.payment_repository import PaymentRepository
from aeroclub_billing.domain.invoice_aggregator import remaining_balance
from aeroclub_billing.domain.money import ZERO, to_money
from aeroclub_billing.domain.payment import Payment
from .dtos import PaymentRequestDTO

logger = logging.getLogger(__name__)


class PaymentRecorder:
    """
    Records one payment inside the caller's unit of work

    Business Rules:
    1. amount > 0 with at most two decimal places
    2. invoice_id must resolve to an existing invoice
    3. amount <= remaining balance, re-read from the database at the moment
       of recording (payments committed by other sessions are counted)
    4. Receipt number and payment_date are assigned here
    5. No commit: the caller decides when the unit of work is durable
    """

    def __init__(
        self,
        invoice_repo: InvoiceRepository,
        payment_repo: PaymentRepository,
    ):
        self.invoice_repo = invoice_repo
        self.payment_repo = payment_repo

    async def record(self, request: PaymentRequestDTO) -> Result[Payment]:
        """
        Validate and write a payment

        Args:
            request: PaymentRequestDTO with invoice, payer, amount, method, actor

        Returns:
            Result[Payment]: Created payment, or INVALID_PAYMENT /
            OVERPAYMENT_REJECTED
        """
        amount = request.amount
        if amount is None or amount <= ZERO or to_money(amount) != amount:
            return Return.err(
                Error(
                    code="INVALID_PAYMENT",
                    message=f"Payment amount must be a positive amount in cents, got {amount}",
                    details={"invoice_id": request.invoice_id, "amount": str(amount)},
                )
            )

        invoice = await self.invoice_repo.get_by_id(request.invoice_id)
        if not invoice:
            return Return.err(
                Error(
                    code="INVALID_PAYMENT",
                    message=f"Invoice {request.invoice_id} not found",
                    details={"invoice_id": request.invoice_id},
                )
            )

        payments = await self.payment_repo.get_by_invoice_id(invoice.id)
        remaining = remaining_balance(invoice, payments)
        if amount > remaining:
            return Return.err(
                Error(
                    code="OVERPAYMENT_REJECTED",
                    message=f"Payment of {amount} exceeds remaining balance {remaining} "
                            f"on invoice {invoice.invoice_number}",
                    reason=f"remaining={remaining}, amount={amount}",
                    details={
                        "invoice_id": invoice.id,
                        "amount": str(amount),
                        "remaining_balance": str(remaining),
                    },
                )
            )

        payment = Payment(
            invoice_id=invoice.id,
            user_id=request.user_id,
            amount=to_money(amount),
            payment_method=request.payment_method,
            reference_number=request.reference_number,
            notes=request.notes,
            receipt_number=await self.payment_repo.generate_receipt_number(),
            payment_date=datetime.utcnow(),
            created_by=request.recorded_by,
            attempt_key=request.attempt_key,
        )
        created = await self.payment_repo.create(payment)

        logger.info(
            f"Recorded {created.payment_method.value} payment {created.receipt_number} "
            f"of {created.amount} on invoice {invoice.invoice_number}"
        )
        return Return.ok(created)

    async def record_reversal(
        self, original: Payment, actor: str, notes: Optional[str] = None
    ) -> Result[Payment]:
        """
        Write the compensating record for an earlier payment

        The reversal mirrors the original with a negative amount; the
        original row is never modified.

        Args:
            original: Payment being reversed
            actor: Who is recording the reversal
            notes: Optional reason

        Returns:
            Result[Payment]: Created reversal, or INVALID_PAYMENT
        """
        if original.amount <= ZERO or original.reverses_payment_id is not None:
            return Return.err(
                Error(
                    code="INVALID_PAYMENT",
                    message=f"Payment {original.id} is itself a reversal and cannot be reversed",
                    details={"payment_id": original.id},
                )
            )

        reversal = Payment(
            invoice_id=original.invoice_id,
            user_id=original.user_id,
            amount=-to_money(original.amount),
            payment_method=original.payment_method,
            reference_number=original.receipt_number,
            notes=notes or f"Reversal of {original.receipt_number}",
            receipt_number=await self.payment_repo.generate_receipt_number(),
            payment_date=datetime.utcnow(),
            created_by=actor,
            reverses_payment_id=original.id,
        )
        created = await self.payment_repo.create(reversal)

        logger.info(
            f"Recorded reversal {created.receipt_number} of payment "
            f"{original.receipt_number} ({created.amount})"
        )
        return Return.ok(created)
