"""AuditPayments Use Case

Checks recorded payments against the billing invariants to detect
discrepancies.
"""

import logging
import time
from datetime import datetime
from typing import List
from aeroclub_billing.libs.result import Result, Return, Error
from aeroclub_billing.app.repositories.invoice_repository import InvoiceRepository
from aeroclub_billing.app.repositories.payment_repository import PaymentRepository
from aeroclub_billing.app.repositories.credit_transaction_repository import CreditTransactionRepository
from aeroclub_billing.domain.credit_transaction import CreditTransaction, TransactionType
from aeroclub_billing.domain.invoice import Invoice, InvoiceStatus
from aeroclub_billing.domain.invoice_aggregator import amount_paid
from aeroclub_billing.domain.money import ZERO, to_money
from aeroclub_billing.domain.payment import Payment, PaymentMethod
from .dtos import PaymentDiscrepancyDTO, PaymentAuditResultDTO

logger = logging.getLogger(__name__)


class AuditPayments:
    """
    Use Case: Audit payments against invoices and the credit ledger

    Business Rules:
    1. Sum of payments on an invoice never exceeds total_amount
    2. Stored status agrees with the payments: paid iff nothing remains,
       overdue only after the due date
    3. Every credit payment has exactly one DEBIT of the same amount;
       every credit reversal has exactly one RESTORE
    4. Every credit ledger entry points at an existing credit payment
    5. Does NOT modify any data (read-only audit)

    A pending invoice past its due date is not reported; that is the
    overdue sweep's job.
    """

    def __init__(
        self,
        invoice_repo: InvoiceRepository,
        payment_repo: PaymentRepository,
        transaction_repo: CreditTransactionRepository,
        batch_size: int = 500,
    ):
        self.invoice_repo = invoice_repo
        self.payment_repo = payment_repo
        self.transaction_repo = transaction_repo
        self.batch_size = batch_size

    async def execute(self) -> Result[PaymentAuditResultDTO]:
        """
        Execute payment audit

        Returns:
            Result[PaymentAuditResultDTO]: Audit result with any discrepancies
        """
        start_time = time.time()
        audit_time = datetime.utcnow()

        try:
            logger.info("Starting payment audit")
            discrepancies: List[PaymentDiscrepancyDTO] = []

            invoices_checked = 0
            offset = 0
            while True:
                invoices = await self.invoice_repo.get_all(limit=self.batch_size, offset=offset)
                for invoice in invoices:
                    payments = await self.payment_repo.get_by_invoice_id(invoice.id)
                    discrepancies.extend(self._check_invoice(invoice, payments, audit_time))
                invoices_checked += len(invoices)
                if len(invoices) < self.batch_size:
                    break
                offset += self.batch_size

            credit_payments_checked = 0
            offset = 0
            while True:
                payments = await self.payment_repo.get_by_method(
                    PaymentMethod.CREDIT, limit=self.batch_size, offset=offset
                )
                for payment in payments:
                    discrepancy = await self._check_credit_payment(payment)
                    if discrepancy:
                        discrepancies.append(discrepancy)
                credit_payments_checked += len(payments)
                if len(payments) < self.batch_size:
                    break
                offset += self.batch_size

            credit_transactions_checked = 0
            offset = 0
            while True:
                transactions = await self.transaction_repo.get_all(limit=self.batch_size, offset=offset)
                for transaction in transactions:
                    discrepancy = await self._check_credit_transaction(transaction)
                    if discrepancy:
                        discrepancies.append(discrepancy)
                credit_transactions_checked += len(transactions)
                if len(transactions) < self.batch_size:
                    break
                offset += self.batch_size

            for d in discrepancies:
                logger.warning(f"Payment discrepancy ({d.kind}): {d.description}")

            execution_time_ms = int((time.time() - start_time) * 1000)
            if discrepancies:
                logger.warning(
                    f"Payment audit complete. Found {len(discrepancies)} discrepancies "
                    f"across {invoices_checked} invoices in {execution_time_ms}ms"
                )
            else:
                logger.info(
                    f"Payment audit complete. {invoices_checked} invoices and "
                    f"{credit_payments_checked} credit payments consistent in {execution_time_ms}ms"
                )

            return Return.ok(
                PaymentAuditResultDTO(
                    invoices_checked=invoices_checked,
                    credit_payments_checked=credit_payments_checked,
                    credit_transactions_checked=credit_transactions_checked,
                    discrepancies_found=len(discrepancies),
                    discrepancies=discrepancies,
                    audit_time=audit_time,
                    execution_time_ms=execution_time_ms,
                )
            )

        except Exception as e:
            logger.error(f"Payment audit failed: {e}")
            return Return.err(
                Error(
                    code="PAYMENT_AUDIT_FAILED",
                    message="Failed to audit payments",
                    reason=str(e),
                )
            )

    def _check_invoice(
        self, invoice: Invoice, payments: List[Payment], now: datetime
    ) -> List[PaymentDiscrepancyDTO]:
        found = []
        total = to_money(invoice.total_amount)
        paid = amount_paid(payments)
        remaining = total - paid

        if paid > total:
            found.append(
                PaymentDiscrepancyDTO(
                    kind="overpaid",
                    invoice_id=invoice.id,
                    expected=f"<= {total}",
                    actual=str(paid),
                    description=f"Invoice {invoice.invoice_number} has {paid} paid against total {total}",
                )
            )

        status = invoice.status
        if status == InvoiceStatus.PAID and remaining != ZERO:
            expected = "pending or overdue"
        elif status != InvoiceStatus.PAID and remaining == ZERO:
            expected = InvoiceStatus.PAID.value
        elif status == InvoiceStatus.OVERDUE and now.date() <= invoice.due_date:
            expected = InvoiceStatus.PENDING.value
        else:
            expected = None

        if expected:
            found.append(
                PaymentDiscrepancyDTO(
                    kind="status_mismatch",
                    invoice_id=invoice.id,
                    expected=expected,
                    actual=status.value,
                    description=f"Invoice {invoice.invoice_number} is {status.value} "
                                f"with {remaining} remaining (due {invoice.due_date})",
                )
            )
        return found

    async def _check_credit_payment(self, payment: Payment):
        is_reversal = payment.reverses_payment_id is not None
        expected_type = TransactionType.RESTORE if is_reversal else TransactionType.DEBIT
        expected_amount = abs(to_money(payment.amount))

        transactions = await self.transaction_repo.get_by_payment_id(payment.id)
        matching = [
            t for t in transactions
            if t.transaction_type == expected_type and to_money(t.amount) == expected_amount
        ]
        if len(matching) == 1 and len(transactions) == 1:
            return None

        return PaymentDiscrepancyDTO(
            kind="credit_debit_mismatch",
            invoice_id=payment.invoice_id,
            payment_id=payment.id,
            expected=f"1 {expected_type.value} of {expected_amount}",
            actual=", ".join(
                f"{t.transaction_type.value} {t.amount}" for t in transactions
            ) or "none",
            description=f"Credit payment {payment.receipt_number} has "
                        f"{len(transactions)} ledger entries, {len(matching)} matching",
        )

    async def _check_credit_transaction(self, transaction: CreditTransaction):
        """Flag ledger entries whose payment is missing or was not paid with credit"""
        payment = await self.payment_repo.get_by_id(transaction.payment_id)
        if payment and payment.payment_method == PaymentMethod.CREDIT:
            return None

        return PaymentDiscrepancyDTO(
            kind="orphan_credit_transaction",
            invoice_id=payment.invoice_id if payment else None,
            payment_id=transaction.payment_id,
            expected=f"{transaction.transaction_type.value} for a credit payment",
            actual=f"{payment.payment_method.value} payment" if payment else "no payment",
            description=f"Credit transaction {transaction.id} ({transaction.transaction_type.value} "
                        f"{transaction.amount}) for {transaction.user_id} has no matching credit payment",
        )
