"""ReversePayment Use Case

Corrects a recorded payment by writing a compensating record. Credit
payments give their credit back to the member.
"""

import logging
from datetime import datetime
from sqlalchemy.exc import IntegrityError
from aeroclub_billing.libs.result import Result, Return, Error
from aeroclub_billing.app.services.unit_of_work import UnitOfWork
from aeroclub_billing.app.repositories.invoice_repository import InvoiceRepository
from aeroclub_billing.app.repositories.payment_repository import PaymentRepository
from aeroclub_billing.app.repositories.member_account_repository import MemberAccountRepository
from aeroclub_billing.app.repositories.credit_transaction_repository import CreditTransactionRepository
from aeroclub_billing.domain.invoice import InvoiceStatus
from aeroclub_billing.domain.invoice_aggregator import derive_status, remaining_balance
from aeroclub_billing.domain.payment import PaymentMethod
from .credit_ledger import CreditLedger
from .payment_recorder import PaymentRecorder
from .dtos import PaymentDTO, ReversalResultDTO, ReversePaymentCommandDTO

logger = logging.getLogger(__name__)


class ReversePayment:
    """
    Use Case: Reverse a payment

    Business Rules:
    1. Payments are never edited; the reversal is a new record with the
       negative amount that points at the original
    2. A payment can be reversed once; reversals cannot be reversed
    3. Reversing a credit payment restores the same amount of credit
    4. Reversal, credit restore and invoice status change commit together

    Flow:
    1. Load payment and check it has not been reversed
    2. Record compensating payment
    3. Restore credit (credit payments only)
    4. Recompute and write invoice status (version-checked)
    5. Commit transaction
    6. Return response
    """

    def __init__(
        self,
        uow: UnitOfWork,
        invoice_repo: InvoiceRepository,
        payment_repo: PaymentRepository,
        account_repo: MemberAccountRepository,
        transaction_repo: CreditTransactionRepository,
    ):
        self.uow = uow
        self.invoice_repo = invoice_repo
        self.payment_repo = payment_repo
        self.ledger = CreditLedger(account_repo, transaction_repo)
        self.recorder = PaymentRecorder(invoice_repo, payment_repo)

    async def execute(self, command: ReversePaymentCommandDTO) -> Result[ReversalResultDTO]:
        """
        Execute payment reversal

        Args:
            command: ReversePaymentCommandDTO with payment_id and actor

        Returns:
            Result[ReversalResultDTO]: Success with reversal details or error
        """
        try:
            # Step 1: Load payment
            original = await self.payment_repo.get_by_id(command.payment_id)
            if not original:
                return Return.err(
                    Error(
                        code="PAYMENT_NOT_FOUND",
                        message=f"Payment {command.payment_id} not found",
                    )
                )

            if await self.payment_repo.get_reversal_of(original.id):
                return Return.err(
                    Error(
                        code="ALREADY_REVERSED",
                        message=f"Payment {original.receipt_number} has already been reversed",
                    )
                )

            invoice = await self.invoice_repo.get_by_id(original.invoice_id)
            expected_version = invoice.version

            # Step 2: Compensating record
            recorded = await self.recorder.record_reversal(original, command.recorded_by, command.notes)
            if recorded.is_err():
                await self.uow.rollback()
                return Return.err(recorded.error)
            reversal = recorded.value

            # Step 3: Give credit back
            credit_balance = None
            if original.payment_method == PaymentMethod.CREDIT:
                restored = await self.ledger.restore(
                    original.user_id, original.amount, reversal.id, command.recorded_by
                )
                if restored.is_err():
                    await self.uow.rollback()
                    return Return.err(restored.error)
                credit_balance = restored.value

            # Step 4: Invoice status
            now = datetime.utcnow()
            payments = await self.payment_repo.get_by_invoice_id(invoice.id)
            status = derive_status(invoice, payments, now)
            paid_date = invoice.paid_date if status == InvoiceStatus.PAID else None

            updated = await self.invoice_repo.update_status(
                invoice.id, expected_version, status, paid_date
            )
            if not updated:
                await self.uow.rollback()
                return Return.err(
                    Error(
                        code="CONFLICT",
                        message=f"Invoice {invoice.invoice_number} was modified concurrently",
                        reason=f"expected_version={expected_version}",
                    )
                )

            # Step 5: Commit transaction
            await self.uow.commit()

            logger.info(
                f"Reversed payment {original.receipt_number} with {reversal.receipt_number}; "
                f"invoice {invoice.invoice_number} is now {status.value}"
            )

            # Step 6: Build response
            return Return.ok(
                ReversalResultDTO(
                    original_payment_id=original.id,
                    reversal=PaymentDTO.from_entity(reversal),
                    credit_balance=credit_balance,
                    invoice_status=status.value,
                    remaining_balance=remaining_balance(invoice, payments),
                )
            )

        except IntegrityError as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="CONFLICT",
                    message="Reversal collided with a concurrent write",
                    reason=str(e),
                )
            )
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="REVERSE_PAYMENT_FAILED",
                    message="Failed to reverse payment",
                    reason=str(e),
                )
            )
