"""ReconcilePayment Use Case

Applies member credit and at most one payment instrument against an
invoice's remaining balance in a single atomic commit.
"""

import asyncio
import functools
import logging
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from aeroclub_billing.libs.result import Result, Return, Error
from aeroclub_billing.app.services.unit_of_work import UnitOfWork
from aeroclub_billing.app.repositories.invoice_repository import InvoiceRepository
from aeroclub_billing.app.repositories.payment_repository import PaymentRepository
from aeroclub_billing.app.repositories.member_account_repository import MemberAccountRepository
from aeroclub_billing.app.repositories.credit_transaction_repository import CreditTransactionRepository
from aeroclub_billing.domain.invoice import InvoiceStatus
from aeroclub_billing.domain.invoice_aggregator import derive_status, remaining_balance
from aeroclub_billing.domain.money import ZERO, to_money
from aeroclub_billing.domain.payment import Payment, PaymentMethod
from .credit_ledger import CreditLedger
from .payment_recorder import PaymentRecorder
from .dtos import (
    PaymentDTO,
    PaymentRequestDTO,
    ReconcileCommandDTO,
    ReconciliationResultDTO,
)

logger = logging.getLogger(__name__)

# Errors from the write phase that mean another attempt got there first
CONCURRENT_CHANGE_CODES = {"OVERPAYMENT_REJECTED", "INSUFFICIENT_CREDIT", "CONFLICT"}


class ReconciliationState(str, Enum):
    """Lifecycle of one reconciliation attempt"""
    IDLE = "idle"
    VALIDATING = "validating"
    COMMITTING = "committing"
    COMPLETED = "completed"
    REJECTED = "rejected"          # Failed validation, nothing written
    ROLLED_BACK = "rolled_back"    # Failed while writing, everything undone


class ReconcilePayment:
    """
    Use Case: Pay an invoice with account credit and/or one instrument

    Business Rules:
    1. remaining = total_amount - payments so far; nothing to do if <= 0
    2. 0 <= credit_to_apply <= min(credit_balance, remaining)
    3. Whatever credit does not cover must be paid with exactly one
       non-credit instrument for exactly that amount
    4. Credit debit, payment inserts and the invoice status change are one
       atomic commit: all of them are durable or none are
    5. Optimistic concurrency: the invoice and account writes are
       version-checked; losing a race yields CONFLICT, never an overpayment
    6. A timed-out commit is INDETERMINATE: the caller must re-query before
       retrying
    7. Idempotency: an idempotency_key that already committed returns the
       stored outcome without writing again

    Flow:
    1. Load invoice, payments and member account
    2. Validate against remaining balance and credit balance
    3. Record credit payment + debit ledger (if credit_to_apply > 0)
    4. Record remainder payment (if anything is left after credit)
    5. Recompute status and write it with a version check
    6. Commit
    7. Return payments, new credit balance and invoice status

    State machine: idle -> validating -> committing -> completed, with
    validating -> rejected and committing -> rolled_back. After
    INDETERMINATE the attempt stays in committing.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        invoice_repo: InvoiceRepository,
        payment_repo: PaymentRepository,
        account_repo: MemberAccountRepository,
        transaction_repo: CreditTransactionRepository,
        commit_timeout: float = 10.0,
    ):
        self.uow = uow
        self.invoice_repo = invoice_repo
        self.payment_repo = payment_repo
        self.account_repo = account_repo
        self.ledger = CreditLedger(account_repo, transaction_repo)
        self.recorder = PaymentRecorder(invoice_repo, payment_repo)
        self.commit_timeout = commit_timeout
        self.state = ReconciliationState.IDLE

    async def execute(self, command: ReconcileCommandDTO) -> Result[ReconciliationResultDTO]:
        """
        Execute one reconciliation attempt

        Args:
            command: ReconcileCommandDTO with invoice, member, credit and remainder

        Returns:
            Result[ReconciliationResultDTO]: Success with created payments or error.
            Every error carries invoice_id, attempted amounts and the final state
            in error.details.
        """
        self.state = ReconciliationState.IDLE
        context = self._context(command)
        logger.info(
            f"Reconciling invoice {command.invoice_id} for user {command.user_id}: "
            f"credit={command.credit_to_apply}, remainder={context['remainder_method']} "
            f"{context['remainder_amount']}"
        )

        # Validation: read only, nothing to undo on failure
        self._transition(ReconciliationState.VALIDATING)
        try:
            if command.idempotency_key:
                previous = await self.payment_repo.get_by_attempt_key(command.idempotency_key)
                if previous:
                    return await self._replay(command, previous, context)

            invoice = await self.invoice_repo.get_by_id(command.invoice_id)
            if not invoice:
                return self._reject(
                    Error(
                        code="INVOICE_NOT_FOUND",
                        message=f"Invoice {command.invoice_id} not found",
                    ),
                    context,
                )

            # Later reads refresh this object in place
            expected_version = invoice.version
            payments = await self.payment_repo.get_by_invoice_id(invoice.id)
            account = await self.account_repo.get_by_user_id(command.user_id)
        except Exception as e:
            logger.error(f"Failed to load state for invoice {command.invoice_id}: {e}")
            return self._reject(
                Error(
                    code="COMMIT_FAILED",
                    message="Failed to load invoice state; nothing was written",
                    reason=str(e),
                ),
                context,
            )

        remaining = remaining_balance(invoice, payments)
        context["remaining_balance"] = str(remaining)
        if remaining <= ZERO:
            return self._reject(
                Error(
                    code="ALREADY_SETTLED",
                    message=f"Invoice {invoice.invoice_number} has no remaining balance",
                ),
                context,
            )

        credit_balance = to_money(account.credit_balance) if account else ZERO
        credit_to_apply = command.credit_to_apply
        max_credit = min(credit_balance, remaining)
        if credit_to_apply < ZERO or credit_to_apply > max_credit:
            return self._reject(
                Error(
                    code="INVALID_CREDIT_AMOUNT",
                    message=f"Credit to apply must be between 0 and {max_credit}, got {credit_to_apply}",
                    reason=f"credit_balance={credit_balance}, remaining={remaining}",
                ),
                context,
            )
        credit_to_apply = to_money(credit_to_apply)

        after_credit = remaining - credit_to_apply
        remainder = command.remainder if after_credit > ZERO else None
        if after_credit > ZERO:
            if remainder is None:
                return self._reject(
                    Error(
                        code="PAYMENT_METHOD_REQUIRED",
                        message=f"A payment method is required for the remaining {after_credit}",
                    ),
                    context,
                )
            if remainder.amount != after_credit:
                return self._reject(
                    Error(
                        code="INVALID_AMOUNT",
                        message=f"Remainder amount must be {after_credit}, got {remainder.amount}",
                        reason=f"remaining={remaining}, credit_to_apply={credit_to_apply}",
                    ),
                    context,
                )
        elif command.remainder is not None:
            logger.info(
                f"Credit covers invoice {invoice.invoice_number}; ignoring supplied remainder"
            )

        # Writes: one unit of work
        self._transition(ReconciliationState.COMMITTING)
        created: List[Payment] = []
        new_credit_balance: Optional[Decimal] = credit_balance if account else None
        try:
            if credit_to_apply > ZERO:
                credit_notes = f"Credit payment: {command.notes}" if command.notes else "Credit payment"
                recorded = await self.recorder.record(
                    PaymentRequestDTO(
                        invoice_id=invoice.id,
                        user_id=command.user_id,
                        amount=credit_to_apply,
                        payment_method=PaymentMethod.CREDIT,
                        recorded_by=command.recorded_by,
                        reference_number=command.reference_number,
                        notes=credit_notes,
                        attempt_key=command.idempotency_key,
                    )
                )
                if recorded.is_err():
                    return await self._roll_back(recorded.error, context)
                created.append(recorded.value)

                debited = await self.ledger.debit(
                    command.user_id, credit_to_apply, recorded.value.id, command.recorded_by
                )
                if debited.is_err():
                    return await self._roll_back(debited.error, context)
                new_credit_balance = debited.value

            if remainder is not None:
                recorded = await self.recorder.record(
                    PaymentRequestDTO(
                        invoice_id=invoice.id,
                        user_id=command.user_id,
                        amount=remainder.amount,
                        payment_method=remainder.method,
                        recorded_by=command.recorded_by,
                        reference_number=command.reference_number,
                        notes=command.notes,
                        attempt_key=command.idempotency_key,
                    )
                )
                if recorded.is_err():
                    return await self._roll_back(recorded.error, context)
                created.append(recorded.value)

            now = datetime.utcnow()
            all_payments = await self.payment_repo.get_by_invoice_id(invoice.id)
            status = derive_status(invoice, all_payments, now)
            new_remaining = remaining_balance(invoice, all_payments)
            paid_date = now if status == InvoiceStatus.PAID else None

            updated = await self.invoice_repo.update_status(
                invoice.id, expected_version, status, paid_date
            )
            if not updated:
                return await self._roll_back(
                    Error(
                        code="CONFLICT",
                        message=f"Invoice {invoice.invoice_number} was modified by another payment",
                        reason=f"expected_version={expected_version}",
                    ),
                    context,
                )

            await self._commit(invoice.id)

        except asyncio.TimeoutError:
            logger.error(
                f"Commit for invoice {command.invoice_id} timed out after {self.commit_timeout}s; "
                f"outcome unknown"
            )
            return Return.err(
                self._with_context(
                    Error(
                        code="INDETERMINATE",
                        message="Payment commit timed out; re-query the invoice before retrying",
                        reason=f"timeout={self.commit_timeout}s",
                    ),
                    context,
                )
            )
        except IntegrityError as e:
            return await self._roll_back(
                Error(
                    code="CONFLICT",
                    message="Payment collided with a concurrent write",
                    reason=str(e.orig) if e.orig is not None else str(e),
                ),
                context,
            )
        except Exception as e:
            return await self._roll_back(
                Error(
                    code="COMMIT_FAILED",
                    message="Failed to commit payment; nothing was applied",
                    reason=str(e),
                ),
                context,
            )

        self._transition(ReconciliationState.COMPLETED)
        logger.info(
            f"Invoice {invoice.invoice_number} reconciled: "
            f"{', '.join(f'{p.payment_method.value} {p.amount}' for p in created)}; "
            f"status={status.value}, remaining={new_remaining}"
        )

        return Return.ok(
            ReconciliationResultDTO(
                invoice_id=invoice.id,
                payments=[PaymentDTO.from_entity(p) for p in created],
                credit_balance=new_credit_balance,
                invoice_status=status.value,
                remaining_balance=new_remaining,
                state=self.state.value,
            )
        )

    async def _commit(self, invoice_id: int):
        """
        Commit the unit of work

        The commit is shielded: cancelling the caller does not interrupt a
        commit that has started. If it does not finish within commit_timeout
        asyncio.TimeoutError is raised while the commit keeps running. The
        running commit is then handed to the unit of work as pending_commit,
        so the session is not closed under it, and its outcome is logged
        once it settles.
        """
        commit = asyncio.ensure_future(self.uow.commit())
        try:
            await asyncio.wait_for(asyncio.shield(commit), timeout=self.commit_timeout)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            self.uow.pending_commit = commit
            commit.add_done_callback(functools.partial(self._log_late_commit, invoice_id))
            raise

    @staticmethod
    def _log_late_commit(invoice_id: int, commit: asyncio.Future):
        if commit.cancelled():
            logger.error(f"Timed-out commit for invoice {invoice_id} was cancelled; payment not applied")
        elif commit.exception() is not None:
            logger.error(
                f"Timed-out commit for invoice {invoice_id} failed: {commit.exception()}; "
                f"payment not applied"
            )
        else:
            logger.warning(f"Timed-out commit for invoice {invoice_id} completed; payment applied")

    async def _replay(self, command, previous: List[Payment], context) -> Result[ReconciliationResultDTO]:
        """Return the outcome of an attempt that already committed"""
        if any(
            p.invoice_id != command.invoice_id or p.user_id != command.user_id
            for p in previous
        ):
            return self._reject(
                Error(
                    code="IDEMPOTENCY_KEY_REUSED",
                    message=f"Idempotency key {command.idempotency_key} belongs to another invoice or member",
                ),
                context,
            )

        invoice = await self.invoice_repo.get_by_id(command.invoice_id)
        payments = await self.payment_repo.get_by_invoice_id(command.invoice_id)
        account = await self.account_repo.get_by_user_id(command.user_id)

        self._transition(ReconciliationState.COMPLETED)
        logger.info(
            f"Attempt {command.idempotency_key} already committed for invoice "
            f"{command.invoice_id}; returning stored outcome"
        )
        previous = sorted(previous, key=lambda p: p.id)
        return Return.ok(
            ReconciliationResultDTO(
                invoice_id=command.invoice_id,
                payments=[PaymentDTO.from_entity(p) for p in previous],
                credit_balance=to_money(account.credit_balance) if account else None,
                invoice_status=invoice.status.value,
                remaining_balance=remaining_balance(invoice, payments),
                state=self.state.value,
                replayed=True,
            )
        )

    def _reject(self, error: Error, context) -> Result[ReconciliationResultDTO]:
        self._transition(ReconciliationState.REJECTED)
        logger.warning(f"Reconciliation rejected for invoice {context['invoice_id']}: {error.code}")
        return Return.err(self._with_context(error, context))

    async def _roll_back(self, error: Error, context) -> Result[ReconciliationResultDTO]:
        await self.uow.rollback()
        self._transition(ReconciliationState.ROLLED_BACK)

        if error.code in CONCURRENT_CHANGE_CODES and error.code != "CONFLICT":
            # Amounts were validated against a snapshot; failing now means
            # another attempt changed the invoice or account in between
            error = Error(
                code="CONFLICT",
                message="Invoice or credit balance changed during payment; re-fetch and retry",
                reason=f"{error.code}: {error.message}",
                details=error.details,
            )

        logger.error(
            f"Reconciliation rolled back for invoice {context['invoice_id']}: "
            f"{error.code} ({error.reason or error.message})"
        )
        return Return.err(self._with_context(error, context))

    def _with_context(self, error: Error, context) -> Error:
        details = {**error.details, **context, "state": self.state.value}
        return error.model_copy(update={"details": details})

    def _transition(self, state: ReconciliationState):
        logger.debug(f"Reconciliation state {self.state.value} -> {state.value}")
        self.state = state

    @staticmethod
    def _context(command: ReconcileCommandDTO) -> dict:
        remainder = command.remainder
        return {
            "invoice_id": command.invoice_id,
            "user_id": command.user_id,
            "credit_to_apply": str(command.credit_to_apply),
            "remainder_method": remainder.method.value if remainder else None,
            "remainder_amount": str(remainder.amount) if remainder else None,
        }
