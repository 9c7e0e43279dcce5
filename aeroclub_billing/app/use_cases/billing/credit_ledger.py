"""Credit Ledger

Sole writer of member credit balances. Every mutation is written as a
CreditTransaction in the caller's unit of work; the ledger never commits.
"""

import logging
from decimal import Decimal
from aeroclub_billing.libs.result import Result, Return, Error
from aeroclub_billing.app.repositories.member_account_repository import MemberAccountRepository
from aeroclub_billing.app.repositories.credit_transaction_repository import CreditTransactionRepository
from aeroclub_billing.domain.credit_transaction import CreditTransaction, TransactionType
from aeroclub_billing.domain.money import ZERO, to_money

logger = logging.getLogger(__name__)


class CreditLedger:
    """
    Member credit balance operations

    Business Rules:
    1. Amounts must be > 0
    2. A debit never takes the balance below zero
    3. Pessimistic lock on read (SELECT FOR UPDATE) plus a version-checked
       write, so concurrent debits of one account cannot both succeed
    4. No commit: the caller commits the debit together with the payment it
       pays for, or rolls both back

    Debiting without committing a matching credit payment in the same unit
    of work breaks the ledger/payment invariant and is a programming error.
    """

    def __init__(
        self,
        account_repo: MemberAccountRepository,
        transaction_repo: CreditTransactionRepository,
    ):
        self.account_repo = account_repo
        self.transaction_repo = transaction_repo

    async def debit(self, user_id: str, amount: Decimal, payment_id: int, actor: str) -> Result[Decimal]:
        """
        Take credit from a member's account

        Args:
            user_id: Member whose credit is used
            amount: Credit to take (must be > 0)
            payment_id: Credit payment this debit pays for
            actor: Who is recording the payment

        Returns:
            Result[Decimal]: New credit balance, or INVALID_AMOUNT,
            ACCOUNT_NOT_FOUND, INSUFFICIENT_CREDIT, CONFLICT
        """
        amount = to_money(amount)
        if amount <= ZERO:
            return Return.err(
                Error(
                    code="INVALID_AMOUNT",
                    message=f"Debit amount must be greater than 0, got {amount}",
                    details={"user_id": user_id, "amount": str(amount)},
                )
            )

        account = await self.account_repo.get_by_user_id(user_id, for_update=True)
        if not account:
            return Return.err(
                Error(
                    code="ACCOUNT_NOT_FOUND",
                    message=f"No member account found for user {user_id}",
                    details={"user_id": user_id},
                )
            )

        balance_before = to_money(account.credit_balance)
        if amount > balance_before:
            return Return.err(
                Error(
                    code="INSUFFICIENT_CREDIT",
                    message=f"Insufficient credit. Required: {amount}, Available: {balance_before}",
                    reason=f"balance={balance_before}, required={amount}",
                    details={"user_id": user_id, "amount": str(amount), "credit_balance": str(balance_before)},
                )
            )

        balance_after = balance_before - amount
        return await self._apply(
            account, TransactionType.DEBIT, amount, balance_before, balance_after, payment_id, actor
        )

    async def restore(self, user_id: str, amount: Decimal, payment_id: int, actor: str) -> Result[Decimal]:
        """
        Give credit back when a credit payment is reversed

        Args:
            user_id: Member whose credit is restored
            amount: Credit to restore (must be > 0)
            payment_id: The reversal payment record
            actor: Who is recording the reversal

        Returns:
            Result[Decimal]: New credit balance, or INVALID_AMOUNT,
            ACCOUNT_NOT_FOUND, CONFLICT
        """
        amount = to_money(amount)
        if amount <= ZERO:
            return Return.err(
                Error(
                    code="INVALID_AMOUNT",
                    message=f"Restore amount must be greater than 0, got {amount}",
                    details={"user_id": user_id, "amount": str(amount)},
                )
            )

        account = await self.account_repo.get_by_user_id(user_id, for_update=True)
        if not account:
            return Return.err(
                Error(
                    code="ACCOUNT_NOT_FOUND",
                    message=f"No member account found for user {user_id}",
                    details={"user_id": user_id},
                )
            )

        balance_before = to_money(account.credit_balance)
        balance_after = balance_before + amount
        return await self._apply(
            account, TransactionType.RESTORE, amount, balance_before, balance_after, payment_id, actor
        )

    async def _apply(
        self, account, transaction_type, amount, balance_before, balance_after, payment_id, actor
    ) -> Result[Decimal]:
        updated = await self.account_repo.update_balance(account.id, account.version, balance_after)
        if not updated:
            logger.warning(
                f"Credit account for user {account.user_id} changed concurrently "
                f"(expected version {account.version})"
            )
            return Return.err(
                Error(
                    code="CONFLICT",
                    message=f"Credit balance for user {account.user_id} changed concurrently",
                    reason=f"expected_version={account.version}",
                    details={"user_id": account.user_id},
                )
            )

        await self.transaction_repo.create(
            CreditTransaction(
                user_id=account.user_id,
                account_id=account.id,
                transaction_type=transaction_type,
                amount=amount,
                balance_before=balance_before,
                balance_after=balance_after,
                payment_id=payment_id,
                created_by=actor,
            )
        )

        logger.info(
            f"Credit {transaction_type.value} for user {account.user_id}: "
            f"{amount} ({balance_before} -> {balance_after})"
        )
        return Return.ok(balance_after)
