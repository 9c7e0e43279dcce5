"""Get Credit Balance Use Case

Retrieves a member's current account credit and recent credit history.
"""

from aeroclub_billing.libs.result import Result, Return, Error
from aeroclub_billing.app.repositories.member_account_repository import MemberAccountRepository
from aeroclub_billing.app.repositories.credit_transaction_repository import CreditTransactionRepository
from .dtos import CreditBalanceResponseDTO, CreditTransactionDTO


class GetCreditBalance:
    """
    Get Credit Balance Use Case

    Read-only operation that retrieves the current credit balance
    for a given member.
    """

    def __init__(
        self,
        account_repo: MemberAccountRepository,
        transaction_repo: CreditTransactionRepository,
    ):
        """
        Initialize GetCreditBalance use case

        Args:
            account_repo: Repository for accessing member accounts
            transaction_repo: Repository for credit history
        """
        self.account_repo = account_repo
        self.transaction_repo = transaction_repo

    async def execute(self, user_id: str, history_limit: int = 10) -> Result[CreditBalanceResponseDTO]:
        """
        Execute get credit balance operation

        Args:
            user_id: The member identifier
            history_limit: Number of recent credit transactions to include

        Returns:
            Result[CreditBalanceResponseDTO]: Success with balance data or error

        Errors:
            ACCOUNT_NOT_FOUND: Member has no account
        """
        account = await self.account_repo.get_by_user_id(user_id)

        if not account:
            return Return.err(
                Error(
                    code="ACCOUNT_NOT_FOUND",
                    message=f"No member account found for user {user_id}",
                )
            )

        transactions = await self.transaction_repo.get_by_user_id(user_id, limit=history_limit)

        return Return.ok(
            CreditBalanceResponseDTO(
                user_id=account.user_id,
                credit_balance=account.credit_balance,
                last_updated=account.updated_at,
                recent_transactions=[
                    CreditTransactionDTO(
                        id=txn.id,
                        transaction_type=txn.transaction_type.value if hasattr(txn.transaction_type, "value") else txn.transaction_type,
                        amount=txn.amount,
                        balance_after=txn.balance_after,
                        payment_id=txn.payment_id,
                        created_at=txn.created_at,
                    )
                    for txn in transactions
                ],
            )
        )
