"""Credit Transaction Repository Interface

Defines the contract for credit transaction persistence operations.
"""

from abc import ABC, abstractmethod
from typing import List
from aeroclub_billing.domain.credit_transaction import CreditTransaction


class CreditTransactionRepository(ABC):
    """
    Repository interface for CreditTransaction persistence

    Transactions are immutable and append-only for audit trail.
    """

    @abstractmethod
    async def create(self, transaction: CreditTransaction) -> CreditTransaction:
        """
        Create a new credit transaction

        Args:
            transaction: CreditTransaction entity to persist

        Returns:
            Created CreditTransaction with generated ID
        """
        pass

    @abstractmethod
    async def get_by_payment_id(self, payment_id: int) -> List[CreditTransaction]:
        """
        Retrieve the credit mutations recorded for a payment

        Args:
            payment_id: Payment ID

        Returns:
            List of CreditTransaction (empty if none)
        """
        pass

    @abstractmethod
    async def get_by_user_id(self, user_id: str, limit: int = 20, offset: int = 0) -> List[CreditTransaction]:
        """
        Retrieve a member's credit history, most recent first

        Args:
            user_id: Member identifier
            limit: Maximum number of transactions to return
            offset: Offset for pagination

        Returns:
            List of CreditTransaction
        """
        pass

    @abstractmethod
    async def get_all(self, limit: int = 500, offset: int = 0) -> List[CreditTransaction]:
        """
        Retrieve every credit transaction, oldest first

        Args:
            limit: Maximum number of transactions to return
            offset: Offset for pagination

        Returns:
            List of CreditTransaction
        """
        pass
