"""Member Account Repository Interface

Defines the contract for member account persistence operations.
"""

from abc import ABC, abstractmethod
from typing import Optional
from decimal import Decimal
from aeroclub_billing.domain.member_account import MemberAccount


class MemberAccountRepository(ABC):
    """
    Repository interface for MemberAccount persistence

    Reads can take a row lock (SELECT FOR UPDATE) and balance writes are
    version-checked, so two debits against the same account cannot both
    spend the same credit.
    """

    @abstractmethod
    async def get_by_user_id(self, user_id: str, for_update: bool = False) -> Optional[MemberAccount]:
        """
        Retrieve account by member ID

        Args:
            user_id: Member identifier
            for_update: If True, lock the row with SELECT FOR UPDATE (pessimistic lock)

        Returns:
            MemberAccount if found, None otherwise
        """
        pass

    @abstractmethod
    async def create(self, account: MemberAccount) -> MemberAccount:
        """
        Create a new member account

        Args:
            account: MemberAccount entity to persist

        Returns:
            Created MemberAccount with generated ID
        """
        pass

    @abstractmethod
    async def update_balance(self, account_id: int, expected_version: int, new_balance: Decimal) -> bool:
        """
        Set the balance if the account is still at expected_version

        Args:
            account_id: Account ID
            expected_version: Version observed when the balance was read
            new_balance: New balance value

        Returns:
            True if the row was updated, False if it changed concurrently
        """
        pass
