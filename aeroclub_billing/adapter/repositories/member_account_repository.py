"""SQLAlchemy implementation of MemberAccountRepository

Provides persistence for MemberAccount entities with row locking and
version-checked balance updates so concurrent debits cannot overspend.
"""

from typing import Optional
from decimal import Decimal
from datetime import datetime
from sqlalchemy import update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from aeroclub_billing.app.repositories.member_account_repository import MemberAccountRepository
from aeroclub_billing.domain.member_account import MemberAccount


class SqlAlchemyMemberAccountRepository(MemberAccountRepository):
    """
    SQLAlchemy implementation of MemberAccountRepository

    Features:
    - Pessimistic locking via SELECT FOR UPDATE (ignored by SQLite)
    - Version-checked balance updates
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_user_id(self, user_id: str, for_update: bool = False) -> Optional[MemberAccount]:
        """
        Retrieve account by member ID with optional row-level locking

        Args:
            user_id: Member identifier
            for_update: If True, locks the row with SELECT FOR UPDATE

        Returns:
            MemberAccount if found, None otherwise
        """
        stmt = (
            select(MemberAccount)
            .where(MemberAccount.user_id == user_id)
            .execution_options(populate_existing=True)
        )

        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, account: MemberAccount) -> MemberAccount:
        """
        Create a new member account

        Args:
            account: MemberAccount entity to persist

        Returns:
            Created MemberAccount with generated ID
        """
        self.session.add(account)
        await self.session.flush()
        await self.session.refresh(account)
        return account

    async def update_balance(self, account_id: int, expected_version: int, new_balance: Decimal) -> bool:
        """
        Update balance and bump version if the row is still at expected_version

        Args:
            account_id: Account ID
            expected_version: Version observed when the balance was read
            new_balance: New balance value

        Returns:
            True if updated, False if another writer got there first
        """
        stmt = (
            update(MemberAccount)
            .where(MemberAccount.id == account_id)
            .where(MemberAccount.version == expected_version)
            .values(
                credit_balance=new_balance,
                version=MemberAccount.version + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return False

        await self.session.get(MemberAccount, account_id, populate_existing=True)
        return True
