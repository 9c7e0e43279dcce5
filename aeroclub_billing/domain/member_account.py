"""Member Account Domain Entity

Holds a member's prepaid account credit. Each member has exactly one account.
Balance is always >= 0 and only changes through the credit ledger.
"""

from datetime import datetime
from decimal import Decimal
from sqlmodel import Field, Column
from sqlalchemy import CheckConstraint, Numeric
from aeroclub_billing.domain.base import BaseModel, BigInt


class MemberAccount(BaseModel, table=True):
    """
    Member Account - Tracks member credit balance

    Domain Rules:
    - One account per member (user_id is unique)
    - credit_balance must be non-negative
    - Balance updates only through the credit ledger, recorded as
      CreditTransactions
    - version is bumped on every balance change (optimistic locking)
    """

    __tablename__ = "member_accounts"
    __table_args__ = (
        CheckConstraint('credit_balance >= 0', name='credit_balance_non_negative'),
    )

    id: int = Field(
        sa_column=Column(BigInt, primary_key=True, autoincrement=True),
        description="Unique account identifier (auto-increment)"
    )

    user_id: str = Field(
        index=True,
        unique=True,
        description="Member ID (unique - one account per member)"
    )

    credit_balance: Decimal = Field(
        sa_column=Column(Numeric(12, 2), nullable=False, default=0),
        description="Current account credit (must be >= 0)"
    )

    version: int = Field(
        default=1,
        description="Optimistic concurrency counter"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Account creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Last balance update timestamp"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": 1,
                "user_id": "member_42",
                "credit_balance": "100.00",
                "version": 3,
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-01T00:00:00Z"
            }
        }
