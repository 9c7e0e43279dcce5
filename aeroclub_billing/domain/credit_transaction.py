"""Credit Transaction Domain Entity

Immutable append-only audit trail of member credit mutations.
Each transaction records the balance change and the payment that caused it.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from sqlmodel import Field, Column, Index
from sqlalchemy import ForeignKey, Numeric
from aeroclub_billing.domain.base import BaseModel, BigInt


class TransactionType(str, Enum):
    """Credit transaction types"""
    DEBIT = "debit"        # Credit applied to an invoice
    RESTORE = "restore"    # Credit given back when a credit payment is reversed


class CreditTransaction(BaseModel, table=True):
    """
    Credit Transaction - Immutable audit trail of credit mutations

    Domain Rules:
    - Transactions are immutable (append-only)
    - Every credit payment has exactly one DEBIT of the same amount
    - Every reversed credit payment has exactly one RESTORE
    - amount is always positive; transaction_type gives the direction
    """

    __tablename__ = "credit_transactions"
    __table_args__ = (
        Index('ix_credit_transactions_created_at', 'created_at'),
        Index('ix_credit_transactions_payment_id', 'payment_id'),
    )

    id: int = Field(
        sa_column=Column(BigInt, primary_key=True, autoincrement=True),
        description="Unique transaction identifier (auto-increment)"
    )

    user_id: str = Field(
        index=True,
        description="Member ID for query optimization"
    )

    account_id: int = Field(
        sa_column=Column(BigInt, ForeignKey("member_accounts.id", ondelete="RESTRICT"), nullable=False),
        description="Foreign key to MemberAccount"
    )

    transaction_type: TransactionType = Field(
        description="Type of transaction (debit, restore)"
    )

    amount: Decimal = Field(
        sa_column=Column(Numeric(12, 2), nullable=False),
        description="Credit amount (always positive)"
    )

    balance_before: Decimal = Field(
        sa_column=Column(Numeric(12, 2), nullable=False),
        description="Balance before transaction"
    )

    balance_after: Decimal = Field(
        sa_column=Column(Numeric(12, 2), nullable=False),
        description="Balance after transaction"
    )

    payment_id: int = Field(
        sa_column=Column(BigInt, ForeignKey("payments.id", ondelete="RESTRICT"), nullable=False),
        description="Payment this mutation belongs to"
    )

    created_by: str = Field(
        description="Actor who caused the mutation"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Transaction timestamp (immutable)"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": 1,
                "user_id": "member_42",
                "account_id": 1,
                "transaction_type": "debit",
                "amount": "100.00",
                "balance_before": "100.00",
                "balance_after": "0.00",
                "payment_id": 10,
                "created_by": "staff_3",
                "created_at": "2024-02-01T10:00:00Z"
            }
        }
