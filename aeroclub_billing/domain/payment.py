"""Payment Domain Entity

Immutable record of money received against an invoice.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String, UniqueConstraint
from aeroclub_billing.domain.base import BaseModel, BigInt


class PaymentMethod(str, Enum):
    """Payment methods accepted at the front desk"""
    EFTPOS = "eftpos"
    BANK_TRANSFER = "bank_transfer"
    VOUCHER = "voucher"
    CASH = "cash"
    CREDIT = "credit"  # Drawn from the member's account credit


class Payment(BaseModel, table=True):
    """
    Payment - Money applied to an invoice

    Domain Rules:
    - Payments are immutable; corrections are compensating records with a
      negative amount that point at the reversed payment
    - receipt_number is unique and sequential, never reused
    - created_by is the actor recording the payment, user_id is the payer
    - One payment per method per reconciliation attempt (attempt_key)
    """

    __tablename__ = "payments"
    __table_args__ = (
        Index('ix_payments_invoice_id', 'invoice_id'),
        Index('ix_payments_user_id', 'user_id'),
        UniqueConstraint('attempt_key', 'payment_method', name='uq_payments_attempt_method'),
        CheckConstraint('amount <> 0', name='amount_non_zero'),
    )

    id: int = Field(
        sa_column=Column(BigInt, primary_key=True, autoincrement=True),
        description="Unique payment identifier (auto-increment)"
    )

    invoice_id: int = Field(
        sa_column=Column(BigInt, ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=False),
        description="Invoice the payment is applied to"
    )

    user_id: str = Field(
        description="Member who paid"
    )

    amount: Decimal = Field(
        sa_column=Column(Numeric(12, 2), nullable=False),
        description="Payment amount (negative only for reversals)"
    )

    payment_method: PaymentMethod = Field(
        description="Payment method (eftpos, bank_transfer, voucher, cash, credit)"
    )

    reference_number: Optional[str] = Field(
        default=None,
        sa_column=Column(String(100), nullable=True),
        description="External reference (bank reference, voucher code, ...)"
    )

    notes: Optional[str] = Field(
        default=None,
        sa_column=Column(String(500), nullable=True),
        description="Free-form notes"
    )

    receipt_number: str = Field(
        sa_column=Column(String(50), nullable=False, unique=True),
        description="Unique receipt number (e.g., RCPT-2024-000001)"
    )

    payment_date: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the payment was recorded"
    )

    created_by: str = Field(
        description="Actor who recorded the payment"
    )

    attempt_key: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True, index=True),
        description="Idempotency key of the reconciliation attempt that created it"
    )

    reverses_payment_id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigInt, ForeignKey("payments.id", ondelete="RESTRICT"), nullable=True, unique=True),
        description="Payment compensated by this record (reversals only)"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": 10,
                "invoice_id": 1,
                "user_id": "member_42",
                "amount": "199.00",
                "payment_method": "eftpos",
                "reference_number": None,
                "notes": None,
                "receipt_number": "RCPT-2024-000010",
                "payment_date": "2024-02-01T10:00:00Z",
                "created_by": "staff_3",
                "attempt_key": "checkout:booking_7",
                "reverses_payment_id": None
            }
        }
