"""Invoice Domain Entity

Member invoice for flight and additional charges.
"""

from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import CheckConstraint, Numeric, String, Date
from aeroclub_billing.domain.base import BaseModel, BigInt


class InvoiceStatus(str, Enum):
    """Invoice status types"""
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class Invoice(BaseModel, table=True):
    """
    Invoice - Billing invoice for a member's flight or checkout

    Domain Rules:
    - invoice_number must be unique
    - total_amount is derived once from the line items and never recomputed
    - Status is driven by payments: paid iff payments sum to total_amount,
      overdue once due_date has passed with a remaining balance
    - version is bumped on every payment-driven change (optimistic locking)
    - Never deleted while payments reference it
    """

    __tablename__ = "invoices"
    __table_args__ = (
        Index('ix_invoices_user_id', 'user_id'),
        Index('ix_invoices_status', 'status'),
        Index('ix_invoices_invoice_number', 'invoice_number', unique=True),
        CheckConstraint('total_amount >= 0', name='total_amount_non_negative'),
    )

    id: int = Field(
        sa_column=Column(BigInt, primary_key=True, autoincrement=True),
        description="Unique invoice identifier (auto-increment)"
    )

    invoice_number: str = Field(
        sa_column=Column(String(50), nullable=False, unique=True),
        description="Unique invoice number (e.g., INV-2024-000001)"
    )

    user_id: str = Field(
        description="Member being billed"
    )

    booking_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True),
        description="Booking the invoice was raised for, if any"
    )

    status: InvoiceStatus = Field(
        default=InvoiceStatus.PENDING,
        description="Invoice status (pending, paid, overdue)"
    )

    total_amount: Decimal = Field(
        sa_column=Column(Numeric(12, 2), nullable=False),
        description="Total invoice amount (sum of line amounts)"
    )

    due_date: date = Field(
        sa_column=Column(Date, nullable=False),
        description="Payment due date"
    )

    paid_date: Optional[datetime] = Field(
        default=None,
        description="Timestamp when the invoice became fully paid"
    )

    notes: Optional[str] = Field(
        default=None,
        sa_column=Column(String(500), nullable=True),
        description="Free-form notes"
    )

    version: int = Field(
        default=1,
        description="Optimistic concurrency counter"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Invoice creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Last update timestamp"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": 1,
                "invoice_number": "INV-2024-000001",
                "user_id": "member_42",
                "booking_id": "booking_7",
                "status": "pending",
                "total_amount": "299.00",
                "due_date": "2024-02-14",
                "paid_date": None,
                "version": 1,
                "created_at": "2024-01-31T00:00:00Z",
                "updated_at": "2024-01-31T00:00:00Z"
            }
        }
