"""Invoice Line Domain Entity

Tracks individual charge line items within an invoice.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from sqlmodel import Field, Column, Index
from sqlalchemy import ForeignKey, Numeric, String
from aeroclub_billing.domain.base import BaseModel, BigInt


class ChargeType(str, Enum):
    """Charge line item types"""
    FLIGHT = "flight"            # Aircraft time: hourly rate x units flown
    ADDITIONAL = "additional"    # Landing fees, equipment hire, etc.


class InvoiceLine(BaseModel, table=True):
    """
    Invoice Line - Individual charge within an invoice

    Domain Rules:
    - Each line item belongs to exactly one invoice
    - amount = unit_rate * quantity, rounded half-up to cents
    - position keeps the order the charges were entered in
    - Immutable once the invoice is created
    """

    __tablename__ = "invoice_lines"
    __table_args__ = (
        Index('ix_invoice_lines_invoice_id', 'invoice_id'),
    )

    id: int = Field(
        sa_column=Column(BigInt, primary_key=True, autoincrement=True),
        description="Unique invoice line identifier (auto-increment)"
    )

    invoice_id: int = Field(
        sa_column=Column(BigInt, ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=False),
        description="Foreign key to Invoice"
    )

    position: int = Field(
        default=0,
        description="Zero-based order of the line within the invoice"
    )

    charge_type: ChargeType = Field(
        description="Charge type (flight, additional)"
    )

    description: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Line item description (e.g., 'ZK-ABC Aeroclub Dual')"
    )

    unit_rate: Decimal = Field(
        sa_column=Column(Numeric(12, 2), nullable=False),
        description="Rate per unit (hourly rate or unit price)"
    )

    quantity: Decimal = Field(
        sa_column=Column(Numeric(12, 2), nullable=False),
        description="Units (flight hours or item count)"
    )

    amount: Decimal = Field(
        sa_column=Column(Numeric(12, 2), nullable=False),
        description="Line amount (unit_rate * quantity)"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Line item creation timestamp"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": 1,
                "invoice_id": 1,
                "position": 0,
                "charge_type": "flight",
                "description": "ZK-ABC Aeroclub Dual",
                "unit_rate": "230.00",
                "quantity": "1.30",
                "amount": "299.00",
                "created_at": "2024-01-31T00:00:00Z"
            }
        }
