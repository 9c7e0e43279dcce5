"""Request schemas for Billing API

Pydantic models for validating incoming HTTP requests.
"""

from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from aeroclub_billing.app.use_cases.billing.dtos import RemainderDTO


class ReconcileRequestSchema(BaseModel):
    """
    Request schema for paying an invoice

    Used for POST /billing/invoices/{invoice_id}/reconcile endpoint.
    The invoice comes from the path.
    """

    user_id: str = Field(
        ...,
        min_length=1,
        description="Member paying (required, non-empty)"
    )

    credit_to_apply: Decimal = Field(
        default=Decimal("0"),
        decimal_places=2,
        description="Account credit to apply (0 <= value <= min(credit, remaining))"
    )

    remainder: Optional[RemainderDTO] = Field(
        default=None,
        description="Instrument and amount for what credit does not cover"
    )

    recorded_by: str = Field(
        ...,
        min_length=1,
        description="Staff member recording the payment"
    )

    reference_number: Optional[str] = Field(default=None, max_length=100)

    notes: Optional[str] = Field(default=None, max_length=500)

    idempotency_key: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=255,
        description="Send the same key when retrying the same attempt"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "member_42",
                "credit_to_apply": "100.00",
                "remainder": {"method": "eftpos", "amount": "199.00"},
                "recorded_by": "staff_3",
                "reference_number": "EFT-889123",
                "idempotency_key": "checkout:booking_7:1",
            }
        }


class ReverseRequestSchema(BaseModel):
    """
    Request schema for reversing a payment

    Used for POST /billing/payments/{payment_id}/reverse endpoint.
    """

    recorded_by: str = Field(
        ...,
        min_length=1,
        description="Staff member recording the reversal"
    )

    notes: Optional[str] = Field(default=None, max_length=500)
