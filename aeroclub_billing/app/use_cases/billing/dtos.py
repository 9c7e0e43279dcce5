"""Data Transfer Objects for Billing Use Cases

Pydantic models for command inputs and response outputs.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator

from aeroclub_billing.domain.payment import Payment, PaymentMethod


class FlightChargeDTO(BaseModel):
    """Aircraft time charge: hourly rate x units flown"""

    description: str = Field(..., min_length=1, description="e.g. 'ZK-ABC Aeroclub Dual'")
    rate: Decimal = Field(..., ge=0, decimal_places=2, description="Hourly rate")
    units: Decimal = Field(..., ge=0, decimal_places=2, description="Hours flown (tacho/hobbs)")


class AdditionalChargeDTO(BaseModel):
    """Non-flight charge: unit amount x quantity"""

    description: str = Field(..., min_length=1, description="e.g. 'Landing fee NZAA'")
    amount: Decimal = Field(..., ge=0, decimal_places=2, description="Unit amount")
    quantity: Decimal = Field(default=Decimal("1"), gt=0, decimal_places=2, description="Quantity")


class CreateInvoiceCommandDTO(BaseModel):
    """
    Command DTO for creating an invoice

    Used as input to CreateInvoice use case.
    """

    user_id: str = Field(..., min_length=1, description="Member being billed")

    booking_id: Optional[str] = Field(default=None, description="Booking the invoice is raised for")

    due_date: Optional[date] = Field(
        default=None,
        description="Due date (defaults to today + INVOICE_DUE_DAYS)"
    )

    flight_charges: List[FlightChargeDTO] = Field(default_factory=list)

    additional_charges: List[AdditionalChargeDTO] = Field(default_factory=list)

    notes: Optional[str] = Field(default=None)

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "member_42",
                "booking_id": "booking_7",
                "due_date": "2024-02-14",
                "flight_charges": [
                    {"description": "ZK-ABC Aeroclub Dual", "rate": "230.00", "units": "1.20"}
                ],
                "additional_charges": [
                    {"description": "Landing fee NZAA", "amount": "23.00", "quantity": "1"}
                ],
            }
        }


class InvoiceLineDTO(BaseModel):
    position: int
    charge_type: str
    description: str
    unit_rate: Decimal
    quantity: Decimal
    amount: Decimal


class InvoiceResponseDTO(BaseModel):
    """
    Response DTO for invoice creation

    Returned by CreateInvoice use case.
    """

    invoice_id: int
    invoice_number: str
    user_id: str
    booking_id: Optional[str] = None
    status: str
    total_amount: Decimal
    due_date: date
    paid_date: Optional[datetime] = None
    line_items: List[InvoiceLineDTO]
    created_at: datetime


class RemainderDTO(BaseModel):
    """Instrument and amount covering what credit does not"""

    method: PaymentMethod = Field(..., description="Non-credit payment method")
    amount: Decimal = Field(..., gt=0, decimal_places=2, description="Amount paid with the instrument")

    @field_validator('method')
    @classmethod
    def validate_method(cls, v):
        """Credit is applied through credit_to_apply, never as a remainder"""
        if v == PaymentMethod.CREDIT:
            raise ValueError("Remainder method cannot be 'credit'; use credit_to_apply")
        return v


class ReconcileCommandDTO(BaseModel):
    """
    Command DTO for a reconciliation attempt

    Used as input to ReconcilePayment use case.
    """

    invoice_id: int = Field(..., description="Invoice being paid")

    user_id: str = Field(..., min_length=1, description="Member paying (owner of the credit account)")

    credit_to_apply: Decimal = Field(
        default=Decimal("0"),
        decimal_places=2,
        description="Amount to draw from account credit"
    )

    remainder: Optional[RemainderDTO] = Field(
        default=None,
        description="Instrument for the balance left after credit"
    )

    recorded_by: str = Field(..., min_length=1, description="Actor recording the payment")

    reference_number: Optional[str] = Field(default=None)

    notes: Optional[str] = Field(default=None)

    idempotency_key: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=255,
        description="Per-attempt key; retries with the same key never pay twice"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "invoice_id": 1,
                "user_id": "member_42",
                "credit_to_apply": "100.00",
                "remainder": {"method": "eftpos", "amount": "199.00"},
                "recorded_by": "staff_3",
                "idempotency_key": "checkout:booking_7:1",
            }
        }


class PaymentRequestDTO(BaseModel):
    """
    Input to the PaymentRecorder

    Amount is deliberately unconstrained here: the recorder owns that
    validation and reports it as INVALID_PAYMENT.
    """

    invoice_id: int
    user_id: str
    amount: Decimal
    payment_method: PaymentMethod
    recorded_by: str
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    attempt_key: Optional[str] = None


class PaymentDTO(BaseModel):
    payment_id: int
    invoice_id: int
    user_id: str
    amount: Decimal
    payment_method: str
    receipt_number: str
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    payment_date: datetime
    created_by: str
    reverses_payment_id: Optional[int] = None

    @classmethod
    def from_entity(cls, payment: Payment) -> "PaymentDTO":
        method = payment.payment_method
        return cls(
            payment_id=payment.id,
            invoice_id=payment.invoice_id,
            user_id=payment.user_id,
            amount=payment.amount,
            payment_method=method.value if hasattr(method, "value") else method,
            receipt_number=payment.receipt_number,
            reference_number=payment.reference_number,
            notes=payment.notes,
            payment_date=payment.payment_date,
            created_by=payment.created_by,
            reverses_payment_id=payment.reverses_payment_id,
        )


class ReconciliationResultDTO(BaseModel):
    """
    Response DTO for a reconciliation attempt

    Returned by ReconcilePayment use case.
    """

    invoice_id: int
    payments: List[PaymentDTO]
    credit_balance: Optional[Decimal] = Field(
        default=None,
        description="Member credit after the attempt (None if the member has no account)"
    )
    invoice_status: str
    remaining_balance: Decimal
    state: str = Field(..., description="Final attempt state (completed)")
    replayed: bool = Field(
        default=False,
        description="True when an earlier attempt with the same idempotency key was returned"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "invoice_id": 1,
                "payments": [
                    {"payment_id": 10, "amount": "100.00", "payment_method": "credit",
                     "receipt_number": "RCPT-2024-000010"},
                    {"payment_id": 11, "amount": "199.00", "payment_method": "eftpos",
                     "receipt_number": "RCPT-2024-000011"},
                ],
                "credit_balance": "0.00",
                "invoice_status": "paid",
                "remaining_balance": "0.00",
                "state": "completed",
                "replayed": False,
            }
        }


class InvoiceBalanceResponseDTO(BaseModel):
    """
    Response DTO for invoice balance lookups

    Returned by GetInvoiceBalance use case.
    """

    invoice_id: int
    invoice_number: str
    user_id: str
    total_amount: Decimal
    amount_paid: Decimal
    remaining_balance: Decimal
    status: str
    due_date: date
    paid_date: Optional[datetime] = None


class ListPaymentsResponseDTO(BaseModel):
    invoice_id: int
    payments: List[PaymentDTO]
    total: int


class CreditTransactionDTO(BaseModel):
    id: int
    transaction_type: str
    amount: Decimal
    balance_after: Decimal
    payment_id: int
    created_at: datetime


class CreditBalanceResponseDTO(BaseModel):
    """
    Response DTO for credit balance lookups

    Returned by GetCreditBalance use case.
    """

    user_id: str
    credit_balance: Decimal
    last_updated: datetime
    recent_transactions: List[CreditTransactionDTO] = Field(default_factory=list)


class ReversePaymentCommandDTO(BaseModel):
    """
    Command DTO for reversing a payment

    Used as input to ReversePayment use case.
    """

    payment_id: int
    recorded_by: str = Field(..., min_length=1)
    notes: Optional[str] = None


class ReversalResultDTO(BaseModel):
    original_payment_id: int
    reversal: PaymentDTO
    credit_balance: Optional[Decimal] = None
    invoice_status: str
    remaining_balance: Decimal


class OverdueSweepResultDTO(BaseModel):
    """Summary of one overdue sweep run"""

    invoices_checked: int
    invoices_marked_overdue: int
    conflicts: int
    sweep_time: datetime
    execution_time_ms: int


class PaymentDiscrepancyDTO(BaseModel):
    """A broken payment invariant found by the audit"""

    kind: str = Field(
        ...,
        description="overpaid, status_mismatch, credit_debit_mismatch, orphan_credit_transaction"
    )
    invoice_id: Optional[int] = None
    payment_id: Optional[int] = None
    expected: str
    actual: str
    description: str


class PaymentAuditResultDTO(BaseModel):
    """Summary of one payment audit run"""

    invoices_checked: int
    credit_payments_checked: int
    credit_transactions_checked: int = 0
    discrepancies_found: int
    discrepancies: List[PaymentDiscrepancyDTO]
    audit_time: datetime
    execution_time_ms: int
