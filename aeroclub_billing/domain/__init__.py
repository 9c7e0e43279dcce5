from .base import BaseModel
from .member_account import MemberAccount
from .credit_transaction import CreditTransaction, TransactionType
from .invoice import Invoice, InvoiceStatus
from .invoice_line import InvoiceLine, ChargeType
from .payment import Payment, PaymentMethod

__all__ = [
    "BaseModel",
    "MemberAccount",
    "CreditTransaction",
    "TransactionType",
    "Invoice",
    "InvoiceStatus",
    "InvoiceLine",
    "ChargeType",
    "Payment",
    "PaymentMethod",
]
