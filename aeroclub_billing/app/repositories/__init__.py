from .member_account_repository import MemberAccountRepository
from .credit_transaction_repository import CreditTransactionRepository
from .invoice_repository import InvoiceRepository
from .invoice_line_repository import InvoiceLineRepository
from .payment_repository import PaymentRepository

__all__ = [
    "MemberAccountRepository",
    "CreditTransactionRepository",
    "InvoiceRepository",
    "InvoiceLineRepository",
    "PaymentRepository",
]
