from .member_account_repository import SqlAlchemyMemberAccountRepository
from .credit_transaction_repository import SqlAlchemyCreditTransactionRepository
from .invoice_repository import SqlAlchemyInvoiceRepository
from .invoice_line_repository import SqlAlchemyInvoiceLineRepository
from .payment_repository import SqlAlchemyPaymentRepository

__all__ = [
    "SqlAlchemyMemberAccountRepository",
    "SqlAlchemyCreditTransactionRepository",
    "SqlAlchemyInvoiceRepository",
    "SqlAlchemyInvoiceLineRepository",
    "SqlAlchemyPaymentRepository",
]
