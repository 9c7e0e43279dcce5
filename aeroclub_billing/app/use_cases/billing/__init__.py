"""Billing domain use cases"""
from .credit_ledger import CreditLedger
from .payment_recorder import PaymentRecorder
from .reconcile_payment import ReconcilePayment, ReconciliationState
from .create_invoice import CreateInvoice
from .get_invoice_balance import GetInvoiceBalance
from .get_credit_balance import GetCreditBalance
from .list_invoice_payments import ListInvoicePayments
from .reverse_payment import ReversePayment
from .mark_overdue_invoices import MarkOverdueInvoices
from .audit_payments import AuditPayments
from .dtos import (
    FlightChargeDTO,
    AdditionalChargeDTO,
    CreateInvoiceCommandDTO,
    InvoiceLineDTO,
    InvoiceResponseDTO,
    RemainderDTO,
    ReconcileCommandDTO,
    PaymentRequestDTO,
    PaymentDTO,
    ReconciliationResultDTO,
    InvoiceBalanceResponseDTO,
    ListPaymentsResponseDTO,
    CreditTransactionDTO,
    CreditBalanceResponseDTO,
    ReversePaymentCommandDTO,
    ReversalResultDTO,
    OverdueSweepResultDTO,
    PaymentDiscrepancyDTO,
    PaymentAuditResultDTO,
)

__all__ = [
    "CreditLedger",
    "PaymentRecorder",
    "ReconcilePayment",
    "ReconciliationState",
    "CreateInvoice",
    "GetInvoiceBalance",
    "GetCreditBalance",
    "ListInvoicePayments",
    "ReversePayment",
    "MarkOverdueInvoices",
    "AuditPayments",
    "FlightChargeDTO",
    "AdditionalChargeDTO",
    "CreateInvoiceCommandDTO",
    "InvoiceLineDTO",
    "InvoiceResponseDTO",
    "RemainderDTO",
    "ReconcileCommandDTO",
    "PaymentRequestDTO",
    "PaymentDTO",
    "ReconciliationResultDTO",
    "InvoiceBalanceResponseDTO",
    "ListPaymentsResponseDTO",
    "CreditTransactionDTO",
    "CreditBalanceResponseDTO",
    "ReversePaymentCommandDTO",
    "ReversalResultDTO",
    "OverdueSweepResultDTO",
    "PaymentDiscrepancyDTO",
    "PaymentAuditResultDTO",
]
