"""Invoice Aggregator

Pure functions deriving invoice totals, remaining balance and status from
charge line items and recorded payments. No I/O, no side effects.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Union

from aeroclub_billing.domain.invoice import Invoice, InvoiceStatus
from aeroclub_billing.domain.invoice_line import InvoiceLine
from aeroclub_billing.domain.money import ZERO, to_money
from aeroclub_billing.domain.payment import Payment


def line_amount(unit_rate: Decimal, quantity: Decimal) -> Decimal:
    """Amount of a single charge line, rounded half-up to cents"""
    return to_money(Decimal(unit_rate) * Decimal(quantity))


def compute_total(lines: Iterable[InvoiceLine]) -> Decimal:
    """Invoice total from its line items; an invoice with no lines totals 0.00"""
    return to_money(sum((to_money(line.amount) for line in lines), ZERO))


def amount_paid(payments: Iterable[Payment]) -> Decimal:
    return to_money(sum((to_money(p.amount) for p in payments), ZERO))


def remaining_balance(invoice: Invoice, payments: Iterable[Payment]) -> Decimal:
    """
    Outstanding amount: total_amount minus every payment recorded so far

    Reversal records carry negative amounts, so a reversed payment adds
    its amount back to the remaining balance.
    """
    return to_money(invoice.total_amount) - amount_paid(payments)


def derive_status(
    invoice: Invoice,
    payments: Iterable[Payment],
    now: Union[datetime, date],
) -> InvoiceStatus:
    """
    Status implied by the payments at a point in time

    - paid: payments sum exactly to total_amount
    - overdue: due_date has passed and something is still owed
    - pending: everything else
    """
    remaining = remaining_balance(invoice, payments)
    if remaining == ZERO:
        return InvoiceStatus.PAID

    today = now.date() if isinstance(now, datetime) else now
    if today > invoice.due_date:
        return InvoiceStatus.OVERDUE
    return InvoiceStatus.PENDING
