"""Invoice API Routes

FastAPI routes for creating invoices, looking up balances and paying
invoices with account credit and/or one payment instrument.
"""

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from aeroclub_billing.api.schemas.billing_request import ReconcileRequestSchema
from aeroclub_billing.app.use_cases.billing.dtos import (
    CreateInvoiceCommandDTO,
    InvoiceResponseDTO,
    InvoiceBalanceResponseDTO,
    ListPaymentsResponseDTO,
    ReconcileCommandDTO,
    ReconciliationResultDTO,
)
from aeroclub_billing.app.use_cases.billing.create_invoice import CreateInvoice
from aeroclub_billing.app.use_cases.billing.get_invoice_balance import GetInvoiceBalance
from aeroclub_billing.app.use_cases.billing.list_invoice_payments import ListInvoicePayments
from aeroclub_billing.app.use_cases.billing.reconcile_payment import ReconcilePayment
from aeroclub_billing.adapter.repositories.invoice_repository import SqlAlchemyInvoiceRepository
from aeroclub_billing.adapter.repositories.invoice_line_repository import SqlAlchemyInvoiceLineRepository
from aeroclub_billing.adapter.repositories.payment_repository import SqlAlchemyPaymentRepository
from aeroclub_billing.adapter.repositories.member_account_repository import SqlAlchemyMemberAccountRepository
from aeroclub_billing.adapter.repositories.credit_transaction_repository import SqlAlchemyCreditTransactionRepository
from aeroclub_billing.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from aeroclub_billing.depends import get_session
from aeroclub_billing.api.error import client_error

router = APIRouter(prefix="/billing/invoices", tags=["Invoices"])


@router.post(
    "",
    response_model=InvoiceResponseDTO,
    status_code=status.HTTP_201_CREATED,
)
async def create_invoice(
    request: CreateInvoiceCommandDTO,
    session: AsyncSession = Depends(get_session)
):
    """
    Create an invoice from flight and additional charges.

    Flight charges are billed as rate x units, additional charges as
    amount x quantity. The total is fixed at creation. An invoice with no
    charges is created already paid.

    **Returns:**
    - 201: Invoice created
    - 400: Invalid request parameters
    """
    uow = SqlAlchemyUnitOfWork(session)
    use_case = CreateInvoice(
        uow,
        SqlAlchemyInvoiceRepository(session),
        SqlAlchemyInvoiceLineRepository(session),
        due_days=ApplicationConfig.INVOICE_DUE_DAYS,
    )
    result = await use_case.execute(request)

    if result.is_err():
        raise client_error(result.error)

    return result.value


@router.get(
    "/{invoice_id}/balance",
    response_model=InvoiceBalanceResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={
        404: {
            "description": "Invoice not found",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "INVOICE_NOT_FOUND",
                            "message": "Invoice 123 not found"
                        }
                    }
                }
            }
        }
    }
)
async def get_invoice_balance(
    invoice_id: int,
    session: AsyncSession = Depends(get_session)
):
    """
    Get total, amount paid, remaining balance and status of an invoice.

    **Returns:**
    - 200: Balance retrieved
    - 404: Invoice not found
    """
    use_case = GetInvoiceBalance(
        SqlAlchemyInvoiceRepository(session),
        SqlAlchemyPaymentRepository(session),
    )
    result = await use_case.execute(invoice_id)

    if result.is_err():
        raise client_error(result.error)

    return result.value


@router.get(
    "/{invoice_id}/payments",
    response_model=ListPaymentsResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def list_invoice_payments(
    invoice_id: int,
    session: AsyncSession = Depends(get_session)
):
    """
    List every payment recorded against an invoice, reversals included,
    oldest first.

    **Returns:**
    - 200: Payments retrieved
    - 404: Invoice not found
    """
    use_case = ListInvoicePayments(
        SqlAlchemyInvoiceRepository(session),
        SqlAlchemyPaymentRepository(session),
    )
    result = await use_case.execute(invoice_id)

    if result.is_err():
        raise client_error(result.error)

    return result.value


@router.post(
    "/{invoice_id}/reconcile",
    response_model=ReconciliationResultDTO,
    status_code=status.HTTP_200_OK,
    responses={
        400: {
            "description": "Validation error (nothing was written)",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "PAYMENT_METHOD_REQUIRED",
                            "message": "A payment method is required for the remaining 150.00",
                            "details": {"invoice_id": 1, "state": "rejected"}
                        }
                    }
                }
            }
        },
        409: {
            "description": "Invoice or credit changed concurrently; re-fetch and retry",
        },
        503: {
            "description": "Commit failed; nothing was applied",
        },
        504: {
            "description": "Commit outcome unknown; re-query the invoice before retrying",
        },
    }
)
async def reconcile_invoice(
    invoice_id: int,
    request: ReconcileRequestSchema,
    session: AsyncSession = Depends(get_session)
):
    """
    Pay an invoice with account credit and/or one payment instrument.

    Credit debit, payment records and the invoice status change commit
    together or not at all. Repeating a request with the same
    idempotency_key returns the stored outcome instead of paying twice.

    **Example request:**
    ```json
    {
      "user_id": "member_42",
      "credit_to_apply": "100.00",
      "remainder": {"method": "eftpos", "amount": "199.00"},
      "recorded_by": "staff_3",
      "idempotency_key": "checkout:booking_7:1"
    }
    ```

    **Returns:**
    - 200: Payments recorded (or replayed)
    - 400: Validation error
    - 404: Invoice not found
    - 409: Concurrent change
    - 503: Commit failed
    - 504: Commit outcome unknown
    """
    uow = SqlAlchemyUnitOfWork(session)
    use_case = ReconcilePayment(
        uow,
        SqlAlchemyInvoiceRepository(session),
        SqlAlchemyPaymentRepository(session),
        SqlAlchemyMemberAccountRepository(session),
        SqlAlchemyCreditTransactionRepository(session),
        commit_timeout=ApplicationConfig.COMMIT_TIMEOUT_SECONDS,
    )

    command = ReconcileCommandDTO(
        invoice_id=invoice_id,
        user_id=request.user_id,
        credit_to_apply=request.credit_to_apply,
        remainder=request.remainder,
        recorded_by=request.recorded_by,
        reference_number=request.reference_number,
        notes=request.notes,
        idempotency_key=request.idempotency_key,
    )
    result = await use_case.execute(command)

    if result.is_err():
        raise client_error(result.error)

    return result.value
